"""Options manifests: per-declaration annotation overrides kept in YAML.

A manifest lets a build override annotation parameters without touching the
sources::

    defaults:
      generateJson: true
    declarations:
      $$Pet:
        explicitSubTypes: [$Cat, $Dog]
      $Cat:
        hidePublicConstructor: true

Keys use the annotation spelling (camelCase) or snake_case.
"""

import logging
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger(__name__)


def _create_yaml_instance() -> YAML:
    yaml = YAML(typ="safe")
    yaml.default_flow_style = False
    yaml.allow_unicode = True
    return yaml


@dataclass
class OptionsManifest:
    """Option overrides loaded from a manifest.

    Attributes:
        defaults: Overrides applied to every declaration
        declarations: Overrides per declaration name, applied after defaults
    """

    defaults: Dict[str, Any] = field(default_factory=dict)
    declarations: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"defaults": dict(self.defaults), "declarations": dict(self.declarations)}


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{where} must be a mapping, got {type(value).__name__}")
    return {str(k): v for k, v in value.items()}


def parse_options_manifest(text: str, source: str = "<string>") -> OptionsManifest:
    """Parse manifest text.

    Raises:
        ValueError: If the text is not valid YAML or has the wrong shape
    """
    try:
        data = _create_yaml_instance().load(text)
    except YAMLError as e:
        raise ValueError(f"invalid options manifest {source}: {e}") from e

    data = _mapping(data, f"options manifest {source}")
    unknown = set(data) - {"defaults", "declarations"}
    if unknown:
        logger.warning(f"Ignoring unknown manifest sections in {source}: {sorted(unknown)}")

    declarations = {
        name: _mapping(options, f"options for {name}")
        for name, options in _mapping(data.get("declarations"), "declarations").items()
    }
    manifest = OptionsManifest(
        defaults=_mapping(data.get("defaults"), "defaults"),
        declarations=declarations,
    )
    logger.info(f"Loaded options manifest {source} ({len(declarations)} declaration(s))")
    return manifest


def load_options_manifest(path: Union[str, Path]) -> OptionsManifest:
    """Load a manifest file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If it is not a valid manifest
    """
    path = Path(path)
    return parse_options_manifest(path.read_text(encoding="utf-8"), str(path))


def dump_options_manifest(manifest: OptionsManifest, path: Optional[Union[str, Path]] = None) -> str:
    """Serialize a manifest, writing it to ``path`` when given."""
    stream = StringIO()
    _create_yaml_instance().dump(manifest.to_dict(), stream)
    text = stream.getvalue()
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
    return text
