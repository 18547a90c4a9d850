"""Per-declaration generation options."""

import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# Annotation parameter names (camelCase) mapped to option attributes.
_ANNOTATION_KEYS = {
    "generateJson": "generate_json",
    "explicitSubTypes": "explicit_subtypes",
    "explicitSubtypes": "explicit_subtypes",
    "hidePublicConstructor": "hide_public_constructor",
    "nonSealed": "non_sealed",
    "explicitToJson": "explicit_to_json",
    "generateCompareTo": "generate_compare_to",
}


@dataclass(frozen=True)
class GenerationOptions:
    """Switches controlling what is generated for one declaration.

    Attributes:
        generate_json: Emit JSON serialization hooks
        explicit_subtypes: Sibling declaration names reachable by change-to
        hide_public_constructor: Omit the public constructor
        non_sealed: Treat a ``$$`` declaration as an open abstract class
        explicit_to_json: Pass ``explicitToJson`` to the JSON annotation
        generate_compare_to: Emit the compare-to extension
    """

    generate_json: bool = False
    explicit_subtypes: Tuple[str, ...] = ()
    hide_public_constructor: bool = False
    non_sealed: bool = False
    explicit_to_json: bool = True
    generate_compare_to: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "GenerationOptions":
        """Build options from annotation or manifest parameters.

        Accepts both annotation spelling (``generateJson``) and snake case
        (``generate_json``). Unknown keys are logged and ignored.

        Args:
            data: Parameter mapping (None yields defaults)

        Returns:
            GenerationOptions instance
        """
        return cls().merged(data)

    def merged(self, data: Optional[Mapping[str, Any]]) -> "GenerationOptions":
        """Return a copy with the given parameters overriding this one."""
        if not data:
            return self
        known = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _ANNOTATION_KEYS.get(key, key)
            if attr not in known:
                logger.warning(f"Ignoring unknown generation option '{key}'")
                continue
            if attr == "explicit_subtypes":
                changes[attr] = _as_name_tuple(value)
            else:
                changes[attr] = bool(value)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generate_json": self.generate_json,
            "explicit_subtypes": list(self.explicit_subtypes),
            "hide_public_constructor": self.hide_public_constructor,
            "non_sealed": self.non_sealed,
            "explicit_to_json": self.explicit_to_json,
            "generate_compare_to": self.generate_compare_to,
        }


def _as_name_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    raise ValueError(f"explicit_subtypes must be a list of names, got {value!r}")
