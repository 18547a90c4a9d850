"""Parsing of ``@Annotation(...)`` metadata on declarations and getters."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from morphgen.core.errors import ParseError
from morphgen.core.schema.declaration import JsonKeyInfo
from morphgen.dart.scanner import find_matching, parse_identifier, skip_ws_comments, split_top_level

MORPHY_ANNOTATIONS = frozenset({"Morphy", "morphy", "Morphy2", "morphy2"})

_NAMED_ARGUMENT = re.compile(r"^([A-Za-z_$][\w$]*)\s*:(?!:)\s*(.*)$", re.DOTALL)
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass(frozen=True)
class Annotation:
    """One parsed annotation.

    Argument values are kept as source text; ``value()`` converts one to a
    Python literal.
    """

    name: str
    offset: int
    named: Dict[str, str] = field(default_factory=dict)
    positional: Tuple[str, ...] = ()

    def value(self, key: str, default: Any = None) -> Any:
        raw = self.named.get(key)
        return default if raw is None else literal_value(raw)

    def values(self) -> Dict[str, Any]:
        return {key: literal_value(raw) for key, raw in self.named.items()}


def literal_value(raw: str) -> Any:
    """Convert an argument's source text into a Python value.

    Booleans, null, numbers, simple strings and lists are converted;
    anything else (identifiers, expressions) is returned as its text.

    Example:
        >>> literal_value("[$Cat, $Dog]")
        ['$Cat', '$Dog']
    """
    text = raw.strip()
    if text.startswith("const "):
        text = text[len("const "):].strip()
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    if _NUMBER.match(text):
        return float(text) if "." in text else int(text)
    if len(text) >= 2 and text[0] in "'\"" and text[-1] == text[0]:
        return text[1:-1]
    if text.startswith("[") and text.endswith("]"):
        return [literal_value(item) for item, _ in split_top_level(text[1:-1])]
    return text


def parse_arguments(text: str) -> Tuple[Dict[str, str], Tuple[str, ...]]:
    named: Dict[str, str] = {}
    positional: List[str] = []
    for piece, _ in split_top_level(text):
        match = _NAMED_ARGUMENT.match(piece)
        if match:
            named[match.group(1)] = match.group(2).strip()
        else:
            positional.append(piece)
    return named, tuple(positional)


def parse_annotation(text: str, i: int) -> Tuple[Annotation, int]:
    """Parse a single annotation starting at the ``@`` at index ``i``."""
    if text[i] != "@":
        raise ParseError("expected '@'", offset=i)
    name, j = parse_identifier(text, i + 1)
    while j < len(text) and text[j] == ".":
        # Prefixed annotation (@meta.Morphy): keep the last segment.
        name, j = parse_identifier(text, j + 1)
    k = skip_ws_comments(text, j)
    if k < len(text) and text[k] == "(":
        close = find_matching(text, k)
        named, positional = parse_arguments(text[k + 1:close])
        return Annotation(name, i, named, positional), close + 1
    return Annotation(name, i), j


def parse_annotations(text: str, i: int) -> Tuple[List[Annotation], int]:
    """Parse consecutive annotations starting at ``i``.

    Returns:
        Tuple of (annotations, index after the last one and any trailing whitespace)
    """
    annotations: List[Annotation] = []
    i = skip_ws_comments(text, i)
    while i < len(text) and text[i] == "@":
        annotation, i = parse_annotation(text, i)
        annotations.append(annotation)
        i = skip_ws_comments(text, i)
    return annotations, i


def find_annotation(annotations: List[Annotation], names) -> Optional[Annotation]:
    for annotation in annotations:
        if annotation.name in names:
            return annotation
    return None


def json_key_info(annotation: Annotation) -> JsonKeyInfo:
    """Build JsonKeyInfo from a ``@JsonKey(...)`` annotation.

    Flags are converted to booleans; default values and converter functions
    stay as source text so they can be emitted unchanged.
    """
    return JsonKeyInfo(
        name=annotation.value("name"),
        ignore=annotation.value("ignore"),
        default_value=annotation.named.get("defaultValue"),
        required=annotation.value("required"),
        include_if_null=annotation.value("includeIfNull"),
        include_from_json=annotation.value("includeFromJson"),
        include_to_json=annotation.value("includeToJson"),
        to_json=annotation.named.get("toJson"),
        from_json=annotation.named.get("fromJson"),
    )
