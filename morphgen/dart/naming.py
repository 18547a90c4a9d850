"""Naming conventions of generated Dart code."""

from typing import AbstractSet, Sequence

from morphgen.core.schema.declaration import GenericParam
from morphgen.dart.rewriter import IdentifierRewriter

_rewriter = IdentifierRewriter()


def render_type(type_text: str, known_type_names: AbstractSet[str]) -> str:
    """Type text with sigils removed from references to generated types."""
    return _rewriter.rewrite(type_text, known_type_names)


def generic_params(generics: Sequence[GenericParam], known_type_names: AbstractSet[str] = frozenset()) -> str:
    """``<T extends num, U>`` or an empty string."""
    if not generics:
        return ""
    parts = []
    for g in generics:
        parts.append(f"{g.name} extends {render_type(g.bound, known_type_names)}" if g.bound else g.name)
    return f"<{', '.join(parts)}>"


def generic_args(generics: Sequence[GenericParam]) -> str:
    """``<T, U>`` or an empty string."""
    if not generics:
        return ""
    return f"<{', '.join(g.name for g in generics)}>"


def patch_class_name(type_name: str) -> str:
    return f"{type_name}Patch"


def field_enum_name(type_name: str) -> str:
    return f"{type_name}$"


def param_name(field_name: str) -> str:
    """Constructor parameter name of a field (named parameters cannot be private)."""
    return field_name[1:] if field_name.startswith("_") else field_name


def capitalize(name: str) -> str:
    stripped = param_name(name)
    return stripped[:1].upper() + stripped[1:]
