"""Declaration model: parsed type declarations and their members.

A declaration is immutable once parsed and is owned by the registry for the
duration of one generation run. Names keep their sigils (``$Foo`` for a plain
declaration, ``$$Foo`` for an abstract base); ``clean_name`` gives the name of
the generated type.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from morphgen.core.schema.issue import Issue
from morphgen.core.schema.options import GenerationOptions

SIGIL = "$"


def clean_name(name: str) -> str:
    """Strip leading sigils from a declaration name.

    Example:
        >>> clean_name("$$Product")
        'Product'
    """
    return name.lstrip(SIGIL)


@dataclass(frozen=True)
class JsonKeyInfo:
    """Serialization metadata attached to a field with ``@JsonKey``."""

    name: Optional[str] = None
    ignore: Optional[bool] = None
    default_value: Optional[str] = None
    required: Optional[bool] = None
    include_if_null: Optional[bool] = None
    include_from_json: Optional[bool] = None
    include_to_json: Optional[bool] = None
    to_json: Optional[str] = None
    from_json: Optional[str] = None


@dataclass(frozen=True)
class FieldDescriptor:
    """A field declared as an abstract getter.

    Attributes:
        name: Field name as declared (may start with ``_``)
        type_text: Declared type expression, sigils included
        is_enum: Whether the type names a known enum
        json_key: ``@JsonKey`` metadata (optional)
        comment: Doc comment preceding the getter (optional)
        offset: Offset of the getter in the source text (optional)
    """

    name: str
    type_text: str
    is_enum: bool = False
    json_key: Optional[JsonKeyInfo] = None
    comment: Optional[str] = None
    offset: Optional[int] = None

    @property
    def nullable(self) -> bool:
        return self.type_text.rstrip().endswith("?")


@dataclass(frozen=True)
class GenericParam:
    name: str
    bound: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name} extends {self.bound}" if self.bound else self.name


@dataclass(frozen=True)
class InterfaceRef:
    """Reference to an implemented interface, with its type arguments."""

    name: str
    type_args: Tuple[str, ...] = ()

    @property
    def clean_name(self) -> str:
        return clean_name(self.name)


class BodyKind(str, Enum):
    EXPRESSION = "expression"
    BLOCK = "block"


@dataclass(frozen=True)
class Parameter:
    """A single alternate-constructor parameter."""

    name: str
    type_text: Optional[str] = None
    named: bool = False
    required: bool = True
    default: Optional[str] = None


@dataclass(frozen=True)
class AlternateConstructor:
    """A hand-written named factory constructor.

    ``body_text`` is the exact source slice of the body (between the outer
    braces for a block body, between ``=>`` and ``;`` for an expression body),
    or None when extraction failed and the constructor falls back to a
    synthesized body.
    """

    name: str
    parameters: Tuple[Parameter, ...]
    body_kind: BodyKind
    body_text: Optional[str]
    body_start: int
    body_end: int
    comment: Optional[str] = None

    @property
    def extracted(self) -> bool:
        return self.body_text is not None


@dataclass(frozen=True)
class TypeDeclaration:
    """A parsed, annotated type declaration.

    Attributes:
        name: Sigil-prefixed name (``$Foo`` or ``$$Foo``)
        generics: Generic parameters with optional bounds
        fields: Fields declared directly on this declaration
        interfaces: Implemented interfaces, in declaration order
        constructors: Alternate factory constructors
        options: Generation options (annotation merged with caller overrides)
        source_id: Identifier of the source the declaration came from
        comment: Doc comment preceding the declaration (optional)
        has_const_constructor: Whether a ``const`` constructor is declared
        constructor_issues: Extraction problems found in alternate constructors
        raw_text: The declaration text as registered
    """

    name: str
    generics: Tuple[GenericParam, ...] = ()
    fields: Tuple[FieldDescriptor, ...] = ()
    interfaces: Tuple[InterfaceRef, ...] = ()
    constructors: Tuple[AlternateConstructor, ...] = ()
    options: GenerationOptions = field(default_factory=GenerationOptions)
    source_id: str = "<memory>"
    comment: Optional[str] = None
    has_const_constructor: bool = False
    constructor_issues: Tuple[Issue, ...] = ()
    raw_text: str = ""

    @property
    def clean_name(self) -> str:
        return clean_name(self.name)

    @property
    def is_abstract(self) -> bool:
        """Whether the declaration uses the double sigil."""
        return self.name.startswith(SIGIL * 2)

    @property
    def sealed(self) -> bool:
        return self.is_abstract and not self.options.non_sealed

    @property
    def explicit_subtypes(self) -> Tuple[str, ...]:
        return self.options.explicit_subtypes

    @property
    def hide_public_constructor(self) -> bool:
        """Hidden when requested, or when the clean name ends with ``_``."""
        return self.options.hide_public_constructor or self.clean_name.endswith("_")

    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.raw_text.encode("utf-8")).hexdigest()

    def field_named(self, name: str) -> Optional[FieldDescriptor]:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    def to_dict(self) -> dict[str, Any]:
        """Summarize the declaration for logging and manifests."""
        return {
            "name": self.name,
            "generics": [str(g) for g in self.generics],
            "fields": {f.name: f.type_text for f in self.fields},
            "interfaces": [i.name for i in self.interfaces],
            "constructors": [c.name for c in self.constructors],
            "options": self.options.to_dict(),
            "source_id": self.source_id,
        }
