"""
Core schema definitions for declarations, options, issues and entities.

The patch algebra lives in ``morphgen.core.schema.patch_map`` and is imported
from there directly.
"""

from morphgen.core.schema.declaration import (
    AlternateConstructor,
    BodyKind,
    FieldDescriptor,
    GenericParam,
    InterfaceRef,
    JsonKeyInfo,
    Parameter,
    TypeDeclaration,
    clean_name,
)
from morphgen.core.schema.entity import Entity
from morphgen.core.schema.issue import Issue, IssueKind
from morphgen.core.schema.options import GenerationOptions

__all__ = [
    "AlternateConstructor",
    "BodyKind",
    "Entity",
    "FieldDescriptor",
    "GenerationOptions",
    "GenericParam",
    "InterfaceRef",
    "Issue",
    "IssueKind",
    "JsonKeyInfo",
    "Parameter",
    "TypeDeclaration",
    "clean_name",
]
