"""Shared fixtures: registries built from Dart source text."""

import pytest

from morphgen.core.registry import SchemaRegistry
from morphgen.dart.adapter import split_source
from morphgen.dart.declaration_parser import DeclarationParser


def build_registry(*sources, freeze=True):
    """Register every declaration and enum found in ``sources``."""
    parser = DeclarationParser()
    registry = SchemaRegistry()
    for index, text in enumerate(sources):
        split = split_source(text)
        for enum in split.enums:
            registry.register_enum(enum)
        for offset, chunk in split.declarations:
            registry.register(
                parser.parse(
                    chunk,
                    source_id=f"source{index}.dart",
                    base_offset=offset,
                    enum_names=registry.enum_names(),
                )
            )
    if freeze:
        registry.freeze()
    return registry


@pytest.fixture
def registry_from():
    return build_registry
