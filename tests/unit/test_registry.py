"""Unit tests for the schema registry and its phase barrier."""

import pytest

from morphgen.core.errors import DuplicateDeclarationError, RegistryStateError
from morphgen.core.registry import SchemaRegistry
from morphgen.core.schema.declaration import TypeDeclaration
from morphgen.core.schema.options import GenerationOptions


def declaration(name, **options):
    return TypeDeclaration(name=name, options=GenerationOptions.from_mapping(options))


class TestRegistration:
    """Tests for phase 1."""

    def test_register_and_lookup_by_either_name(self):
        registry = SchemaRegistry()
        registry.register(declaration("$$Pet"))
        registry.freeze()

        assert registry.lookup("$$Pet").name == "$$Pet"
        assert registry.lookup("Pet").name == "$$Pet"
        assert registry.lookup("Dog") is None
        assert "Pet" in registry and "$$Pet" in registry
        assert len(registry) == 1

    def test_duplicate_clean_name(self):
        registry = SchemaRegistry()
        registry.register(declaration("$Pet"))

        with pytest.raises(DuplicateDeclarationError):
            registry.register(declaration("$$Pet"))

    def test_known_and_patchable_names_exclude_enums(self):
        registry = SchemaRegistry()
        registry.register(declaration("$Cat"))
        registry.register_enum("Color")

        assert registry.known_type_names() == frozenset({"Cat"})
        assert registry.patchable_type_names() == frozenset({"Cat"})
        assert registry.enum_names() == frozenset({"Color"})

    def test_declarations_sorted_by_clean_name(self):
        registry = SchemaRegistry()
        for name in ("$Zebra", "$$Animal", "$Mole"):
            registry.register(declaration(name))

        assert [d.name for d in registry.declarations()] == ["$$Animal", "$Mole", "$Zebra"]


class TestPhaseBarrier:
    """Tests for freeze()."""

    def test_lookup_before_freeze(self):
        registry = SchemaRegistry()
        registry.register(declaration("$Cat"))

        with pytest.raises(RegistryStateError):
            registry.lookup("Cat")

    def test_register_after_freeze(self):
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryStateError):
            registry.register(declaration("$Cat"))
        with pytest.raises(RegistryStateError):
            registry.register_enum("Color")

    def test_freeze_is_idempotent(self):
        registry = SchemaRegistry()
        registry.freeze()
        registry.freeze()

        assert registry.frozen

    def test_reverse_explicit_edges(self):
        registry = SchemaRegistry()
        registry.register(declaration("$$Pet", explicitSubTypes=["$Cat", "$Dog"]))
        registry.register(declaration("$Cat", explicitSubTypes=["$Dog"]))
        registry.register(declaration("$Dog"))
        registry.freeze()

        assert registry.explicit_subtype_sources("$Dog") == ("$$Pet", "$Cat")
        assert registry.explicit_subtype_sources("Cat") == ("$$Pet",)
        assert registry.explicit_subtype_sources("Pet") == ()
