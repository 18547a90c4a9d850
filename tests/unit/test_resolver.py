"""Unit tests for field resolution across interfaces and generics.

Tests cover:
- Union of own and inherited fields, precedence and order
- Generic substitution along multi-level paths
- Cycles, unresolved references and arity errors
- Ambiguous inherited types
- Interface listing (ancestors, explicit siblings)
"""

import pytest

from morphgen.core.errors import UnresolvedGenericBoundError, UnresolvedReferenceError
from morphgen.core.resolver import FieldResolver, base_type_name, substitute_type
from morphgen.core.schema.issue import IssueKind
from morphgen.dart.examples import COPYWITH_SUBCLASSES

BOXES = """
@Morphy()
abstract class $Box<T> {
  T get item;
}

@Morphy()
abstract class $IntBox implements $Box<int> {}

@Morphy()
abstract class $Holder<U> implements $Box<List<U>> {
  U get first;
}

@Morphy()
abstract class $Leaf implements $Holder<String> {}

@Morphy()
abstract class $RawBox implements $Box {}

@Morphy()
abstract class $Num<N extends num> {
  N? get n;
}

@Morphy()
abstract class $DefaultNum implements $Num {}

@Morphy()
abstract class $NullableNum implements $Num<int?> {}
"""


def resolver_for(registry_from, *sources):
    registry = registry_from(*sources)
    return registry, FieldResolver(registry)


class TestHelpers:
    """Tests for type text helpers."""

    def test_substitute_is_token_level(self):
        assert substitute_type("Map<T, List<T1>>", {"T": "int", "T1": "String"}) == "Map<int, List<String>>"
        assert substitute_type("Tx", {"T": "int"}) == "Tx"

    def test_substitute_collapses_double_nullable(self):
        assert substitute_type("T?", {"T": "int?"}) == "int?"

    def test_base_type_name(self):
        assert base_type_name("$Box<int>?") == "Box"
        assert base_type_name("List<String>") == "List"


class TestResolveFields:
    """Tests for FieldResolver.resolve_fields."""

    def test_subclass_union(self, registry_from):
        registry, resolver = resolver_for(registry_from, COPYWITH_SUBCLASSES)
        resolved = resolver.resolve_fields(registry.lookup("$B"))

        assert resolved.types() == {"a": "String", "b": "T1"}
        assert resolved.get("a").declaring_type == "B"

    def test_generic_instantiation(self, registry_from):
        registry, resolver = resolver_for(registry_from, COPYWITH_SUBCLASSES)
        resolved = resolver.instantiate(registry.lookup("B"), ("int",))

        assert resolved.types() == {"a": "String", "b": "int"}

    def test_three_levels_ordered(self, registry_from):
        registry, resolver = resolver_for(registry_from, COPYWITH_SUBCLASSES)
        resolved = resolver.resolve_fields(registry.lookup("C"))

        assert resolved.names() == ("a", "b", "c")

    def test_own_fields_win(self, registry_from):
        source = """
@Morphy()
abstract class $Base {
  num get value;
}

@Morphy()
abstract class $Child implements $Base {
  int get value;
}
"""
        registry, resolver = resolver_for(registry_from, source)
        resolved = resolver.resolve_fields(registry.lookup("Child"))

        assert resolved.types() == {"value": "int"}
        assert resolved.get("value").declaring_type == "Child"
        assert resolved.issues == ()

    def test_substitution_through_levels(self, registry_from):
        registry, resolver = resolver_for(registry_from, BOXES)

        assert resolver.resolve_fields(registry.lookup("IntBox")).types() == {"item": "int"}
        assert resolver.resolve_fields(registry.lookup("Leaf")).types() == {
            "item": "List<String>",
            "first": "String",
        }

    def test_missing_type_arguments_use_bound_or_dynamic(self, registry_from):
        registry, resolver = resolver_for(registry_from, BOXES)

        assert resolver.resolve_fields(registry.lookup("RawBox")).types() == {"item": "dynamic"}
        assert resolver.resolve_fields(registry.lookup("DefaultNum")).types() == {"n": "num?"}
        assert resolver.resolve_fields(registry.lookup("NullableNum")).types() == {"n": "int?"}

    def test_too_many_type_arguments(self, registry_from):
        source = BOXES + "\n@Morphy()\nabstract class $Bad implements $Box<int, String> {}\n"
        registry, resolver = resolver_for(registry_from, source)

        with pytest.raises(UnresolvedGenericBoundError) as exc_info:
            resolver.resolve_fields(registry.lookup("Bad"))
        assert exc_info.value.declaration == "$Bad"

    def test_unregistered_interface(self, registry_from):
        source = "@Morphy()\nabstract class $Lost implements $Missing {\n  int get x;\n}\n"
        registry, resolver = resolver_for(registry_from, source)

        with pytest.raises(UnresolvedReferenceError, match=r"\$Missing"):
            resolver.resolve_fields(registry.lookup("Lost"))

    def test_cycle_terminates(self, registry_from):
        source = """
@Morphy()
abstract class $P implements $Q {
  int get p;
}

@Morphy()
abstract class $Q implements $P {
  int get q;
}
"""
        registry, resolver = resolver_for(registry_from, source)

        assert set(resolver.resolve_fields(registry.lookup("P")).names()) == {"p", "q"}
        assert set(resolver.resolve_fields(registry.lookup("Q")).names()) == {"p", "q"}

    def test_conflicting_ancestors_warn(self, registry_from):
        source = """
@Morphy()
abstract class $Left {
  int get x;
}

@Morphy()
abstract class $Right {
  String get x;
}

@Morphy()
abstract class $Both implements $Left, $Right {}
"""
        registry, resolver = resolver_for(registry_from, source)
        resolved = resolver.resolve_fields(registry.lookup("Both"))

        assert resolved.types() == {"x": "int"}
        (issue,) = resolved.issues
        assert issue.kind is IssueKind.AMBIGUITY
        assert issue.severity == "warning"
        assert issue.declaration == "$Both"

    def test_enum_fields_flagged(self, registry_from):
        source = "enum Color { red, blue }\n\n@Morphy()\nabstract class $Paint {\n  Color get color;\n}\n"
        registry, resolver = resolver_for(registry_from, source)

        assert resolver.resolve_fields(registry.lookup("Paint")).get("color").is_enum


class TestResolveInterfaces:
    """Tests for FieldResolver.resolve_interfaces."""

    def test_ancestors_in_traversal_order(self, registry_from):
        registry, resolver = resolver_for(registry_from, COPYWITH_SUBCLASSES)
        interfaces = resolver.resolve_interfaces(registry.lookup("C"))

        assert [i.name for i in interfaces] == ["B", "A"]
        assert interfaces[0].type_text == "B<T1>"
        assert interfaces[0].field_names() == ("a", "b")
        assert not any(i.explicit for i in interfaces)

    def test_explicit_siblings_follow_ancestors(self, registry_from):
        source = """
@Morphy(explicitSubTypes: [$Cat])
abstract class $$Pet {
  String get name;
}

@Morphy(explicitSubTypes: [$Dog])
abstract class $Cat implements $$Pet {
  int get lives;
}

@Morphy()
abstract class $Dog implements $$Pet {
  bool get goodBoy;
}
"""
        registry, resolver = resolver_for(registry_from, source)
        interfaces = resolver.resolve_interfaces(registry.lookup("Cat"))

        assert [(i.name, i.explicit) for i in interfaces] == [("Pet", False), ("Dog", True)]
        assert interfaces[1].field_names() == ("goodBoy", "name")

    def test_unregistered_explicit_subtype(self, registry_from):
        source = "@Morphy(explicitSubTypes: [$Ghost])\nabstract class $$Pet {}\n"
        registry, resolver = resolver_for(registry_from, source)

        with pytest.raises(UnresolvedReferenceError, match="Ghost"):
            resolver.resolve_interfaces(registry.lookup("Pet"))
