"""Unit tests for operation synthesis.

Tests cover:
- copy-with per ancestor interface and for the declaration itself
- patch-with assignments, nested patching and private fields
- change-to targets (own, explicit, reverse explicit) and parameters
- Signature-only operations on abstract declarations
"""

from morphgen.core.resolver import FieldResolver
from morphgen.core.synthesizer import AssignmentSource, OperationKind, OperationSynthesizer, has_body
from morphgen.dart.examples import COPYWITH_SUBCLASSES

PETS = """
@Morphy(explicitSubTypes: [$Cat, $Dog])
abstract class $$Pet {
  String get name;
}

@Morphy(explicitSubTypes: [$Dog])
abstract class $Cat implements $$Pet {
  int get lives;
}

@Morphy(hidePublicConstructor: true)
abstract class $Dog implements $$Pet {
  bool get goodBoy;
}
"""

PARCELS = """
@Morphy()
abstract class $Dimensions {
  double get width;
}

enum Speed { slow, fast }

@Morphy()
abstract class $Parcel {
  $Dimensions get size;
  $Dimensions? get box;
  Speed get speed;
  String get _token;
}
"""


def synthesize(registry_from, source, name):
    registry = registry_from(source)
    synthesizer = OperationSynthesizer(registry, FieldResolver(registry))
    return registry, synthesizer.synthesize(registry.lookup(name))


class TestCopyWith:
    """Tests for copy-with plans."""

    def test_one_plan_per_ancestor_and_self(self, registry_from):
        _, operations = synthesize(registry_from, COPYWITH_SUBCLASSES, "C")

        assert [p.method_name for p in operations.copy_with] == ["copyWithB", "copyWithA", "copyWithC"]

    def test_ancestor_plan(self, registry_from):
        _, operations = synthesize(registry_from, COPYWITH_SUBCLASSES, "B")
        plan = operations.find("copyWithA")

        assert plan.kind is OperationKind.COPY_WITH
        assert plan.owner == "B"
        assert plan.return_type == "A"
        assert plan.constructor == "B._"
        assert [(p.name, p.deferred) for p in plan.parameters] == [("a", True)]
        assert plan.assignment("a").source is AssignmentSource.OVERRIDE
        assert plan.assignment("b").source is AssignmentSource.RETAIN
        assert plan.has_body

    def test_self_plan_is_generic(self, registry_from):
        _, operations = synthesize(registry_from, COPYWITH_SUBCLASSES, "B")
        plan = operations.find("copyWithB")

        assert plan.return_type == "B<T1>"
        assert [p.name for p in plan.parameters] == ["a", "b"]
        assert plan.parameter("b").type_text == "T1"

    def test_sealed_declaration_gets_signatures_only(self, registry_from):
        _, operations = synthesize(registry_from, COPYWITH_SUBCLASSES, "A")

        assert [p.method_name for p in operations.copy_with] == ["copyWithA"]
        assert not operations.copy_with[0].has_body
        assert operations.change_to == []


class TestPatchWith:
    """Tests for patch-with plans."""

    def test_patch_sources(self, registry_from):
        _, operations = synthesize(registry_from, PARCELS, "Parcel")
        plan = operations.find("patchWithParcel")

        assert plan.parameters[0].name == "patchInput"
        assert plan.parameters[0].type_text == "ParcelPatch?"
        size = plan.assignment("size")
        assert size.source is AssignmentSource.PATCH_NESTED
        assert size.nested_type == "Dimensions"
        assert plan.assignment("box").source is AssignmentSource.PATCH_NESTED
        assert plan.assignment("speed").source is AssignmentSource.PATCH

    def test_private_field_patch_key(self, registry_from):
        _, operations = synthesize(registry_from, PARCELS, "Parcel")
        token = operations.find("patchWithParcel").assignment("_token")

        assert token.param == "token"

    def test_ancestor_patch_retains_other_fields(self, registry_from):
        _, operations = synthesize(registry_from, COPYWITH_SUBCLASSES, "B")
        plan = operations.find("patchWithA")

        assert plan.return_type == "A"
        assert plan.assignment("a").source is AssignmentSource.PATCH
        assert plan.assignment("b").source is AssignmentSource.RETAIN

    def test_no_patch_for_fieldless_interface(self, registry_from):
        source = "@Morphy()\nabstract class $$Marker {}\n\n@Morphy()\nabstract class $Tagged implements $$Marker {\n  int get x;\n}\n"
        _, operations = synthesize(registry_from, source, "Tagged")

        assert [p.method_name for p in operations.patch_with] == ["patchWithTagged"]
        assert [p.method_name for p in operations.copy_with] == ["copyWithMarker", "copyWithTagged"]


class TestChangeTo:
    """Tests for change-to plans."""

    def test_targets_include_own_explicit_and_reverse(self, registry_from):
        _, cat = synthesize(registry_from, PETS, "Cat")
        _, dog = synthesize(registry_from, PETS, "Dog")

        assert [p.method_name for p in cat.change_to] == ["changeToCat", "changeToDog"]
        assert [p.method_name for p in dog.change_to] == ["changeToDog", "changeToCat"]

    def test_sealed_base_converts_to_explicit_subtypes(self, registry_from):
        _, pet = synthesize(registry_from, PETS, "Pet")

        assert [p.method_name for p in pet.change_to] == ["changeToCat", "changeToDog"]
        assert all(p.has_body for p in pet.change_to)

    def test_required_parameters_first(self, registry_from):
        _, dog = synthesize(registry_from, PETS, "Dog")
        plan = dog.find("changeToCat")

        assert [(p.name, p.required, p.deferred) for p in plan.parameters] == [
            ("lives", True, False),
            ("name", False, True),
        ]
        assert plan.assignment("lives").source is AssignmentSource.REQUIRED
        assert plan.assignment("name").source is AssignmentSource.OVERRIDE
        assert plan.assignment("goodBoy") is None
        assert plan.constructor == "Cat"

    def test_hidden_constructor_target(self, registry_from):
        _, cat = synthesize(registry_from, PETS, "Cat")

        assert cat.find("changeToDog").constructor == "Dog._"
        assert cat.find("changeToCat").constructor == "Cat._"

    def test_generic_target_type_params(self, registry_from):
        source = """
@Morphy(explicitSubTypes: [$Tagged])
abstract class $Plain {
  String get id;
}

@Morphy()
abstract class $Tagged<T> {
  String get id;
  T get tag;
}
"""
        _, plain = synthesize(registry_from, source, "Plain")
        plan = plain.find("changeToTagged")

        assert [g.name for g in plan.type_params] == ["T"]
        assert plan.return_type == "Tagged<T>"
        assert plan.parameter("tag").required


class TestHasBody:
    """Tests for the body rule."""

    def test_rules(self, registry_from):
        registry = registry_from(
            "@Morphy(nonSealed: true)\nabstract class $$Open {\n  int get x;\n}\n\n"
            "@Morphy()\nabstract class $$Closed {}\n\n@Morphy()\nabstract class $Leaf {}\n"
        )
        open_ = registry.lookup("Open")

        assert has_body(registry.lookup("Leaf"), "Anything")
        assert has_body(open_, "Open")
        assert not has_body(open_, "Other")
        assert not has_body(registry.lookup("Closed"), "Closed")
