"""Unit tests for declaration and annotation parsing.

Tests cover:
- Names, generics, interfaces and fields
- @Morphy options and caller overrides
- @JsonKey metadata on getters
- Alternate factory constructors
- Structural violations and offsets
"""

import pytest

from morphgen.core.errors import ParseError, StructuralViolation
from morphgen.core.schema.declaration import BodyKind, GenericParam, InterfaceRef
from morphgen.core.schema.issue import IssueKind
from morphgen.dart.annotations import literal_value, parse_annotation
from morphgen.dart.declaration_parser import DeclarationParser, parse_parameters
from morphgen.dart.examples import PRODUCT_CATALOG


@pytest.fixture
def parser():
    return DeclarationParser()


B_DECLARATION = """/// A subclass with a generic field.
@Morphy()
abstract class $B<T1> implements $$A {
  String get a;

  T1 get b;
}"""


class TestAnnotations:
    """Tests for annotation argument parsing."""

    def test_morphy_arguments(self):
        text = "@Morphy(generateJson: true, explicitSubTypes: [$Cat, $Dog])"
        annotation, end = parse_annotation(text, 0)

        assert annotation.name == "Morphy"
        assert end == len(text)
        assert annotation.values() == {"generateJson": True, "explicitSubTypes": ["$Cat", "$Dog"]}

    def test_prefixed_annotation(self):
        annotation, _ = parse_annotation("@meta.Morphy()", 0)
        assert annotation.name == "Morphy"

    def test_literal_values(self):
        assert literal_value("false") is False
        assert literal_value("null") is None
        assert literal_value("3") == 3
        assert literal_value("2.5") == 2.5
        assert literal_value("'x'") == "x"
        assert literal_value("const []") == []
        assert literal_value("DateTime.now()") == "DateTime.now()"


class TestDeclarationHeader:
    """Tests for the class header."""

    def test_generic_subclass(self, parser):
        declaration = parser.parse(B_DECLARATION, source_id="lib/b.dart")

        assert declaration.name == "$B"
        assert declaration.clean_name == "B"
        assert declaration.generics == (GenericParam("T1"),)
        assert declaration.interfaces == (InterfaceRef("$$A"),)
        assert [(f.name, f.type_text) for f in declaration.fields] == [("a", "String"), ("b", "T1")]
        assert declaration.comment == "/// A subclass with a generic field."
        assert declaration.source_id == "lib/b.dart"
        assert not declaration.is_abstract

    def test_sealed_base(self, parser):
        declaration = parser.parse("@Morphy()\nabstract class $$Pet {\n  String get name;\n}")

        assert declaration.is_abstract
        assert declaration.sealed

    def test_non_sealed_base(self, parser):
        declaration = parser.parse("@Morphy(nonSealed: true)\nabstract class $$Pet {}")

        assert declaration.is_abstract
        assert not declaration.sealed

    def test_bounded_generics_and_type_arguments(self, parser):
        text = "@Morphy()\nabstract class $Box<K extends Comparable<K>, V> implements $Pair<K, List<V>> {}"
        declaration = parser.parse(text)

        assert declaration.generics == (GenericParam("K", "Comparable<K>"), GenericParam("V"))
        assert declaration.interfaces == (InterfaceRef("$Pair", ("K", "List<V>")),)

    def test_options_from_annotation_and_overrides(self, parser):
        text = "@Morphy(generateJson: true, explicitSubTypes: [$Cat])\nabstract class $$Pet {}"
        declaration = parser.parse(text, options={"hidePublicConstructor": True, "generateJson": False})

        assert declaration.explicit_subtypes == ("$Cat",)
        assert declaration.options.hide_public_constructor
        assert not declaration.options.generate_json

    def test_trailing_underscore_hides_public_constructor(self, parser):
        declaration = parser.parse("@Morphy()\nabstract class $Secret_ {}")
        assert declaration.hide_public_constructor


class TestMembers:
    """Tests for getters and other members."""

    def test_json_key_and_enum_fields(self, parser):
        text = """@Morphy(generateJson: true)
abstract class $Order {
  @JsonKey(name: 'order_id', required: true)
  String get id;
  /// Current state.
  OrderStatus get status;
  List<$Item>? get items;
  String get label => 'x';
  static const int max = 3;
}"""
        declaration = parser.parse(text, enum_names=frozenset({"OrderStatus"}))

        assert [f.name for f in declaration.fields] == ["id", "status", "items"]
        id_field = declaration.field_named("id")
        assert id_field.json_key.name == "order_id"
        assert id_field.json_key.required is True
        status = declaration.field_named("status")
        assert status.is_enum
        assert status.comment == "/// Current state."
        assert declaration.field_named("items").nullable

    def test_const_constructor_flag(self, parser):
        declaration = parser.parse("@Morphy()\nabstract class $P {\n  const $P();\n  int get x;\n}")

        assert declaration.has_const_constructor
        assert [f.name for f in declaration.fields] == ["x"]

    def test_field_offsets_are_absolute(self, parser):
        declaration = parser.parse(B_DECLARATION, base_offset=100)
        field = declaration.field_named("b")

        assert field.offset == 100 + B_DECLARATION.index("T1 get b")


class TestAlternateConstructors:
    """Tests for hand-written factories."""

    def test_catalog_factories(self, parser):
        start = PRODUCT_CATALOG.index("/// Product that ships in a box.")
        end = PRODUCT_CATALOG.index("/// Product delivered as a download.")
        declaration = parser.parse(PRODUCT_CATALOG[start:end])

        (create,) = declaration.constructors
        assert create.name == "create"
        assert create.body_kind is BodyKind.BLOCK
        assert create.comment == "/// Create a draft product with a generated SKU."
        assert '"}$ not code {"' in create.body_text
        assert create.body_text.rstrip().endswith(");")
        assert [p.name for p in create.parameters] == ["name", "price", "dimensions", "sku"]
        assert [p.required for p in create.parameters] == [True, True, True, False]
        assert [f.name for f in declaration.fields] == ["weight", "dimensions", "sku"]

    def test_expression_factory(self, parser):
        text = "@Morphy()\nabstract class $D {\n  int get x;\n  factory $D.zero() => $D._(x: 0);\n}"
        declaration = parser.parse(text)

        (zero,) = declaration.constructors
        assert zero.body_kind is BodyKind.EXPRESSION
        assert zero.body_text == " $D._(x: 0)"
        assert text[zero.body_start:zero.body_end] == zero.body_text

    def test_factory_without_body_is_reported_and_scanning_continues(self, parser):
        text = "@Morphy()\nabstract class $D {\n  factory $D.other() = $E;\n  int get x;\n}"
        declaration = parser.parse(text, source_id="d.dart")

        (other,) = declaration.constructors
        assert not other.extracted
        (issue,) = declaration.constructor_issues
        assert issue.kind is IssueKind.PARSE
        assert issue.declaration == "$D"
        assert issue.source_id == "d.dart"
        assert [f.name for f in declaration.fields] == ["x"]

    def test_unterminated_string_in_factory_falls_back(self, parser):
        text = (
            "@Morphy()\nabstract class $B implements $A {\n  String get a;\n\n"
            "  factory $B.bad(int x) { return $B._(a: 'oops, b: x); }\n\n  int get b;\n}"
        )
        declaration = parser.parse(text, source_id="b.dart")

        assert [f.name for f in declaration.fields] == ["a", "b"]
        (bad,) = declaration.constructors
        assert bad.name == "bad"
        assert not bad.extracted
        assert [p.name for p in bad.parameters] == ["x"]
        (issue,) = declaration.constructor_issues
        assert issue.kind is IssueKind.PARSE
        assert issue.declaration == "$B"
        assert issue.source_id == "b.dart"
        assert "unterminated string literal" in issue.message
        assert issue.offset == text.index("'oops")

    def test_mismatched_bracket_in_factory_falls_back(self, parser):
        text = (
            "@Morphy()\nabstract class $B {\n"
            "  factory $B.bad(int x) { return $B._(b: x; }\n  int get b;\n}"
        )
        declaration = parser.parse(text)

        assert [f.name for f in declaration.fields] == ["b"]
        assert not declaration.constructors[0].extracted
        (issue,) = declaration.constructor_issues
        assert issue.declaration == "$B"
        assert "mismatched" in issue.message

    def test_unnamed_factory_is_reported(self, parser):
        text = "@Morphy()\nabstract class $D {\n  factory $D() => $D._();\n  int get x;\n}"
        declaration = parser.parse(text)

        assert declaration.constructors == ()
        assert len(declaration.constructor_issues) == 1
        assert [f.name for f in declaration.fields] == ["x"]

    def test_parameter_lists(self):
        params = parse_parameters("int a, [String b = 'x'], ")
        assert [(p.name, p.type_text, p.required, p.default) for p in params] == [
            ("a", "int", True, None),
            ("b", "String", False, "'x'"),
        ]


class TestStructuralViolations:
    """Tests for rejected declarations."""

    def test_not_an_abstract_class(self, parser):
        with pytest.raises(StructuralViolation, match="abstract class"):
            parser.parse("@Morphy()\nclass $Foo {}")

    def test_missing_sigil(self, parser):
        with pytest.raises(StructuralViolation, match="must start with"):
            parser.parse("@Morphy()\nabstract class Foo {}")

    def test_extends_is_rejected(self, parser):
        with pytest.raises(StructuralViolation, match="you must use implements, not extends"):
            parser.parse("@Morphy()\nabstract class $Foo extends $Bar {}")

    def test_with_is_rejected(self, parser):
        with pytest.raises(StructuralViolation, match="not with"):
            parser.parse("@Morphy()\nabstract class $Foo with $Bar {}")

    def test_unbalanced_body(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("@Morphy()\nabstract class $Foo {\n  int get x;\n")

        assert exc_info.value.declaration == "$Foo"

    def test_malformed_getter_names_the_declaration(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse('@Morphy()\nabstract class $Foo {\n  String x = "open;\n}')

        assert exc_info.value.declaration == "$Foo"

    def test_error_offset_includes_base_offset(self, parser):
        text = "@Morphy()\nabstract class Foo {}"
        with pytest.raises(StructuralViolation) as exc_info:
            parser.parse(text, base_offset=50)

        assert exc_info.value.offset == 50 + text.index("Foo")
