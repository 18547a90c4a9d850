"""Unit tests for core schema definitions.

Tests cover:
- Entity construction, access and rendering
- Issue serialization and formatting
- Generation options parsing
- Conversion of errors to issues
"""

import pytest

from morphgen.core.errors import (
    DuplicateDeclarationError,
    MorphgenError,
    ParseError,
    StructuralViolation,
    UnresolvedReferenceError,
)
from morphgen.core.schema import Entity, GenerationOptions, Issue, IssueKind, TypeDeclaration, clean_name
from morphgen.core.schema.entity import CLASS_NAME_KEY


class TestEntity:
    """Tests for Entity."""

    def test_access(self):
        entity = Entity.of("B", a="a", b=5)

        assert entity.field_names == ("a", "b")
        assert entity["b"] == 5
        assert entity.get("missing", 1) == 1
        assert "a" in entity
        assert list(entity) == ["a", "b"]
        with pytest.raises(KeyError):
            entity["missing"]

    def test_rendering_matches_generated_to_string(self):
        assert str(Entity.of("C", a="a", b=5, c=True)) == "(C-a:a|b:5|c:true)"
        assert str(Entity.of("D", x=None)) == "(D-x:null)"

    def test_replace(self):
        entity = Entity.of("B", a="a", b=5)

        assert entity.replace(b=6) == Entity.of("B", a="a", b=6)
        with pytest.raises(KeyError):
            entity.replace(c=1)

    def test_serializable_tags_class_name(self):
        entity = Entity.of("Parcel", size=Entity.of("Dimensions", width=1.0), tags=("a",))

        assert entity.to_serializable() == {
            "size": {"width": 1.0, CLASS_NAME_KEY: "Dimensions"},
            "tags": ["a"],
            CLASS_NAME_KEY: "Parcel",
        }

    def test_from_mapping(self):
        assert Entity.from_mapping("B", {"a": 1}) == Entity.of("B", a=1)


class TestIssue:
    """Tests for Issue."""

    def test_to_dict_omits_unset_fields(self):
        issue = Issue(IssueKind.PARSE, "unterminated string")

        assert issue.to_dict() == {"kind": "parse_error", "message": "unterminated string", "severity": "error"}

    def test_str(self):
        issue = Issue(
            IssueKind.STRUCTURAL,
            "bad name",
            declaration="Foo",
            hint="rename it",
            offset=12,
            source_id="lib/a.dart",
        )

        assert str(issue) == "lib/a.dart:12: error [Foo]: bad name (hint: rename it)"

    def test_warning_is_not_error(self):
        assert not Issue(IssueKind.AMBIGUITY, "x", severity="warning").is_error


class TestGenerationOptions:
    """Tests for GenerationOptions."""

    def test_defaults(self):
        options = GenerationOptions()

        assert not options.generate_json
        assert options.explicit_to_json
        assert options.explicit_subtypes == ()

    def test_annotation_and_snake_case_keys(self):
        options = GenerationOptions.from_mapping(
            {"generateJson": True, "explicitSubTypes": ["$Cat"], "non_sealed": True}
        )

        assert options.generate_json
        assert options.explicit_subtypes == ("$Cat",)
        assert options.non_sealed

    def test_unknown_keys_are_ignored(self, caplog):
        options = GenerationOptions.from_mapping({"generateCopyWithFn": True})

        assert options == GenerationOptions()
        assert "generateCopyWithFn" in caplog.text

    def test_merged_overrides(self):
        base = GenerationOptions.from_mapping({"generateJson": True})

        assert not base.merged({"generateJson": False}).generate_json
        assert base.merged(None) is base

    def test_invalid_subtypes(self):
        with pytest.raises(ValueError):
            GenerationOptions.from_mapping({"explicitSubTypes": 3})


class TestDeclaration:
    """Tests for TypeDeclaration helpers."""

    def test_clean_name(self):
        assert clean_name("$$Pet") == "Pet"
        assert clean_name("Pet") == "Pet"

    def test_content_hash_tracks_text(self):
        a = TypeDeclaration(name="$A", raw_text="x")
        b = TypeDeclaration(name="$A", raw_text="y")

        assert a.content_hash != b.content_hash
        assert a.content_hash == TypeDeclaration(name="$A", raw_text="x").content_hash


class TestErrors:
    """Tests for error to issue conversion."""

    @pytest.mark.parametrize(
        "error_class, kind",
        [
            (StructuralViolation, IssueKind.STRUCTURAL),
            (UnresolvedReferenceError, IssueKind.RESOLUTION),
            (ParseError, IssueKind.PARSE),
            (DuplicateDeclarationError, IssueKind.DUPLICATE),
        ],
    )
    def test_kind(self, error_class, kind):
        error = error_class("boom", declaration="$Foo", offset=3, hint="fix")
        issue = error.to_issue("a.dart")

        assert isinstance(error, MorphgenError)
        assert issue.kind is kind
        assert (issue.declaration, issue.offset, issue.hint, issue.source_id) == ("$Foo", 3, "fix", "a.dart")
        assert str(error) == "boom"
