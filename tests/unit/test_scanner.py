"""Unit tests for the Dart text scanning helpers."""

import pytest

from morphgen.core.errors import ParseError, UnterminatedBodyError
from morphgen.dart.scanner import (
    find_body_close,
    find_matching,
    parse_identifier,
    read_leading_comments,
    skip_non_code,
    split_top_level,
    string_end,
)


class TestStrings:
    """Tests for string literal scanning."""

    def test_escape_consumes_next_character(self):
        text = r"'a\'b' rest"
        assert text[:string_end(text, 0)] == r"'a\'b'"

    def test_raw_string_has_no_escapes(self):
        text = r"r'a\' rest"
        assert text[:string_end(text, 0)] == r"r'a\'"

    def test_single_line_string_cannot_span_lines(self):
        with pytest.raises(UnterminatedBodyError):
            string_end("'abc\n'", 0)

    def test_triple_quoted_spans_lines(self):
        text = '"""a\n"b"\n""" x'
        assert string_end(text, 0) == text.index(" x")

    def test_identifier_ending_in_r_is_not_raw_prefix(self):
        assert skip_non_code("bar'x'", 2) is None


class TestFindMatching:
    """Tests for delimiter matching."""

    def test_nested(self):
        text = "(a, [b, {c}], 'd)')"
        assert find_matching(text, 0) == len(text) - 1

    def test_mismatched(self):
        with pytest.raises(ParseError, match="mismatched"):
            find_matching("(a]", 0)

    def test_unbalanced(self):
        with pytest.raises(UnterminatedBodyError):
            find_matching("{ a { b }", 0)


class TestLenientScanning:
    """Tests for scanning past malformed members."""

    def test_unterminated_string_ends_at_line_end(self):
        assert skip_non_code("'open\nnext", 0, strict=False) == 6

    def test_unterminated_block_comment_ends_at_text_end(self):
        assert skip_non_code("/* open", 0, strict=False) == 7

    def test_strict_by_default(self):
        with pytest.raises(UnterminatedBodyError):
            skip_non_code("'open\nnext", 0)

    def test_body_close_falls_back_to_last_brace(self):
        text = "{\n  f(x;\n}\n"
        assert find_body_close(text, 0) == text.rindex("}")

    def test_body_close_respects_limit(self):
        body = "{\n  s = 'open;\n}\n"
        assert find_body_close(body + "class C {}", 0, limit=len(body)) == body.rindex("}")

    def test_body_close_without_any_brace(self):
        with pytest.raises(UnterminatedBodyError):
            find_body_close("{ f(", 0)


class TestSplitTopLevel:
    """Tests for top-level splitting."""

    def test_generics_and_groups(self):
        pieces = split_top_level("Map<String, int> a, {int b = 1, String c}")
        assert [p for p, _ in pieces] == ["Map<String, int> a", "{int b = 1, String c}"]

    def test_offsets_point_at_pieces(self):
        text = "a,  b , c"
        for piece, offset in split_top_level(text):
            assert text[offset:offset + len(piece)] == piece

    def test_arrow_does_not_close_angle(self):
        pieces = split_top_level("f: (x) => x, g: 1")
        assert [p for p, _ in pieces] == ["f: (x) => x", "g: 1"]


class TestComments:
    """Tests for comment handling."""

    def test_doc_comment_collected(self):
        doc, i = read_leading_comments("/// Hello\n/// World\nabstract", 0)
        assert doc == "/// Hello\n/// World"
        assert i == len("/// Hello\n/// World\n")

    def test_plain_comment_resets_doc(self):
        doc, _ = read_leading_comments("/// stale\n// separator\nabstract", 0)
        assert doc is None

    def test_parse_identifier(self):
        assert parse_identifier("$$Pet implements", 0) == ("$$Pet", 5)
        with pytest.raises(ParseError):
            parse_identifier("1abc", 0)
