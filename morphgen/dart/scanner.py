"""Low-level text scanning helpers for Dart declarations.

All helpers work on plain strings with explicit indices and understand the
three kinds of text that must not be read as code: line comments, block
comments and string literals (single, double, triple-quoted and raw).
"""

from typing import List, Optional, Tuple

from morphgen.core.errors import ParseError, UnterminatedBodyError

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}


def is_identifier_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$"


def is_identifier_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def string_start(text: str, i: int) -> bool:
    """Whether a string literal (optionally raw) starts at ``i``."""
    ch = text[i]
    if ch in "'\"":
        return True
    if ch == "r" and i + 1 < len(text) and text[i + 1] in "'\"":
        return i == 0 or not is_identifier_char(text[i - 1])
    return False


def string_end(text: str, i: int) -> int:
    """Return the index just past the string literal starting at ``i``.

    An escape consumes the next character unconditionally; raw strings have
    no escapes.

    Raises:
        UnterminatedBodyError: If the input ends inside the literal
    """
    start = i
    raw = text[i] == "r"
    if raw:
        i += 1
    quote = text[i]
    delimiter = quote * 3 if text.startswith(quote * 3, i) else quote
    i += len(delimiter)
    n = len(text)
    while i < n:
        if not raw and text[i] == "\\":
            i += 2
            continue
        if text.startswith(delimiter, i):
            return i + len(delimiter)
        if len(delimiter) == 1 and text[i] == "\n":
            raise UnterminatedBodyError("unterminated string literal", offset=start)
        i += 1
    raise UnterminatedBodyError("unterminated string literal", offset=start)


def comment_end(text: str, i: int) -> int:
    """Return the index just past the comment starting at ``i``."""
    if text.startswith("//", i):
        j = text.find("\n", i + 2)
        return len(text) if j == -1 else j + 1
    j = text.find("*/", i + 2)
    if j == -1:
        raise UnterminatedBodyError("unterminated block comment", offset=i)
    return j + 2


def skip_non_code(text: str, i: int, strict: bool = True) -> Optional[int]:
    """If a comment or string starts at ``i``, return the index past it.

    Args:
        text: Source text
        i: Current index
        strict: Raise on an unterminated comment or literal. When False an
            unterminated literal ends at its line end and an unterminated
            block comment at the end of the text.
    """
    try:
        if text.startswith("//", i) or text.startswith("/*", i):
            return comment_end(text, i)
        if string_start(text, i):
            return string_end(text, i)
    except UnterminatedBodyError:
        if strict:
            raise
        if text.startswith("/*", i):
            return len(text)
        j = text.find("\n", i)
        return len(text) if j == -1 else j + 1
    return None


def skip_ws_comments(text: str, i: int) -> int:
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
            continue
        if text.startswith("//", i) or text.startswith("/*", i):
            i = comment_end(text, i)
            continue
        return i
    return i


def read_leading_comments(text: str, i: int) -> Tuple[Optional[str], int]:
    """Skip whitespace and comments, collecting ``///`` doc lines.

    Returns:
        Tuple of (doc comment text or None, index of the next code character)
    """
    doc: List[str] = []
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
            continue
        if text.startswith("///", i):
            end = comment_end(text, i)
            doc.append(text[i:end].rstrip("\n"))
            i = end
            continue
        if text.startswith("//", i) or text.startswith("/*", i):
            # A plain comment separates the doc block from what follows.
            doc = []
            i = comment_end(text, i)
            continue
        break
    return ("\n".join(doc) if doc else None), i


def parse_identifier(text: str, i: int) -> Tuple[str, int]:
    if i >= len(text) or not is_identifier_start(text[i]):
        raise ParseError("expected identifier", offset=i)
    j = i + 1
    while j < len(text) and is_identifier_char(text[j]):
        j += 1
    return text[i:j], j


def find_matching(text: str, open_index: int) -> int:
    """Return the index of the delimiter closing the one at ``open_index``.

    Handles ``()``, ``[]`` and ``{}``, skipping comments and strings.

    Raises:
        ParseError: If delimiters are unbalanced or mismatched
    """
    opener = text[open_index]
    if opener not in OPENERS:
        raise ParseError(f"expected an opening delimiter, found {opener!r}", offset=open_index)
    stack = [opener]
    i = open_index + 1
    n = len(text)
    while i < n:
        skipped = skip_non_code(text, i)
        if skipped is not None:
            i = skipped
            continue
        ch = text[i]
        if ch in OPENERS:
            stack.append(ch)
        elif ch in CLOSERS:
            if stack[-1] != CLOSERS[ch]:
                raise ParseError(f"mismatched {ch!r}", offset=i)
            stack.pop()
            if not stack:
                return i
        i += 1
    raise UnterminatedBodyError(f"unbalanced {opener!r}", offset=open_index)


def find_body_close(text: str, open_index: int, limit: Optional[int] = None) -> int:
    """Like ``find_matching`` for a class body, tolerating malformed members.

    When the delimiters inside the body do not balance, the body is taken to
    end at the last ``}`` before ``limit`` (default: the end of the text), so
    a bad member only affects the member itself.

    Raises:
        UnterminatedBodyError: If there is no ``}`` at all after ``open_index``
    """
    try:
        return find_matching(text, open_index)
    except ParseError:
        close = text.rfind("}", open_index + 1, len(text) if limit is None else limit)
        if close == -1:
            raise
        return close


def split_top_level(text: str, separator: str = ",", angles: bool = True) -> List[Tuple[str, int]]:
    """Split on ``separator`` outside brackets, strings and comments.

    Args:
        text: Text to split
        separator: Single separator character
        angles: Also treat ``<...>`` as nesting (type arguments)

    Returns:
        List of (stripped piece, offset of the piece in ``text``); empty
        pieces are dropped
    """
    pieces: List[Tuple[str, int]] = []
    depth = 0
    start = 0
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_non_code(text, i)
        if skipped is not None:
            i = skipped
            continue
        ch = text[i]
        if ch in OPENERS or (angles and ch == "<"):
            depth += 1
        elif ch in CLOSERS or (angles and ch == ">" and text[i - 1:i] != "="):
            depth = max(0, depth - 1)
        elif ch == separator and depth == 0:
            _append_piece(pieces, text, start, i)
            start = i + 1
        i += 1
    _append_piece(pieces, text, start, n)
    return pieces


def _append_piece(pieces: List[Tuple[str, int]], text: str, start: int, end: int) -> None:
    raw = text[start:end]
    stripped = raw.strip()
    if stripped:
        pieces.append((stripped, start + len(raw) - len(raw.lstrip())))
