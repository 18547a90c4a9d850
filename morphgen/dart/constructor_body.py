"""Extraction of hand-written factory constructor bodies.

The extractor is a small state machine over the text that follows a
constructor's name:

- HEADER: the parameter list. Parenthesis depth is tracked so a named
  parameter group ``({...})`` is not mistaken for the body. ``=>`` or ``{``
  at depth 0 switch to the body states.
- ARROW_BODY: an expression body, ending before the first ``;`` at depth 0.
- BLOCK_BODY: a block body, ending before the brace that closes it.

Inside a body every delimiter is matched against the one it closes, so a
mismatched bracket is reported on the constructor instead of being carried
into the class body around it.

Comments and string literals are skipped in every state, so delimiters inside
them never count.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List

from morphgen.core.errors import ParseError, UnterminatedBodyError
from morphgen.core.schema.declaration import BodyKind
from morphgen.dart.scanner import CLOSERS, OPENERS, skip_non_code

logger = logging.getLogger(__name__)


class ExtractorState(Enum):
    HEADER = "header"
    ARROW_BODY = "arrow_body"
    BLOCK_BODY = "block_body"


@dataclass(frozen=True)
class ExtractedBody:
    """Result of one extraction.

    Attributes:
        kind: Expression or block body
        header: Source text between the start and the body marker
        text: Exact body slice (untrimmed)
        start: Offset of the first body character
        end: Offset just past the last body character
        resume: Offset just past the terminating ``;`` or ``}``
    """

    kind: BodyKind
    header: str
    text: str
    start: int
    end: int
    resume: int


class ConstructorBodyExtractor:
    """Finds the body of a constructor given the text after its name.

    Example:
        >>> body = ConstructorBodyExtractor().extract("(x) { return Foo._(a: x); }")
        >>> body.text
        ' return Foo._(a: x); '
    """

    def extract(self, text: str, start: int = 0) -> ExtractedBody:
        """Extract the body starting the scan at ``start``.

        Args:
            text: Source text
            start: Offset of the parameter list (or of the body marker)

        Returns:
            ExtractedBody describing the body

        Raises:
            ParseError: If the header ends without a body, or the header or body
                has stray or mismatched delimiters
            UnterminatedBodyError: If the input ends inside the body or a literal
        """
        state = ExtractorState.HEADER
        depth = 0
        stack: List[str] = []
        header_end = body_start = start
        i = start
        n = len(text)

        while i < n:
            skipped = skip_non_code(text, i)
            if skipped is not None:
                i = skipped
                continue
            ch = text[i]

            if state is ExtractorState.HEADER:
                if text.startswith("=>", i) and depth == 0:
                    state = ExtractorState.ARROW_BODY
                    header_end, body_start = i, i + 2
                    i += 2
                    continue
                if ch == "{" and depth == 0:
                    state = ExtractorState.BLOCK_BODY
                    header_end, body_start = i, i + 1
                    stack.append(ch)
                elif ch in OPENERS:
                    depth += 1
                elif ch in CLOSERS:
                    depth -= 1
                    if depth < 0:
                        raise ParseError(f"unexpected {ch!r} in constructor header", offset=i)
                elif ch == ";" and depth == 0:
                    raise ParseError(
                        "constructor has no body",
                        offset=i,
                        hint="redirecting and external factories are not supported",
                    )

            elif ch in OPENERS:
                stack.append(ch)
            elif ch in CLOSERS:
                if not stack or stack[-1] != CLOSERS[ch]:
                    raise ParseError(f"mismatched {ch!r} in constructor body", offset=i)
                stack.pop()
                if not stack and state is ExtractorState.BLOCK_BODY:
                    return self._result(BodyKind.BLOCK, text, start, header_end, body_start, i)
            elif ch == ";" and not stack and state is ExtractorState.ARROW_BODY:
                return self._result(BodyKind.EXPRESSION, text, start, header_end, body_start, i)

            i += 1

        if state is ExtractorState.HEADER:
            raise ParseError("no constructor body found", offset=start)
        raise UnterminatedBodyError(
            f"unterminated {state.value.replace('_', ' ')}",
            offset=body_start,
            hint="check for a missing ';' or '}'",
        )

    @staticmethod
    def _result(
        kind: BodyKind, text: str, start: int, header_end: int, body_start: int, end: int
    ) -> ExtractedBody:
        logger.debug(f"Extracted {kind.value} body at {body_start}..{end}")
        return ExtractedBody(
            kind=kind,
            header=text[start:header_end],
            text=text[body_start:end],
            start=body_start,
            end=end,
            resume=end + 1,
        )
