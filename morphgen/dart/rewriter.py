"""Context-sensitive removal of declaration sigils from hand-written code."""

import logging
from typing import AbstractSet, List

from morphgen.dart.scanner import is_identifier_char, skip_non_code

logger = logging.getLogger(__name__)


class IdentifierRewriter:
    """Rewrites ``$``-prefixed references to known types into generated names.

    Only identifier runs that start with the sigil, are not part of a longer
    identifier and lie outside string literals and comments are candidates.
    A candidate is rewritten only when its sigil-free form is a known type
    name, so local variables such as ``$temp`` are left alone.

    Example:
        >>> IdentifierRewriter().rewrite("final $temp = 5; return $Foo._(x: $temp);", {"Foo"})
        'final $temp = 5; return Foo._(x: $temp);'
    """

    def rewrite(self, text: str, known_type_names: AbstractSet[str]) -> str:
        out: List[str] = []
        i = 0
        n = len(text)
        while i < n:
            skipped = skip_non_code(text, i)
            if skipped is not None:
                out.append(text[i:skipped])
                i = skipped
                continue
            ch = text[i]
            if ch == "$" and (i == 0 or not is_identifier_char(text[i - 1])):
                j = i
                while j < n and is_identifier_char(text[j]):
                    j += 1
                token = text[i:j]
                bare = token.lstrip("$")
                if bare in known_type_names:
                    out.append(bare)
                    logger.debug(f"Rewrote {token} -> {bare}")
                else:
                    out.append(token)
                i = j
                continue
            out.append(ch)
            i += 1
        return "".join(out)
