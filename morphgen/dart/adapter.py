"""Dart frontend and backend for the generation engine.

The frontend finds ``@Morphy`` declarations and enums in a Dart source and
parses them; the backend rewrites constructors and assembles the generated
text.
"""

import logging
import re
from typing import AbstractSet, Any, List, Mapping, Optional

from morphgen.core.engine import SourceSplit
from morphgen.core.errors import ParseError
from morphgen.core.registry import SchemaRegistry
from morphgen.core.resolver import ResolvedFieldSet
from morphgen.core.schema.declaration import TypeDeclaration
from morphgen.core.synthesizer import SynthesizedOperations
from morphgen.dart.annotations import MORPHY_ANNOTATIONS, parse_annotation
from morphgen.dart.declaration_parser import DeclarationParser
from morphgen.dart.emission import EmissionAssembler, EmissionContext, rewrite_constructors
from morphgen.dart.rewriter import IdentifierRewriter
from morphgen.dart.scanner import (
    find_body_close,
    is_identifier_char,
    parse_identifier,
    skip_non_code,
    skip_ws_comments,
)

logger = logging.getLogger(__name__)

_TOP_LEVEL = re.compile(r"\n(?=[A-Za-z_@])")


def _word_at(text: str, i: int, word: str) -> bool:
    if not text.startswith(word, i):
        return False
    if i > 0 and is_identifier_char(text[i - 1]):
        return False
    end = i + len(word)
    return end >= len(text) or not is_identifier_char(text[end])


def _line_start(text: str, i: int) -> int:
    return text.rfind("\n", 0, i) + 1


def _declaration_start(text: str, at: int, floor: int) -> int:
    """Extend a declaration backwards over doc comments and annotations."""
    start = _line_start(text, at)
    if text[start:at].strip():
        return at
    while start > floor:
        previous = _line_start(text, start - 1)
        line = text[previous:start].strip()
        if not (line.startswith("///") or line.startswith("@")):
            break
        start = previous
    return max(start, floor)


def _next_top_level(text: str, i: int, limit: int) -> int:
    """Start of the first unindented line after ``i`` that opens a new item."""
    match = _TOP_LEVEL.search(text, i, limit)
    return limit if match is None else match.start() + 1


def _declaration_end(text: str, at: int, limit: int) -> int:
    """Index just past the class body following the annotation at ``at``.

    A body whose members do not balance ends at its last ``}`` before the
    next top-level item, so the declaration is still handed to the parser.
    """
    _, i = parse_annotation(text, at)
    n = len(text)
    while i < n:
        skipped = skip_non_code(text, i, strict=False)
        if skipped is not None:
            i = skipped
            continue
        if text[i] == "{":
            return find_body_close(text, i, _next_top_level(text, i, limit)) + 1
        if text[i] == ";":
            return i + 1
        i += 1
    return n


def find_annotation_positions(text: str) -> List[int]:
    """Offsets of ``@Morphy`` annotations outside comments and strings."""
    positions: List[int] = []
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_non_code(text, i, strict=False)
        if skipped is not None:
            i = skipped
            continue
        if text[i] == "@" and i + 1 < n and is_identifier_char(text[i + 1]):
            name, _ = parse_identifier(text, i + 1)
            if name in MORPHY_ANNOTATIONS:
                positions.append(i)
        i += 1
    return positions


def find_enum_names(text: str) -> List[str]:
    """Names of ``enum`` declarations outside comments and strings."""
    names: List[str] = []
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_non_code(text, i, strict=False)
        if skipped is not None:
            i = skipped
            continue
        if _word_at(text, i, "enum"):
            j = skip_ws_comments(text, i + len("enum"))
            if j < n and text[j].isalpha():
                name, j = parse_identifier(text, j)
                names.append(name)
            i = j
            continue
        i += 1
    return names


def split_source(text: str) -> SourceSplit:
    """Split a Dart source into annotated declarations and enum names.

    Each declaration chunk runs from its doc comment (or first annotation)
    to the end of its class body. A declaration that cannot be delimited
    runs up to the next annotated declaration; the parser then reports its
    error against that declaration alone.
    """
    split = SourceSplit(enums=find_enum_names(text))
    floor = 0
    positions = find_annotation_positions(text)
    for index, at in enumerate(positions):
        if at < floor:
            continue
        limit = positions[index + 1] if index + 1 < len(positions) else len(text)
        start = _declaration_start(text, at, floor)
        try:
            end = _declaration_end(text, at, limit)
        except ParseError as e:
            logger.warning(f"Could not find the end of the declaration at {at}: {e.message}")
            end = limit
        split.declarations.append((start, text[start:end]))
        floor = end
    logger.debug(f"Found {len(split.declarations)} declaration(s) and {len(split.enums)} enum(s)")
    return split


class DartFrontend:
    """Parses Dart sources for the engine."""

    def __init__(self, parser: Optional[DeclarationParser] = None) -> None:
        self.parser = parser or DeclarationParser()

    def parse(
        self,
        raw_text: str,
        source_id: str = "<memory>",
        options: Optional[Mapping[str, Any]] = None,
        base_offset: int = 0,
        enum_names: AbstractSet[str] = frozenset(),
    ) -> TypeDeclaration:
        return self.parser.parse(
            raw_text,
            source_id=source_id,
            options=options,
            base_offset=base_offset,
            enum_names=enum_names,
        )

    def split_source(self, text: str) -> SourceSplit:
        return split_source(text)


class DartBackend:
    """Emits generated Dart for the engine."""

    def __init__(
        self,
        assembler: Optional[EmissionAssembler] = None,
        rewriter: Optional[IdentifierRewriter] = None,
    ) -> None:
        self.assembler = assembler or EmissionAssembler()
        self.rewriter = rewriter or IdentifierRewriter()

    def emit(
        self,
        declaration: TypeDeclaration,
        resolved: ResolvedFieldSet,
        operations: SynthesizedOperations,
        registry: SchemaRegistry,
    ) -> str:
        known = registry.known_type_names()
        constructors = rewrite_constructors(declaration, known, self.rewriter)
        subtypes = [registry.lookup(name) for name in declaration.explicit_subtypes]
        context = EmissionContext(
            known_type_names=known,
            patchable_type_names=registry.patchable_type_names(),
            subtypes=tuple(d for d in subtypes if d is not None),
        )
        return self.assembler.assemble(declaration, resolved, operations, constructors, context)
