"""Parser for annotated Dart type declarations.

Turns the text of one ``abstract class $Name ... { ... }`` declaration,
including its leading doc comment and annotations, into a TypeDeclaration.
"""

import logging
import re
from typing import AbstractSet, Any, List, Mapping, Optional, Tuple

from morphgen.core.errors import MorphgenError, ParseError, StructuralViolation, UnterminatedBodyError
from morphgen.core.resolver import base_type_name
from morphgen.core.schema.declaration import (
    SIGIL,
    AlternateConstructor,
    BodyKind,
    FieldDescriptor,
    GenericParam,
    InterfaceRef,
    Parameter,
    TypeDeclaration,
)
from morphgen.core.schema.issue import Issue
from morphgen.core.schema.options import GenerationOptions
from morphgen.dart.annotations import (
    MORPHY_ANNOTATIONS,
    find_annotation,
    json_key_info,
    parse_annotations,
)
from morphgen.dart.constructor_body import ConstructorBodyExtractor
from morphgen.dart.scanner import (
    CLOSERS,
    OPENERS,
    find_body_close,
    find_matching,
    is_identifier_char,
    parse_identifier,
    read_leading_comments,
    skip_non_code,
    skip_ws_comments,
    split_top_level,
)

logger = logging.getLogger(__name__)

_GETTER = re.compile(r"^(?P<type>.+?)\s+get\s+(?P<name>[A-Za-z_$][\w$]*)\s*$", re.DOTALL)
_MEMBER_LINE = re.compile(
    r"^[ \t]*(?:///|@|factory\b|const\b|[^\n;{}]*\bget\s+[A-Za-z_$][\w$]*\s*;)", re.MULTILINE
)


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _starts_with_word(text: str, i: int, word: str) -> bool:
    end = i + len(word)
    return text.startswith(word, i) and (end >= len(text) or not is_identifier_char(text[end]))


def _next_member(body: str, i: int) -> Optional[int]:
    """Start of the first line after the one holding ``i`` that begins a member."""
    line_end = body.find("\n", i)
    if line_end == -1:
        return None
    match = _MEMBER_LINE.search(body, line_end + 1)
    return None if match is None else match.start()


def _angle_close(text: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "<":
            depth += 1
        elif text[i] == ">":
            depth -= 1
            if depth == 0:
                return i
    raise ParseError("unbalanced '<' in type parameters", offset=open_index)


def parse_type_ref(text: str) -> InterfaceRef:
    """Parse ``$Name<Arg, ...>`` into an InterfaceRef."""
    text = _normalize(text)
    if "<" not in text:
        return InterfaceRef(text)
    name, _, rest = text.partition("<")
    if not rest.endswith(">"):
        raise ParseError(f"malformed type reference '{text}'")
    args = tuple(piece for piece, _ in split_top_level(rest[:-1]))
    return InterfaceRef(name.strip(), args)


def parse_generic_params(text: str) -> Tuple[GenericParam, ...]:
    """Parse the inside of ``<T extends num, U>``."""
    params = []
    for piece, offset in split_top_level(text):
        name, _, bound = piece.partition(" extends ")
        name = name.strip()
        if not name or not all(is_identifier_char(ch) for ch in name):
            raise ParseError(f"malformed type parameter '{piece}'", offset=offset)
        params.append(GenericParam(name, _normalize(bound) or None))
    return tuple(params)


def _split_default(piece: str) -> Tuple[str, Optional[str]]:
    i = 0
    depth = 0
    while i < len(piece):
        skipped = skip_non_code(piece, i)
        if skipped is not None:
            i = skipped
            continue
        ch = piece[i]
        if ch in OPENERS or ch == "<":
            depth += 1
        elif ch in CLOSERS or ch == ">":
            depth = max(0, depth - 1)
        elif (
            ch == "="
            and depth == 0
            and piece[i + 1:i + 2] not in ("=", ">")
            and piece[i - 1:i] not in ("=", "!", "<", ">")
        ):
            return piece[:i].strip(), piece[i + 1:].strip()
        i += 1
    return piece.strip(), None


def _parse_parameter(piece: str, named: bool, optional_group: bool) -> Parameter:
    declared, default = _split_default(piece)
    required = False
    if declared.startswith("required "):
        required = True
        declared = declared[len("required "):].strip()
    parts = declared.rsplit(None, 1)
    if len(parts) == 2:
        type_text, name = _normalize(parts[0]), parts[1]
    else:
        type_text, name = None, parts[0]
    if not named:
        required = not optional_group
    return Parameter(name=name, type_text=type_text, named=named, required=required, default=default)


def parse_parameters(text: str) -> Tuple[Parameter, ...]:
    """Parse a parameter list given the text inside its parentheses."""
    params: List[Parameter] = []
    for piece, _ in split_top_level(text):
        if piece[0] in "{[":
            named = piece[0] == "{"
            for inner, _ in split_top_level(piece[1:-1]):
                params.append(_parse_parameter(inner, named=named, optional_group=not named))
        else:
            params.append(_parse_parameter(piece, named=False, optional_group=False))
    return tuple(params)


class DeclarationParser:
    """Parses declaration text into TypeDeclaration values.

    Args:
        extractor: Constructor body extractor (default: a new one)
    """

    def __init__(self, extractor: Optional[ConstructorBodyExtractor] = None) -> None:
        self.extractor = extractor or ConstructorBodyExtractor()

    def parse(
        self,
        raw_text: str,
        source_id: str = "<memory>",
        options: Optional[Mapping[str, Any]] = None,
        base_offset: int = 0,
        enum_names: AbstractSet[str] = frozenset(),
    ) -> TypeDeclaration:
        """Parse one declaration.

        Args:
            raw_text: Declaration text (doc comment and annotations included)
            source_id: Identifier of the source file
            options: Caller-supplied annotation parameters, overriding the text
            base_offset: Offset of ``raw_text`` within its source, added to
                reported offsets
            enum_names: Enum type names known in the source

        Returns:
            Parsed TypeDeclaration

        Raises:
            StructuralViolation: If the text is not a sigil-named abstract class
                declared with ``implements``
            ParseError: If the declaration's delimiters are unbalanced
        """
        try:
            return self._parse(raw_text, source_id, options, enum_names, base_offset)
        except MorphgenError as e:
            if e.offset is not None:
                e.offset += base_offset
            raise

    def _parse(
        self,
        text: str,
        source_id: str,
        overrides: Optional[Mapping[str, Any]],
        enum_names: AbstractSet[str],
        base_offset: int,
    ) -> TypeDeclaration:
        doc, i = read_leading_comments(text, 0)
        annotations, i = parse_annotations(text, i)
        later_doc, i = read_leading_comments(text, i)
        doc = later_doc or doc

        morphy = find_annotation(annotations, MORPHY_ANNOTATIONS)
        options = GenerationOptions.from_mapping(morphy.values() if morphy else None)
        options = options.merged(overrides)

        if i >= len(text):
            raise StructuralViolation("no declaration found after annotations", offset=i)
        keyword_start = i
        first, i = parse_identifier(text, i)
        i = skip_ws_comments(text, i)
        second = ""
        if i < len(text) and text[i].isalpha():
            second, i = parse_identifier(text, i)
        if (first, second) != ("abstract", "class"):
            raise StructuralViolation(
                f"@Morphy can only annotate an abstract class, found '{_normalize(first + ' ' + second)}'",
                offset=keyword_start,
                hint="declare the type as 'abstract class $Name'",
            )

        i = skip_ws_comments(text, i)
        name_offset = i
        name, i = parse_identifier(text, i)
        if not name.startswith(SIGIL):
            raise StructuralViolation(
                f"declaration name '{name}' must start with '{SIGIL}'",
                declaration=name,
                offset=name_offset,
                hint=f"rename to '{SIGIL}{name}' (or '{SIGIL * 2}{name}' for a sealed base)",
            )

        generics: Tuple[GenericParam, ...] = ()
        i = skip_ws_comments(text, i)
        if i < len(text) and text[i] == "<":
            close = _angle_close(text, i)
            generics = parse_generic_params(text[i + 1:close])
            i = close + 1

        interfaces: Tuple[InterfaceRef, ...] = ()
        while True:
            i = skip_ws_comments(text, i)
            if i >= len(text):
                raise ParseError("missing declaration body", declaration=name, offset=i)
            if text[i] == "{":
                break
            clause_offset = i
            clause, i = parse_identifier(text, i)
            if clause in ("extends", "with"):
                raise StructuralViolation(
                    f"{name} uses '{clause}'; you must use implements, not {clause}",
                    declaration=name,
                    offset=clause_offset,
                    hint="replace it with 'implements'",
                )
            if clause != "implements":
                raise StructuralViolation(
                    f"unexpected '{clause}' in the header of {name}",
                    declaration=name,
                    offset=clause_offset,
                )
            brace = text.find("{", i)
            if brace == -1:
                raise ParseError("missing declaration body", declaration=name, offset=i)
            interfaces = tuple(parse_type_ref(piece) for piece, _ in split_top_level(text[i:brace]))
            i = brace

        try:
            close = find_body_close(text, i)
        except ParseError as e:
            e.declaration = name
            raise
        try:
            fields, constructors, has_const, issues = self._parse_members(
                text[i + 1:close], base_offset + i + 1, name, source_id, enum_names
            )
        except ParseError as e:
            # Member offsets are relative to the class body.
            if e.offset is not None:
                e.offset += i + 1
            e.declaration = e.declaration or name
            raise

        declaration = TypeDeclaration(
            name=name,
            generics=generics,
            fields=tuple(fields),
            interfaces=interfaces,
            constructors=tuple(constructors),
            options=options,
            source_id=source_id,
            comment=doc,
            has_const_constructor=has_const,
            constructor_issues=tuple(issues),
            raw_text=text,
        )
        logger.debug(f"Parsed {name}: {declaration.to_dict()}")
        return declaration

    def _member_end(self, body: str, i: int) -> Tuple[int, int]:
        """Return (end of member text, next index) for a non-factory member."""
        depth = 0
        n = len(body)
        while i < n:
            skipped = skip_non_code(body, i)
            if skipped is not None:
                i = skipped
                continue
            ch = body[i]
            if ch == "{" and depth == 0:
                close = find_matching(body, i)
                return close + 1, close + 1
            if ch in OPENERS:
                depth += 1
            elif ch in CLOSERS:
                depth -= 1
            elif ch == ";" and depth == 0:
                return i, i + 1
            i += 1
        raise ParseError("member is missing its ';'", offset=i)

    def _parse_members(
        self,
        body: str,
        body_offset: int,
        name: str,
        source_id: str,
        enum_names: AbstractSet[str],
    ):
        fields: List[FieldDescriptor] = []
        constructors: List[AlternateConstructor] = []
        issues: List[Issue] = []
        has_const = False
        i = 0
        while True:
            doc, i = read_leading_comments(body, i)
            if i >= len(body):
                break
            member_start = i
            annotations, i = parse_annotations(body, i)

            if _starts_with_word(body, i, "factory"):
                constructor, i = self._parse_factory(body, i, body_offset, name, doc, source_id, issues)
                if constructor is not None:
                    constructors.append(constructor)
                if i is None:
                    break
                continue

            if _starts_with_word(body, i, "const"):
                has_const = True
                _, i = self._member_end(body, i)
                continue

            code_start = i
            end, i = self._member_end(body, i)
            match = _GETTER.match(body[code_start:end])
            if match is None:
                logger.debug(f"{name}: skipping member '{_normalize(body[member_start:end])[:40]}'")
                continue
            type_text = _normalize(match.group("type"))
            json_key = find_annotation(annotations, {"JsonKey"})
            fields.append(
                FieldDescriptor(
                    name=match.group("name"),
                    type_text=type_text,
                    is_enum=base_type_name(type_text) in enum_names,
                    json_key=json_key_info(json_key) if json_key else None,
                    comment=doc,
                    offset=body_offset + member_start,
                )
            )
        return fields, constructors, has_const, issues

    def _parse_factory(
        self,
        body: str,
        i: int,
        body_offset: int,
        name: str,
        doc: Optional[str],
        source_id: str,
        issues: List[Issue],
    ) -> Tuple[Optional[AlternateConstructor], Optional[int]]:
        """Parse a factory member starting at the ``factory`` keyword.

        Returns:
            Tuple of (constructor or None, next index or None when the rest
            of the body cannot be scanned)
        """
        start = i
        i = skip_ws_comments(body, i + len("factory"))
        _, i = parse_identifier(body, i)
        ctor_name = ""
        if i < len(body) and body[i] == ".":
            ctor_name, i = parse_identifier(body, i + 1)

        try:
            extracted = self.extractor.extract(body, i)
        except ParseError as e:
            offset = body_offset + (e.offset if e.offset is not None else start)
            issues.append(
                Issue(
                    kind=e.kind,
                    message=f"factory {ctor_name or '<unnamed>'}: {e.message}",
                    declaration=name,
                    hint=e.hint or "the constructor falls back to a synthesized body",
                    offset=offset,
                    source_id=source_id,
                )
            )
            logger.warning(f"{name}: could not extract factory '{ctor_name}': {e.message}")
            parameters: Tuple[Parameter, ...] = ()
            paren = skip_ws_comments(body, i)
            if paren < len(body) and body[paren] == "(":
                try:
                    parameters = parse_parameters(body[paren + 1:find_matching(body, paren)])
                except ParseError:
                    parameters = ()
            constructor = AlternateConstructor(
                name=ctor_name,
                parameters=parameters,
                body_kind=BodyKind.BLOCK,
                body_text=None,
                body_start=offset,
                body_end=offset,
                comment=doc,
            )
            # A factory without a body ends at its ';'; anything else resumes at
            # the next line that starts a member.
            failed_at = start if e.offset is None else e.offset
            if not isinstance(e, UnterminatedBodyError) and body[failed_at:failed_at + 1] == ";":
                resume = failed_at + 1
            else:
                resume = _next_member(body, failed_at)
            return (constructor if ctor_name else None), resume

        if not ctor_name:
            issues.append(
                Issue(
                    kind=ParseError.kind,
                    message="unnamed factory constructors are not supported",
                    declaration=name,
                    hint="give the factory a name, e.g. factory $Name.create(...)",
                    offset=body_offset + start,
                    source_id=source_id,
                )
            )
            return None, extracted.resume

        header = extracted.header.strip()
        parameters = ()
        if header.startswith("(") and header.endswith(")"):
            parameters = parse_parameters(header[1:-1])
        constructor = AlternateConstructor(
            name=ctor_name,
            parameters=parameters,
            body_kind=extracted.kind,
            body_text=extracted.text,
            body_start=body_offset + extracted.start,
            body_end=body_offset + extracted.end,
            comment=doc,
        )
        return constructor, extracted.resume
