"""Emission of the companion implementation text for one declaration.

The assembler is a pure function of its inputs: the same declaration,
resolved fields, operation plans and rewritten constructors always produce
byte-identical text. Sections are emitted in a fixed order:

1. header comment and doc comment
2. JSON generics singleton and ``@JsonSerializable`` (when JSON is on)
3. class line, then properties
4. constructors: public, ``forJsonDoNotUse``, internal ``_``, ``const``
5. rewritten alternate constructors
6. ``toString``, ``hashCode`` and ``==``
7. copy-with and patch-with operations
8. serialization hooks, then the end of the class
9. change-to and compare-to extensions
10. field enum and patch class
"""

import logging
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence

from morphgen.core.resolver import ResolvedField, ResolvedFieldSet
from morphgen.core.schema.declaration import (
    AlternateConstructor,
    BodyKind,
    Parameter,
    TypeDeclaration,
)
from morphgen.core.synthesizer import SynthesizedOperations
from morphgen.dart.naming import generic_args, generic_params, param_name, render_type
from morphgen.dart.render import render_operation
from morphgen.dart.rewriter import IdentifierRewriter
from morphgen.dart.serialization import (
    compare_extension,
    from_json_factory,
    generics_singleton,
    json_key_annotation,
    json_serializable_annotation,
    patch_support,
    to_json_members,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewrittenConstructor:
    """An alternate constructor ready for emission.

    ``body`` is None when extraction failed; a synthesized body is emitted
    instead.
    """

    name: str
    parameters: str
    body_kind: BodyKind
    body: Optional[str]
    comment: Optional[str] = None


@dataclass(frozen=True)
class EmissionContext:
    """Registry-wide facts the assembler needs."""

    known_type_names: AbstractSet[str]
    patchable_type_names: AbstractSet[str]
    subtypes: Sequence[TypeDeclaration] = ()


def render_parameters(parameters: Sequence[Parameter], rewriter: IdentifierRewriter, known: AbstractSet[str]) -> str:
    """Render a parameter list, sigils removed from known types and defaults."""

    def one(p: Parameter) -> str:
        text = p.name if p.type_text is None else f"{rewriter.rewrite(p.type_text, known)} {p.name}"
        if p.named and p.required:
            text = f"required {text}"
        if p.default is not None:
            text += f" = {rewriter.rewrite(p.default, known)}"
        return text

    positional = [one(p) for p in parameters if not p.named and p.required]
    optional = [one(p) for p in parameters if not p.named and not p.required]
    named = [one(p) for p in parameters if p.named]
    parts = list(positional)
    if optional:
        parts.append(f"[{', '.join(optional)}]")
    if named:
        parts.append(f"{{{', '.join(named)}}}")
    return f"({', '.join(parts)})"


def rewrite_constructors(
    declaration: TypeDeclaration,
    known: AbstractSet[str],
    rewriter: Optional[IdentifierRewriter] = None,
) -> List[RewrittenConstructor]:
    """Rewrite the declaration's alternate constructors for emission."""
    rewriter = rewriter or IdentifierRewriter()
    result = []
    for constructor in declaration.constructors:
        result.append(_rewrite(constructor, known, rewriter))
    return result


def _rewrite(constructor: AlternateConstructor, known: AbstractSet[str], rewriter: IdentifierRewriter) -> RewrittenConstructor:
    body = None
    if constructor.body_text is not None:
        body = rewriter.rewrite(constructor.body_text, known)
    return RewrittenConstructor(
        name=constructor.name,
        parameters=render_parameters(constructor.parameters, rewriter, known),
        body_kind=constructor.body_kind,
        body=body,
        comment=constructor.comment,
    )


def _doc(comment: Optional[str], indent: str = "") -> List[str]:
    if not comment:
        return []
    return [indent + line.strip() for line in comment.splitlines()]


class EmissionAssembler:
    """Assembles the generated class text for one declaration."""

    def assemble(
        self,
        declaration: TypeDeclaration,
        resolved: ResolvedFieldSet,
        operations: SynthesizedOperations,
        constructors: Sequence[RewrittenConstructor],
        context: EmissionContext,
    ) -> str:
        """Produce the companion text.

        Args:
            declaration: Declaration being generated
            resolved: Its resolved field set
            operations: Synthesized operation plans
            constructors: Rewritten alternate constructors
            context: Known and patchable type names, explicit subtypes

        Returns:
            Generated source text ending with a newline
        """
        known = context.known_type_names
        name = declaration.clean_name
        json = declaration.options.generate_json
        concrete = not declaration.sealed
        sections: List[str] = []

        header = [f"// Generated from {declaration.name} ({declaration.source_id}). Do not edit."]
        header.extend(_doc(declaration.comment))
        if json and not declaration.is_abstract and declaration.generics:
            sections.append("\n".join(header))
            sections.append(generics_singleton(declaration))
            header = []
        if json and not declaration.is_abstract:
            header.append(json_serializable_annotation(declaration))
        header.append(self._class_line(declaration, known))
        sections.append("\n".join(header))

        body: List[str] = []
        body.append("\n".join(self._property(f, declaration, known) for f in resolved))
        if concrete:
            body.append(self._constructors(declaration, resolved, known))
        if constructors:
            body.append("\n\n".join(self._alternate(declaration, c) for c in constructors))
        if not declaration.is_abstract:
            body.append(self._value_members(name, resolved))
        in_class = operations.copy_with + operations.patch_with
        if in_class:
            body.append("\n\n".join(render_operation(plan, known) for plan in in_class))
        if json:
            body.append(from_json_factory(declaration, context.subtypes))
            body.append(to_json_members(declaration))
        sections[-1] += "\n" + "\n\n".join(part for part in body if part) + "\n}"

        if operations.change_to:
            sections.append(self._change_to_extension(declaration, operations, known))
        if declaration.options.generate_compare_to and not declaration.is_abstract:
            sections.append(compare_extension(declaration, list(resolved)))
        patch = patch_support(name, list(resolved), known, context.patchable_type_names)
        if patch:
            sections.append(patch)

        logger.debug(f"Assembled {declaration.name} ({len(sections)} section(s))")
        return "\n\n".join(sections) + "\n"

    def _class_line(self, declaration: TypeDeclaration, known: AbstractSet[str]) -> str:
        name = declaration.clean_name
        params = generic_params(declaration.generics, known)
        if declaration.sealed:
            line = f"sealed class {name}{params}"
        elif declaration.is_abstract:
            line = f"abstract class {name}{params} extends {declaration.name}{generic_args(declaration.generics)}"
        else:
            line = f"class {name}{params} extends {declaration.name}{generic_args(declaration.generics)}"
        if declaration.interfaces:
            refs = []
            for ref in declaration.interfaces:
                args = f"<{', '.join(ref.type_args)}>" if ref.type_args else ""
                refs.append(render_type(ref.name + args, known))
            line += " implements " + ", ".join(refs)
        return line + " {"

    def _property(self, f: ResolvedField, declaration: TypeDeclaration, known: AbstractSet[str]) -> str:
        lines = _doc(f.comment, "  ")
        type_text = render_type(f.type_text, known)
        if declaration.sealed:
            lines.append(f"  {type_text} get {f.name};")
            return "\n".join(lines)
        if declaration.options.generate_json and f.json_key is not None:
            lines.append("  " + json_key_annotation(f.json_key))
        lines.append(f"  final {type_text} {f.name};")
        return "\n".join(lines)

    def _constructor(self, prefix: str, resolved: ResolvedFieldSet, known: AbstractSet[str]) -> str:
        if not len(resolved):
            return f"  {prefix}();"
        params = []
        initializers = []
        for f in resolved:
            if f.name.startswith("_"):
                params.append(f"    required {render_type(f.type_text, known)} {param_name(f.name)},")
                initializers.append(f"{f.name} = {param_name(f.name)}")
            else:
                params.append(f"    required this.{f.name},")
        text = f"  {prefix}({{\n" + "\n".join(params) + "\n  })"
        if initializers:
            text += " : " + ", ".join(initializers)
        return text + ";"

    def _constructors(self, declaration: TypeDeclaration, resolved: ResolvedFieldSet, known: AbstractSet[str]) -> str:
        name = declaration.clean_name
        parts = []
        if not declaration.hide_public_constructor:
            parts.append(self._constructor(name, resolved, known))
        elif declaration.options.generate_json:
            parts.append(self._constructor(f"{name}.forJsonDoNotUse", resolved, known))
        parts.append(self._constructor(f"{name}._", resolved, known))
        if declaration.has_const_constructor:
            parts.append(self._constructor(f"const {name}.constant", resolved, known))
        return "\n\n".join(parts)

    def _alternate(self, declaration: TypeDeclaration, constructor: RewrittenConstructor) -> str:
        name = declaration.clean_name
        lines = _doc(constructor.comment, "  ")
        head = f"  factory {name}.{constructor.name}{constructor.parameters}"
        if constructor.body is None:
            if declaration.is_abstract:
                fallback = f"throw UnimplementedError('{name}.{constructor.name}');"
            else:
                fallback = f"return {name}._();"
            lines.append(f"{head} {{\n    {fallback}\n  }}")
        elif constructor.body_kind is BodyKind.EXPRESSION:
            lines.append(f"{head} =>{constructor.body};")
        else:
            lines.append(f"{head} {{{constructor.body}}}")
        return "\n".join(lines)

    def _value_members(self, name: str, resolved: ResolvedFieldSet) -> str:
        fields = list(resolved)
        rendered = "|".join(f"{f.name}:${{{f.name}.toString()}}" for f in fields)
        lines = [
            "  @override",
            f'  String toString() => "({name}-{rendered})";',
            "",
            "  @override",
            f"  int get hashCode => hashObjects([{', '.join(f'{f.name}.hashCode' for f in fields)}]);",
            "",
            "  @override",
        ]
        checks = [f"other is {name}", "runtimeType == other.runtimeType"]
        for f in fields:
            base = f.type_text.rstrip("?")
            if base.startswith("List<") or base.startswith("Set<"):
                collection = "List" if base.startswith("List<") else "Set"
                checks.append(f"({f.name} as {collection}).equalUnorderedD(other.{f.name})")
            else:
                checks.append(f"{f.name} == other.{f.name}")
        lines.append("  bool operator ==(Object other) =>")
        lines.append("      identical(this, other) ||")
        lines.append("      " + " &&\n          ".join(checks) + ";")
        return "\n".join(lines)

    def _change_to_extension(
        self, declaration: TypeDeclaration, operations: SynthesizedOperations, known: AbstractSet[str]
    ) -> str:
        name = declaration.clean_name
        params = generic_params(declaration.generics, known)
        args = generic_args(declaration.generics)
        methods = "\n\n".join(render_operation(plan, known) for plan in operations.change_to)
        return f"extension {name}ChangeToE{params} on {name}{args} {{\n{methods}\n}}"
