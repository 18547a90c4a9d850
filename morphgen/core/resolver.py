"""Field resolution across the interface and generic graph.

For a declaration, the resolved field set is the union (by name) of its own
fields and every field reachable through its implemented interfaces, with each
ancestor's generic parameters substituted by the type arguments supplied along
the path that reached it.
"""

import logging
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from morphgen.core.errors import UnresolvedGenericBoundError, UnresolvedReferenceError
from morphgen.core.registry import SchemaRegistry
from morphgen.core.schema.declaration import (
    GenericParam,
    InterfaceRef,
    JsonKeyInfo,
    TypeDeclaration,
    clean_name,
)
from morphgen.core.schema.issue import Issue, IssueKind

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")


def substitute_type(type_text: str, env: Mapping[str, str]) -> str:
    """Replace generic parameter tokens in a type expression.

    Example:
        >>> substitute_type("List<T>?", {"T": "int"})
        'List<int>?'
    """
    if not env:
        return type_text
    result = _IDENTIFIER.sub(lambda m: env.get(m.group(0), m.group(0)), type_text)
    return result.replace("??", "?")


def base_type_name(type_text: str) -> str:
    """Clean head name of a type expression (``$Box<int>?`` -> ``Box``)."""
    head = type_text.strip().rstrip("?").split("<", 1)[0].strip()
    return clean_name(head)


@dataclass(frozen=True)
class ResolvedField:
    """A field as seen from one declaration, generics substituted."""

    name: str
    type_text: str
    declaring_type: str
    is_enum: bool = False
    json_key: Optional[JsonKeyInfo] = None
    comment: Optional[str] = None

    @property
    def nullable(self) -> bool:
        return self.type_text.endswith("?")

    @property
    def param_name(self) -> str:
        """Parameter name for the field (private fields lose the underscore)."""
        return self.name[1:] if self.name.startswith("_") else self.name

    def substituted(self, env: Mapping[str, str]) -> "ResolvedField":
        return ResolvedField(
            name=self.name,
            type_text=substitute_type(self.type_text, env),
            declaring_type=self.declaring_type,
            is_enum=self.is_enum,
            json_key=self.json_key,
            comment=self.comment,
        )


@dataclass(frozen=True)
class ResolvedFieldSet:
    """Exactly one resolved field per name, in resolution order."""

    declaration: str
    fields: Tuple[ResolvedField, ...]
    issues: Tuple[Issue, ...] = ()

    def names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def get(self, name: str) -> Optional[ResolvedField]:
        for resolved in self.fields:
            if resolved.name == name:
                return resolved
        return None

    def types(self) -> Dict[str, str]:
        return {f.name: f.type_text for f in self.fields}

    def __contains__(self, name: object) -> bool:
        return name in self.names()

    def __iter__(self) -> Iterator[ResolvedField]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


@dataclass(frozen=True)
class ResolvedInterface:
    """An ancestor or explicit sibling of a declaration, seen from it.

    Attributes:
        declaration: The interface's own declaration
        type_args: Type arguments after substitution along the path
        fields: The interface's resolved fields under that substitution
        explicit: True for explicit-subtype siblings, False for ancestors
    """

    declaration: TypeDeclaration
    type_args: Tuple[str, ...]
    fields: Tuple[ResolvedField, ...]
    explicit: bool = False

    @property
    def name(self) -> str:
        return self.declaration.clean_name

    @property
    def generics(self) -> Tuple[GenericParam, ...]:
        return self.declaration.generics

    @property
    def type_text(self) -> str:
        if not self.type_args:
            return self.name
        return f"{self.name}<{', '.join(self.type_args)}>"

    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)


@dataclass
class _Edge:
    declaration: TypeDeclaration
    env: Dict[str, str]
    type_args: Tuple[str, ...]
    depth: int = field(default=1)


class FieldResolver:
    """Resolves fields and interfaces of declarations against a registry.

    One resolver serves one generation run; its cache is never persisted.
    Resolution may be called from several worker threads.

    Args:
        registry: Frozen registry of the current run
    """

    def __init__(self, registry: SchemaRegistry) -> None:
        self.registry = registry
        self._cache: Dict[str, ResolvedFieldSet] = {}
        self._lock = threading.Lock()

    def _lookup(self, ref: InterfaceRef, owner: TypeDeclaration, root: TypeDeclaration) -> TypeDeclaration:
        target = self.registry.lookup(ref.name)
        if target is None:
            raise UnresolvedReferenceError(
                f"{owner.name} implements {ref.name}, which is not a registered declaration",
                declaration=root.name,
                hint=f"annotate {ref.name} or remove it from the implements clause",
            )
        return target

    def _bind(
        self,
        target: TypeDeclaration,
        ref: InterfaceRef,
        env: Mapping[str, str],
        root: TypeDeclaration,
    ) -> Tuple[Dict[str, str], Tuple[str, ...]]:
        args = [substitute_type(arg, env) for arg in ref.type_args]
        if len(args) > len(target.generics):
            raise UnresolvedGenericBoundError(
                f"{ref.name} takes {len(target.generics)} type parameter(s) "
                f"but {len(args)} argument(s) were supplied",
                declaration=root.name,
            )
        for param in target.generics[len(args):]:
            args.append(param.bound or "dynamic")
        child_env = {param.name: arg for param, arg in zip(target.generics, args)}
        return child_env, tuple(args)

    def _walk(self, declaration: TypeDeclaration) -> List[_Edge]:
        """Breadth-first traversal of the interface graph, cycle-safe."""
        visited = {declaration.clean_name}
        queue = deque([(declaration, {}, 0)])
        edges: List[_Edge] = []
        while queue:
            node, env, depth = queue.popleft()
            for ref in node.interfaces:
                target = self._lookup(ref, node, declaration)
                if target.clean_name in visited:
                    continue
                visited.add(target.clean_name)
                child_env, args = self._bind(target, ref, env, declaration)
                edges.append(_Edge(target, child_env, args, depth + 1))
                queue.append((target, child_env, depth + 1))
        return edges

    def _is_enum(self, type_text: str, declared: bool) -> bool:
        return declared or base_type_name(type_text) in self.registry.enum_names()

    def resolve_fields(self, declaration: TypeDeclaration) -> ResolvedFieldSet:
        """Compute the resolved field set of a declaration.

        Own fields win on name collision; among ancestors the one reached
        first in traversal order wins. Fields are ordered by a stable sort on
        the declaring type's name.

        Args:
            declaration: Declaration to resolve

        Returns:
            ResolvedFieldSet with one entry per field name

        Raises:
            UnresolvedReferenceError: If an interface is not registered
            UnresolvedGenericBoundError: If type arguments do not fit
        """
        with self._lock:
            cached = self._cache.get(declaration.clean_name)
        if cached is not None:
            return cached

        candidates: List[Tuple[int, ResolvedField]] = []
        for descriptor in declaration.fields:
            candidates.append(
                (
                    0,
                    ResolvedField(
                        name=descriptor.name,
                        type_text=descriptor.type_text,
                        declaring_type=declaration.clean_name,
                        is_enum=self._is_enum(descriptor.type_text, descriptor.is_enum),
                        json_key=descriptor.json_key,
                        comment=descriptor.comment,
                    ),
                )
            )
        for rank, edge in enumerate(self._walk(declaration), start=1):
            for descriptor in edge.declaration.fields:
                type_text = substitute_type(descriptor.type_text, edge.env)
                candidates.append(
                    (
                        rank,
                        ResolvedField(
                            name=descriptor.name,
                            type_text=type_text,
                            declaring_type=edge.declaration.clean_name,
                            is_enum=self._is_enum(type_text, descriptor.is_enum),
                            json_key=descriptor.json_key,
                            comment=descriptor.comment,
                        ),
                    )
                )

        winners: Dict[str, ResolvedField] = {}
        ancestor_first: Dict[str, ResolvedField] = {}
        issues: List[Issue] = []
        flagged = set()
        own_names = {descriptor.name for descriptor in declaration.fields}
        for rank, candidate in candidates:
            winners.setdefault(candidate.name, candidate)
            if rank == 0 or candidate.name in own_names:
                continue
            first = ancestor_first.setdefault(candidate.name, candidate)
            if first.type_text != candidate.type_text and candidate.name not in flagged:
                flagged.add(candidate.name)
                message = (
                    f"Field '{candidate.name}' is declared as {first.type_text} by "
                    f"{first.declaring_type} and as {candidate.type_text} by "
                    f"{candidate.declaring_type}"
                )
                logger.warning(f"{declaration.name}: {message}")
                issues.append(
                    Issue(
                        kind=IssueKind.AMBIGUITY,
                        message=message,
                        declaration=declaration.name,
                        hint=f"redeclare '{candidate.name}' on {declaration.name} to pick a type",
                        source_id=declaration.source_id,
                        severity="warning",
                    )
                )

        ordered = sorted(candidates, key=lambda item: item[1].declaring_type)
        seen = set()
        fields: List[ResolvedField] = []
        for _, candidate in ordered:
            if candidate.name in seen:
                continue
            seen.add(candidate.name)
            fields.append(winners[candidate.name])

        result = ResolvedFieldSet(declaration.clean_name, tuple(fields), tuple(issues))
        logger.debug(f"Resolved {declaration.name}: {list(result.names())}")
        with self._lock:
            self._cache[declaration.clean_name] = result
        return result

    def instantiate(self, declaration: TypeDeclaration, type_args: Tuple[str, ...]) -> ResolvedFieldSet:
        """Resolve a generic declaration with concrete type arguments.

        Example:
            ``instantiate(B, ("int",))`` for ``B<T1>`` replaces ``T1`` by ``int``.
        """
        resolved = self.resolve_fields(declaration)
        env, _ = self._bind(declaration, InterfaceRef(declaration.name, tuple(type_args)), {}, declaration)
        return ResolvedFieldSet(
            resolved.declaration,
            tuple(f.substituted(env) for f in resolved.fields),
            resolved.issues,
        )

    def resolve_interfaces(self, declaration: TypeDeclaration) -> List[ResolvedInterface]:
        """List every ancestor, then every explicit sibling, of a declaration.

        Raises:
            UnresolvedReferenceError: If an interface or explicit subtype is not registered
            UnresolvedGenericBoundError: If type arguments do not fit
        """
        interfaces: List[ResolvedInterface] = []
        seen = {declaration.clean_name}
        for edge in self._walk(declaration):
            own = self.resolve_fields(edge.declaration)
            interfaces.append(
                ResolvedInterface(
                    declaration=edge.declaration,
                    type_args=edge.type_args,
                    fields=tuple(f.substituted(edge.env) for f in own),
                )
            )
            seen.add(edge.declaration.clean_name)

        for name in declaration.explicit_subtypes:
            sibling = self.registry.lookup(name)
            if sibling is None:
                raise UnresolvedReferenceError(
                    f"Explicit subtype {name} of {declaration.name} is not a registered declaration",
                    declaration=declaration.name,
                )
            if sibling.clean_name in seen:
                continue
            seen.add(sibling.clean_name)
            interfaces.append(
                ResolvedInterface(
                    declaration=sibling,
                    type_args=tuple(g.name for g in sibling.generics),
                    fields=self.resolve_fields(sibling).fields,
                    explicit=True,
                )
            )
        return interfaces

    def self_interface(self, declaration: TypeDeclaration) -> ResolvedInterface:
        """The declaration viewed as its own interface."""
        return ResolvedInterface(
            declaration=declaration,
            type_args=tuple(g.name for g in declaration.generics),
            fields=self.resolve_fields(declaration).fields,
        )
