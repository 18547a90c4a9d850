"""Operation synthesis - derived operations from resolved fields.

This module turns a declaration's resolved fields and interfaces into
language-neutral operation plans:
- copy-with: structural copy with optional deferred overrides per interface
- patch-with: update driven by a patch map, recursing into patchable fields
- change-to: conversion to a sibling type sharing some fields

Plans are rendered to source text by the adapter package and can be executed
directly on entities by ``morphgen.core.runtime``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from morphgen.core.registry import SchemaRegistry
from morphgen.core.resolver import (
    FieldResolver,
    ResolvedFieldSet,
    ResolvedInterface,
    base_type_name,
)
from morphgen.core.schema.declaration import GenericParam, TypeDeclaration

logger = logging.getLogger(__name__)


class OperationKind(str, Enum):
    COPY_WITH = "copy_with"
    PATCH_WITH = "patch_with"
    CHANGE_TO = "change_to"


class AssignmentSource(str, Enum):
    """Where a target field's value comes from."""

    OVERRIDE = "override"  # deferred parameter if given, else current value
    RETAIN = "retain"  # current value
    REQUIRED = "required"  # required parameter
    PATCH = "patch"  # patch entry if present, else current value
    PATCH_NESTED = "patch_nested"  # as PATCH, nested entries recurse


@dataclass(frozen=True)
class FieldAssignment:
    """How one field of the constructed value is computed.

    Attributes:
        field: Field name on the constructed type
        param: Parameter or patch key supplying the value
        type_text: Field type on the constructed type
        source: Value source
        nested_type: Patchable type name for PATCH_NESTED assignments
    """

    field: str
    param: str
    type_text: str
    source: AssignmentSource
    nested_type: Optional[str] = None


@dataclass(frozen=True)
class OperationParameter:
    name: str
    type_text: str
    required: bool = False
    deferred: bool = False


@dataclass(frozen=True)
class OperationPlan:
    """Language-neutral description of one derived operation.

    Attributes:
        kind: Operation kind
        method_name: Generated method name (``copyWithA``, ``changeToB``)
        owner: Clean name of the declaration the method is generated on
        interface: Clean name of the interface the operation is typed by
        return_type: Return type text
        target: Clean name of the type the operation constructs
        constructor: Constructor invoked by the body (``B._`` or ``B``)
        parameters: Operation parameters, required ones first
        assignments: One assignment per field of the constructed type
        type_params: Method-level generic parameters
        has_body: False for signature-only operations
    """

    kind: OperationKind
    method_name: str
    owner: str
    interface: str
    return_type: str
    target: str
    constructor: str
    parameters: Tuple[OperationParameter, ...]
    assignments: Tuple[FieldAssignment, ...]
    type_params: Tuple[GenericParam, ...] = ()
    has_body: bool = True

    def parameter(self, name: str) -> Optional[OperationParameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def assignment(self, field_name: str) -> Optional[FieldAssignment]:
        for assignment in self.assignments:
            if assignment.field == field_name:
                return assignment
        return None


@dataclass
class SynthesizedOperations:
    """All plans generated for one declaration."""

    declaration: str
    copy_with: List[OperationPlan] = field(default_factory=list)
    patch_with: List[OperationPlan] = field(default_factory=list)
    change_to: List[OperationPlan] = field(default_factory=list)

    def all(self) -> List[OperationPlan]:
        return self.copy_with + self.patch_with + self.change_to

    def find(self, method_name: str) -> Optional[OperationPlan]:
        for plan in self.all():
            if plan.method_name == method_name:
                return plan
        return None


def has_body(target: TypeDeclaration, interface_name: str) -> bool:
    """Whether an operation constructing ``target`` gets a concrete body.

    Abstract targets only get a signature, except a non-sealed target
    operating through its own interface.
    """
    if not target.is_abstract:
        return True
    return target.options.non_sealed and interface_name == target.clean_name


class OperationSynthesizer:
    """Builds operation plans for declarations of one generation run.

    Args:
        registry: Frozen registry of the run
        resolver: Field resolver sharing that registry
    """

    def __init__(self, registry: SchemaRegistry, resolver: FieldResolver) -> None:
        self.registry = registry
        self.resolver = resolver

    def synthesize(self, declaration: TypeDeclaration) -> SynthesizedOperations:
        """Generate every copy-with, patch-with and change-to plan.

        Args:
            declaration: Declaration to synthesize operations for

        Returns:
            SynthesizedOperations holding all plans

        Raises:
            ResolutionError: If an interface or explicit subtype cannot be resolved
        """
        resolved = self.resolver.resolve_fields(declaration)
        interfaces = self.resolver.resolve_interfaces(declaration)
        own = self.resolver.self_interface(declaration)
        ancestors = [i for i in interfaces if not i.explicit] + [own]

        result = SynthesizedOperations(declaration.clean_name)
        for interface in ancestors:
            result.copy_with.append(self.copy_with(declaration, resolved, interface))
            patch = self.patch_with(declaration, resolved, interface)
            if patch is not None:
                result.patch_with.append(patch)

        for target in self._change_targets(declaration, interfaces, own):
            result.change_to.append(self.change_to(declaration, resolved, target))

        logger.debug(
            f"Synthesized {declaration.name}: {len(result.copy_with)} copy-with, "
            f"{len(result.patch_with)} patch-with, {len(result.change_to)} change-to"
        )
        return result

    def _change_targets(
        self,
        declaration: TypeDeclaration,
        interfaces: List[ResolvedInterface],
        own: ResolvedInterface,
    ) -> List[ResolvedInterface]:
        targets: List[ResolvedInterface] = []
        if not declaration.is_abstract:
            targets.append(own)
        targets.extend(i for i in interfaces if i.explicit)

        # Reverse explicit edges give the other direction of each conversion.
        seen = {t.name for t in targets} | {declaration.clean_name}
        for source_name in self.registry.explicit_subtype_sources(declaration.name):
            source = self.registry.lookup(source_name)
            if source is None or source.clean_name in seen or source.is_abstract:
                continue
            seen.add(source.clean_name)
            targets.append(
                ResolvedInterface(
                    declaration=source,
                    type_args=tuple(g.name for g in source.generics),
                    fields=self.resolver.resolve_fields(source).fields,
                    explicit=True,
                )
            )
        return targets

    def _is_patchable(self, declaration: TypeDeclaration, type_text: str, is_enum: bool) -> bool:
        if is_enum:
            return False
        base = base_type_name(type_text)
        if base in {g.name for g in declaration.generics}:
            return False
        return base in self.registry.patchable_type_names()

    def copy_with(
        self,
        declaration: TypeDeclaration,
        resolved: ResolvedFieldSet,
        interface: ResolvedInterface,
    ) -> OperationPlan:
        """Plan a copy typed by ``interface``.

        Interface fields become optional deferred parameters; fields only the
        class has keep their current value.
        """
        shared = {f.name: f for f in interface.fields if f.name in resolved}
        parameters = tuple(
            OperationParameter(f.param_name, f.type_text, deferred=True) for f in shared.values()
        )
        assignments = tuple(
            FieldAssignment(
                field=f.name,
                param=f.param_name,
                type_text=f.type_text,
                source=AssignmentSource.OVERRIDE if f.name in shared else AssignmentSource.RETAIN,
            )
            for f in resolved
        )
        return OperationPlan(
            kind=OperationKind.COPY_WITH,
            method_name=f"copyWith{interface.name}",
            owner=declaration.clean_name,
            interface=interface.name,
            return_type=interface.type_text,
            target=declaration.clean_name,
            constructor=f"{declaration.clean_name}._",
            parameters=parameters,
            assignments=assignments,
            has_body=has_body(declaration, interface.name),
        )

    def patch_with(
        self,
        declaration: TypeDeclaration,
        resolved: ResolvedFieldSet,
        interface: ResolvedInterface,
    ) -> Optional[OperationPlan]:
        """Plan a patch-driven update typed by ``interface``.

        Returns None when the interface has no fields to patch.
        """
        if not interface.fields:
            return None
        patched = set(interface.field_names())
        assignments = []
        for f in resolved:
            if f.name not in patched:
                source = AssignmentSource.RETAIN
                nested = None
            elif self._is_patchable(declaration, f.type_text, f.is_enum):
                source = AssignmentSource.PATCH_NESTED
                nested = base_type_name(f.type_text)
            else:
                source = AssignmentSource.PATCH
                nested = None
            assignments.append(FieldAssignment(f.name, f.param_name, f.type_text, source, nested))

        return OperationPlan(
            kind=OperationKind.PATCH_WITH,
            method_name=f"patchWith{interface.name}",
            owner=declaration.clean_name,
            interface=interface.name,
            return_type=interface.type_text,
            target=declaration.clean_name,
            constructor=f"{declaration.clean_name}._",
            parameters=(OperationParameter("patchInput", f"{interface.name}Patch?"),),
            assignments=tuple(assignments),
            has_body=has_body(declaration, interface.name),
        )

    def change_to(
        self,
        declaration: TypeDeclaration,
        resolved: ResolvedFieldSet,
        target: ResolvedInterface,
    ) -> OperationPlan:
        """Plan a conversion into ``target``.

        Shared fields carry over with optional deferred overrides, fields only
        the target has become required parameters, fields only the source has
        are dropped.
        """
        source_names = set(resolved.names())
        required: List[OperationParameter] = []
        optional: List[OperationParameter] = []
        assignments: List[FieldAssignment] = []
        for f in target.fields:
            if f.name in source_names:
                optional.append(OperationParameter(f.param_name, f.type_text, deferred=True))
                source = AssignmentSource.OVERRIDE
            else:
                required.append(OperationParameter(f.param_name, f.type_text, required=True))
                source = AssignmentSource.REQUIRED
            assignments.append(FieldAssignment(f.name, f.param_name, f.type_text, source))

        target_declaration = target.declaration
        is_self = target.name == declaration.clean_name
        if is_self or target_declaration.hide_public_constructor:
            constructor = f"{target.name}._"
        else:
            constructor = target.name

        return OperationPlan(
            kind=OperationKind.CHANGE_TO,
            method_name=f"changeTo{target.name}",
            owner=declaration.clean_name,
            interface=target.name,
            return_type=target.type_text,
            target=target.name,
            constructor=constructor,
            parameters=tuple(required + optional),
            assignments=tuple(assignments),
            type_params=() if is_self else target_declaration.generics,
            has_body=has_body(target_declaration, target.name),
        )
