"""Reference execution of operation plans on entities.

Generated code is never run by morphgen. This module executes the same plans
the emitter renders, on ``Entity`` values, so the behaviour of copy-with,
patch-with and change-to can be checked directly.
"""

import logging
from typing import Any, Callable, Collection, Dict, Optional

from morphgen.core.errors import PatchApplyError
from morphgen.core.schema.entity import Entity
from morphgen.core.schema.patch_map import Nested, PatchMap, resolve_entry
from morphgen.core.synthesizer import AssignmentSource, OperationKind, OperationPlan

logger = logging.getLogger(__name__)


def _check_receiver(plan: OperationPlan, entity: Entity) -> None:
    if entity.type_name != plan.owner:
        raise ValueError(f"{plan.method_name} is defined on {plan.owner}, not {entity.type_name}")
    if not plan.has_body:
        raise TypeError(f"{plan.owner}.{plan.method_name} is abstract and has no body to run")


def _check_arguments(plan: OperationPlan, arguments: Dict[str, Any]) -> None:
    unknown = [name for name in arguments if plan.parameter(name) is None]
    if unknown:
        raise TypeError(f"{plan.method_name}() got unexpected argument(s) {unknown}")
    for param in plan.parameters:
        if param.required and param.name not in arguments:
            raise TypeError(f"{plan.method_name}() missing required argument '{param.name}'")
        value = arguments.get(param.name)
        if param.deferred and value is not None and not callable(value):
            raise TypeError(f"{plan.method_name}() argument '{param.name}' must be a callable")


def _override(arguments: Dict[str, Any], name: str, current: Any) -> Any:
    fn: Optional[Callable[[], Any]] = arguments.get(name)
    return current if fn is None else fn()


def copy_with(plan: OperationPlan, entity: Entity, **overrides: Any) -> Entity:
    """Run a copy-with plan.

    Args:
        plan: copy-with plan generated for the entity's type
        entity: Receiver
        **overrides: Zero-argument callables keyed by parameter name

    Returns:
        New entity of the plan's target type

    Example:
        >>> copy_with(plan, Entity.of("B", a="orig", b=5), a=lambda: "x")
    """
    _check_receiver(plan, entity)
    _check_arguments(plan, overrides)
    values = []
    for assignment in plan.assignments:
        current = entity[assignment.field]
        if assignment.source is AssignmentSource.OVERRIDE:
            current = _override(overrides, assignment.param, current)
        values.append((assignment.field, current))
    return Entity(plan.target, tuple(values))


def patch_with(
    plan: OperationPlan,
    entity: Entity,
    patch: Optional[PatchMap] = None,
    patchable: Optional[Collection[str]] = None,
) -> Entity:
    """Run a patch-with plan.

    Only fields of the plan's interface are read from the patch. Nested
    entries are accepted only for fields whose type supports patching.

    Raises:
        PatchApplyError: If a nested entry targets a field that cannot be patched
    """
    _check_receiver(plan, entity)
    patch = patch or PatchMap.empty()
    values = []
    for assignment in plan.assignments:
        current = entity[assignment.field]
        if assignment.source in (AssignmentSource.PATCH, AssignmentSource.PATCH_NESTED):
            entry = patch.get(assignment.param)
            if entry is not None:
                if isinstance(entry, Nested) and assignment.source is AssignmentSource.PATCH:
                    raise PatchApplyError(
                        f"Field '{assignment.field}' of type {assignment.type_text} does not accept nested patches",
                        field=assignment.field,
                        entity=entity,
                    )
                current = resolve_entry(entry, current, patchable, field=assignment.field)
        values.append((assignment.field, current))
    return Entity(plan.target, tuple(values))


def change_to(plan: OperationPlan, entity: Entity, **arguments: Any) -> Entity:
    """Run a change-to plan.

    Args:
        plan: change-to plan generated for the entity's type
        entity: Receiver
        **arguments: Values for required parameters, zero-argument callables
            for optional overrides

    Returns:
        New entity of the target type
    """
    _check_receiver(plan, entity)
    _check_arguments(plan, arguments)
    values = []
    for assignment in plan.assignments:
        if assignment.source is AssignmentSource.REQUIRED:
            value = arguments[assignment.param]
        else:
            value = _override(arguments, assignment.param, entity[assignment.field])
        values.append((assignment.field, value))
    return Entity(plan.target, tuple(values))


def invoke(plan: OperationPlan, entity: Entity, **arguments: Any) -> Entity:
    """Dispatch to the runner matching the plan's kind."""
    if plan.kind is OperationKind.COPY_WITH:
        return copy_with(plan, entity, **arguments)
    if plan.kind is OperationKind.PATCH_WITH:
        return patch_with(plan, entity, **arguments)
    return change_to(plan, entity, **arguments)
