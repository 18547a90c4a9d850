"""Rendering of operation plans as Dart methods."""

from typing import AbstractSet, List

from morphgen.core.synthesizer import (
    AssignmentSource,
    FieldAssignment,
    OperationKind,
    OperationParameter,
    OperationPlan,
)
from morphgen.dart.naming import field_enum_name, generic_params, param_name, render_type

INDENT = "  "


def _parameter(param: OperationParameter, known: AbstractSet[str]) -> str:
    type_text = render_type(param.type_text, known)
    if param.deferred:
        return f"{type_text} Function()? {param.name},"
    if param.required:
        return f"required {type_text} {param.name},"
    return f"{type_text} {param.name},"


def _signature(plan: OperationPlan, known: AbstractSet[str]) -> List[str]:
    type_params = generic_params(plan.type_params, known)
    head = f"{render_type(plan.return_type, known)} {plan.method_name}{type_params}("
    if not plan.parameters:
        return [head + ")"]
    lines = [head + "{"]
    lines.extend(INDENT + _parameter(p, known) for p in plan.parameters)
    lines.append("})")
    return lines


def _override_value(assignment: FieldAssignment, known: AbstractSet[str]) -> str:
    type_text = render_type(assignment.type_text, known)
    name = assignment.param
    return f"{name} == null ? this.{assignment.field} as {type_text} : {name}() as {type_text}"


def _patch_value(plan: OperationPlan, assignment: FieldAssignment) -> str:
    key = f"{field_enum_name(plan.interface)}.{assignment.param}"
    entry = f"_patchMap[{key}]"
    current = f"this.{assignment.field}"
    value = f"({entry} is Function) ? {entry}() : "
    if assignment.source is AssignmentSource.PATCH_NESTED:
        nested = assignment.nested_type
        access = "?." if assignment.type_text.endswith("?") else "."
        value += (
            f"({entry} is {nested}Patch) ? "
            f"{current}{access}patchWith{nested}(patchInput: {entry}) : "
        )
    value += entry
    return f"_patchMap.containsKey({key}) ? {value} : {current}"


def _assignment(plan: OperationPlan, assignment: FieldAssignment, known: AbstractSet[str]) -> str:
    argument = param_name(assignment.field)
    if assignment.source is AssignmentSource.RETAIN:
        value = f"this.{assignment.field}"
    elif assignment.source is AssignmentSource.REQUIRED:
        value = assignment.param
    elif assignment.source is AssignmentSource.OVERRIDE:
        value = _override_value(assignment, known)
    else:
        value = _patch_value(plan, assignment)
    return f"{argument}: {value},"


def render_operation(plan: OperationPlan, known: AbstractSet[str]) -> str:
    """Render one plan as a Dart method (two-space indented).

    Signature-only plans end with ``;``; others get a body that constructs
    the target through ``plan.constructor``.

    Args:
        plan: Operation plan
        known: Clean names of generated types, for sigil removal in types

    Returns:
        Method source text
    """
    lines = [INDENT + line for line in _signature(plan, known)]
    if not plan.has_body:
        lines[-1] += ";"
        return "\n".join(lines)

    lines[-1] += " {"
    body = INDENT * 2
    if plan.kind is OperationKind.PATCH_WITH:
        patch_type = plan.parameters[0].type_text.rstrip("?")
        lines.append(f"{body}final _patcher = patchInput ?? {patch_type}();")
        lines.append(f"{body}final _patchMap = _patcher.toPatch();")
    lines.append(f"{body}return {plan.constructor}(")
    lines.extend(f"{body}{INDENT}{_assignment(plan, a, known)}" for a in plan.assignments)
    lines.append(f"{body});")
    lines.append(INDENT + "}")
    return "\n".join(lines)
