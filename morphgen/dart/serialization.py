"""Serialization hooks and patch support classes for generated Dart code.

Produces the JSON annotations and methods used with json_serializable, the
per-type field enum and ``<Name>Patch`` builder consumed by patch-with, and
the optional compare-to extension.
"""

from typing import AbstractSet, List, Sequence

from morphgen.core.resolver import ResolvedField, base_type_name
from morphgen.core.schema.declaration import JsonKeyInfo, TypeDeclaration
from morphgen.dart.naming import (
    capitalize,
    field_enum_name,
    generic_args,
    generic_params,
    param_name,
    patch_class_name,
    render_type,
)

CLASS_NAME_KEY = "_className_"


def _dart_bool(value: bool) -> str:
    return "true" if value else "false"


def json_key_annotation(info: JsonKeyInfo) -> str:
    """Render ``@JsonKey(...)`` with the populated arguments only."""
    args: List[str] = []
    if info.name is not None:
        args.append(f"name: '{info.name}'")
    if info.ignore is not None:
        args.append(f"ignore: {_dart_bool(info.ignore)}")
    if info.default_value is not None:
        args.append(f"defaultValue: {info.default_value}")
    if info.required is not None:
        args.append(f"required: {_dart_bool(info.required)}")
    if info.include_if_null is not None:
        args.append(f"includeIfNull: {_dart_bool(info.include_if_null)}")
    if info.include_from_json is not None:
        args.append(f"includeFromJson: {_dart_bool(info.include_from_json)}")
    if info.include_to_json is not None:
        args.append(f"includeToJson: {_dart_bool(info.include_to_json)}")
    if info.to_json is not None:
        args.append(f"toJson: {info.to_json}")
    if info.from_json is not None:
        args.append(f"fromJson: {info.from_json}")
    return f"@JsonKey({', '.join(args)})"


def json_serializable_annotation(declaration: TypeDeclaration) -> str:
    args = [
        f"explicitToJson: {_dart_bool(declaration.options.explicit_to_json)}",
        "genericArgumentFactories: true",
    ]
    if declaration.hide_public_constructor:
        args.append("constructor: 'forJsonDoNotUse'")
    return f"@JsonSerializable({', '.join(args)})"


def generics_singleton(declaration: TypeDeclaration) -> str:
    """Registry of fromJson functions per generic instantiation."""
    if not declaration.generics:
        return ""
    name = declaration.clean_name
    objects = ", ".join("Object" for _ in declaration.generics)
    singleton = f"{name}_Generics_Sing"
    return "\n".join(
        [
            f"class {singleton} {{",
            f"  Map<List<String>, {name}<{objects}> Function(Map<String, dynamic>)> fns = {{}};",
            "",
            f"  factory {singleton}() => _singleton;",
            f"  static final {singleton} _singleton = {singleton}._internal();",
            "",
            f"  {singleton}._internal();",
            "}",
        ]
    )


def from_json_factory(declaration: TypeDeclaration, subtypes: Sequence[TypeDeclaration]) -> str:
    """``fromJson`` factory dispatching on the ``_className_`` marker.

    Args:
        declaration: Declaration the factory is generated on
        subtypes: Concrete explicit subtypes the JSON may describe
    """
    name = declaration.clean_name
    candidates = [d for d in subtypes if not d.is_abstract]
    if not declaration.is_abstract:
        candidates.append(declaration)

    lines = [f"  factory {name}.fromJson(Map<String, dynamic> json) {{"]
    if not declaration.is_abstract:
        lines.append(f"    if (json['{CLASS_NAME_KEY}'] == null) {{")
        lines.append(f"      return _${name}FromJson(json);")
        lines.append("    }")
    for candidate in candidates:
        cname = candidate.clean_name
        lines.append(f"    if (json['{CLASS_NAME_KEY}'] == \"{cname}\") {{")
        if candidate.generics:
            markers = ", ".join(f"'_{g.name}_'" for g in candidate.generics)
            lines.append("      var fn_fromJson = getFromJsonToGenericFn(")
            lines.append(f"        {cname}_Generics_Sing().fns,")
            lines.append("        json,")
            lines.append(f"        [{markers}],")
            lines.append("      );")
            lines.append("      return fn_fromJson(json);")
        elif candidate is declaration:
            lines.append(f"      return _${cname}FromJson(json);")
        else:
            lines.append(f"      return {cname}.fromJson(json);")
        lines.append("    }")
    lines.append(
        f"    throw UnsupportedError(\"The {CLASS_NAME_KEY} '${{json['{CLASS_NAME_KEY}']}}' "
        f"is not supported by the {name}.fromJson constructor.\");"
    )
    lines.append("  }")
    return "\n".join(lines)


def to_json_members(declaration: TypeDeclaration) -> str:
    """``toJsonCustom``/``toJson``/``toJsonLean``; a signature for abstract types."""
    if declaration.is_abstract:
        return "  Map<String, dynamic> toJsonCustom([Map<Type, Object? Function(Never)>? fns]);"

    name = declaration.clean_name
    generics = declaration.generics
    lines = [
        "  // ignore: unused_field",
        "  Map<Type, Object? Function(Never)> _fns = {};",
        "",
        "  Map<String, dynamic> toJsonCustom([Map<Type, Object? Function(Never)>? fns]) {",
        "    _fns = fns ?? {};",
        "    return toJson();",
        "  }",
        "",
        "  Map<String, dynamic> toJson() {",
    ]
    for g in generics:
        lines.append(f"    var fn_{g.name} = getGenericToJsonFn(_fns, {g.name});")
    if generics:
        lines.append(f"    final Map<String, dynamic> data = _${name}ToJson(")
        lines.append("      this,")
        lines.extend(f"      fn_{g.name} as Object? Function({g.name})," for g in generics)
        lines.append("    );")
    else:
        lines.append(f"    final Map<String, dynamic> data = _${name}ToJson(this);")
    lines.append(f"    data['{CLASS_NAME_KEY}'] = '{name}';")
    lines.extend(f"    data['_{g.name}_'] = {g.name}.toString();" for g in generics)
    lines.append("    return data;")
    lines.append("  }")
    lines.extend(
        [
            "",
            "  Map<String, dynamic> toJsonLean() {",
            f"    final Map<String, dynamic> data = _${name}ToJson(this);",
            "    return _sanitizeJson(data);",
            "  }",
            "",
            "  dynamic _sanitizeJson(dynamic json) {",
            "    if (json is Map<String, dynamic>) {",
            f"      json.remove('{CLASS_NAME_KEY}');",
            "      return json..forEach((key, value) {",
            "        json[key] = _sanitizeJson(value);",
            "      });",
            "    } else if (json is List) {",
            "      return json.map((e) => _sanitizeJson(e)).toList();",
            "    }",
            "    return json;",
            "  }",
        ]
    )
    return "\n".join(lines)


def patch_support(
    type_name: str,
    fields: Sequence[ResolvedField],
    known: AbstractSet[str],
    patchable: AbstractSet[str],
) -> str:
    """Field enum ``<Name>$`` and the ``<Name>Patch`` builder class.

    Each field gets ``with<Field>`` (literal) and ``with<Field>Fn`` (deferred)
    builders; fields of patchable types also get ``with<Field>Patch``
    (nested).
    """
    if not fields:
        return ""
    enum_name = field_enum_name(type_name)
    patch_name = patch_class_name(type_name)
    lines = [f"enum {enum_name} {{", "  " + ", ".join(param_name(f.name) for f in fields), "}", ""]
    lines.extend(
        [
            f"class {patch_name} {{",
            f"  final Map<{enum_name}, dynamic> _patch = {{}};",
            "",
            f"  static {patch_name} create([Map<String, dynamic>? diff]) {{",
            f"    final patch = {patch_name}();",
            "    if (diff != null) {",
            "      diff.forEach((key, value) {",
            f"        final matches = {enum_name}.values.where((e) => e.name == key);",
            "        if (matches.isNotEmpty) {",
            "          patch._patch[matches.first] = value;",
            "        }",
            "      });",
            "    }",
            "    return patch;",
            "  }",
            "",
            f"  Map<{enum_name}, dynamic> toPatch() => Map.from(_patch);",
            "",
            "  Map<String, dynamic> toJson() {",
            "    final json = <String, dynamic>{};",
            "    _patch.forEach((key, value) {",
            "      if (value is Function) {",
            "        throw UnsupportedError('Deferred patch entry ${key.name} cannot be serialized');",
            "      }",
            "      json[key.name] = _encode(value);",
            "    });",
            "    return json;",
            "  }",
            "",
            "  static dynamic _encode(dynamic value) {",
            "    if (value is DateTime) return value.toIso8601String();",
            "    if (value is List) return value.map(_encode).toList();",
            "    if (value == null || value is num || value is String || value is bool) return value;",
            "    return (value as dynamic).toJson();",
            "  }",
            "",
            f"  static {patch_name} fromJson(Map<String, dynamic> json) {{",
            "    return create(json);",
            "  }",
        ]
    )
    for f in fields:
        key = param_name(f.name)
        type_text = render_type(f.type_text, known)
        method = capitalize(f.name)
        lines.extend(
            [
                "",
                f"  {patch_name} with{method}({type_text} value) {{",
                f"    _patch[{enum_name}.{key}] = value;",
                "    return this;",
                "  }",
                "",
                f"  {patch_name} with{method}Fn({type_text} Function() value) {{",
                f"    _patch[{enum_name}.{key}] = value;",
                "    return this;",
                "  }",
            ]
        )
        nested = base_type_name(f.type_text)
        if nested in patchable and not f.is_enum:
            lines.extend(
                [
                    "",
                    f"  {patch_name} with{method}Patch({patch_class_name(nested)} value) {{",
                    f"    _patch[{enum_name}.{key}] = value;",
                    "    return this;",
                    "  }",
                ]
            )
    lines.append("}")
    return "\n".join(lines)


def compare_extension(declaration: TypeDeclaration, fields: Sequence[ResolvedField]) -> str:
    """Extension computing a diff map of deferred values against another instance."""
    name = declaration.clean_name
    params = generic_params(declaration.generics)
    args = generic_args(declaration.generics)
    lines = [
        f"extension {name}CompareE{params} on {name}{args} {{",
        f"  Map<String, dynamic> compareTo{name}({name}{args} other) {{",
        "    final Map<String, dynamic> diff = {};",
    ]
    for f in fields:
        if "Function" in f.type_text:
            continue
        key = param_name(f.name)
        base = f.type_text.rstrip("?")
        if base.startswith(("List<", "Set<")):
            differs = f"!({f.name} as Iterable).equalUnorderedD(other.{f.name})"
            if f.nullable:
                differs = f"({f.name} == null) != (other.{f.name} == null) || ({f.name} != null && {differs})"
        else:
            differs = f"{f.name} != other.{f.name}"
        lines.append(f"    if ({differs}) {{")
        lines.append(f"      diff['{key}'] = () => other.{f.name};")
        lines.append("    }")
    lines.extend(["    return diff;", "  }", "}"])
    return "\n".join(lines)
