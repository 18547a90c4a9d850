"""Patch algebra: partial, possibly nested updates of entities.

A PatchMap maps field names to one of three entry kinds:

- ``Literal(value)``: replace the field with ``value``
- ``Deferred(fn)``: replace the field with ``fn()``, called at apply time
- ``Nested(patch)``: apply ``patch`` to the field's current sub-entity

An absent key leaves the field unchanged. A present key always wins, even
when its value is None. Patch maps are immutable; every builder returns a new
map.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Collection, Dict, Iterator, Mapping, Optional, Union

from morphgen.core.errors import PatchApplyError
from morphgen.core.schema.entity import Entity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Deferred:
    fn: Callable[[], Any]

    def resolve(self) -> Any:
        return self.fn()


@dataclass(frozen=True)
class Nested:
    patch: "PatchMap"


PatchEntry = Union[Literal, Deferred, Nested]


class PatchMap(Mapping[str, PatchEntry]):
    """Immutable mapping from field name to patch entry.

    Example:
        >>> patch = PatchMap.empty().with_value("price", 10).with_fn("name", lambda: "Desk")
        >>> sorted(patch)
        ['name', 'price']
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[str, PatchEntry]] = None) -> None:
        entries = dict(entries or {})
        for key, entry in entries.items():
            if not isinstance(entry, (Literal, Deferred, Nested)):
                raise TypeError(
                    f"Patch entry for '{key}' must be Literal, Deferred or Nested, "
                    f"got {type(entry).__name__}"
                )
        self._entries: Dict[str, PatchEntry] = entries

    @classmethod
    def empty(cls) -> "PatchMap":
        return cls()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PatchMap":
        """Build a patch from plain values.

        Callables become Deferred entries, PatchMaps become Nested entries,
        existing entries are kept and everything else becomes a Literal.
        """
        entries: Dict[str, PatchEntry] = {}
        for key, value in data.items():
            if isinstance(value, (Literal, Deferred, Nested)):
                entries[key] = value
            elif isinstance(value, PatchMap):
                entries[key] = Nested(value)
            elif callable(value):
                entries[key] = Deferred(value)
            else:
                entries[key] = Literal(value)
        return cls(entries)

    def __getitem__(self, key: str) -> PatchEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"PatchMap({self._entries!r})"

    def _with(self, key: str, entry: PatchEntry) -> "PatchMap":
        entries = dict(self._entries)
        entries[key] = entry
        return PatchMap(entries)

    def with_value(self, key: str, value: Any) -> "PatchMap":
        return self._with(key, Literal(value))

    def with_fn(self, key: str, fn: Callable[[], Any]) -> "PatchMap":
        return self._with(key, Deferred(fn))

    def with_nested(self, key: str, patch: "PatchMap") -> "PatchMap":
        return self._with(key, Nested(patch))

    def to_json(self) -> Dict[str, Any]:
        """Serialize literal and nested entries.

        Raises:
            ValueError: If the patch holds a deferred entry
        """
        result: Dict[str, Any] = {}
        for key, entry in self._entries.items():
            if isinstance(entry, Deferred):
                raise ValueError(f"Deferred entry '{key}' cannot be serialized")
            if isinstance(entry, Nested):
                result[key] = entry.patch.to_json()
            else:
                result[key] = entry.value
        return result


def compose(first: PatchMap, second: PatchMap) -> PatchMap:
    """Combine two patches; ``second`` wins where both touch a field."""
    entries = dict(first.items())
    entries.update(second.items())
    return PatchMap(entries)


def resolve_entry(
    entry: PatchEntry,
    current: Any,
    patchable: Optional[Collection[str]] = None,
    field: Optional[str] = None,
) -> Any:
    """Compute the new value of one field from its patch entry.

    Args:
        entry: Patch entry for the field
        current: Current field value
        patchable: Type names that accept nested patches (None: any entity)
        field: Field name, for error reporting

    Returns:
        The patched value

    Raises:
        PatchApplyError: If a nested entry targets a value that cannot be patched
    """
    if isinstance(entry, Literal):
        return entry.value
    if isinstance(entry, Deferred):
        return entry.resolve()
    if not isinstance(current, Entity):
        raise PatchApplyError(
            f"Nested patch for '{field}' needs a patchable value, got {type(current).__name__}",
            field=field,
            entity=current,
        )
    if patchable is not None and current.type_name not in patchable:
        raise PatchApplyError(
            f"Nested patch for '{field}' targets {current.type_name}, which does not support patching",
            field=field,
            entity=current,
        )
    return apply(current, entry.patch, patchable)


def apply(original: Entity, patch: PatchMap, patchable: Optional[Collection[str]] = None) -> Entity:
    """Apply a patch to an entity, returning a new entity.

    Keys that are not fields of ``original`` are ignored.

    Args:
        original: Entity to patch (never mutated)
        patch: Patch to apply
        patchable: Type names that accept nested patches (None: any entity)

    Returns:
        New entity with patched values
    """
    unknown = [key for key in patch if key not in original]
    if unknown:
        logger.debug(f"Ignoring patch keys not on {original.type_name}: {unknown}")

    values = []
    for name, current in original.values:
        if name in patch:
            current = resolve_entry(patch[name], current, patchable, field=name)
        values.append((name, current))
    return Entity(original.type_name, tuple(values))


def diff(before: Entity, after: Entity) -> PatchMap:
    """Build the patch that turns ``before`` into ``after``.

    Sub-entities of the same type are diffed recursively into nested entries.

    Raises:
        ValueError: If the entities are of different types
    """
    if before.type_name != after.type_name:
        raise ValueError(f"Cannot diff {before.type_name} against {after.type_name}")

    entries: Dict[str, PatchEntry] = {}
    for name, new_value in after.values:
        old_value = before.get(name)
        if old_value == new_value:
            continue
        if (
            isinstance(old_value, Entity)
            and isinstance(new_value, Entity)
            and old_value.type_name == new_value.type_name
        ):
            entries[name] = Nested(diff(old_value, new_value))
        else:
            entries[name] = Literal(new_value)
    return PatchMap(entries)
