"""Runtime values of declared types.

Entities are the in-memory counterpart of generated classes. They let the
patch algebra and operation plans be executed and checked without running
generated code.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Tuple

CLASS_NAME_KEY = "_className_"


@dataclass(frozen=True)
class Entity:
    """Immutable instance of a generated type.

    Attributes:
        type_name: Clean name of the generated type (``Product``)
        values: Ordered (field name, value) pairs

    Example:
        >>> e = Entity.of("B", a="a", b=5)
        >>> str(e)
        '(B-a:a|b:5)'
    """

    type_name: str
    values: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, type_name: str, /, **values: Any) -> "Entity":
        return cls(type_name, tuple(values.items()))

    @classmethod
    def from_mapping(cls, type_name: str, data: Mapping[str, Any]) -> "Entity":
        return cls(type_name, tuple(data.items()))

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.values)

    def get(self, name: str, default: Any = None) -> Any:
        for key, value in self.values:
            if key == name:
                return value
        return default

    def __getitem__(self, name: str) -> Any:
        for key, value in self.values:
            if key == name:
                return value
        raise KeyError(f"{self.type_name} has no field '{name}'")

    def __contains__(self, name: object) -> bool:
        return name in self.field_names

    def __iter__(self) -> Iterator[str]:
        return iter(self.field_names)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.values)

    def replace(self, **changes: Any) -> "Entity":
        """Return a copy with some field values replaced.

        Raises:
            KeyError: If a changed field does not exist on this entity
        """
        unknown = set(changes) - set(self.field_names)
        if unknown:
            raise KeyError(f"{self.type_name} has no field(s) {sorted(unknown)}")
        return Entity(
            self.type_name,
            tuple((name, changes.get(name, value)) for name, value in self.values),
        )

    def to_serializable(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict tagged with the class name."""
        data = {name: _serialize(value) for name, value in self.values}
        data[CLASS_NAME_KEY] = self.type_name
        return data

    def __str__(self) -> str:
        parts = "|".join(f"{name}:{_display(value)}" for name, value in self.values)
        return f"({self.type_name}-{parts})"


def _serialize(value: Any) -> Any:
    if isinstance(value, Entity):
        return value.to_serializable()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


def _display(value: Any) -> str:
    # Matches the generated toString rendering of Dart values.
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
