"""Schema registry: the set of all declarations known to one generation run.

The registry is filled in phase 1 (registration) and frozen before phase 2
(generation) starts. After ``freeze()`` it is read-only and safe to share
between worker threads.
"""

import logging
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

from morphgen.core.errors import DuplicateDeclarationError, RegistryStateError
from morphgen.core.schema.declaration import TypeDeclaration, clean_name

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Authoritative mapping from declaration name to TypeDeclaration.

    Lookups accept either the sigil-prefixed name (``$$Product``) or the clean
    generated name (``Product``).

    Example:
        >>> registry = SchemaRegistry()
        >>> registry.register(TypeDeclaration(name="$Foo"))
        >>> registry.freeze()
        >>> registry.lookup("Foo").name
        '$Foo'
    """

    def __init__(self) -> None:
        self._declarations: Dict[str, TypeDeclaration] = {}
        self._enums: Set[str] = set()
        self._reverse_subtypes: Dict[str, Tuple[str, ...]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, declaration: TypeDeclaration) -> None:
        """Add a declaration.

        Raises:
            RegistryStateError: If the registry is already frozen
            DuplicateDeclarationError: If the clean name is already registered
        """
        if self._frozen:
            raise RegistryStateError(
                f"Cannot register {declaration.name}: registry is frozen",
                declaration=declaration.name,
            )
        key = declaration.clean_name
        existing = self._declarations.get(key)
        if existing is not None:
            raise DuplicateDeclarationError(
                f"{declaration.name} is already registered from {existing.source_id}",
                declaration=declaration.name,
                hint="rename one of the declarations",
            )
        self._declarations[key] = declaration
        logger.debug(f"Registered {declaration.name} from {declaration.source_id}")

    def register_enum(self, name: str) -> None:
        if self._frozen:
            raise RegistryStateError(f"Cannot register enum {name}: registry is frozen")
        self._enums.add(clean_name(name))

    def freeze(self) -> None:
        """End phase 1. Builds the reverse explicit-subtype edges."""
        if self._frozen:
            return
        reverse: Dict[str, List[str]] = {}
        for declaration in self._declarations.values():
            for subtype in declaration.explicit_subtypes:
                reverse.setdefault(clean_name(subtype), []).append(declaration.name)
        self._reverse_subtypes = {key: tuple(sorted(names)) for key, names in reverse.items()}
        self._frozen = True
        logger.info(f"Registry frozen with {len(self._declarations)} declaration(s)")

    def _require_frozen(self, operation: str) -> None:
        if not self._frozen:
            raise RegistryStateError(
                f"Registry must be frozen before {operation}",
                hint="call freeze() once every declaration is registered",
            )

    def lookup(self, name: str) -> Optional[TypeDeclaration]:
        self._require_frozen("lookup")
        return self._declarations.get(clean_name(name))

    def known_type_names(self) -> FrozenSet[str]:
        """Clean names of all registered declarations."""
        return frozenset(self._declarations)

    def patchable_type_names(self) -> FrozenSet[str]:
        """Clean names of types that generate a patch-with operation."""
        return frozenset(name for name in self._declarations if name not in self._enums)

    def enum_names(self) -> FrozenSet[str]:
        return frozenset(self._enums)

    def explicit_subtype_sources(self, name: str) -> Tuple[str, ...]:
        """Declarations that list ``name`` among their explicit subtypes."""
        self._require_frozen("reading subtype edges")
        return self._reverse_subtypes.get(clean_name(name), ())

    def declarations(self) -> List[TypeDeclaration]:
        return [self._declarations[key] for key in sorted(self._declarations)]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and clean_name(name) in self._declarations

    def __len__(self) -> int:
        return len(self._declarations)

    def __iter__(self) -> Iterator[TypeDeclaration]:
        return iter(self.declarations())
