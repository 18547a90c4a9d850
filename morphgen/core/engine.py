"""Generation engine: two-phase orchestration of registration and generation.

Phase 1 (registration) parses declarations and fills the registry. It is
single-writer and ends with ``freeze()``. Phase 2 (generation) resolves,
synthesizes and emits each declaration independently against the frozen
registry, optionally on a thread pool. Failures are isolated per declaration
and reported as issues on that declaration's result.
"""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import (
    AbstractSet,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from morphgen.core.config import get_max_workers
from morphgen.core.errors import MorphgenError, StructuralViolation, UnresolvedReferenceError
from morphgen.core.registry import SchemaRegistry
from morphgen.core.resolver import FieldResolver, ResolvedFieldSet
from morphgen.core.schema.declaration import TypeDeclaration
from morphgen.core.schema.issue import Issue
from morphgen.core.synthesizer import OperationSynthesizer, SynthesizedOperations

logger = logging.getLogger(__name__)


@dataclass
class SourceSplit:
    """Declarations and enums found in one source text.

    Attributes:
        declarations: (offset, declaration text) pairs in source order
        enums: Enum type names declared in the source
    """

    declarations: List[Tuple[int, str]] = field(default_factory=list)
    enums: List[str] = field(default_factory=list)


class Frontend(Protocol):
    """Source-language parsing used in phase 1."""

    def parse(
        self,
        raw_text: str,
        source_id: str = "<memory>",
        options: Optional[Mapping[str, Any]] = None,
        base_offset: int = 0,
        enum_names: AbstractSet[str] = frozenset(),
    ) -> TypeDeclaration:
        ...

    def split_source(self, text: str) -> SourceSplit:
        ...


class Backend(Protocol):
    """Source-language emission used in phase 2."""

    def emit(
        self,
        declaration: TypeDeclaration,
        resolved: ResolvedFieldSet,
        operations: SynthesizedOperations,
        registry: SchemaRegistry,
    ) -> str:
        ...


@dataclass
class GenerationResult:
    """Outcome of generating one declaration.

    Attributes:
        declaration: Sigil-prefixed declaration name
        output: Generated text, or None when generation failed
        issues: Errors and warnings for this declaration
        source_id: Source the declaration came from (optional)
        content_hash: Hash of the declaration text, for skip-if-unchanged callers
    """

    declaration: str
    output: Optional[str] = None
    issues: List[Issue] = field(default_factory=list)
    source_id: Optional[str] = None
    content_hash: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.output is not None

    @property
    def errors(self) -> List[Issue]:
        return [issue for issue in self.issues if issue.is_error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "declaration": self.declaration,
            "ok": self.ok,
            "source_id": self.source_id,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class GenerationRun:
    """Phase-2 state for one generation run over a frozen registry.

    Holds the run's resolver cache and synthesizer; nothing here outlives the
    run. ``generate`` may be called from several threads at once.
    """

    def __init__(self, registry: SchemaRegistry, backend: Backend) -> None:
        self.registry = registry
        self.backend = backend
        self.resolver = FieldResolver(registry)
        self.synthesizer = OperationSynthesizer(registry, self.resolver)

    def _validate(self, declaration: TypeDeclaration) -> None:
        for ref in declaration.interfaces:
            if ref.clean_name == declaration.clean_name:
                raise StructuralViolation(
                    f"{declaration.name} cannot implement itself",
                    declaration=declaration.name,
                )
            base = self.registry.lookup(ref.name)
            if base is not None and base.sealed and base.source_id != declaration.source_id:
                raise StructuralViolation(
                    f"{declaration.name} implements sealed {base.name} from {base.source_id}; "
                    "a sealed base can only be implemented from its own source",
                    declaration=declaration.name,
                    hint=f"move {declaration.name} next to {base.name} or mark {base.name} nonSealed",
                )

    def generate(self, name: str) -> GenerationResult:
        declaration = self.registry.lookup(name)
        if declaration is None:
            error = UnresolvedReferenceError(f"{name} is not a registered declaration", declaration=name)
            return GenerationResult(name, issues=[error.to_issue()])

        result = GenerationResult(
            declaration.name,
            issues=list(declaration.constructor_issues),
            source_id=declaration.source_id,
            content_hash=declaration.content_hash,
        )
        try:
            self._validate(declaration)
            resolved = self.resolver.resolve_fields(declaration)
            result.issues.extend(resolved.issues)
            operations = self.synthesizer.synthesize(declaration)
            result.output = self.backend.emit(declaration, resolved, operations, self.registry)
        except MorphgenError as e:
            e.declaration = e.declaration or declaration.name
            issue = e.to_issue(declaration.source_id)
            result.issues.append(issue)
            logger.error(str(issue))
            return result

        logger.info(f"Generated {declaration.name} ({len(result.output)} chars, {len(result.issues)} issue(s))")
        return result


class GenerationEngine:
    """Entry point: register declarations, then generate them.

    Args:
        frontend: Source parser (default: the Dart frontend)
        backend: Source emitter (default: the Dart backend)
        max_workers: Worker threads for ``generate_all`` (default: from config)
        config: Configuration dict (default: loaded from morphgen.json)

    Example:
        >>> engine = GenerationEngine()
        >>> engine.register_source(source_text, "lib/animals.dart")
        >>> results = engine.generate_all()
    """

    def __init__(
        self,
        frontend: Optional[Frontend] = None,
        backend: Optional[Backend] = None,
        max_workers: Optional[int] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        if frontend is None or backend is None:
            from morphgen.dart.adapter import DartBackend, DartFrontend

            frontend = frontend or DartFrontend()
            backend = backend or DartBackend()
        self.frontend = frontend
        self.backend = backend
        self.max_workers = max_workers or get_max_workers(config)
        self.registry = SchemaRegistry()
        self.registration_issues: List[Issue] = []

    def register_declaration(
        self,
        raw_text: str,
        source_id: str = "<memory>",
        options: Optional[Mapping[str, Any]] = None,
        base_offset: int = 0,
    ) -> TypeDeclaration:
        """Parse and register one declaration.

        Args:
            raw_text: Declaration text
            source_id: Source identifier
            options: Annotation parameters overriding those in the text
            base_offset: Offset of ``raw_text`` in its source

        Returns:
            The registered declaration

        Raises:
            StructuralViolation: If the declaration is malformed
            ParseError: If its delimiters are unbalanced
            DuplicateDeclarationError: If the name is already registered
            RegistryStateError: If generation has already started
        """
        declaration = self.frontend.parse(
            raw_text,
            source_id=source_id,
            options=options,
            base_offset=base_offset,
            enum_names=self.registry.enum_names(),
        )
        self.registry.register(declaration)
        logger.info(f"Registered {declaration.name} from {source_id}")
        return declaration

    def register_enum(self, name: str) -> None:
        self.registry.register_enum(name)

    def register_source(
        self,
        text: str,
        source_id: str,
        options_by_name: Optional[Mapping[str, Mapping[str, Any]]] = None,
        default_options: Optional[Mapping[str, Any]] = None,
    ) -> List[TypeDeclaration]:
        """Register every annotated declaration and enum in a source text.

        Errors are collected in ``registration_issues`` instead of raised so
        one bad declaration does not hide the rest of the file.

        Args:
            text: Full source text
            source_id: Source identifier (usually the file path)
            options_by_name: Option overrides keyed by declaration name
                (sigil-prefixed or clean)
            default_options: Overrides applied to every declaration before
                the per-name ones

        Returns:
            Declarations registered from this source
        """
        options_by_name = options_by_name or {}
        try:
            split = self.frontend.split_source(text)
            for enum in split.enums:
                self.registry.register_enum(enum)
        except MorphgenError as e:
            issue = e.to_issue(source_id)
            self.registration_issues.append(issue)
            logger.error(str(issue))
            return []

        registered: List[TypeDeclaration] = []
        for offset, chunk in split.declarations:
            try:
                declaration = self.frontend.parse(
                    chunk,
                    source_id=source_id,
                    base_offset=offset,
                    enum_names=self.registry.enum_names(),
                )
                overrides = dict(default_options or {})
                overrides.update(
                    options_by_name.get(declaration.name)
                    or options_by_name.get(declaration.clean_name)
                    or {}
                )
                if overrides:
                    declaration = dataclasses.replace(
                        declaration, options=declaration.options.merged(overrides)
                    )
                self.registry.register(declaration)
            except MorphgenError as e:
                issue = e.to_issue(source_id)
                self.registration_issues.append(issue)
                logger.error(str(issue))
                continue
            registered.append(declaration)

        logger.info(f"Registered {len(registered)} declaration(s) from {source_id}")
        return registered

    def freeze(self) -> None:
        """End phase 1. Called automatically by the generate methods."""
        self.registry.freeze()

    def generate(self, name: str) -> GenerationResult:
        """Generate one declaration.

        Never raises for declaration-level problems: they are returned as
        issues on the result.
        """
        self.freeze()
        return GenerationRun(self.registry, self.backend).generate(name)

    def generate_all(self, max_workers: Optional[int] = None) -> List[GenerationResult]:
        """Generate every registered declaration.

        Args:
            max_workers: Worker threads (default: the engine's setting)

        Returns:
            One result per declaration, sorted by declaration name
        """
        self.freeze()
        run = GenerationRun(self.registry, self.backend)
        names = [declaration.name for declaration in self.registry.declarations()]
        workers = max_workers or self.max_workers

        logger.info(f"Generating {len(names)} declaration(s) with {workers} worker(s)")
        if workers > 1 and len(names) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(run.generate, names))
        else:
            results = [run.generate(name) for name in names]

        failed = sum(1 for result in results if not result.ok)
        if failed:
            logger.warning(f"{failed} of {len(results)} declaration(s) failed to generate")
        else:
            logger.info(f"Generated {len(results)} declaration(s)")
        return results

    def results_by_source(self, results: Sequence[GenerationResult]) -> Dict[str, List[GenerationResult]]:
        """Group results by source id, keeping result order."""
        grouped: Dict[str, List[GenerationResult]] = {}
        for result in results:
            grouped.setdefault(result.source_id or "<memory>", []).append(result)
        return grouped
