"""Generation exceptions for error handling.

Every failure the engine can report derives from ``MorphgenError``. Errors are
raised where they are detected and caught at the declaration boundary by the
engine, which turns them into ``Issue`` values so one bad declaration never
stops the others.
"""

from typing import Any, Optional

from morphgen.core.schema.issue import Issue, IssueKind


class MorphgenError(Exception):
    """Base class for all generation errors.

    Attributes:
        message: Description of the failure
        declaration: Name of the affected declaration (optional)
        offset: Character offset into the source text (optional)
        hint: Suggested fix (optional)
    """

    kind = IssueKind.STRUCTURAL

    def __init__(
        self,
        message: str,
        declaration: Optional[str] = None,
        offset: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.declaration = declaration
        self.offset = offset
        self.hint = hint

    def to_issue(self, source_id: Optional[str] = None, severity: str = "error") -> Issue:
        """Convert the exception into a reportable Issue.

        Args:
            source_id: Source identifier to attach (optional)
            severity: Issue severity (default: "error")

        Returns:
            Issue carrying this error's context
        """
        return Issue(
            kind=self.kind,
            message=self.message,
            declaration=self.declaration,
            hint=self.hint,
            offset=self.offset,
            source_id=source_id,
            severity=severity,
        )


class StructuralViolation(MorphgenError):
    """Raised when a declaration breaks the structural rules of the input.

    Covers an annotation placed on something other than an abstract class,
    a declaration name without the ``$`` sigil, ``extends``/``with`` used
    where ``implements`` is required, and a sealed base implemented from a
    different source.
    """

    kind = IssueKind.STRUCTURAL


class ResolutionError(MorphgenError):
    """Raised when a referenced type cannot be resolved against the registry."""

    kind = IssueKind.RESOLUTION


class UnresolvedReferenceError(ResolutionError):
    """Raised when an interface or explicit subtype is not registered."""


class UnresolvedGenericBoundError(ResolutionError):
    """Raised when type arguments cannot be matched positionally to parameters."""


class ParseError(MorphgenError):
    """Raised on unbalanced delimiters or malformed declaration text."""

    kind = IssueKind.PARSE


class UnterminatedBodyError(ParseError):
    """Raised when input ends inside a constructor body or a string literal."""


class DuplicateDeclarationError(MorphgenError):
    """Raised when two declarations register under the same name."""

    kind = IssueKind.DUPLICATE


class RegistryStateError(MorphgenError):
    """Raised when the registry is used on the wrong side of the phase barrier."""

    kind = IssueKind.REGISTRY


class PatchApplyError(Exception):
    """Raised when a patch cannot be applied to an entity.

    Attributes:
        message: Description of the failure
        field: Name of the field whose entry failed (optional)
        entity: The entity being patched (optional)
    """

    def __init__(
        self, message: str, field: Optional[str] = None, entity: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.field = field
        self.entity = entity
