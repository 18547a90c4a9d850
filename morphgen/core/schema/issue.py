"""Issue model for reporting generation errors and warnings."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class IssueKind(str, Enum):
    """Category of a reported issue."""

    STRUCTURAL = "structural_violation"
    RESOLUTION = "resolution_error"
    PARSE = "parse_error"
    AMBIGUITY = "ambiguity"
    DUPLICATE = "duplicate_declaration"
    REGISTRY = "registry_state"


@dataclass
class Issue:
    """A single problem found while registering or generating a declaration.

    Issues are the value form of the exception hierarchy in
    ``morphgen.core.errors``: exceptions abort work at a declaration boundary,
    where they are converted into issues and attached to the result.

    Attributes:
        kind: Issue category
        message: Human-readable description
        declaration: Name of the affected declaration (if known)
        hint: Suggested fix (optional)
        offset: Character offset into the source text (optional)
        source_id: Identifier of the source the declaration came from (optional)
        severity: "error" or "warning"

    Example:
        >>> issue = Issue(IssueKind.PARSE, "unterminated string", "$Foo", offset=42)
        >>> issue.is_error
        True
    """

    kind: IssueKind
    message: str
    declaration: Optional[str] = None
    hint: Optional[str] = None
    offset: Optional[int] = None
    source_id: Optional[str] = None
    severity: str = "error"

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> Dict[str, Any]:
        """Convert issue to dictionary format.

        Returns:
            Dictionary with the populated issue fields
        """
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "severity": self.severity,
        }
        if self.declaration is not None:
            result["declaration"] = self.declaration
        if self.hint is not None:
            result["hint"] = self.hint
        if self.offset is not None:
            result["offset"] = self.offset
        if self.source_id is not None:
            result["source_id"] = self.source_id
        return result

    def __str__(self) -> str:
        location = self.source_id or "<source>"
        if self.offset is not None:
            location = f"{location}:{self.offset}"
        subject = f" [{self.declaration}]" if self.declaration else ""
        text = f"{location}: {self.severity}{subject}: {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text
