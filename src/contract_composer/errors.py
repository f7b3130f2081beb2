"""Error types raised by the clause triage and contract composition engine."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class ComposerError(Exception):
    """
    Base exception for engine errors.

    Carries enough context for the caller to act on the failure
    (which candidate, which token, which field).

    Attributes:
        message: Human-readable error description.
        entity_id: Id of the candidate, template, clause or contract involved.
        details: Additional error details.
    """
    message: str
    entity_id: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [self.message]
        if self.entity_id:
            parts.append(f"Id: {self.entity_id}")
        parts.extend(self._extra_parts())
        return " | ".join(parts)

    def _extra_parts(self) -> List[str]:
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        data: Dict[str, Any] = {"error_type": self.__class__.__name__}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data


@dataclass
class ValidationError(ComposerError):
    """Malformed input to ingestion, templates or queries."""
    field_name: Optional[str] = None

    def _extra_parts(self) -> List[str]:
        return [f"Field: {self.field_name}"] if self.field_name else []


@dataclass
class NotFoundError(ComposerError):
    """A referenced candidate, template, structure or contract does not exist."""


@dataclass
class InvalidStateError(ComposerError):
    """Illegal state transition on a clause candidate."""
    current_status: Optional[str] = None

    def _extra_parts(self) -> List[str]:
        return [f"Status: {self.current_status}"] if self.current_status else []


@dataclass
class TemplateValidationError(ComposerError):
    """Template content references placeholders that are not declared."""
    offending_tokens: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.offending_tokens is None:
            self.offending_tokens = []
        super().__post_init__()

    def _extra_parts(self) -> List[str]:
        if not self.offending_tokens:
            return []
        return [f"Tokens: {', '.join(self.offending_tokens)}"]


@dataclass
class MissingPartyFieldError(ComposerError):
    """A required party/project field is absent from the variable input."""
    field_name: str = ""

    def _extra_parts(self) -> List[str]:
        return [f"Field: {self.field_name}"] if self.field_name else []


@dataclass
class UnresolvedVariableError(ComposerError):
    """A clause token has no value in the resolved variable table."""
    token: str = ""
    clause_id: Optional[str] = None

    def _extra_parts(self) -> List[str]:
        parts = [f"Token: {self.token}"]
        if self.clause_id:
            parts.append(f"Clause: {self.clause_id}")
        return parts


@dataclass
class ExternalCollaboratorError(ComposerError):
    """The AI collaborator call failed, timed out or returned unparseable output."""
    operation: Optional[str] = None

    def _extra_parts(self) -> List[str]:
        return [f"Operation: {self.operation}"] if self.operation else []
