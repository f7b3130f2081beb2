"""Audit logger interface for the contract composition engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class AuditEventType(Enum):
    """Types of audit events tracked by the engine."""
    CANDIDATE_INGESTED = "candidate_ingested"
    CANDIDATE_APPROVED = "candidate_approved"
    CANDIDATE_REJECTED = "candidate_rejected"
    CATEGORY_OVERRIDDEN = "category_overridden"
    TEMPLATE_CREATED = "template_created"
    TEMPLATE_UPDATED = "template_updated"
    TEMPLATE_USED = "template_used"
    CATEGORY_ADDED = "category_added"
    STRUCTURE_PUBLISHED = "structure_published"
    CONTRACT_COMPOSED = "contract_composed"
    VERSION_ROLLBACK = "version_rollback"


@dataclass
class AuditEvent:
    """
    Audit event record.

    Records who did what to which entity, when, and why.
    """
    id: str
    event_type: AuditEventType
    timestamp: datetime
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    user_id: Optional[str] = None
    details: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        if self.metadata is None:
            self.metadata = {}


class IAuditLogger(ABC):
    """
    Abstract interface for audit logging.

    Implementations record and query audit events for traceability
    of every candidate transition and library mutation.
    """

    @abstractmethod
    def log_event(self, event: AuditEvent, session=None) -> None:
        """
        Record an audit event.

        Args:
            event: The audit event to record.
            session: Optional open database session; when given the event
                     is written in the caller's transaction.
        """
        pass

    @abstractmethod
    def get_events(
        self,
        entity_id: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> List[AuditEvent]:
        """
        Query audit events with optional filters.

        Args:
            entity_id: Filter by entity ID.
            event_type: Filter by event type.
            start_time: Filter events after this time.
            end_time: Filter events before this time.
            user_id: Filter by acting user.

        Returns:
            List of matching audit events, newest first.
        """
        pass

    @abstractmethod
    def export_log(self, entity_id: str, format: str = "json") -> str:
        """
        Export the audit log of one entity.

        Args:
            entity_id: The entity to export logs for.
            format: Export format ("json" or "csv").

        Returns:
            Exported log content as a string.

        Raises:
            ValueError: If format is not supported.
        """
        pass
