"""Abstract interfaces for the contract composition engine."""

from .audit import AuditEvent, AuditEventType, IAuditLogger
from .collaborator import IClauseAdvisor, IClauseExtractor

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "IAuditLogger",
    "IClauseAdvisor",
    "IClauseExtractor",
]
