"""Persistence and audit trail for the contract composition engine."""

from .audit_logger import AuditLogger
from .database import (
    DatabaseManager,
    REGISTRY_VERSION_COUNTER,
    TEMPLATES_CREATED_COUNTER,
    get_counter,
    get_database_url,
    increment_counter,
)
from .models import (
    AuditEventModel,
    Base,
    CategoryModel,
    ClauseCandidateModel,
    ClauseTemplateModel,
    ComposedContractModel,
    ContractStructureModel,
    EngineCounterModel,
    VersionHistoryModel,
)

__all__ = [
    "AuditLogger",
    "DatabaseManager",
    "REGISTRY_VERSION_COUNTER",
    "TEMPLATES_CREATED_COUNTER",
    "get_counter",
    "get_database_url",
    "increment_counter",
    "AuditEventModel",
    "Base",
    "CategoryModel",
    "ClauseCandidateModel",
    "ClauseTemplateModel",
    "ComposedContractModel",
    "ContractStructureModel",
    "EngineCounterModel",
    "VersionHistoryModel",
]
