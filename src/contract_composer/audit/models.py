"""SQLAlchemy models for the engine's persisted state."""

from datetime import datetime
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


def _new_id() -> str:
    return str(uuid.uuid4())


class JSONType(TypeDecorator):
    """Platform-independent JSON type.

    Uses JSONB for PostgreSQL and JSON for other databases (like SQLite).
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class ClauseCandidateModel(Base):
    """Clause candidates awaiting or past review."""
    __tablename__ = "clause_candidates"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    contract_category = Column(String(100))
    clause_category = Column(String(100))
    confidence = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    source_contract = Column(String(255))
    tags = Column(JSONType)
    review_note = Column(Text)
    reviewed_by = Column(String(100))
    reviewed_at = Column(DateTime(timezone=True))
    template_id = Column(String(64))
    metadata_ = Column("metadata", JSONType)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="check_candidate_status"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="check_candidate_confidence"),
        Index("idx_clause_candidates_status", "status"),
        Index("idx_clause_candidates_confidence", "confidence"),
        Index("idx_clause_candidates_created_at", "created_at"),
    )


class ClauseTemplateModel(Base):
    """Approved, reusable clause templates."""
    __tablename__ = "clause_templates"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    contract_category = Column(String(100), nullable=False)
    template_type = Column(String(20), nullable=False, default="standard")
    industry = Column(String(50), nullable=False, default="general")
    service_type = Column(String(50), nullable=False, default="general")
    complexity = Column(String(20), nullable=False, default="standard")
    variables = Column(JSONType)
    tags = Column(JSONType)
    usage_count = Column(Integer, nullable=False, default=0)
    confidence = Column(Float, nullable=False, default=1.0)
    quality_score = Column(Float, default=0.0)
    risk_score = Column(Integer, default=0)
    importance = Column(String(10), default="low")
    source_candidate_ids = Column(JSONType)
    duplicate_of = Column(String(64))
    duplicate_similarity = Column(Float)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("template_type IN ('standard', 'flexible')", name="check_template_type"),
        CheckConstraint("complexity IN ('simple', 'standard', 'complex')", name="check_template_complexity"),
        Index("idx_clause_templates_category", "category"),
        Index("idx_clause_templates_contract_category", "contract_category"),
    )


class CategoryModel(Base):
    """Entries of the category registry."""
    __tablename__ = "categories"

    id = Column(String(64), primary_key=True, default=_new_id)
    kind = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    keywords = Column(JSONType)
    usage_count = Column(Integer, nullable=False, default=0)
    created_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("kind IN ('contract', 'clause')", name="check_category_kind"),
        UniqueConstraint("kind", "name", name="uq_category_kind_name"),
        Index("idx_categories_kind", "kind"),
    )


class ContractStructureModel(Base):
    """Versioned section structures, one active version per jurisdiction."""
    __tablename__ = "contract_structures"

    id = Column(String(64), primary_key=True, default=_new_id)
    jurisdiction = Column(String(16), nullable=False)
    version = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    slots = Column(JSONType, nullable=False)
    created_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("jurisdiction", "version", name="uq_structure_version"),
        Index("idx_contract_structures_active", "jurisdiction", "is_active"),
    )


class ComposedContractModel(Base):
    """Composed contracts. Rows are written once and never updated."""
    __tablename__ = "composed_contracts"

    id = Column(String(64), primary_key=True)
    jurisdiction = Column(String(16), nullable=False)
    structure_version = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    previous_version_id = Column(String(64))
    fingerprint = Column(String(64), nullable=False)
    source = Column(String(20), nullable=False)
    document = Column(JSONType, nullable=False)
    created_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("source IN ('template', 'upload', 'ai')", name="check_contract_source"),
        Index("idx_composed_contracts_fingerprint", "fingerprint"),
        Index("idx_composed_contracts_previous", "previous_version_id"),
    )


class EngineCounterModel(Base):
    """Named monotonic counters (templates created, registry version)."""
    __tablename__ = "engine_counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)


class AuditEventModel(Base):
    """Audit events table model."""
    __tablename__ = "audit_events"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_type = Column(String(50), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow)
    entity_id = Column(String(64), nullable=True)
    entity_type = Column(String(30), nullable=True)
    user_id = Column(String(100), nullable=True)
    details = Column(JSONType)
    metadata_ = Column("metadata", JSONType)

    __table_args__ = (
        Index("idx_audit_events_event_type", "event_type"),
        Index("idx_audit_events_timestamp", "timestamp"),
        Index("idx_audit_events_entity_id", "entity_id"),
        Index("idx_audit_events_user_id", "user_id"),
    )


class VersionHistoryModel(Base):
    """Version history table model for rollback support."""
    __tablename__ = "version_history"

    id = Column(String(36), primary_key=True, default=_new_id)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    version = Column(Integer, nullable=False)
    snapshot = Column(JSONType, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "version", name="uq_version_history_version"),
        Index("idx_version_history_entity", "entity_type", "entity_id"),
    )
