"""Audit logger implementation for the contract composition engine."""

import csv
import io
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from ..interfaces.audit import AuditEvent, AuditEventType, IAuditLogger
from .database import DatabaseManager
from .models import AuditEventModel, VersionHistoryModel

logger = logging.getLogger(__name__)


class AuditLogger(IAuditLogger):
    """
    Audit logger backed by the engine database.

    Records every candidate transition and library mutation with who,
    when and why; keeps versioned snapshots for rollback.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        database_url: Optional[str] = None,
    ):
        """
        Initialize the audit logger.

        Args:
            db_manager: Optional DatabaseManager instance. If not provided,
                       a new one will be created.
            database_url: Database URL for creating a new DatabaseManager.
        """
        if db_manager is not None:
            self._db_manager = db_manager
            self._owns_db_manager = False
        else:
            self._db_manager = DatabaseManager(database_url=database_url)
            self._owns_db_manager = True

    def close(self) -> None:
        if self._owns_db_manager:
            self._db_manager.close()

    def _to_model(self, event: AuditEvent) -> AuditEventModel:
        """Convert AuditEvent dataclass to SQLAlchemy model."""
        return AuditEventModel(
            id=event.id,
            event_type=event.event_type.value if isinstance(event.event_type, AuditEventType) else event.event_type,
            timestamp=event.timestamp,
            entity_id=event.entity_id,
            entity_type=event.entity_type,
            user_id=event.user_id,
            details=event.details or {},
            metadata_=event.metadata or {},
        )

    def _from_model(self, model: AuditEventModel) -> AuditEvent:
        """Convert SQLAlchemy model to AuditEvent dataclass."""
        return AuditEvent(
            id=model.id,
            event_type=AuditEventType(model.event_type),
            timestamp=model.timestamp,
            entity_id=model.entity_id,
            entity_type=model.entity_type,
            user_id=model.user_id,
            details=model.details or {},
            metadata=model.metadata_ or {},
        )

    def log_event(self, event: AuditEvent, session: Optional[Session] = None) -> None:
        """
        Record an audit event.

        Args:
            event: The audit event to record.
            session: Open session of the operation being audited; the event
                     commits or rolls back together with it.
        """
        model = self._to_model(event)
        if session is not None:
            session.add(model)
            return
        with self._db_manager.get_session() as own_session:
            own_session.add(model)

    def record(
        self,
        event_type: AuditEventType,
        entity_id: Optional[str],
        entity_type: str,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> AuditEvent:
        """Build and record an event in one call."""
        event = AuditEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=datetime.utcnow(),
            entity_id=entity_id,
            entity_type=entity_type,
            user_id=user_id,
            details=details or {},
        )
        self.log_event(event, session=session)
        return event

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
        with self._db_manager.get_session() as session:
            query = select(AuditEventModel)

            conditions = []
            if entity_id:
                conditions.append(AuditEventModel.entity_id == entity_id)
            if event_type:
                event_type_value = event_type.value if isinstance(event_type, AuditEventType) else event_type
                conditions.append(AuditEventModel.event_type == event_type_value)
            if start_time:
                conditions.append(AuditEventModel.timestamp >= start_time)
            if end_time:
                conditions.append(AuditEventModel.timestamp <= end_time)
            if user_id:
                conditions.append(AuditEventModel.user_id == user_id)

            if conditions:
                query = query.where(and_(*conditions))

            query = query.order_by(AuditEventModel.timestamp.desc(), AuditEventModel.id.asc())

            models = session.execute(query).scalars().all()
            return [self._from_model(m) for m in models]

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
        if format not in ("json", "csv"):
            raise ValueError(f"Unsupported export format: {format}. Use 'json' or 'csv'.")

        events = self.get_events(entity_id=entity_id)

        if format == "json":
            return self._export_json(entity_id, events)
        return self._export_csv(events)

    def _export_json(self, entity_id: str, events: List[AuditEvent]) -> str:
        """Export events to JSON with a per-type summary."""
        by_type: Dict[str, int] = {}
        for e in events:
            by_type[e.event_type.value] = by_type.get(e.event_type.value, 0) + 1

        data = {
            "export_timestamp": datetime.utcnow().isoformat(),
            "entity_id": entity_id,
            "event_count": len(events),
            "events_by_type": by_type,
            "events": [
                {
                    "id": e.id,
                    "event_type": e.event_type.value,
                    "timestamp": e.timestamp.isoformat() if e.timestamp else None,
                    "entity_id": e.entity_id,
                    "entity_type": e.entity_type,
                    "user_id": e.user_id,
                    "details": e.details,
                    "metadata": e.metadata,
                }
                for e in events
            ],
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _export_csv(self, events: List[AuditEvent]) -> str:
        """Export events to CSV format."""
        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow([
            "id", "event_type", "timestamp", "entity_id",
            "entity_type", "user_id", "details", "metadata"
        ])

        for e in events:
            writer.writerow([
                e.id,
                e.event_type.value,
                e.timestamp.isoformat() if e.timestamp else "",
                e.entity_id or "",
                e.entity_type or "",
                e.user_id or "",
                json.dumps(e.details, ensure_ascii=False),
                json.dumps(e.metadata, ensure_ascii=False),
            ])

        return output.getvalue()

    # ========== Version History Methods ==========

    def save_version(
        self,
        entity_type: str,
        entity_id: str,
        snapshot: Dict[str, Any],
        session: Optional[Session] = None,
    ) -> int:
        """
        Save a version snapshot for an entity.

        Args:
            entity_type: Type of entity (e.g., 'template', 'category_registry').
            entity_id: ID of the entity.
            snapshot: JSON-serializable snapshot of the entity state.
            session: Optional open session to write in.

        Returns:
            The version number assigned to this snapshot.
        """
        if session is None:
            with self._db_manager.get_session() as own_session:
                return self._save_version(own_session, entity_type, entity_id, snapshot)
        return self._save_version(session, entity_type, entity_id, snapshot)

    def _save_version(
        self,
        session: Session,
        entity_type: str,
        entity_id: str,
        snapshot: Dict[str, Any],
    ) -> int:
        query = select(VersionHistoryModel.version).where(
            and_(
                VersionHistoryModel.entity_type == entity_type,
                VersionHistoryModel.entity_id == entity_id,
            )
        ).order_by(VersionHistoryModel.version.desc()).limit(1)

        latest = session.execute(query).scalar()
        new_version = (latest or 0) + 1

        session.add(VersionHistoryModel(
            entity_type=entity_type,
            entity_id=entity_id,
            version=new_version,
            snapshot=snapshot,
        ))
        session.flush()
        return new_version

    def get_version(
        self,
        entity_type: str,
        entity_id: str,
        version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Get a version snapshot for an entity.

        Args:
            entity_type: Type of entity.
            entity_id: ID of the entity.
            version: Specific version to retrieve. If None, returns latest.

        Returns:
            The snapshot data, or None if not found.
        """
        with self._db_manager.get_session() as session:
            query = select(VersionHistoryModel).where(
                and_(
                    VersionHistoryModel.entity_type == entity_type,
                    VersionHistoryModel.entity_id == entity_id,
                )
            )

            if version is not None:
                query = query.where(VersionHistoryModel.version == version)
            else:
                query = query.order_by(VersionHistoryModel.version.desc())

            record = session.execute(query.limit(1)).scalar()
            return record.snapshot if record else None

    def get_version_history(
        self,
        entity_type: str,
        entity_id: str,
    ) -> List[Dict[str, Any]]:
        """
        Get all version snapshots for an entity, oldest first.

        Returns:
            List of version records with version number and snapshot.
        """
        with self._db_manager.get_session() as session:
            query = select(VersionHistoryModel).where(
                and_(
                    VersionHistoryModel.entity_type == entity_type,
                    VersionHistoryModel.entity_id == entity_id,
                )
            ).order_by(VersionHistoryModel.version.asc())

            records = session.execute(query).scalars().all()
            return [
                {
                    "version": r.version,
                    "snapshot": r.snapshot,
                    "created_at": r.created_at.isoformat() if r.created_at else None,
                }
                for r in records
            ]

    def rollback_to_version(
        self,
        entity_type: str,
        entity_id: str,
        version: int,
        user_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Re-save the snapshot at `version` as the newest version.

        Callers apply the returned snapshot to the live entity.

        Returns:
            The restored snapshot, or None if version not found.
        """
        snapshot = self.get_version(entity_type, entity_id, version)
        if snapshot is None:
            return None

        self.save_version(entity_type, entity_id, snapshot)
        self.record(
            AuditEventType.VERSION_ROLLBACK,
            entity_id=entity_id,
            entity_type=entity_type,
            user_id=user_id,
            details={"rolled_back_to_version": version},
        )
        logger.info(f"Rolled back {entity_type} {entity_id} to version {version}")
        return snapshot
