"""Clause Candidate Store.

Persists clause candidates and serves the admin review queue: batch
ingestion with per-item validation, filtered and deterministically
paginated queries, and queue statistics.
"""

import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..audit.audit_logger import AuditLogger
from ..audit.database import DatabaseManager, TEMPLATES_CREATED_COUNTER, get_counter
from ..audit.models import ClauseCandidateModel
from ..config.models import EngineConfiguration
from ..errors import NotFoundError, ValidationError
from ..interfaces.audit import AuditEventType
from ..models.candidate import (
    AnnotatedCandidate,
    CandidatePage,
    CandidateQuery,
    ClauseCandidate,
    IngestResult,
    ItemOutcome,
    Pagination,
)
from ..models.enums import CandidateStatus, Recommendation, RiskLevel

logger = logging.getLogger(__name__)

CANDIDATE_ENTITY_TYPE = "candidate"
AUTO_APPROVE_CONFIDENCE = 0.85
REVIEW_CONFIDENCE = 0.65
TITLE_FROM_CONTENT_LENGTH = 30

SORT_COLUMNS = {
    "createdAt": ClauseCandidateModel.created_at,
    "confidence": ClauseCandidateModel.confidence,
    "title": ClauseCandidateModel.title,
}


def assess_risk(candidate: ClauseCandidate, threshold: float = AUTO_APPROVE_CONFIDENCE) -> RiskLevel:
    """Risk band of a candidate; `threshold` is its auto-promotion threshold."""
    if candidate.needs_review:
        return RiskLevel.HIGH
    if candidate.confidence >= threshold:
        return RiskLevel.LOW
    if candidate.confidence >= min(REVIEW_CONFIDENCE, threshold):
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def recommend(candidate: ClauseCandidate, threshold: float = AUTO_APPROVE_CONFIDENCE) -> Recommendation:
    if candidate.confidence >= threshold:
        return Recommendation.AUTO_APPROVE
    if candidate.confidence >= min(REVIEW_CONFIDENCE, threshold):
        return Recommendation.REVIEW
    return Recommendation.REJECT


def annotate(candidate: ClauseCandidate, threshold: float = AUTO_APPROVE_CONFIDENCE) -> AnnotatedCandidate:
    return AnnotatedCandidate(
        candidate=candidate,
        preview=candidate.preview,
        risk_level=assess_risk(candidate, threshold),
        recommendation=recommend(candidate, threshold),
    )


class CandidateStore:
    """
    Persistent store of clause candidates.

    Status changes are not made here; see `PromotionWorkflow`.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        audit_logger: AuditLogger,
        config: Optional[EngineConfiguration] = None,
    ):
        self._db_manager = db_manager
        self._audit_logger = audit_logger
        self._config = config or EngineConfiguration()

    @staticmethod
    def to_candidate(model: ClauseCandidateModel) -> ClauseCandidate:
        return ClauseCandidate(
            id=model.id,
            title=model.title,
            content=model.content,
            contract_category=model.contract_category,
            clause_category=model.clause_category,
            confidence=model.confidence,
            status=model.status,
            source_contract=model.source_contract,
            tags=list(model.tags or []),
            review_note=model.review_note,
            reviewed_by=model.reviewed_by,
            template_id=model.template_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            metadata=dict(model.metadata_ or {}),
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(
        self,
        items: Iterable[Union[ClauseCandidate, Dict[str, Any]]],
        user_id: Optional[str] = None,
    ) -> IngestResult:
        """
        Insert candidates with status pending.

        Each item is validated and inserted on its own; one bad item never
        fails the batch.

        Args:
            items: Candidates or dicts with `title`, `content`, `confidence`
                and optional `id`, `contract_category`, `clause_category`,
                `source_contract`, `tags`, `metadata`.
            user_id: Acting user for the audit trail.

        Returns:
            IngestResult with one outcome per item, in input order.
        """
        result = IngestResult()
        for index, item in enumerate(items):
            try:
                candidate = self._coerce(item, index)
                self._validate(candidate)
                with self._db_manager.get_session() as session:
                    self._insert(session, candidate, user_id)
                result.outcomes.append(
                    ItemOutcome(id=candidate.id, success=True, status=CandidateStatus.PENDING)
                )
            except ValidationError as e:
                logger.warning(f"Rejected candidate at index {index}: {e}")
                result.outcomes.append(
                    ItemOutcome(id=e.entity_id or f"#{index}", success=False, error=e)
                )

        logger.info(
            f"Ingested {len(result.succeeded)} candidates, {len(result.failed)} rejected"
        )
        return result

    def _coerce(self, item: Union[ClauseCandidate, Dict[str, Any]], index: int) -> ClauseCandidate:
        if isinstance(item, ClauseCandidate):
            data = item.to_dict()
        elif isinstance(item, dict):
            data = dict(item)
        else:
            raise ValidationError(f"Item {index} is not a candidate", entity_id=f"#{index}")

        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError(
                "Candidate content must not be empty",
                entity_id=data.get("id") or f"#{index}",
                field_name="content",
            )

        confidence = data.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValidationError(
                "Candidate confidence must be a number",
                entity_id=data.get("id") or f"#{index}",
                field_name="confidence",
            )

        title = (data.get("title") or "").strip() or content.strip()[:TITLE_FROM_CONTENT_LENGTH]
        return ClauseCandidate(
            id=data.get("id") or str(uuid.uuid4()),
            title=title,
            content=content,
            contract_category=data.get("contract_category"),
            clause_category=data.get("clause_category") or data.get("category"),
            confidence=float(confidence),
            status=CandidateStatus.PENDING,
            source_contract=data.get("source_contract"),
            tags=data.get("tags") or [],
            metadata=data.get("metadata") or {},
        )

    @staticmethod
    def _validate(candidate: ClauseCandidate) -> None:
        if not 0.0 <= candidate.confidence <= 1.0:
            raise ValidationError(
                f"Confidence {candidate.confidence} is outside [0, 1]",
                entity_id=candidate.id,
                field_name="confidence",
            )

    def _insert(self, session: Session, candidate: ClauseCandidate, user_id: Optional[str]) -> None:
        if session.get(ClauseCandidateModel, candidate.id) is not None:
            raise ValidationError(
                f"Candidate {candidate.id} already exists",
                entity_id=candidate.id,
                field_name="id",
            )
        session.add(ClauseCandidateModel(
            id=candidate.id,
            title=candidate.title,
            content=candidate.content,
            contract_category=candidate.contract_category,
            clause_category=candidate.clause_category,
            confidence=candidate.confidence,
            status=CandidateStatus.PENDING.value,
            source_contract=candidate.source_contract,
            tags=list(candidate.tags),
            metadata_=dict(candidate.metadata),
        ))
        session.flush()
        self._audit_logger.record(
            AuditEventType.CANDIDATE_INGESTED,
            entity_id=candidate.id,
            entity_type=CANDIDATE_ENTITY_TYPE,
            user_id=user_id,
            details={
                "confidence": candidate.confidence,
                "source_contract": candidate.source_contract,
            },
            session=session,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, candidate_id: str) -> ClauseCandidate:
        with self._db_manager.get_session() as session:
            model = session.get(ClauseCandidateModel, candidate_id)
            if model is None:
                raise NotFoundError(f"Candidate {candidate_id} not found", entity_id=candidate_id)
            return self.to_candidate(model)

    def query(self, query: Optional[CandidateQuery] = None) -> CandidatePage:
        """
        Return one page of candidates.

        Ordering is `sort_by` then id ascending, so repeated calls page
        through the same sequence.

        Raises:
            ValidationError: Unknown status, sort field or order.
        """
        query = query or CandidateQuery()
        if query.sort_by not in SORT_COLUMNS:
            raise ValidationError(
                f"Cannot sort by '{query.sort_by}'", field_name="sort_by"
            )
        if query.order not in ("asc", "desc"):
            raise ValidationError(f"Unknown order '{query.order}'", field_name="order")

        conditions = []
        if query.status and query.status != "all":
            try:
                status = CandidateStatus(query.status)
            except ValueError:
                raise ValidationError(f"Unknown status '{query.status}'", field_name="status")
            conditions.append(ClauseCandidateModel.status == status.value)
        if query.category:
            conditions.append(ClauseCandidateModel.clause_category == query.category)
        if query.contract_category:
            conditions.append(ClauseCandidateModel.contract_category == query.contract_category)
        if query.min_confidence is not None:
            conditions.append(ClauseCandidateModel.confidence >= query.min_confidence)
        if query.search:
            pattern = f"%{query.search}%"
            conditions.append(or_(
                ClauseCandidateModel.title.ilike(pattern),
                ClauseCandidateModel.content.ilike(pattern),
                ClauseCandidateModel.source_contract.ilike(pattern),
            ))

        limit = max(1, min(query.limit or self._config.default_page_size, self._config.max_page_size))
        page = max(1, query.page or 1)
        column = SORT_COLUMNS[query.sort_by]
        ordering = column.desc() if query.order == "desc" else column.asc()

        with self._db_manager.get_session() as session:
            total = session.execute(
                select(func.count()).select_from(ClauseCandidateModel).where(*conditions)
            ).scalar() or 0
            models = session.execute(
                select(ClauseCandidateModel)
                .where(*conditions)
                .order_by(ordering, ClauseCandidateModel.id.asc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars().all()
            items = [
                annotate(self.to_candidate(m), self._config.threshold_for(m.contract_category))
                for m in models
            ]

        return CandidatePage(items=items, pagination=Pagination(page=page, limit=limit, total=total))

    def list_pending(self, session: Session) -> List[ClauseCandidateModel]:
        """Pending candidates in creation order, read inside `session`."""
        return list(session.execute(
            select(ClauseCandidateModel)
            .where(ClauseCandidateModel.status == CandidateStatus.PENDING.value)
            .order_by(ClauseCandidateModel.created_at.asc(), ClauseCandidateModel.id.asc())
        ).scalars().all())

    def stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts and averages for the admin dashboard."""
        now = now or datetime.utcnow()
        recent_since = now - timedelta(days=self._config.recent_days)

        with self._db_manager.get_session() as session:
            rows = session.execute(
                select(
                    ClauseCandidateModel.status,
                    ClauseCandidateModel.contract_category,
                    ClauseCandidateModel.clause_category,
                    ClauseCandidateModel.confidence,
                    ClauseCandidateModel.created_at,
                )
            ).all()
            templates_created = get_counter(session, TEMPLATES_CREATED_COUNTER)

        by_status = Counter(r.status for r in rows)
        auto_ready = sum(
            1 for r in rows
            if r.status == CandidateStatus.PENDING.value
            and r.confidence >= self._config.threshold_for(r.contract_category)
        )
        recent = 0
        for r in rows:
            created = r.created_at
            if created is not None and created.tzinfo is not None:
                created = created.replace(tzinfo=None)
            if created is not None and created >= recent_since:
                recent += 1

        return {
            "total": len(rows),
            "byStatus": {s.value: by_status.get(s.value, 0) for s in CandidateStatus},
            "byContractCategory": dict(Counter(r.contract_category or "미분류" for r in rows)),
            "byClauseCategory": dict(Counter(r.clause_category or "미분류" for r in rows)),
            "highConfidence": sum(
                1 for r in rows if r.confidence >= self._config.high_confidence_threshold
            ),
            "autoApprovalReady": auto_ready,
            "averageConfidence": round(sum(r.confidence for r in rows) / len(rows), 4) if rows else 0.0,
            "recentlyAdded": recent,
            "templatesCreated": templates_created,
        }
