"""Promotion Workflow.

State machine over clause candidates:

    pending -> approved   (auto-promotion or bulk approve)
    pending -> rejected   (reject with a mandatory reason)

Every transition is a compare-and-swap on `status = 'pending'` and runs in
its own transaction together with the template write, category usage,
audit entry and counters, so a failure for one id never leaves another id
half-applied.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..audit.audit_logger import AuditLogger
from ..audit.database import DatabaseManager
from ..audit.models import ClauseCandidateModel
from ..config.models import ClassificationRule, EngineConfiguration
from ..errors import ComposerError, InvalidStateError, NotFoundError, ValidationError
from ..interfaces.audit import AuditEventType
from ..models.candidate import BulkActionResult, ItemOutcome, PromotionReport
from ..models.categories import DEFAULT_CONTRACT_CATEGORY
from ..models.enums import CandidateStatus, CategoryKind
from ..templates.categories import CategoryRegistry, CategorySnapshot
from ..templates.library import TemplateLibrary
from .classifier import CategoryClassifier
from .store import CANDIDATE_ENTITY_TYPE, CandidateStore

logger = logging.getLogger(__name__)


@dataclass
class OverrideStaging:
    """
    Category overrides validated ahead of a bulk approval.

    Attributes:
        ids: Candidate ids to approve, in request order without repeats.
        overrides: Valid id -> clause category overrides.
        errors: Ids whose override names an unknown category.
        registry_version: Registry version the overrides were checked against.
    """
    ids: List[str]
    overrides: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, ValidationError] = field(default_factory=dict)
    registry_version: int = 0


class PromotionWorkflow:
    """
    Approves and rejects clause candidates and materializes templates.

    Args:
        db_manager: Database access.
        audit_logger: Audit trail for transitions.
        store: Candidate store.
        library: Template library receiving promoted candidates.
        categories: Category registry used to validate categories.
        config: Engine configuration (thresholds).
        custom_rules: Extra classification rules for the category fallback.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        audit_logger: AuditLogger,
        store: CandidateStore,
        library: TemplateLibrary,
        categories: CategoryRegistry,
        config: Optional[EngineConfiguration] = None,
        custom_rules: Optional[Sequence[ClassificationRule]] = None,
    ):
        self._db_manager = db_manager
        self._audit_logger = audit_logger
        self._store = store
        self._library = library
        self._categories = categories
        self._config = config or EngineConfiguration()
        self._custom_rules = list(custom_rules or [])

    def _classifier(self, snapshot: CategorySnapshot) -> CategoryClassifier:
        return CategoryClassifier.with_custom_rules(
            self._custom_rules, valid_categories=snapshot.clause_categories
        )

    # ------------------------------------------------------------------
    # Auto-promotion
    # ------------------------------------------------------------------

    def auto_promote(
        self,
        threshold: Optional[float] = None,
        user_id: str = "system",
    ) -> PromotionReport:
        """
        Approve every pending candidate at or above the threshold.

        Only pending candidates are read, so a second run with no new
        high-confidence candidates changes nothing.

        Args:
            threshold: Fixed threshold. When omitted the configured threshold
                of each candidate's contract category applies.
            user_id: Acting user recorded in the audit trail.

        Raises:
            ValidationError: Threshold outside [0, 1].
        """
        if threshold is not None and not 0.0 <= threshold <= 1.0:
            raise ValidationError(
                f"Threshold {threshold} is outside [0, 1]", field_name="threshold"
            )

        snapshot = self._categories.snapshot()
        classifier = self._classifier(snapshot)

        with self._db_manager.get_session() as session:
            eligible = [
                model.id for model in self._store.list_pending(session)
                if model.confidence >= (
                    threshold if threshold is not None
                    else self._config.threshold_for(model.contract_category)
                )
            ]

        report = PromotionReport(
            threshold=threshold if threshold is not None else self._config.auto_promote_threshold
        )
        for candidate_id in eligible:
            report.outcomes.append(self._approve_in_transaction(
                candidate_id, None, snapshot, classifier, user_id, mode="auto"
            ))

        if report.outcomes:
            logger.info(
                f"Auto-promotion: {len(report.succeeded)} approved "
                f"({report.templates_created} new templates), {len(report.failed)} failed"
            )
        return report

    # ------------------------------------------------------------------
    # Bulk approval
    # ------------------------------------------------------------------

    def stage_overrides(
        self,
        ids: Iterable[str],
        overrides: Optional[Dict[str, str]] = None,
    ) -> OverrideStaging:
        """
        Validate category overrides against the registry.

        Nothing is written; pass the result to `apply`.
        """
        snapshot = self._categories.snapshot()
        staging = OverrideStaging(
            ids=list(dict.fromkeys(ids)),
            registry_version=snapshot.version,
        )
        for candidate_id, category in (overrides or {}).items():
            if candidate_id not in staging.ids:
                logger.warning(f"Override for {candidate_id} ignored, id not in approval list")
                continue
            if snapshot.contains(CategoryKind.CLAUSE, category):
                staging.overrides[candidate_id] = category
            else:
                staging.errors[candidate_id] = ValidationError(
                    f"Unknown clause category '{category}'",
                    entity_id=candidate_id,
                    field_name="category",
                )
        return staging

    def apply(self, staging: OverrideStaging, user_id: Optional[str] = None) -> BulkActionResult:
        """
        Apply staged overrides and approve each id in its own transaction.

        Ids that are missing, no longer pending or carry an invalid
        override are reported per id and left unchanged.
        """
        snapshot = self._categories.snapshot()
        classifier = self._classifier(snapshot)
        result = BulkActionResult()

        for candidate_id in staging.ids:
            error = staging.errors.get(candidate_id)
            if error is not None:
                result.outcomes.append(ItemOutcome(id=candidate_id, success=False, error=error))
                continue
            result.outcomes.append(self._approve_in_transaction(
                candidate_id,
                staging.overrides.get(candidate_id),
                snapshot,
                classifier,
                user_id,
                mode="manual",
            ))

        logger.info(
            f"Bulk approval: {len(result.succeeded)} approved, {len(result.failed)} failed"
        )
        return result

    def bulk_approve(
        self,
        ids: Iterable[str],
        overrides: Optional[Dict[str, str]] = None,
        user_id: Optional[str] = None,
    ) -> BulkActionResult:
        """Stage and apply in one call."""
        return self.apply(self.stage_overrides(ids, overrides), user_id)

    def _approve_in_transaction(
        self,
        candidate_id: str,
        override: Optional[str],
        snapshot: CategorySnapshot,
        classifier: CategoryClassifier,
        user_id: Optional[str],
        mode: str,
    ) -> ItemOutcome:
        try:
            with self._db_manager.get_session() as session:
                return self._approve(
                    session, candidate_id, override, snapshot, classifier, user_id, mode
                )
        except ComposerError as e:
            logger.warning(f"Approval of {candidate_id} failed: {e}")
            status = None
            if isinstance(e, InvalidStateError) and e.current_status:
                status = CandidateStatus(e.current_status)
            return ItemOutcome(id=candidate_id, success=False, status=status, error=e)

    def _approve(
        self,
        session: Session,
        candidate_id: str,
        override: Optional[str],
        snapshot: CategorySnapshot,
        classifier: CategoryClassifier,
        user_id: Optional[str],
        mode: str,
    ) -> ItemOutcome:
        candidate = self._load_pending(session, candidate_id)

        category = override or classifier.resolve(candidate)
        contract_category = (
            candidate.contract_category
            if snapshot.contains(CategoryKind.CONTRACT, candidate.contract_category)
            else DEFAULT_CONTRACT_CATEGORY
        )

        now = datetime.utcnow()
        self._swap_status(
            session, candidate_id, CandidateStatus.APPROVED,
            clause_category=category,
            reviewed_by=user_id,
            reviewed_at=now,
            updated_at=now,
        )

        if override and override != candidate.clause_category:
            self._audit_logger.record(
                AuditEventType.CATEGORY_OVERRIDDEN,
                entity_id=candidate_id,
                entity_type=CANDIDATE_ENTITY_TYPE,
                user_id=user_id,
                details={"from": candidate.clause_category, "to": override},
                session=session,
            )

        template = self._library.promote_from_candidate(
            session,
            replace(candidate, clause_category=category),
            category,
            contract_category,
            user_id,
        )
        session.execute(
            update(ClauseCandidateModel)
            .where(ClauseCandidateModel.id == candidate_id)
            .values(template_id=template.id)
        )
        self._categories.record_usage(session, CategoryKind.CLAUSE, category)

        self._audit_logger.record(
            AuditEventType.CANDIDATE_APPROVED,
            entity_id=candidate_id,
            entity_type=CANDIDATE_ENTITY_TYPE,
            user_id=user_id,
            details={
                "mode": mode,
                "category": category,
                "confidence": candidate.confidence,
                "template_id": template.id,
                "duplicate_of": template.duplicate_of,
            },
            session=session,
        )
        return ItemOutcome(
            id=candidate_id,
            success=True,
            status=CandidateStatus.APPROVED,
            template_id=template.id,
            template_created=True,
        )

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    def reject(
        self,
        ids: Iterable[str],
        reason: str,
        user_id: Optional[str] = None,
    ) -> BulkActionResult:
        """
        Reject candidates, storing the reason as the review note.

        Raises:
            ValidationError: The reason is empty; no candidate is touched.
        """
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", field_name="reason")
        reason = reason.strip()

        result = BulkActionResult()
        for candidate_id in dict.fromkeys(ids):
            try:
                with self._db_manager.get_session() as session:
                    self._load_pending(session, candidate_id)
                    now = datetime.utcnow()
                    self._swap_status(
                        session, candidate_id, CandidateStatus.REJECTED,
                        review_note=reason,
                        reviewed_by=user_id,
                        reviewed_at=now,
                        updated_at=now,
                    )
                    self._audit_logger.record(
                        AuditEventType.CANDIDATE_REJECTED,
                        entity_id=candidate_id,
                        entity_type=CANDIDATE_ENTITY_TYPE,
                        user_id=user_id,
                        details={"reason": reason},
                        session=session,
                    )
                result.outcomes.append(
                    ItemOutcome(id=candidate_id, success=True, status=CandidateStatus.REJECTED)
                )
            except ComposerError as e:
                logger.warning(f"Rejection of {candidate_id} failed: {e}")
                status = None
                if isinstance(e, InvalidStateError) and e.current_status:
                    status = CandidateStatus(e.current_status)
                result.outcomes.append(
                    ItemOutcome(id=candidate_id, success=False, status=status, error=e)
                )

        logger.info(f"Rejected {len(result.succeeded)} candidates, {len(result.failed)} failed")
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_pending(self, session: Session, candidate_id: str):
        model = session.get(ClauseCandidateModel, candidate_id)
        if model is None:
            raise NotFoundError(f"Candidate {candidate_id} not found", entity_id=candidate_id)
        if model.status != CandidateStatus.PENDING.value:
            raise InvalidStateError(
                f"Candidate {candidate_id} is not pending",
                entity_id=candidate_id,
                current_status=model.status,
            )
        return self._store.to_candidate(model)

    @staticmethod
    def _swap_status(session: Session, candidate_id: str, new_status: CandidateStatus, **values) -> None:
        """Move a candidate out of pending; fails if another writer got there first."""
        result = session.execute(
            update(ClauseCandidateModel)
            .where(
                ClauseCandidateModel.id == candidate_id,
                ClauseCandidateModel.status == CandidateStatus.PENDING.value,
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = session.execute(
                select(ClauseCandidateModel.status).where(ClauseCandidateModel.id == candidate_id)
            ).scalar_one_or_none()
            raise InvalidStateError(
                f"Candidate {candidate_id} left pending concurrently",
                entity_id=candidate_id,
                current_status=current,
            )
