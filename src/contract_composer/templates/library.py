"""Template Library.

Stores approved, reusable clause templates. Every create and edit re-runs
the placeholder check: each `{{name}}` in the content must be declared in
`variables`.
"""

import difflib
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..audit.audit_logger import AuditLogger
from ..audit.database import DatabaseManager, TEMPLATES_CREATED_COUNTER, increment_counter
from ..audit.models import ClauseTemplateModel
from ..errors import NotFoundError, TemplateValidationError, ValidationError
from ..interfaces.audit import AuditEventType
from ..models.candidate import ClauseCandidate
from ..models.categories import DEFAULT_CLAUSE_CATEGORY
from ..models.enums import CategoryKind, Complexity, Importance, TemplateType
from ..models.template import GENERAL, ClauseTemplate
from .categories import CategoryRegistry, CategorySnapshot
from .placeholders import extract_variables, validate_placeholders

logger = logging.getLogger(__name__)

TEMPLATE_ENTITY_TYPE = "template"

HIGH_RISK_KEYWORDS = ("손해배상", "책임", "면책", "위반", "해지", "분쟁", "소송")
MEDIUM_RISK_KEYWORDS = ("변경", "수정", "추가", "기준", "요구사항")
MAX_RISK_SCORE = 10

EDITABLE_FIELDS = frozenset({
    "title", "content", "category", "contract_category", "template_type",
    "industry", "service_type", "complexity", "variables", "tags", "confidence",
})


def score_quality(confidence: float, content: str, has_variables: bool, category: str) -> float:
    """Quality score in [0, 100] of a promoted clause."""
    score = confidence * 40
    score += min(len(content) / 300, 1) * 20
    if has_variables:
        score += 20
    score += 20 if category != DEFAULT_CLAUSE_CATEGORY else 10
    return round(score, 2)


def score_risk(content: str) -> int:
    """Keyword risk score in [0, 10]."""
    score = sum(3 for keyword in HIGH_RISK_KEYWORDS if keyword in content)
    score += sum(1 for keyword in MEDIUM_RISK_KEYWORDS if keyword in content)
    return min(score, MAX_RISK_SCORE)


def rate_importance(risk_score: int, confidence: float) -> Importance:
    if risk_score >= 7 or confidence >= 0.9:
        return Importance.HIGH
    if risk_score >= 4 or confidence >= 0.7:
        return Importance.MEDIUM
    return Importance.LOW


def text_similarity(first: str, second: str) -> float:
    return difflib.SequenceMatcher(None, first or "", second or "").ratio()


class TemplateLibrary:
    """
    Persistent library of clause templates.

    Args:
        db_manager: Database access.
        audit_logger: Audit trail for template mutations.
        category_registry: Source of valid categories.
        duplicate_threshold: Text similarity at which a promoted template is
            marked as a near-duplicate of an existing one.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        audit_logger: AuditLogger,
        category_registry: CategoryRegistry,
        duplicate_threshold: float = 0.8,
    ):
        self._db_manager = db_manager
        self._audit_logger = audit_logger
        self._categories = category_registry
        self._duplicate_threshold = duplicate_threshold

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _to_template(model: ClauseTemplateModel) -> ClauseTemplate:
        return ClauseTemplate(
            id=model.id,
            title=model.title,
            content=model.content,
            category=model.category,
            contract_category=model.contract_category,
            template_type=model.template_type,
            industry=model.industry,
            service_type=model.service_type,
            complexity=model.complexity,
            variables=list(model.variables or []),
            tags=list(model.tags or []),
            usage_count=model.usage_count or 0,
            confidence=model.confidence,
            quality_score=model.quality_score or 0.0,
            risk_score=model.risk_score or 0,
            importance=model.importance or Importance.LOW.value,
            source_candidate_ids=list(model.source_candidate_ids or []),
            duplicate_of=model.duplicate_of,
            duplicate_similarity=model.duplicate_similarity,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: ClauseTemplateModel, template: ClauseTemplate) -> None:
        model.title = template.title
        model.content = template.content
        model.category = template.category
        model.contract_category = template.contract_category
        model.template_type = template.template_type.value
        model.industry = template.industry
        model.service_type = template.service_type
        model.complexity = template.complexity.value
        model.variables = list(template.variables)
        model.tags = list(template.tags)
        model.confidence = template.confidence
        model.quality_score = template.quality_score
        model.risk_score = template.risk_score
        model.importance = template.importance.value
        model.source_candidate_ids = list(template.source_candidate_ids)
        model.duplicate_of = template.duplicate_of
        model.duplicate_similarity = template.duplicate_similarity

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, template: ClauseTemplate, snapshot: Optional[CategorySnapshot] = None) -> None:
        """
        Check a template before it is stored.

        Raises:
            ValidationError: Empty title/content or unknown category.
            TemplateValidationError: Undeclared or malformed placeholders.
        """
        if not (template.title or "").strip():
            raise ValidationError("Template title must not be empty", entity_id=template.id, field_name="title")
        if not (template.content or "").strip():
            raise ValidationError("Template content must not be empty", entity_id=template.id, field_name="content")

        offending = validate_placeholders(template.content, template.variables)
        if offending:
            raise TemplateValidationError(
                "Template content uses undeclared or malformed placeholders",
                entity_id=template.id,
                offending_tokens=offending,
            )

        snapshot = snapshot or self._categories.snapshot()
        if not snapshot.contains(CategoryKind.CLAUSE, template.category):
            raise ValidationError(
                f"Unknown clause category '{template.category}'",
                entity_id=template.id,
                field_name="category",
            )
        if not snapshot.contains(CategoryKind.CONTRACT, template.contract_category):
            raise ValidationError(
                f"Unknown contract category '{template.contract_category}'",
                entity_id=template.id,
                field_name="contract_category",
            )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, template: ClauseTemplate, user_id: Optional[str] = None) -> ClauseTemplate:
        """
        Author a template directly.

        Raises:
            ValidationError, TemplateValidationError: See `validate`.
        """
        if not template.id:
            template = replace(template, id=str(uuid.uuid4()))
        self.validate(template)

        with self._db_manager.get_session() as session:
            if session.get(ClauseTemplateModel, template.id) is not None:
                raise ValidationError(
                    f"Template {template.id} already exists", entity_id=template.id, field_name="id"
                )
            model = ClauseTemplateModel(id=template.id, usage_count=0)
            self._apply(model, template)
            session.add(model)
            session.flush()
            increment_counter(session, TEMPLATES_CREATED_COUNTER)
            created = self._to_template(model)
            self._record_change(session, AuditEventType.TEMPLATE_CREATED, created, user_id)

        logger.info(f"Created template {created.id} ({created.category})")
        return created

    def update(
        self,
        template_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> ClauseTemplate:
        """
        Edit a template; the result is re-validated before it is stored.

        Raises:
            NotFoundError: Unknown template id.
            ValidationError: Unknown field or invalid category.
            TemplateValidationError: Placeholder check failed.
        """
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields cannot be edited: {', '.join(unknown)}",
                entity_id=template_id,
                field_name=unknown[0],
            )

        with self._db_manager.get_session() as session:
            model = session.get(ClauseTemplateModel, template_id)
            if model is None:
                raise NotFoundError(f"Template {template_id} not found", entity_id=template_id)
            edited = replace(self._to_template(model), **changes)
            self.validate(edited)
            self._apply(model, edited)
            model.updated_at = datetime.utcnow()
            session.flush()
            updated = self._to_template(model)
            self._record_change(
                session, AuditEventType.TEMPLATE_UPDATED, updated, user_id,
                details={"fields": sorted(changes)},
            )

        logger.info(f"Updated template {template_id}: {', '.join(sorted(changes))}")
        return updated

    def rollback(self, template_id: str, version: int, user_id: Optional[str] = None) -> ClauseTemplate:
        """
        Restore the editable fields of a template from a saved version.

        The restore is itself an edit: it is re-validated and saved as the
        newest version.

        Raises:
            NotFoundError: Unknown template or version.
        """
        snapshot = self._audit_logger.get_version(TEMPLATE_ENTITY_TYPE, template_id, version)
        if snapshot is None:
            raise NotFoundError(
                f"Template {template_id} has no version {version}", entity_id=template_id
            )
        changes = {name: snapshot[name] for name in EDITABLE_FIELDS if name in snapshot}
        restored = self.update(template_id, changes, user_id)
        self._audit_logger.record(
            AuditEventType.VERSION_ROLLBACK,
            entity_id=template_id,
            entity_type=TEMPLATE_ENTITY_TYPE,
            user_id=user_id,
            details={"rolled_back_to_version": version},
        )
        return restored

    def get(self, template_id: str) -> ClauseTemplate:
        with self._db_manager.get_session() as session:
            model = session.get(ClauseTemplateModel, template_id)
            if model is None:
                raise NotFoundError(f"Template {template_id} not found", entity_id=template_id)
            return self._to_template(model)

    def list(
        self,
        category: Optional[str] = None,
        contract_category: Optional[str] = None,
    ) -> List[ClauseTemplate]:
        """Templates ordered by id, optionally filtered."""
        with self._db_manager.get_session() as session:
            query = select(ClauseTemplateModel)
            if category:
                query = query.where(ClauseTemplateModel.category == category)
            if contract_category:
                query = query.where(ClauseTemplateModel.contract_category == contract_category)
            models = session.execute(query.order_by(ClauseTemplateModel.id)).scalars().all()
            return [self._to_template(m) for m in models]

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def increment_usage(
        self,
        template_ids: Iterable[str],
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
        contract_id: Optional[str] = None,
    ) -> None:
        """Increment usage counters of templates selected into a contract."""
        ids = list(dict.fromkeys(template_ids))
        if not ids:
            return
        if session is None:
            with self._db_manager.get_session() as own_session:
                self._increment_usage(own_session, ids, user_id, contract_id)
        else:
            self._increment_usage(session, ids, user_id, contract_id)

    def _increment_usage(
        self,
        session: Session,
        ids: List[str],
        user_id: Optional[str],
        contract_id: Optional[str],
    ) -> None:
        for template_id in ids:
            result = session.execute(
                update(ClauseTemplateModel)
                .where(ClauseTemplateModel.id == template_id)
                .values(usage_count=ClauseTemplateModel.usage_count + 1)
            )
            if result.rowcount != 1:
                logger.warning(f"Usage increment skipped, template {template_id} not found")
                continue
            self._audit_logger.record(
                AuditEventType.TEMPLATE_USED,
                entity_id=template_id,
                entity_type=TEMPLATE_ENTITY_TYPE,
                user_id=user_id,
                details={"contract_id": contract_id},
                session=session,
            )

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------

    def find_duplicate(
        self,
        session: Session,
        category: str,
        content: str,
    ) -> Optional[Tuple[ClauseTemplateModel, float]]:
        """Most similar template of `category` at or above the duplicate threshold."""
        models = session.execute(
            select(ClauseTemplateModel)
            .where(ClauseTemplateModel.category == category)
            .order_by(ClauseTemplateModel.id)
        ).scalars().all()

        best: Optional[Tuple[ClauseTemplateModel, float]] = None
        for model in models:
            ratio = text_similarity(model.content, content)
            if ratio >= self._duplicate_threshold and (best is None or ratio > best[1]):
                best = (model, ratio)
        return best

    def promote_from_candidate(
        self,
        session: Session,
        candidate: ClauseCandidate,
        category: str,
        contract_category: str,
        user_id: Optional[str] = None,
    ) -> ClauseTemplate:
        """
        Materialize an approved candidate as a new template inside `session`.

        Every promotion creates a template. When an existing template of the
        same category is at least `duplicate_threshold` similar, the new
        template records it in `duplicate_of` and `duplicate_similarity`.

        Raises:
            TemplateValidationError: The candidate text has malformed placeholders.
        """
        variables = extract_variables(candidate.content)
        risk = score_risk(candidate.content)
        duplicate = self.find_duplicate(session, category, candidate.content)
        duplicate_of, similarity = (duplicate[0].id, round(duplicate[1], 4)) if duplicate else (None, None)

        template = ClauseTemplate(
            id=str(uuid.uuid4()),
            title=candidate.title,
            content=candidate.content,
            category=category,
            contract_category=contract_category,
            template_type=TemplateType.STANDARD,
            industry=GENERAL,
            service_type=GENERAL,
            complexity=Complexity.STANDARD,
            variables=variables,
            tags=list(candidate.tags),
            confidence=candidate.confidence,
            quality_score=score_quality(candidate.confidence, candidate.content, bool(variables), category),
            risk_score=risk,
            importance=rate_importance(risk, candidate.confidence),
            source_candidate_ids=[candidate.id],
            duplicate_of=duplicate_of,
            duplicate_similarity=similarity,
        )
        offending = validate_placeholders(template.content, template.variables)
        if offending:
            raise TemplateValidationError(
                "Candidate content has malformed placeholders",
                entity_id=candidate.id,
                offending_tokens=offending,
            )

        model = ClauseTemplateModel(id=template.id, usage_count=0)
        self._apply(model, template)
        session.add(model)
        session.flush()
        increment_counter(session, TEMPLATES_CREATED_COUNTER)
        created = self._to_template(model)
        details: Dict[str, Any] = {"candidate_id": candidate.id}
        if duplicate_of:
            details.update(duplicate_of=duplicate_of, similarity=similarity)
            logger.info(
                f"Template {created.id} is {similarity:.0%} similar to template {duplicate_of}"
            )
        self._record_change(
            session, AuditEventType.TEMPLATE_CREATED, created, user_id, details=details,
        )
        return created

    def _record_change(
        self,
        session: Session,
        event_type: AuditEventType,
        template: ClauseTemplate,
        user_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._audit_logger.save_version(
            TEMPLATE_ENTITY_TYPE, template.id, template.to_dict(), session=session
        )
        self._audit_logger.record(
            event_type,
            entity_id=template.id,
            entity_type=TEMPLATE_ENTITY_TYPE,
            user_id=user_id,
            details={"category": template.category, **(details or {})},
            session=session,
        )
