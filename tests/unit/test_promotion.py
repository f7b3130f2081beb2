"""Unit tests for the Promotion Workflow."""

from unittest.mock import patch

import pytest
from sqlalchemy import update

from contract_composer.audit.database import TEMPLATES_CREATED_COUNTER, get_counter
from contract_composer.audit.models import ClauseCandidateModel
from contract_composer.candidates.promotion import PromotionWorkflow
from contract_composer.config.models import EngineConfiguration
from contract_composer.errors import (
    InvalidStateError,
    NotFoundError,
    TemplateValidationError,
    ValidationError,
)
from contract_composer.interfaces.audit import AuditEventType
from contract_composer.models.enums import CandidateStatus


def seed(candidate_store):
    candidate_store.ingest([
        {
            "id": "pay",
            "title": "대금 지급",
            "content": "발주자는 수행자에게 용역대금 {{contractAmount}}을 지급한다.",
            "confidence": 0.92,
            "contract_category": "용역/프로젝트",
            "clause_category": "대금 지급 조건",
        },
        {
            "id": "nda",
            "title": "비밀유지",
            "content": "양 당사자는 업무상 알게 된 비밀을 제3자에게 누설하지 아니한다.",
            "confidence": 0.7,
            "contract_category": "비밀/보안",
        },
        {
            "id": "misc",
            "title": "분쟁 해결",
            "content": "본 계약과 관련한 분쟁은 서울중앙지방법원을 관할 법원으로 한다.",
            "confidence": 0.3,
            "contract_category": "없는 분류",
        },
    ])


class TestAutoPromote:
    """Tests for threshold-based promotion."""

    def test_promotes_candidates_at_threshold(self, workflow, candidate_store, library):
        seed(candidate_store)

        report = workflow.auto_promote()

        assert [o.id for o in report.succeeded] == ["pay"]
        assert report.threshold == 0.85
        assert report.templates_created == 1
        approved = candidate_store.get("pay")
        assert approved.status is CandidateStatus.APPROVED
        assert approved.reviewed_by == "system"
        assert library.get(approved.template_id).variables == ["contractAmount"]
        assert candidate_store.get("nda").status is CandidateStatus.PENDING

    def test_second_run_is_a_no_op(self, workflow, candidate_store):
        seed(candidate_store)
        workflow.auto_promote()

        report = workflow.auto_promote()

        assert report.outcomes == []

    def test_explicit_threshold(self, workflow, candidate_store):
        seed(candidate_store)

        report = workflow.auto_promote(threshold=0.6)

        assert sorted(o.id for o in report.succeeded) == ["nda", "pay"]
        nda = candidate_store.get("nda")
        assert nda.clause_category == "비밀유지 의무"

    def test_threshold_out_of_range(self, workflow):
        with pytest.raises(ValidationError):
            workflow.auto_promote(threshold=1.2)

    def test_per_category_threshold(
        self, db_manager, audit_logger, candidate_store, library, category_registry
    ):
        config = EngineConfiguration(threshold_overrides={"비밀/보안": 0.65})
        workflow = PromotionWorkflow(
            db_manager, audit_logger, candidate_store, library, category_registry, config=config
        )
        seed(candidate_store)

        report = workflow.auto_promote()

        assert sorted(o.id for o in report.succeeded) == ["nda", "pay"]

    def test_counts_created_templates(self, workflow, candidate_store, db_manager):
        seed(candidate_store)
        workflow.auto_promote()

        with db_manager.get_session() as session:
            assert get_counter(session, TEMPLATES_CREATED_COUNTER) == 1
        assert candidate_store.stats()["templatesCreated"] == 1

    def test_near_identical_candidates_each_create_a_template(
        self, workflow, candidate_store, library
    ):
        candidate_store.ingest([
            {
                "id": "pay-7",
                "title": "대금 지급",
                "content": "발주자는 검수 완료 후 7일 이내에 수행자에게 용역대금 {{contractAmount}}을 지급한다.",
                "confidence": 0.95,
                "contract_category": "용역/프로젝트",
                "clause_category": "대금 지급 조건",
            },
            {
                "id": "pay-14",
                "title": "대금 지급",
                "content": "발주자는 검수 완료 후 14일 이내에 수행자에게 용역대금 {{contractAmount}}을 지급한다.",
                "confidence": 0.9,
                "contract_category": "용역/프로젝트",
                "clause_category": "대금 지급 조건",
            },
        ])

        report = workflow.auto_promote()

        assert report.templates_created == 2
        assert len(library.list()) == 2
        first = library.get(candidate_store.get("pay-7").template_id)
        second = library.get(candidate_store.get("pay-14").template_id)
        assert {first.duplicate_of, second.duplicate_of} in ({None, first.id}, {None, second.id})
        assert candidate_store.stats()["templatesCreated"] == 2


class TestBulkApprove:
    """Tests for manual approval with category overrides."""

    def test_unknown_contract_category_falls_back(self, workflow, candidate_store, library):
        seed(candidate_store)

        result = workflow.bulk_approve(["misc"], user_id="admin")

        outcome = result.outcome_for("misc")
        assert outcome.success
        template = library.get(outcome.template_id)
        assert template.contract_category == "기타/일반"
        assert template.category == "기타 조항"

    def test_override_is_applied_and_audited(self, workflow, candidate_store, audit_logger):
        seed(candidate_store)

        result = workflow.bulk_approve(["nda"], {"nda": "책임 분담"}, user_id="admin")

        assert result.outcome_for("nda").success
        assert candidate_store.get("nda").clause_category == "책임 분담"
        overridden = audit_logger.get_events(
            entity_id="nda", event_type=AuditEventType.CATEGORY_OVERRIDDEN
        )
        assert overridden[0].details == {"from": None, "to": "책임 분담"}

    def test_partial_success(self, workflow, candidate_store):
        seed(candidate_store)
        workflow.bulk_approve(["pay"])

        result = workflow.bulk_approve(
            ["pay", "nda", "missing", "misc"], {"misc": "없는 조항"}, user_id="admin"
        )

        assert [o.id for o in result.succeeded] == ["nda"]
        assert isinstance(result.outcome_for("pay").error, InvalidStateError)
        assert result.outcome_for("pay").status is CandidateStatus.APPROVED
        assert isinstance(result.outcome_for("missing").error, NotFoundError)
        assert isinstance(result.outcome_for("misc").error, ValidationError)
        assert candidate_store.get("misc").status is CandidateStatus.PENDING

    def test_stage_ignores_overrides_for_unlisted_ids(self, workflow):
        staging = workflow.stage_overrides(["a", "a", "b"], {"c": "책임 분담", "b": "책임 분담"})

        assert staging.ids == ["a", "b"]
        assert staging.overrides == {"b": "책임 분담"}
        assert staging.registry_version == 0

    def test_failed_template_write_rolls_back_candidate(self, workflow, candidate_store, library):
        candidate_store.ingest([{
            "id": "broken",
            "title": "깨진 조항",
            "content": "{{client name}}에게 지급한다.",
            "confidence": 0.9,
        }])

        result = workflow.bulk_approve(["broken"])

        assert isinstance(result.outcome_for("broken").error, TemplateValidationError)
        assert candidate_store.get("broken").status is CandidateStatus.PENDING
        assert library.list() == []

    def test_approval_records_category_usage(self, workflow, candidate_store, category_registry):
        seed(candidate_store)
        workflow.bulk_approve(["pay"])

        assert category_registry.usage_counts()["대금 지급 조건"] == 1

    def test_competing_approval_between_load_and_swap(
        self, workflow, candidate_store, library, db_manager
    ):
        seed(candidate_store)
        load_pending = workflow._load_pending

        def load_then_approve_elsewhere(session, candidate_id):
            candidate = load_pending(session, candidate_id)
            with db_manager.get_session() as other:
                other.execute(
                    update(ClauseCandidateModel)
                    .where(ClauseCandidateModel.id == candidate_id)
                    .values(status=CandidateStatus.APPROVED.value, reviewed_by="other")
                )
            return candidate

        with patch.object(workflow, "_load_pending", side_effect=load_then_approve_elsewhere):
            result = workflow.bulk_approve(["pay"], user_id="admin")

        outcome = result.outcome_for("pay")
        assert not outcome.success
        assert isinstance(outcome.error, InvalidStateError)
        assert outcome.error.current_status == "approved"
        assert outcome.status is CandidateStatus.APPROVED
        assert outcome.template_id is None
        assert library.list() == []
        assert candidate_store.get("pay").reviewed_by == "other"


class TestReject:

    def test_reject_stores_reason(self, workflow, candidate_store, audit_logger):
        seed(candidate_store)

        result = workflow.reject(["misc"], "  관할 조항 중복  ", user_id="admin")

        assert result.summary["succeeded"] == 1
        rejected = candidate_store.get("misc")
        assert rejected.status is CandidateStatus.REJECTED
        assert rejected.review_note == "관할 조항 중복"
        events = audit_logger.get_events(entity_id="misc", event_type=AuditEventType.CANDIDATE_REJECTED)
        assert events[0].details["reason"] == "관할 조항 중복"

    def test_reason_is_required(self, workflow, candidate_store):
        seed(candidate_store)
        with pytest.raises(ValidationError):
            workflow.reject(["misc"], "  ")
        assert candidate_store.get("misc").status is CandidateStatus.PENDING

    def test_rejected_candidate_cannot_be_approved(self, workflow, candidate_store):
        seed(candidate_store)
        workflow.reject(["pay"], "사용하지 않음")

        result = workflow.bulk_approve(["pay"])
        assert result.outcome_for("pay").status is CandidateStatus.REJECTED
        assert workflow.auto_promote().outcomes == []

    def test_reject_missing_and_approved(self, workflow, candidate_store):
        seed(candidate_store)
        workflow.bulk_approve(["pay"])

        result = workflow.reject(["pay", "missing"], "중복")

        assert result.summary == {"total": 2, "succeeded": 0, "failed": 2}
        assert candidate_store.get("pay").status is CandidateStatus.APPROVED
