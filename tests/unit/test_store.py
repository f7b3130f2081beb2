"""Unit tests for the Clause Candidate Store."""

from datetime import datetime, timedelta

import pytest

from contract_composer.candidates.store import CandidateStore, annotate, assess_risk, recommend
from contract_composer.config.models import EngineConfiguration
from contract_composer.errors import NotFoundError, ValidationError
from contract_composer.interfaces.audit import AuditEventType
from contract_composer.models.candidate import CandidateQuery, ClauseCandidate
from contract_composer.models.enums import CandidateStatus, Recommendation, RiskLevel


def make_items():
    return [
        {
            "id": "c1",
            "title": "대금 지급",
            "content": "발주자는 용역대금을 지급한다.",
            "confidence": 0.9,
            "contract_category": "용역/프로젝트",
            "clause_category": "대금 지급 조건",
            "source_contract": "웹사이트 구축 계약서",
        },
        {
            "id": "c2",
            "title": "비밀유지",
            "content": "양 당사자는 비밀을 유지한다.",
            "confidence": 0.7,
            "contract_category": "비밀/보안",
            "category": "비밀유지 의무",
        },
        {
            "id": "c3",
            "title": "기타",
            "content": "본 계약에 정하지 않은 사항은 협의한다.",
            "confidence": 0.3,
        },
    ]


class TestIngest:
    """Tests for batch ingestion."""

    def test_ingest_valid_items(self, candidate_store):
        result = candidate_store.ingest(make_items(), user_id="loader")

        assert result.created_ids == ["c1", "c2", "c3"]
        assert result.summary == {"total": 3, "succeeded": 3, "failed": 0}
        stored = candidate_store.get("c2")
        assert stored.status is CandidateStatus.PENDING
        assert stored.clause_category == "비밀유지 의무"

    def test_bad_items_do_not_fail_the_batch(self, candidate_store):
        items = [
            {"title": "빈 조항", "content": "   ", "confidence": 0.9},
            {"id": "bad-conf", "title": "x", "content": "내용", "confidence": 1.5},
            {"id": "no-conf", "title": "x", "content": "내용", "confidence": "high"},
            {"id": "ok", "title": "x", "content": "내용", "confidence": 0.6},
        ]

        result = candidate_store.ingest(items)

        assert result.created_ids == ["ok"]
        assert [o.id for o in result.failed] == ["#0", "bad-conf", "no-conf"]
        assert result.outcome_for("bad-conf").error.field_name == "confidence"

    def test_duplicate_id_is_rejected(self, candidate_store):
        candidate_store.ingest(make_items()[:1])
        result = candidate_store.ingest(make_items()[:1])

        assert result.failed[0].id == "c1"
        assert result.failed[0].error.field_name == "id"

    def test_title_defaults_to_content_prefix(self, candidate_store):
        content = "수행자는 계약 기간 동안 성실하게 용역을 수행하여야 하며 발주자의 지시에 따른다."
        result = candidate_store.ingest([{"content": content, "confidence": 0.5}])

        stored = candidate_store.get(result.created_ids[0])
        assert stored.title == content[:30]

    def test_ingest_accepts_dataclasses_and_audits(self, candidate_store, audit_logger):
        candidate = ClauseCandidate(id="dc", title="t", content="내용", confidence=0.8)

        candidate_store.ingest([candidate], user_id="loader")

        events = audit_logger.get_events(entity_id="dc")
        assert [e.event_type for e in events] == [AuditEventType.CANDIDATE_INGESTED]
        assert events[0].user_id == "loader"

    def test_get_missing(self, candidate_store):
        with pytest.raises(NotFoundError):
            candidate_store.get("missing")


class TestQuery:
    """Tests for the review queue listing."""

    def test_default_query_hides_low_confidence(self, candidate_store):
        candidate_store.ingest(make_items())

        page = candidate_store.query()

        assert {item.candidate.id for item in page.items} == {"c1", "c2"}
        assert page.pagination.total == 2

    def test_filters(self, candidate_store):
        candidate_store.ingest(make_items())

        by_category = candidate_store.query(CandidateQuery(category="대금 지급 조건"))
        assert [i.candidate.id for i in by_category.items] == ["c1"]

        by_contract = candidate_store.query(CandidateQuery(contract_category="비밀/보안"))
        assert [i.candidate.id for i in by_contract.items] == ["c2"]

        by_search = candidate_store.query(CandidateQuery(search="웹사이트", min_confidence=None))
        assert [i.candidate.id for i in by_search.items] == ["c1"]

    def test_pagination_is_deterministic(self, candidate_store):
        items = [
            {"id": f"p{i}", "title": "t", "content": "내용", "confidence": 0.6}
            for i in range(5)
        ]
        candidate_store.ingest(items)

        query = CandidateQuery(sort_by="confidence", order="asc", limit=2)
        seen = []
        for page_number in (1, 2, 3):
            query.page = page_number
            page = candidate_store.query(query)
            seen.extend(i.candidate.id for i in page.items)

        assert seen == ["p0", "p1", "p2", "p3", "p4"]
        assert page.pagination.pages == 3

    def test_limit_is_capped(self, candidate_store):
        page = candidate_store.query(CandidateQuery(limit=1000))
        assert page.pagination.limit == 100

    @pytest.mark.parametrize("overrides", [
        {"sort_by": "risk"},
        {"order": "sideways"},
        {"status": "archived"},
    ])
    def test_invalid_query(self, candidate_store, overrides):
        with pytest.raises(ValidationError):
            candidate_store.query(CandidateQuery(**overrides))

    def test_status_all(self, candidate_store):
        candidate_store.ingest(make_items())
        page = candidate_store.query(CandidateQuery(status="all", min_confidence=None))
        assert page.pagination.total == 3


class TestAnnotation:

    def test_recommendation_bands(self):
        high = ClauseCandidate(id="a", title="t", content="c", confidence=0.9)
        middle = ClauseCandidate(id="b", title="t", content="c", confidence=0.7)
        low = ClauseCandidate(id="c", title="t", content="c", confidence=0.2)

        assert recommend(high) is Recommendation.AUTO_APPROVE
        assert recommend(middle) is Recommendation.REVIEW
        assert recommend(low) is Recommendation.REJECT
        assert assess_risk(high) is RiskLevel.LOW
        assert assess_risk(middle) is RiskLevel.MEDIUM
        assert assess_risk(low) is RiskLevel.HIGH

    def test_bands_follow_given_threshold(self):
        candidate = ClauseCandidate(id="a", title="t", content="c", confidence=0.86)

        assert recommend(candidate) is Recommendation.AUTO_APPROVE
        assert recommend(candidate, 0.9) is Recommendation.REVIEW
        assert assess_risk(candidate, 0.9) is RiskLevel.MEDIUM

    def test_query_uses_configured_thresholds(self, db_manager, audit_logger):
        config = EngineConfiguration(
            auto_promote_threshold=0.9, threshold_overrides={"비밀/보안": 0.6}
        )
        store = CandidateStore(db_manager, audit_logger, config)
        store.ingest([
            {"id": "svc", "title": "t", "content": "용역 조항", "confidence": 0.86,
             "contract_category": "용역/프로젝트"},
            {"id": "nda", "title": "t", "content": "비밀 조항", "confidence": 0.62,
             "contract_category": "비밀/보안"},
        ])

        items = {i.candidate.id: i for i in store.query(CandidateQuery()).items}

        assert items["svc"].recommendation is Recommendation.REVIEW
        assert items["svc"].risk_level is RiskLevel.MEDIUM
        assert items["nda"].recommendation is Recommendation.AUTO_APPROVE
        assert items["nda"].risk_level is RiskLevel.LOW

    def test_needs_review_tag_is_high_risk(self):
        candidate = ClauseCandidate(
            id="a", title="t", content="c", confidence=0.99, tags=["needs_review"]
        )
        assert assess_risk(candidate) is RiskLevel.HIGH

    def test_preview_is_truncated(self):
        candidate = ClauseCandidate(id="a", title="t", content="가" * 200, confidence=0.5)
        annotated = annotate(candidate)
        assert annotated.preview == "가" * 150 + "..."


class TestStats:

    def test_stats(self, candidate_store):
        candidate_store.ingest(make_items())

        stats = candidate_store.stats()

        assert stats["total"] == 3
        assert stats["byStatus"] == {"pending": 3, "approved": 0, "rejected": 0}
        assert stats["byContractCategory"]["미분류"] == 1
        assert stats["highConfidence"] == 1
        assert stats["autoApprovalReady"] == 1
        assert stats["averageConfidence"] == pytest.approx(0.6333, abs=1e-4)
        assert stats["recentlyAdded"] == 3
        assert stats["templatesCreated"] == 0

    def test_recent_window(self, candidate_store):
        candidate_store.ingest(make_items())
        stats = candidate_store.stats(now=datetime.utcnow() + timedelta(days=30))
        assert stats["recentlyAdded"] == 0

    def test_empty_store(self, candidate_store):
        stats = candidate_store.stats()
        assert stats["total"] == 0
        assert stats["averageConfidence"] == 0.0
