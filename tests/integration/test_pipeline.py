"""Integration tests for the end-to-end engine: ingest, promote, match and compose."""

from datetime import date
from pathlib import Path

import pytest
from docx import Document

from contract_composer.errors import (
    ExternalCollaboratorError,
    MissingPartyFieldError,
    NotFoundError,
    ValidationError,
)
from contract_composer.interfaces.audit import AuditEventType
from contract_composer.interfaces.collaborator import IClauseExtractor
from contract_composer.models.candidate import CandidateQuery
from contract_composer.models.enums import CandidateStatus, ContractSource
from contract_composer.pipeline import ContractEngine, PipelineConfig

GENERATED_AT = "2024-03-05T09:00:00"
REFERENCE_DATE = date(2024, 3, 5)

LIBRARY_CLAUSES = [
    {
        "id": "k-purpose",
        "title": "계약의 목적",
        "content": "본 계약은 {{clientCompany}}와 {{providerCompany}} 간의 용역 수행에 관한 사항을 정한다.",
        "confidence": 0.95,
        "contract_category": "용역/프로젝트",
        "clause_category": "계약의 목적",
    },
    {
        "id": "k-payment",
        "title": "대금 지급",
        "content": (
            "발주자는 수행자에게 용역대금 {{contractAmount}}을 지급한다."
            "{{#if contractPayment}} 계약금 {{contractPayment}}은 {{contractPaymentTiming}} 지급한다.{{/if}}"
        ),
        "confidence": 0.92,
        "contract_category": "용역/프로젝트",
        "clause_category": "대금 지급 조건",
    },
    {
        "id": "k-service",
        "title": "업무 범위",
        "content": "수행자는 다음 업무를 수행한다.\n{{serviceList}}",
        "confidence": 0.9,
        "contract_category": "용역/프로젝트",
        "clause_category": "업무 범위 정의",
    },
    {
        "id": "k-delivery",
        "title": "납품 및 검수",
        "content": "수행자는 {{deliveryDate}}까지 결과물을 납품하고 발주자는 검수를 진행한다.",
        "confidence": 0.88,
        "contract_category": "용역/프로젝트",
        "clause_category": "납품 및 검수",
    },
    {
        "id": "k-termination",
        "title": "계약 해지",
        "content": "당사자 일방이 계약을 위반한 경우 상대방은 서면 통지로 계약을 해지할 수 있다.",
        "confidence": 0.86,
        "contract_category": "용역/프로젝트",
        "clause_category": "계약 해지 조건",
    },
]

QUOTE = {
    "id": "q-1",
    "amount": 10_000_000,
    "items": [
        {"serviceName": "웹사이트 개발", "serviceDescription": "반응형 쇼핑몰 구축"},
        {"serviceName": "로고 디자인", "serviceDescription": "브랜드 로고 시안 3종"},
    ],
    "client": {"company": "한빛상사"},
    "metadata": '{"duration": "2개월", "delivery_days": 60}',
}

ARTICLE_TEXT = """용역 계약서

제1조 (목적) 본 계약은 발주자가 수행자에게 웹사이트 구축 용역을 위탁함에 있어 필요한 사항을 정한다.

제2조 (대금 지급) ① 발주자는 용역대금을 계약 체결 시 30%, 완료 시 70%로 나누어 지급한다.
"""


class StaticExtractor(IClauseExtractor):
    """Extractor returning a fixed response."""

    def __init__(self, response):
        self.response = response
        self.texts = []

    def extract_clauses(self, text):
        self.texts.append(text)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def stocked_engine(engine):
    """Engine whose library holds one auto-promoted template per required KR section."""
    outcome = engine.ingest_candidates(LIBRARY_CLAUSES, user_id="loader")
    assert outcome.promotion is not None
    assert outcome.promotion.templates_created == len(LIBRARY_CLAUSES)
    return engine


class TestIngestion:
    """Tests for the ingestion entry points."""

    def test_ingest_auto_promotes(self, stocked_engine):
        """Test that high-confidence candidates become templates on ingest."""
        templates = stocked_engine.library.list(contract_category="용역/프로젝트")

        assert sorted(t.category for t in templates) == sorted(
            c["clause_category"] for c in LIBRARY_CLAUSES
        )
        assert stocked_engine.candidates.get("k-payment").status is CandidateStatus.APPROVED
        assert stocked_engine.candidate_stats()["templatesCreated"] == len(LIBRARY_CLAUSES)

    def test_auto_promote_can_be_disabled(self, engine):
        """Test that auto_promote=False leaves candidates pending."""
        outcome = engine.ingest_candidates(LIBRARY_CLAUSES[:1], auto_promote=False)

        assert outcome.promotion is None
        assert engine.candidates.get("k-purpose").status is CandidateStatus.PENDING

    def test_ingest_text(self, engine):
        """Test that article text is normalized into pending candidates."""
        outcome = engine.ingest_text(ARTICLE_TEXT, source_contract="계약서.txt", contract_category="용역/프로젝트")

        assert outcome.normalization.clause_count == 2
        assert outcome.ingest.summary == {"total": 2, "succeeded": 2, "failed": 0}
        # Article confidence is below the promotion threshold
        assert outcome.promotion.templates_created == 0

        page = engine.query_candidates(CandidateQuery(contract_category="용역/프로젝트"))
        assert sorted(item.candidate.title for item in page.items) == ["대금 지급", "목적"]
        assert all(item.candidate.source_contract == "계약서.txt" for item in page.items)

    def test_ingest_empty_text(self, engine):
        """Test that empty text is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            engine.ingest_text("   ")
        assert exc_info.value.field_name == "text"

    def test_ingest_file(self, engine, tmp_path):
        """Test ingesting an uploaded .docx contract."""
        path = tmp_path / "upload.docx"
        doc = Document()
        for line in ARTICLE_TEXT.splitlines():
            doc.add_paragraph(line)
        doc.save(str(path))

        outcome = engine.ingest_file(str(path), contract_category="용역/프로젝트")

        assert len(outcome.ingest.created_ids) == 2
        candidate = engine.candidates.get(outcome.ingest.created_ids[0])
        assert candidate.source_contract == "upload.docx"

    def test_extract_without_extractor(self, engine):
        """Test that extraction needs a configured collaborator."""
        with pytest.raises(ExternalCollaboratorError):
            engine.extract_and_ingest(ARTICLE_TEXT)

    def test_extract_and_ingest(self, db_manager, tmp_path):
        """Test that extracted clauses are ingested with the request's source."""
        extractor = StaticExtractor([
            {"title": "비밀유지", "content": "수행자는 업무상 알게 된 정보를 외부에 누설하지 않는다.", "confidence": 0.6},
            {"title": "잘못된 항목", "content": "신뢰도가 없는 항목"},
        ])
        engine = ContractEngine(
            PipelineConfig(output_dir=str(tmp_path)), db_manager=db_manager, extractor=extractor,
        )
        engine.initialize()

        outcome = engine.extract_and_ingest(ARTICLE_TEXT, source_contract="nda.pdf", contract_category="비밀/보안")

        assert extractor.texts == [ARTICLE_TEXT]
        assert outcome.ingest.summary == {"total": 2, "succeeded": 1, "failed": 1}
        created = engine.candidates.get(outcome.ingest.created_ids[0])
        assert created.source_contract == "nda.pdf"
        assert created.contract_category == "비밀/보안"

    @pytest.mark.parametrize("response", [RuntimeError("quota exceeded"), {"clauses": []}])
    def test_extractor_failures(self, db_manager, tmp_path, response):
        """Test that collaborator failures and malformed output surface as collaborator errors."""
        engine = ContractEngine(
            PipelineConfig(output_dir=str(tmp_path)), db_manager=db_manager,
            extractor=StaticExtractor(response),
        )

        with pytest.raises(ExternalCollaboratorError):
            engine.extract_and_ingest(ARTICLE_TEXT)


class TestGeneration:
    """Tests for quote-driven contract generation."""

    def test_generate_for_quote(self, stocked_engine, parties):
        """Test composing a complete KR contract for a quote."""
        result = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT, user_id="u1",
        )
        contract = result.contract

        assert result.criteria.service_type == "development"
        assert len(result.selected) == len(LIBRARY_CLAUSES)
        assert [s.slot_key for s in contract.sections] == [
            "basic", "payment", "service", "delivery", "termination",
        ]
        assert [s.numbering for s in contract.sections] == ["제1조", "제2조", "제3조", "제4조", "제5조"]
        assert contract.warnings == ()
        assert contract.source is ContractSource.TEMPLATE
        assert contract.metadata["quote_id"] == "q-1"

        purpose, payment, service, delivery, _ = contract.sections
        assert purpose.content == "본 계약은 한빛상사와 새벽스튜디오 간의 용역 수행에 관한 사항을 정한다."
        assert payment.content == (
            "발주자는 수행자에게 용역대금 10,000,000원을 지급한다."
            " 계약금 3,000,000원(삼백만원, 부가세별도)은 계약과 동시 지급한다."
        )
        assert service.content == "수행자는 다음 업무를 수행한다.\n- 웹사이트 개발\n- 로고 디자인"
        assert delivery.content.startswith("수행자는 2024년 5월 4일까지")

        assert stocked_engine.get_contract(contract.id) == contract

    def test_usage_is_counted_once(self, stocked_engine, parties):
        """Test that regenerating the same contract does not count template usage twice."""
        first = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        )
        second = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        )

        assert first.contract.id == second.contract.id
        for template_id in first.contract.template_ids:
            assert stocked_engine.library.get(template_id).usage_count == 1

    def test_preview_is_not_persisted(self, stocked_engine, parties):
        """Test that persist=False neither stores the contract nor counts usage."""
        result = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT, persist=False,
        )

        with pytest.raises(NotFoundError):
            stocked_engine.get_contract(result.contract.id)
        assert all(
            stocked_engine.library.get(t).usage_count == 0 for t in result.contract.template_ids
        )

    def test_empty_library_yields_warnings(self, engine, parties):
        """Test that a quote with no matching templates composes an empty contract."""
        result = engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        )

        assert result.matches == []
        assert result.contract.sections == ()
        assert [w.code for w in result.contract.warnings] == ["no_clauses"] + ["missing_required_slot"] * 5

    def test_missing_party_name(self, stocked_engine, parties):
        """Test that a missing provider name fails composition."""
        parties["provider"].pop("name")

        with pytest.raises(MissingPartyFieldError) as exc_info:
            stocked_engine.generate_for_quote(QUOTE, parties, generated_at=GENERATED_AT)
        assert exc_info.value.field_name == "provider.name"

    def test_malformed_quote(self, stocked_engine, parties):
        """Test that a quote with unparseable items is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            stocked_engine.generate_for_quote({"items": "{broken"}, parties)
        assert exc_info.value.field_name == "items"

    def test_project_data_from_quote(self):
        """Test the resolver input built from a quote."""
        project = ContractEngine.project_data_from_quote(QUOTE)

        assert project["amount"] == 10_000_000
        assert project["duration"] == "2개월"
        assert project["delivery_days"] == 60
        assert project["payment_terms"] == {
            "contract_percentage": 30, "progress_percentage": 40, "final_percentage": 30,
        }
        assert ContractEngine.project_data_from_quote({})["amount"] is None


class TestComposition:
    """Tests for candidate composition, revisions and outputs."""

    def test_compose_from_candidates(self, engine, parties):
        """Test composing directly from pending candidates."""
        engine.ingest_candidates(LIBRARY_CLAUSES[:2], auto_promote=False)

        contract = engine.compose_from_candidates(
            ["k-payment", "k-purpose"], parties,
            project_data={"amount": 500_000},
            reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        )

        assert contract.source is ContractSource.UPLOAD
        assert [s.clause_id for s in contract.sections] == ["k-purpose", "k-payment"]
        assert contract.sections[1].content == "발주자는 수행자에게 용역대금 500,000원을 지급한다."
        assert [w.slot_key for w in contract.warnings] == ["service", "delivery", "termination"]
        assert engine.get_contract(contract.id).source is ContractSource.UPLOAD

    def test_compose_from_missing_candidate(self, engine, parties):
        with pytest.raises(NotFoundError):
            engine.compose_from_candidates(["nope"], parties)

    def test_revise_contract(self, stocked_engine, parties):
        """Test that a revision is a new version linked to the original."""
        original = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        ).contract

        revised = stocked_engine.revise_contract(
            original.id,
            [{"id": "extra", "title": "기타", "content": "정하지 않은 사항은 상호 협의하여 정한다.", "category": "기타 조항"}],
            parties,
            reference_date=REFERENCE_DATE,
            generated_at="2024-03-06T09:00:00",
            user_id="editor",
        )

        assert revised.version == 2
        assert revised.previous_version_id == original.id
        assert revised.header.title == original.header.title
        assert [c.id for c in stocked_engine.contract_history(revised.id)] == [original.id, revised.id]
        assert stocked_engine.get_contract(original.id) == original

    def test_render_and_export(self, stocked_engine, parties):
        """Test HTML rendering and .docx export of a stored contract."""
        contract = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        ).contract

        html = stocked_engine.render_contract(contract.id)
        path = Path(stocked_engine.export_contract(contract.id))

        assert "제2조" in html
        assert "한빛상사" in html
        assert path.exists()
        assert path.suffix == ".docx"
        texts = [p.text for p in Document(str(path)).paragraphs]
        assert any("용역대금 10,000,000원" in text for text in texts)

    def test_review_without_advisor_degrades(self, stocked_engine, parties):
        """Test that a review without an advisor flags every clause as degraded."""
        contract = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT,
        ).contract

        review = stocked_engine.review_contract(contract.id)

        assert review.degraded_count == contract.section_count
        assert all(c.risk_level == 5 for c in review.clauses)
        assert [c.clause_id for c in review.clauses] == [s.clause_id for s in contract.sections]


class TestRegistryAndAudit:

    def test_add_category_is_visible(self, engine):
        before = engine.list_categories()

        engine.add_category("clause", "데이터 보호", "admin", keywords=["개인정보"], slot_key="confidentiality")

        after = engine.list_categories()
        assert "데이터 보호" in after["clause"]
        assert after["version"] == before["version"] + 1
        assert "용역/프로젝트" in after["contract"]

    def test_generation_is_audited(self, stocked_engine, parties):
        contract = stocked_engine.generate_for_quote(
            QUOTE, parties, reference_date=REFERENCE_DATE, generated_at=GENERATED_AT, user_id="u1",
        ).contract

        events = stocked_engine.audit_logger.get_events(entity_id=contract.id)

        assert AuditEventType.CONTRACT_COMPOSED in [e.event_type for e in events]

    def test_operations_are_timed(self, stocked_engine, parties):
        stocked_engine.generate_for_quote(QUOTE, parties, generated_at=GENERATED_AT)

        stats = stocked_engine.performance_monitor.get_all_stats()

        assert stats["generate_for_quote"]["count"] == 1
        assert stats["compose_contract"]["count"] == 1
