"""Unit tests for the Contract Composer."""

from datetime import date

import pytest

from contract_composer.composition.composer import (
    ContractComposer,
    section_numbering,
    to_clause,
)
from contract_composer.composition.variable_resolver import VariableResolver
from contract_composer.errors import UnresolvedVariableError, ValidationError
from contract_composer.models.candidate import ClauseCandidate
from contract_composer.models.contract import ComposableClause
from contract_composer.models.enums import ContractSource
from contract_composer.models.structure import ContractStructure, SectionSlot
from contract_composer.models.template import ClauseTemplate

GENERATED_AT = "2024-03-05T09:00:00"

CLAUSES = [
    {
        "id": "c-pay",
        "title": "대금 지급",
        "content": "발주자는 수행자에게 {{contractAmount}}을 지급한다.",
        "category": "대금 지급 조건",
        "template_id": "t-pay",
    },
    {
        "id": "c-purpose",
        "title": "목적",
        "content": "본 계약은 {{clientCompany}}와 {{providerCompany}} 간의 용역에 관한 사항을 정한다.",
        "category": "계약의 목적",
    },
    {
        "id": "c-misc",
        "title": "기타",
        "content": "정하지 않은 사항은 협의한다.{{#if clientPhone}} 연락처: {{clientPhone}}{{/if}}",
        "category": "없는 분류",
    },
]


@pytest.fixture
def composer(structure_registry):
    return ContractComposer(structure_registry)


@pytest.fixture
def variables(parties):
    return VariableResolver("KR").resolve({"amount": 3_000_000}, parties, date(2024, 3, 5))


class TestToClause:

    def test_template_and_candidate(self):
        template = ClauseTemplate(id="t1", title="t", content="c", category="대금 지급 조건")
        candidate = ClauseCandidate(
            id="k1", title="t", content="c", clause_category="비밀유지 의무", template_id="t9"
        )

        assert to_clause(template).template_id == "t1"
        assert to_clause(candidate).clause_category == "비밀유지 의무"
        assert to_clause(candidate).template_id == "t9"

    def test_dict_defaults(self):
        clause = to_clause({"content": "내용"}, index=2)
        assert clause == ComposableClause(id="clause-3", title="", content="내용")

    def test_empty_content(self):
        with pytest.raises(ValidationError):
            to_clause({"id": "x", "content": "  "})

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            to_clause(42)


class TestCompose:
    """Tests for section mapping and substitution."""

    def test_sections_follow_slot_order(self, composer, variables):
        contract = composer.compose(CLAUSES, "KR", variables, generated_at=GENERATED_AT)

        assert [s.clause_id for s in contract.sections] == ["c-purpose", "c-pay", "c-misc"]
        assert [s.slot_key for s in contract.sections] == ["basic", "payment", "other"]
        assert [s.numbering for s in contract.sections] == ["제1조", "제2조", "제3조"]
        assert contract.sections[1].content == "발주자는 수행자에게 3,000,000원을 지급한다."
        assert contract.template_ids == ["t-pay"]

    def test_conditional_block(self, composer, variables):
        contract = composer.compose(CLAUSES, "KR", variables, generated_at=GENERATED_AT)
        assert contract.sections[2].content == "정하지 않은 사항은 협의한다. 연락처: 010-1234-5678"

        variables["clientPhone"] = ""
        contract = composer.compose(CLAUSES, "KR", variables, generated_at=GENERATED_AT)
        assert contract.sections[2].content == "정하지 않은 사항은 협의한다."

    def test_missing_required_slots_are_warnings(self, composer, variables):
        contract = composer.compose(CLAUSES, "KR", variables, generated_at=GENERATED_AT)

        assert [w.slot_key for w in contract.warnings] == ["service", "delivery", "termination"]
        assert contract.warnings[0].message == "누락된 필수 조항: 서비스 범위"

    def test_no_clauses(self, composer, variables):
        contract = composer.compose([], "US", variables, generated_at=GENERATED_AT)

        assert contract.sections == ()
        assert contract.warnings[0].code == "no_clauses"
        assert contract.header.title == "Service Agreement"

    def test_header_and_signatures(self, composer, variables):
        contract = composer.compose(
            CLAUSES, "KR", variables, title="{{clientCompany}} 용역 계약서", generated_at=GENERATED_AT
        )

        assert contract.header.client_company == "한빛상사"
        assert contract.header.contract_date == "2024년 3월 5일"
        assert contract.header.title == "한빛상사 용역 계약서"
        assert [line.role for line in contract.signature_block] == ["발주자", "수행자"]

    def test_unresolved_variable_fails(self, composer, variables):
        clauses = [{"id": "bad", "content": "{{warrantyMonths}}개월간 보증한다."}]

        with pytest.raises(UnresolvedVariableError) as exc_info:
            composer.compose(clauses, "KR", variables)

        assert exc_info.value.token == "warrantyMonths"
        assert exc_info.value.clause_id == "bad"

    def test_composition_is_deterministic(self, composer, variables):
        first = composer.compose(CLAUSES, "KR", variables, generated_at=GENERATED_AT)
        second = composer.compose(CLAUSES, "KR", variables, generated_at=GENERATED_AT)
        later = composer.compose(CLAUSES, "KR", variables, generated_at="2024-03-06T09:00:00")

        assert first.to_dict() == second.to_dict()
        assert later.id != first.id
        assert later.fingerprint == first.fingerprint

    def test_explicit_structure_and_source(self, variables):
        structure = ContractStructure(
            jurisdiction="JP",
            version=3,
            slots=(
                SectionSlot("payment", "支払条件", ("대금 지급 조건",), required=True),
                SectionSlot("other", "その他", catch_all=True),
            ),
        )

        contract = ContractComposer().compose(
            CLAUSES, "JP", variables,
            source=ContractSource.UPLOAD,
            generated_at=GENERATED_AT,
            structure=structure,
        )

        assert contract.structure_version == 3
        assert [s.numbering for s in contract.sections] == ["第1条", "第2条", "第3条"]
        assert contract.source is ContractSource.UPLOAD
        assert contract.warnings == ()

    def test_requires_a_structure(self, variables):
        with pytest.raises(ValidationError):
            ContractComposer().compose(CLAUSES, "KR", variables)

    def test_numbering(self):
        assert section_numbering("KR", 3) == "제3조"
        assert section_numbering("DE", 3) == "Article 3"
