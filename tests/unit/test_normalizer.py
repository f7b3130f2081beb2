"""Unit tests for contract text normalization."""

from contract_composer.candidates.normalizer import (
    ContractNormalizer,
    infer_title,
    normalize_title,
)

ARTICLE_TEXT = """용역 계약서

제1조 (목적) 본 계약은 발주자가 수행자에게 웹사이트 구축 용역을 위탁함에 있어 필요한 사항을 정한다.

제3조 (대금 지급) ① 발주자는 용역대금을 계약 체결 시 30%, 완료 시 70%로 나누어 지급한다.

제2조 (계약기간) 계약기간은 계약 체결일로부터 3개월로 하며 연장할 수 있다.

제4조 (기타) 짧은 조항.
"""


class TestArticles:
    """Tests for 제N조 splitting."""

    def test_articles_are_split_and_sorted(self):
        clauses = ContractNormalizer().normalize(ARTICLE_TEXT)

        assert [c.number for c in clauses] == [1, 2, 3]
        assert [c.title for c in clauses] == ["목적", "계약기간", "대금 지급"]
        assert all(c.method == "article" for c in clauses)
        assert all(c.confidence == 0.7 for c in clauses)

    def test_short_articles_are_dropped(self):
        clauses = ContractNormalizer().normalize(ARTICLE_TEXT)
        assert 4 not in [c.number for c in clauses]

    def test_sub_clauses_and_essential_flags(self):
        clauses = {c.number: c for c in ContractNormalizer().normalize(ARTICLE_TEXT)}

        assert clauses[3].has_sub_clauses
        assert not clauses[1].has_sub_clauses
        assert clauses[1].essential

    def test_candidate_data(self):
        clause = ContractNormalizer().normalize(ARTICLE_TEXT)[0]

        data = clause.to_candidate_data("계약서.pdf", "용역/프로젝트")

        assert data["source_contract"] == "계약서.pdf"
        assert data["contract_category"] == "용역/프로젝트"
        assert data["tags"] == ["article", "essential"]
        assert data["metadata"] == {"number": 1, "has_sub_clauses": False}


class TestParagraphs:

    def test_paragraph_fallback(self):
        text = (
            "수행자는 발주자가 요청한 범위 내에서 성실히 업무를 수행하여야 하며 결과물을 제출한다.\n\n"
            "짧은 문단\n\n"
            "양 당사자는 상대방의 사전 서면 동의 없이 계약상 지위를 제3자에게 양도할 수 없다는 점에 합의한다."
        )

        clauses = ContractNormalizer().normalize(text)

        assert [c.number for c in clauses] == [1, 2]
        assert all(c.method == "paragraph" for c in clauses)
        assert clauses[0].confidence == 0.4

    def test_infer_title(self):
        assert infer_title("계약금액은 금 일천만원으로 한다.") == "대금"
        assert infer_title("양 당사자는 성실히 협의한다. 이후 내용") == "양 당사자는 성실히 협의한다"

    def test_normalize_title(self):
        assert normalize_title("제5조 (해지)") == "해지"
        assert normalize_title("손해배상") == "손해배상"


class TestValidate:

    def test_empty_result_is_invalid(self):
        report = ContractNormalizer().validate([])
        assert not report.is_valid
        assert report.issues

    def test_complete_contract_scores_full(self):
        normalizer = ContractNormalizer()
        report = normalizer.validate(normalizer.normalize(ARTICLE_TEXT))

        assert report.is_valid
        assert report.clause_count == 3
        assert report.warnings == []
        assert report.score == 100

    def test_warnings_lower_the_score(self):
        normalizer = ContractNormalizer()
        clauses = normalizer.normalize(
            "제1조 (목적) 본 계약은 웹사이트 구축 용역에 관한 사항을 정함을 목적으로 한다."
        )

        report = normalizer.validate(clauses)

        assert "조항 수가 적습니다 (3개 미만)" in report.warnings
        assert "대금 관련 조항이 없습니다" in report.warnings
        assert report.score == 100 - 10 * len(report.warnings)
