"""Normalization of raw contract text into clause candidates.

Used by the upload-and-review flow when text comes from a document
rather than from the AI extraction collaborator. Korean contracts are
split on `제N조` headings; text without headings is split into paragraphs.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ARTICLE_PATTERN = re.compile(
    r"^\s*제\s*(\d+)\s*조\s*(?:[\[(（]([^\])）]+)[\])）])?", re.MULTILINE
)
TITLE_PREFIX_PATTERN = re.compile(r"^\s*제\s*\d+\s*조\s*")
SUB_CLAUSE_PATTERN = re.compile(r"[①②③④⑤]|^\d+\.", re.MULTILINE)

ARTICLE_CONFIDENCE = 0.7
PARAGRAPH_CONFIDENCE = 0.4
LOW_CONFIDENCE = 0.6
MIN_ARTICLE_LENGTH = 20
MIN_PARAGRAPH_LENGTH = 30
MAX_INFERRED_TITLE = 30

TITLE_KEYWORDS = (
    ("목적", ("목적", "계약목적", "본 계약")),
    ("정의", ("정의", "용어의 정의", "서비스의 정의")),
    ("기간", ("기간", "계약기간", "수행기간")),
    ("대금", ("대금", "금액", "계약금액", "지급")),
    ("의무", ("의무", "책임", "준수사항")),
    ("해지", ("해지", "해약", "종료")),
    ("기타", ("기타", "부칙", "특약")),
)

ESSENTIAL_KEYWORDS = (
    "목적", "대금", "금액", "기간", "납품", "완성", "지급",
    "계약금액", "용역대금", "서비스 대가", "의무", "책임",
)
REQUIRED_TOPICS = ("목적", "대금", "기간")


@dataclass
class NormalizedClause:
    number: int
    title: str
    content: str
    confidence: float
    method: str
    essential: bool = False
    has_sub_clauses: bool = False

    def to_candidate_data(
        self,
        source_contract: Optional[str] = None,
        contract_category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Shape accepted by `CandidateStore.ingest`."""
        return {
            "title": self.title,
            "content": self.content,
            "confidence": self.confidence,
            "contract_category": contract_category,
            "source_contract": source_contract,
            "tags": [self.method] + (["essential"] if self.essential else []),
            "metadata": {"number": self.number, "has_sub_clauses": self.has_sub_clauses},
        }


@dataclass
class NormalizationReport:
    is_valid: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    score: int = 0
    clause_count: int = 0


def normalize_title(title: str) -> str:
    """Strip a leading `제N조` from a clause title."""
    stripped = TITLE_PREFIX_PATTERN.sub("", title or "").strip()
    stripped = stripped.strip("[]()（）").strip()
    return stripped or (title or "").strip()


def is_essential(title: str, content: str) -> bool:
    text = f"{title} {content}"
    return any(keyword in text for keyword in ESSENTIAL_KEYWORDS)


def infer_title(paragraph: str) -> str:
    """Title of an unheaded paragraph from keywords, else its first sentence."""
    lowered = paragraph.lower()
    for title, keywords in TITLE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return title
    first = re.split(r"[.。\n]", paragraph.strip(), maxsplit=1)[0].strip()
    if first:
        return first[:MAX_INFERRED_TITLE]
    return "조항"


class ContractNormalizer:
    """Splits raw contract text into numbered clauses."""

    def normalize(self, text: str) -> List[NormalizedClause]:
        """
        Split text into clauses.

        Articles shorter than 21 characters and paragraphs shorter than 31
        characters are dropped.
        """
        clauses = self._split_articles(text or "")
        if not clauses:
            clauses = self._split_paragraphs(text or "")
            if clauses:
                logger.info(f"No article headings found, split into {len(clauses)} paragraphs")
        return clauses

    def _split_articles(self, text: str) -> List[NormalizedClause]:
        matches = list(ARTICLE_PATTERN.finditer(text))
        clauses = []
        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            content = text[match.end():end].strip()
            if len(content) <= MIN_ARTICLE_LENGTH:
                continue
            number = int(match.group(1))
            raw_title = match.group(2) or f"제{number}조"
            title = normalize_title(raw_title)
            clauses.append(NormalizedClause(
                number=number,
                title=title,
                content=content,
                confidence=ARTICLE_CONFIDENCE,
                method="article",
                essential=is_essential(title, content),
                has_sub_clauses=bool(SUB_CLAUSE_PATTERN.search(content)),
            ))
        clauses.sort(key=lambda c: c.number)
        return clauses

    def _split_paragraphs(self, text: str) -> List[NormalizedClause]:
        paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text)]
        clauses = []
        for paragraph in paragraphs:
            if len(paragraph) <= MIN_PARAGRAPH_LENGTH:
                continue
            title = infer_title(paragraph)
            clauses.append(NormalizedClause(
                number=len(clauses) + 1,
                title=title,
                content=paragraph,
                confidence=PARAGRAPH_CONFIDENCE,
                method="paragraph",
                essential=is_essential(title, paragraph),
            ))
        return clauses

    def validate(self, clauses: List[NormalizedClause]) -> NormalizationReport:
        """Score a normalization result and list what looks missing."""
        if not clauses:
            return NormalizationReport(is_valid=False, issues=["조항이 추출되지 않았습니다"])

        warnings = []
        if len(clauses) < 3:
            warnings.append("조항 수가 적습니다 (3개 미만)")
        low = [c for c in clauses if c.confidence < LOW_CONFIDENCE]
        if low:
            warnings.append(f"{len(low)}개 조항의 인식 신뢰도가 낮습니다")
        for topic in REQUIRED_TOPICS:
            if not any(topic in c.title or topic in c.content for c in clauses):
                warnings.append(f"{topic} 관련 조항이 없습니다")

        return NormalizationReport(
            is_valid=True,
            warnings=warnings,
            score=max(0, 100 - len(warnings) * 10),
            clause_count=len(clauses),
        )
