"""Rule-based clause category classifier.

Infers a clause category from a candidate's title and content using an
ordered table of keyword rules. Title rules are evaluated before content
rules; the first matching rule wins. The classifier is total: it always
returns a category, falling back to "기타 조항".
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config.models import ClassificationRule
from ..models.candidate import ClauseCandidate
from ..models.categories import DEFAULT_CLAUSE_CATEGORY

TITLE = "title"
CONTENT = "content"


@dataclass(frozen=True)
class CategoryRule:
    """One keyword rule: any keyword found in `field` selects `category`."""
    id: str
    field: str
    keywords: Tuple[str, ...]
    category: str
    priority: int = 100

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


DEFAULT_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule("title_purpose", TITLE, ("목적",), "계약의 목적", 10),
    CategoryRule("title_payment", TITLE, ("대금", "지급"), "대금 지급 조건", 20),
    CategoryRule("title_confidentiality", TITLE, ("비밀", "보안"), "비밀유지 의무", 30),
    CategoryRule("title_termination", TITLE, ("해지",), "계약 해지 조건", 40),
    CategoryRule("title_damages", TITLE, ("손해", "배상"), "손해배상 제한", 50),
    CategoryRule("title_ip", TITLE, ("지적재산", "저작권"), "지적재산권 귀속", 60),
    CategoryRule("title_warranty", TITLE, ("하자", "보증"), "하자보증 기간", 70),
    CategoryRule("title_working_hours", TITLE, ("근로", "근무"), "근로시간 및 휴게", 80),
    CategoryRule("title_investment", TITLE, ("투자", "회수"), "투자금 회수 조건", 90),
    CategoryRule("title_revenue", TITLE, ("수익", "분배"), "수익 분배 조건", 100),
    CategoryRule("content_purpose", CONTENT, ("목적",), "계약의 목적", 10),
    CategoryRule("content_payment", CONTENT, ("대금", "지급"), "대금 지급 조건", 20),
    CategoryRule("content_confidentiality", CONTENT, ("비밀", "누설"), "비밀유지 의무", 30),
    CategoryRule("content_termination", CONTENT, ("해지", "위반"), "계약 해지 조건", 40),
    CategoryRule("content_damages", CONTENT, ("손해", "배상"), "손해배상 제한", 50),
)


def rule_from_config(rule: ClassificationRule) -> CategoryRule:
    return CategoryRule(
        id=rule.id,
        field=rule.field,
        keywords=tuple(k.lower() for k in rule.keywords),
        category=rule.category,
        priority=rule.priority,
    )


def _ordered(rules: Iterable[CategoryRule]) -> List[CategoryRule]:
    # Stable: rules sharing field and priority keep their declared order.
    return sorted(rules, key=lambda r: (0 if r.field == TITLE else 1, r.priority))


class CategoryClassifier:
    """
    Ordered keyword-rule classifier for clause categories.

    Rules whose category is not in `valid_categories` are ignored, so a
    registry without a category can never receive it from the classifier.
    """

    def __init__(
        self,
        rules: Optional[Sequence[CategoryRule]] = None,
        valid_categories: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the classifier.

        Args:
            rules: Rule table. Defaults to the built-in table.
            valid_categories: Categories the classifier may return. When
                omitted every rule category is accepted.
        """
        self._rules = _ordered(DEFAULT_RULES if rules is None else rules)
        self._valid = set(valid_categories) if valid_categories is not None else None

    @classmethod
    def with_custom_rules(
        cls,
        custom_rules: Sequence[ClassificationRule],
        valid_categories: Optional[Iterable[str]] = None,
        replace: bool = False,
    ) -> "CategoryClassifier":
        """Build a classifier from configured rules, added to or replacing the built-ins."""
        extra = [rule_from_config(r) for r in custom_rules if r.enabled]
        rules = extra if replace else list(DEFAULT_RULES) + extra
        return cls(rules, valid_categories)

    @property
    def rules(self) -> List[CategoryRule]:
        return list(self._rules)

    def classify(self, title: Optional[str], content: Optional[str]) -> str:
        """
        Return the category of the first rule matching the title, then the content.

        Never raises; missing text is treated as empty.
        """
        texts = {
            TITLE: (title or "").lower(),
            CONTENT: (content or "").lower(),
        }
        for rule in self._rules:
            if self._valid is not None and rule.category not in self._valid:
                continue
            if rule.matches(texts.get(rule.field, "")):
                return rule.category
        return DEFAULT_CLAUSE_CATEGORY

    def resolve(self, candidate: ClauseCandidate) -> str:
        """Keep the candidate's assigned category when valid, else classify."""
        assigned = candidate.clause_category
        if assigned and (self._valid is None or assigned in self._valid):
            return assigned
        return self.classify(candidate.title, candidate.content)


_default_classifier = CategoryClassifier()


def classify_category(title: Optional[str], content: Optional[str]) -> str:
    """Classify with the built-in rule table."""
    return _default_classifier.classify(title, content)
