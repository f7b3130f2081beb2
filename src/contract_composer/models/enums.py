"""Enumeration types for the contract composition engine."""

from enum import Enum


class CandidateStatus(Enum):
    """Lifecycle status of a clause candidate."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CandidateStatus.PENDING


class TemplateType(Enum):
    """Whether a template is used verbatim or adapted per contract."""
    STANDARD = "standard"
    FLEXIBLE = "flexible"


class Complexity(Enum):
    """Project complexity levels, ordered from simplest to most complex."""
    SIMPLE = "simple"
    STANDARD = "standard"
    COMPLEX = "complex"

    @property
    def rank(self) -> int:
        return _COMPLEXITY_RANK[self]


_COMPLEXITY_RANK = {
    Complexity.SIMPLE: 0,
    Complexity.STANDARD: 1,
    Complexity.COMPLEX: 2,
}


class ContractSource(Enum):
    """Where the clauses of a composed contract came from."""
    TEMPLATE = "template"
    UPLOAD = "upload"
    AI = "ai"


class CategoryKind(Enum):
    """The two category vocabularies held by the category registry."""
    CONTRACT = "contract"
    CLAUSE = "clause"


class RiskLevel(Enum):
    """Review risk annotation for a pending candidate."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(Enum):
    """Suggested reviewer action for a pending candidate."""
    AUTO_APPROVE = "auto_approve"
    REVIEW = "review"
    REJECT = "reject"


class Importance(Enum):
    """Importance of a promoted template."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReviewAction(Enum):
    """Suggested follow-up for a reviewed clause, by risk level."""
    URGENT = "urgent"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"
    NONE = "none"


class OverallStatus(Enum):
    """Aggregate health of a reviewed contract."""
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_ATTENTION = "needs_attention"
    HIGH_RISK = "high_risk"
