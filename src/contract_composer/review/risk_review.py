"""Advisory risk review of contract clauses.

Runs the collaborator's risk analysis and improvement suggestions over a
contract's clauses. Collaborator failures never abort the review: an
affected clause gets a neutral annotation and is flagged as degraded.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from ..errors import ExternalCollaboratorError
from ..interfaces.collaborator import IClauseAdvisor
from ..models.contract import ComposableClause, ContractSection
from ..models.enums import OverallStatus, ReviewAction
from ..performance import timed_operation
from .batch_runner import BatchItemResult, BatchRunner

logger = logging.getLogger(__name__)

NEUTRAL_RISK_LEVEL = 5
MIN_RISK_LEVEL = 1
MAX_RISK_LEVEL = 10

ReviewableClause = Union[ComposableClause, ContractSection, Dict[str, Any]]


@dataclass
class ClauseReview:
    """Risk and improvement annotations of one clause."""
    clause_id: str
    title: str
    risk_level: int
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    enhanced: str = ""
    suggestions: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)
    degraded: bool = False

    @property
    def score(self) -> float:
        """Clause score in [0, 100]; lower risk and available suggestions score higher."""
        safety = max(0, 100 - self.risk_level * 10)
        improvement = 80 if self.suggestions else 40
        return (safety + improvement) / 2

    @property
    def action(self) -> ReviewAction:
        if self.risk_level >= 8:
            return ReviewAction.URGENT
        if self.risk_level >= 6:
            return ReviewAction.RECOMMENDED
        if self.risk_level >= 4:
            return ReviewAction.OPTIONAL
        return ReviewAction.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clause_id": self.clause_id,
            "title": self.title,
            "risk_level": self.risk_level,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "enhanced": self.enhanced,
            "suggestions": list(self.suggestions),
            "alternatives": list(self.alternatives),
            "score": self.score,
            "action": self.action.value,
            "degraded": self.degraded,
        }


@dataclass
class ContractReview:
    """Aggregated review of a whole contract."""
    clauses: List[ClauseReview] = field(default_factory=list)

    @property
    def average_risk(self) -> float:
        if not self.clauses:
            return 0.0
        return sum(c.risk_level for c in self.clauses) / len(self.clauses)

    @property
    def overall_score(self) -> float:
        if not self.clauses:
            return 0.0
        return sum(c.score for c in self.clauses) / len(self.clauses)

    @property
    def overall_status(self) -> OverallStatus:
        risk = self.average_risk
        if risk <= 3:
            return OverallStatus.EXCELLENT
        if risk <= 5:
            return OverallStatus.GOOD
        if risk <= 7:
            return OverallStatus.NEEDS_ATTENTION
        return OverallStatus.HIGH_RISK

    @property
    def degraded_count(self) -> int:
        return sum(1 for c in self.clauses if c.degraded)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clauses": [c.to_dict() for c in self.clauses],
            "average_risk": round(self.average_risk, 2),
            "overall_score": round(self.overall_score, 2),
            "overall_status": self.overall_status.value,
            "degraded_count": self.degraded_count,
            "urgent_clause_ids": [
                c.clause_id for c in self.clauses if c.action is ReviewAction.URGENT
            ],
        }


def _clause_fields(clause: ReviewableClause, index: int) -> Dict[str, str]:
    if isinstance(clause, ContractSection):
        return {"id": clause.clause_id, "title": clause.title, "content": clause.content}
    if isinstance(clause, ComposableClause):
        return {"id": clause.id, "title": clause.title, "content": clause.content}
    return {
        "id": str(clause.get("id") or f"clause-{index + 1}"),
        "title": str(clause.get("title") or ""),
        "content": str(clause.get("content") or ""),
    }


def _string_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ExternalCollaboratorError(f"'{name}' is not a list", operation="parse_response")
    return [str(v) for v in value]


def parse_risk(raw: Any) -> Dict[str, Any]:
    """
    Validate a risk-analysis response.

    Raises:
        ExternalCollaboratorError: The response is not a dict with an
            integer `riskLevel` between 1 and 10.
    """
    if not isinstance(raw, dict):
        raise ExternalCollaboratorError("Risk analysis response is not an object", operation="analyze_risk")
    level = raw.get("riskLevel")
    if isinstance(level, bool) or not isinstance(level, (int, float)) or not MIN_RISK_LEVEL <= level <= MAX_RISK_LEVEL:
        raise ExternalCollaboratorError(f"Invalid riskLevel: {level!r}", operation="analyze_risk")
    return {
        "risk_level": int(round(level)),
        "issues": _string_list(raw.get("issues"), "issues"),
        "recommendations": _string_list(raw.get("recommendations"), "recommendations"),
    }


def parse_improvement(raw: Any, content: str) -> Dict[str, Any]:
    """
    Validate an improvement response.

    Raises:
        ExternalCollaboratorError: The response is not a dict.
    """
    if not isinstance(raw, dict):
        raise ExternalCollaboratorError("Improvement response is not an object", operation="suggest_improvements")
    enhanced = raw.get("enhanced")
    return {
        "enhanced": str(enhanced) if enhanced else content,
        "suggestions": _string_list(raw.get("suggestions"), "suggestions"),
        "alternatives": _string_list(raw.get("alternatives"), "alternatives"),
    }


class ContractReviewer:
    """
    Advisory clause reviewer.

    The review works with zero collaborator output: every failed call
    degrades to `riskLevel` 5 with no issues, and to the unchanged clause
    text with no suggestions.
    """

    def __init__(self, advisor: IClauseAdvisor, runner: Optional[BatchRunner] = None):
        self._advisor = advisor
        self._runner = runner or BatchRunner()

    @timed_operation("review_contract")
    def review(self, clauses: Sequence[ReviewableClause]) -> ContractReview:
        """
        Review clauses in order.

        Args:
            clauses: Contract sections, composable clauses or dicts with
                `id`, `title` and `content`.

        Returns:
            Per-clause annotations and the aggregate status.
        """
        items = [_clause_fields(c, i) for i, c in enumerate(clauses)]
        if not items:
            return ContractReview()

        risks = self._runner.run(
            items, lambda c: self._advisor.analyze_risk(c["title"], c["content"]), operation="analyze_risk"
        )
        improvements = self._runner.run(
            items,
            lambda c: self._advisor.suggest_improvements(c["title"], c["content"]),
            operation="suggest_improvements",
        )

        reviews = [
            self._clause_review(item, risk, improvement)
            for item, risk, improvement in zip(items, risks, improvements)
        ]
        review = ContractReview(clauses=reviews)
        logger.info(
            f"Reviewed {len(reviews)} clauses: status {review.overall_status.value}, "
            f"{review.degraded_count} degraded"
        )
        return review

    @staticmethod
    def _clause_review(
        item: Dict[str, str],
        risk: BatchItemResult,
        improvement: BatchItemResult,
    ) -> ClauseReview:
        risk_data = _parsed_or_none(risk, parse_risk, item["id"])
        improvement_data = _parsed_or_none(
            improvement, lambda raw: parse_improvement(raw, item["content"]), item["id"]
        )
        degraded = risk_data is None or improvement_data is None

        return ClauseReview(
            clause_id=item["id"],
            title=item["title"],
            degraded=degraded,
            **(risk_data or {"risk_level": NEUTRAL_RISK_LEVEL, "issues": [], "recommendations": []}),
            **(improvement_data or {"enhanced": item["content"], "suggestions": [], "alternatives": []}),
        )


def _parsed_or_none(result: BatchItemResult, parse, clause_id: str) -> Optional[Dict[str, Any]]:
    """Parsed collaborator output, or None when the call failed or returned garbage."""
    error = result.error
    if error is None:
        try:
            return parse(result.value)
        except ExternalCollaboratorError as e:
            error = e
    logger.warning(f"Collaborator output unavailable for clause {clause_id}: {error}")
    return None
