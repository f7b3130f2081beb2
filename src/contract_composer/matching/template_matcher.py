"""Template matcher.

Scores templates against a quote's criteria with a weighted,
explainable formula and returns a deterministic ranking.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..config.models import DEFAULT_MATCHER_WEIGHTS
from ..errors import ValidationError
from ..models.enums import Complexity
from ..models.template import GENERAL, ClauseTemplate, MatchResult
from .criteria import QuoteCriteria

logger = logging.getLogger(__name__)

EXACT = 1.0
PARTIAL = 0.5
NONE = 0.0


def attribute_score(template_value: Optional[str], requested: Optional[str]) -> float:
    """Exact match 1.0, "general" on either side 0.5, otherwise 0."""
    template_value = (template_value or GENERAL).lower()
    requested = (requested or GENERAL).lower()
    if template_value == requested:
        return EXACT
    if GENERAL in (template_value, requested):
        return PARTIAL
    return NONE


def complexity_score(template_value: Complexity, requested: Complexity) -> float:
    """Exact level 1.0, adjacent level 0.5, opposite 0."""
    distance = abs(template_value.rank - requested.rank)
    if distance == 0:
        return EXACT
    if distance == 1:
        return PARTIAL
    return NONE


class TemplateMatcher:
    """
    Ranks clause templates for a quote.

    Only templates of the requested contract category are scored; the
    matcher never modifies templates.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        """
        Args:
            weights: Weights of the `category`, `industry` and `complexity`
                components. Must sum to 1.0.
        """
        weights = dict(weights or DEFAULT_MATCHER_WEIGHTS)
        if set(weights) != set(DEFAULT_MATCHER_WEIGHTS):
            raise ValidationError(
                f"Matcher weights must be exactly {sorted(DEFAULT_MATCHER_WEIGHTS)}",
                field_name="weights",
            )
        if abs(sum(weights.values()) - 1.0) > 1e-6:
            raise ValidationError("Matcher weights must sum to 1.0", field_name="weights")
        self._weights = weights

    @property
    def weights(self) -> Dict[str, float]:
        return dict(self._weights)

    def score(self, template: ClauseTemplate, criteria: QuoteCriteria) -> MatchResult:
        components = {
            "category": attribute_score(template.service_type, criteria.service_type),
            "industry": attribute_score(template.industry, criteria.industry),
            "complexity": complexity_score(template.complexity, criteria.complexity),
        }
        total = sum(self._weights[name] * value for name, value in components.items())
        return MatchResult(
            template_id=template.id,
            match_score=round(min(max(total, 0.0), 1.0), 4),
            usage_count=template.usage_count,
            components=components,
            template=template,
        )

    def match(
        self,
        templates: Sequence[ClauseTemplate],
        criteria: QuoteCriteria,
        top_n: Optional[int] = None,
    ) -> List[MatchResult]:
        """
        Score and rank templates.

        Args:
            templates: Candidate templates, any contract category.
            criteria: Derived quote criteria.
            top_n: Maximum results; all positive scores when omitted.

        Returns:
            Results with score > 0, ordered by score desc, usage desc, id asc.
            Empty when no template is in the requested contract category.
        """
        pool = [t for t in templates if t.contract_category == criteria.contract_category]
        if not pool:
            logger.info(f"No templates in contract category {criteria.contract_category}")
            return []

        results = [r for r in (self.score(t, criteria) for t in pool) if r.match_score > 0]
        results.sort(key=lambda r: (-r.match_score, -r.usage_count, r.template_id))
        if top_n is not None:
            results = results[:max(top_n, 0)]
        return results

    @staticmethod
    def best_per_category(results: Sequence[MatchResult]) -> List[MatchResult]:
        """First (highest ranked) result of each clause category, in ranking order."""
        chosen: Dict[str, MatchResult] = {}
        for result in results:
            category = result.template.category if result.template else result.template_id
            if category not in chosen:
                chosen[category] = result
        return list(chosen.values())
