"""Data models for clause templates and template matching."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .categories import DEFAULT_CONTRACT_CATEGORY
from .enums import Complexity, Importance, TemplateType

GENERAL = "general"


@dataclass
class ClauseTemplate:
    """
    An approved, reusable clause.

    Every `{{name}}` token in `content` must be listed in `variables`;
    the template library enforces this on create and edit.

    Attributes:
        id: Unique identifier.
        title: Template title.
        content: Clause text, may contain `{{variableName}}` placeholders.
        category: Clause category the template fills.
        contract_category: Contract type the template belongs to.
        template_type: Standard (verbatim) or flexible (adapted per contract).
        industry: Target industry, "general" when unrestricted.
        service_type: Target service type, "general" when unrestricted.
        complexity: Project complexity the template is written for.
        variables: Ordered declared placeholder names.
        usage_count: Times the template was selected into a contract.
        confidence: Confidence inherited from the promoted candidate.
        duplicate_of: Most similar existing template of the same category
            at promotion time, when above the duplicate threshold.
    """
    id: str
    title: str
    content: str
    category: str
    contract_category: str = DEFAULT_CONTRACT_CATEGORY
    template_type: TemplateType = TemplateType.STANDARD
    industry: str = GENERAL
    service_type: str = GENERAL
    complexity: Complexity = Complexity.STANDARD
    variables: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    usage_count: int = 0
    confidence: float = 1.0
    quality_score: float = 0.0
    risk_score: int = 0
    importance: Importance = Importance.LOW
    source_candidate_ids: List[str] = field(default_factory=list)
    duplicate_of: Optional[str] = None
    duplicate_similarity: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.variables is None:
            self.variables = []
        if self.tags is None:
            self.tags = []
        if self.source_candidate_ids is None:
            self.source_candidate_ids = []
        if isinstance(self.template_type, str):
            self.template_type = TemplateType(self.template_type)
        if isinstance(self.complexity, str):
            self.complexity = Complexity(self.complexity)
        if isinstance(self.importance, str):
            self.importance = Importance(self.importance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "contract_category": self.contract_category,
            "template_type": self.template_type.value,
            "industry": self.industry,
            "service_type": self.service_type,
            "complexity": self.complexity.value,
            "variables": list(self.variables),
            "tags": list(self.tags),
            "usage_count": self.usage_count,
            "confidence": self.confidence,
            "quality_score": self.quality_score,
            "risk_score": self.risk_score,
            "importance": self.importance.value,
            "source_candidate_ids": list(self.source_candidate_ids),
            "duplicate_of": self.duplicate_of,
            "duplicate_similarity": self.duplicate_similarity,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class MatchResult:
    """
    Score of one template against a quote's criteria.

    Used for ranking only; never persisted.
    """
    template_id: str
    match_score: float
    usage_count: int = 0
    components: Dict[str, float] = field(default_factory=dict)
    template: Optional[ClauseTemplate] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "template_id": self.template_id,
            "match_score": self.match_score,
            "usage_count": self.usage_count,
            "components": dict(self.components),
        }
        if self.template is not None:
            data["title"] = self.template.title
            data["category"] = self.template.category
        return data
