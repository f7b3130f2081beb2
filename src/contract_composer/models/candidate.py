"""Data models for clause candidates and the results of candidate operations."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .enums import CandidateStatus, RiskLevel, Recommendation

PREVIEW_LENGTH = 150
NEEDS_REVIEW_TAG = "needs_review"


@dataclass
class ClauseCandidate:
    """
    An unreviewed clause awaiting approval or rejection.

    Candidates come from uploaded contracts or from the AI extraction
    collaborator. Once approved or rejected a candidate is immutable;
    confidence is owned by the classifier and never changes after creation.

    Attributes:
        id: Unique identifier.
        title: Clause heading.
        content: Clause body text.
        contract_category: Coarse contract type (e.g. "용역/프로젝트").
        clause_category: Fine-grained clause function (e.g. "대금 지급 조건").
        confidence: Classifier confidence in [0.0, 1.0].
        status: Lifecycle status.
        source_contract: Provenance reference.
        tags: Free-form labels, kept unique in insertion order.
        review_note: Reviewer note; holds the reason on rejection.
        template_id: Template materialised on approval.
    """
    id: str
    title: str
    content: str
    contract_category: Optional[str] = None
    clause_category: Optional[str] = None
    confidence: float = 0.0
    status: CandidateStatus = CandidateStatus.PENDING
    source_contract: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    review_note: Optional[str] = None
    reviewed_by: Optional[str] = None
    template_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.tags is None:
            self.tags = []
        else:
            self.tags = list(dict.fromkeys(self.tags))
        if self.metadata is None:
            self.metadata = {}
        if isinstance(self.status, str):
            self.status = CandidateStatus(self.status)

    @property
    def needs_review(self) -> bool:
        return NEEDS_REVIEW_TAG in self.tags

    @property
    def preview(self) -> str:
        """First characters of the content for list displays."""
        if len(self.content) <= PREVIEW_LENGTH:
            return self.content
        return self.content[:PREVIEW_LENGTH] + "..."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "contract_category": self.contract_category,
            "clause_category": self.clause_category,
            "confidence": self.confidence,
            "status": self.status.value,
            "source_contract": self.source_contract,
            "tags": list(self.tags),
            "review_note": self.review_note,
            "reviewed_by": self.reviewed_by,
            "template_id": self.template_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "metadata": dict(self.metadata),
        }


@dataclass
class CandidateQuery:
    """
    Filters, ordering and paging for candidate listing.

    `status="all"` disables the status filter. Results are always
    ordered by `sort_by` then by id ascending.
    """
    status: Optional[str] = CandidateStatus.PENDING.value
    category: Optional[str] = None
    contract_category: Optional[str] = None
    min_confidence: Optional[float] = 0.5
    search: Optional[str] = None
    sort_by: str = "createdAt"
    order: str = "desc"
    page: int = 1
    limit: int = 20


@dataclass
class AnnotatedCandidate:
    """A candidate decorated with review hints for the admin queue."""
    candidate: ClauseCandidate
    preview: str
    risk_level: RiskLevel
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        data = self.candidate.to_dict()
        data["preview"] = self.preview
        data["risk_level"] = self.risk_level.value
        data["recommendation"] = self.recommendation.value
        return data


@dataclass
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
        }


@dataclass
class CandidatePage:
    """One page of query results."""
    items: List[AnnotatedCandidate]
    pagination: Pagination

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "pagination": self.pagination.to_dict(),
        }


@dataclass
class ItemOutcome:
    """
    Per-id result of an ingest, approve or reject operation.

    Attributes:
        id: Candidate id (or input index for items without one).
        success: Whether the operation applied to this item.
        status: Candidate status after the operation, when known.
        error: Error describing why the item failed.
        template_id: Template created on approval.
    """
    id: str
    success: bool
    status: Optional[CandidateStatus] = None
    error: Optional[Exception] = None
    template_id: Optional[str] = None
    template_created: bool = False

    def to_dict(self) -> Dict[str, Any]:
        error = None
        if self.error is not None:
            to_dict = getattr(self.error, "to_dict", None)
            error = to_dict() if callable(to_dict) else {"message": str(self.error)}
        return {
            "id": self.id,
            "success": self.success,
            "status": self.status.value if self.status else None,
            "error": error,
            "template_id": self.template_id,
            "template_created": self.template_created,
        }


@dataclass
class BulkActionResult:
    """Per-id outcomes of a batch operation; partial success is expected."""
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "total": len(self.outcomes),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
        }

    def outcome_for(self, item_id: str) -> Optional[ItemOutcome]:
        for outcome in self.outcomes:
            if outcome.id == item_id:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [o.to_dict() for o in self.outcomes],
            "summary": self.summary,
        }


@dataclass
class IngestResult(BulkActionResult):
    """Outcome of a batch ingest."""

    @property
    def created_ids(self) -> List[str]:
        return [o.id for o in self.succeeded]


@dataclass
class PromotionReport(BulkActionResult):
    """Outcome of an auto-promotion run."""
    threshold: float = 0.85

    @property
    def templates_created(self) -> int:
        return sum(1 for o in self.succeeded if o.template_created)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["threshold"] = self.threshold
        data["templates_created"] = self.templates_created
        return data
