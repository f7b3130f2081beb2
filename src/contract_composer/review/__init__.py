"""Advisory clause review through the AI collaborator."""

from .batch_runner import BatchItemResult, BatchRunner
from .risk_review import ClauseReview, ContractReview, ContractReviewer, parse_improvement, parse_risk

__all__ = [
    "BatchItemResult",
    "BatchRunner",
    "ClauseReview",
    "ContractReview",
    "ContractReviewer",
    "parse_improvement",
    "parse_risk",
]
