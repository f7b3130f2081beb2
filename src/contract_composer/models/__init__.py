"""Data models for the contract composition engine."""

from .candidate import (
    AnnotatedCandidate,
    BulkActionResult,
    CandidatePage,
    CandidateQuery,
    ClauseCandidate,
    IngestResult,
    ItemOutcome,
    Pagination,
    PromotionReport,
)
from .categories import (
    CLAUSE_CATEGORIES,
    CONTRACT_CATEGORIES,
    DEFAULT_CLAUSE_CATEGORY,
    DEFAULT_CONTRACT_CATEGORY,
)
from .contract import (
    ComposableClause,
    CompositionWarning,
    Contract,
    ContractHeader,
    ContractSection,
    SignatureLine,
)
from .enums import (
    CandidateStatus,
    CategoryKind,
    Complexity,
    ContractSource,
    Importance,
    OverallStatus,
    Recommendation,
    ReviewAction,
    RiskLevel,
    TemplateType,
)
from .structure import ContractStructure, SectionSlot
from .template import ClauseTemplate, MatchResult

__all__ = [
    # Enums
    "CandidateStatus",
    "CategoryKind",
    "Complexity",
    "ContractSource",
    "Importance",
    "OverallStatus",
    "Recommendation",
    "ReviewAction",
    "RiskLevel",
    "TemplateType",
    # Categories
    "CLAUSE_CATEGORIES",
    "CONTRACT_CATEGORIES",
    "DEFAULT_CLAUSE_CATEGORY",
    "DEFAULT_CONTRACT_CATEGORY",
    # Candidates
    "AnnotatedCandidate",
    "BulkActionResult",
    "CandidatePage",
    "CandidateQuery",
    "ClauseCandidate",
    "IngestResult",
    "ItemOutcome",
    "Pagination",
    "PromotionReport",
    # Templates
    "ClauseTemplate",
    "MatchResult",
    # Structures
    "ContractStructure",
    "SectionSlot",
    # Contracts
    "ComposableClause",
    "CompositionWarning",
    "Contract",
    "ContractHeader",
    "ContractSection",
    "SignatureLine",
]
