"""
Contract Composer

Clause triage, template matching and contract composition engine.
"""

__version__ = "0.1.0"

# Export main components
from .models.enums import (
    CandidateStatus,
    CategoryKind,
    Complexity,
    ContractSource,
    TemplateType,
)
from .models.candidate import CandidateQuery, ClauseCandidate
from .models.template import ClauseTemplate, MatchResult
from .models.contract import Contract, ContractSection
from .models.structure import ContractStructure, SectionSlot
from .errors import (
    ComposerError,
    ExternalCollaboratorError,
    InvalidStateError,
    MissingPartyFieldError,
    NotFoundError,
    TemplateValidationError,
    UnresolvedVariableError,
    ValidationError,
)
from .interfaces.audit import AuditEvent, AuditEventType, IAuditLogger
from .interfaces.collaborator import IClauseAdvisor, IClauseExtractor
from .audit import AuditLogger, DatabaseManager
from .config import (
    ClassificationRule,
    ConfigurationError,
    ConfigurationManager,
    EngineConfiguration,
    SystemConfiguration,
    ValidationResult,
)
from .candidates import CandidateStore, ContractNormalizer, PromotionWorkflow
from .templates import CategoryRegistry, TemplateLibrary
from .matching import QuoteCriteria, TemplateMatcher, derive_criteria
from .composition import (
    ContractComposer,
    ContractExporter,
    ContractRenderer,
    ContractStore,
    StructureRegistry,
    VariableResolver,
)
from .review import ContractReviewer
from .pipeline import ContractEngine, PipelineConfig

__all__ = [
    "CandidateStatus",
    "CategoryKind",
    "Complexity",
    "ContractSource",
    "TemplateType",
    "CandidateQuery",
    "ClauseCandidate",
    "ClauseTemplate",
    "MatchResult",
    "Contract",
    "ContractSection",
    "ContractStructure",
    "SectionSlot",
    "ComposerError",
    "ExternalCollaboratorError",
    "InvalidStateError",
    "MissingPartyFieldError",
    "NotFoundError",
    "TemplateValidationError",
    "UnresolvedVariableError",
    "ValidationError",
    "AuditEvent",
    "AuditEventType",
    "IAuditLogger",
    "IClauseAdvisor",
    "IClauseExtractor",
    "AuditLogger",
    "DatabaseManager",
    "ClassificationRule",
    "ConfigurationError",
    "ConfigurationManager",
    "EngineConfiguration",
    "SystemConfiguration",
    "ValidationResult",
    "CandidateStore",
    "ContractNormalizer",
    "PromotionWorkflow",
    "CategoryRegistry",
    "TemplateLibrary",
    "QuoteCriteria",
    "TemplateMatcher",
    "derive_criteria",
    "ContractComposer",
    "ContractExporter",
    "ContractRenderer",
    "ContractStore",
    "StructureRegistry",
    "VariableResolver",
    "ContractReviewer",
    "ContractEngine",
    "PipelineConfig",
]
