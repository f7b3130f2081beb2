"""Data models for configuration management."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ConfigurationType(Enum):
    """Types of configuration supported by the engine."""
    ENGINE = "engine"
    CLASSIFICATION_RULES = "classification_rules"


DEFAULT_MATCHER_WEIGHTS = {"category": 0.5, "industry": 0.3, "complexity": 0.2}


@dataclass
class ClassificationRule:
    """
    Keyword rule for the category classifier.

    Rules on `title` are evaluated before rules on `content`; within a
    field, lower priority numbers are evaluated first.
    """
    id: str
    field: str  # "title" | "content"
    keywords: List[str]
    category: str
    priority: int = 100
    enabled: bool = True
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "keywords": list(self.keywords),
            "category": self.category,
            "priority": self.priority,
            "enabled": self.enabled,
            "description": self.description,
        }


@dataclass
class EngineConfiguration:
    """
    Tunable constants of the engine.

    Attributes:
        auto_promote_threshold: Minimum confidence for auto-promotion.
        threshold_overrides: Per contract category auto-promotion thresholds.
        matcher_weights: Weights of the category, industry and complexity scores.
        duplicate_similarity_threshold: Text similarity at which a promoted
            template is marked as a near-duplicate of an existing one.
        batch_size: Concurrent collaborator calls per batch.
        batch_delay_seconds: Pause between collaborator batches.
        batch_timeout_seconds: Time allowed for one batch.
    """
    auto_promote_threshold: float = 0.85
    threshold_overrides: Dict[str, float] = field(default_factory=dict)
    matcher_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_MATCHER_WEIGHTS))
    duplicate_similarity_threshold: float = 0.8
    batch_size: int = 3
    batch_delay_seconds: float = 2.0
    batch_timeout_seconds: float = 60.0
    default_jurisdiction: str = "KR"
    high_confidence_threshold: float = 0.8
    recent_days: int = 7
    default_page_size: int = 20
    max_page_size: int = 100
    auto_promote_on_ingest: bool = True

    def threshold_for(self, contract_category: Optional[str]) -> float:
        """Auto-promotion threshold for a contract category."""
        if contract_category and contract_category in self.threshold_overrides:
            return self.threshold_overrides[contract_category]
        return self.auto_promote_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auto_promote_threshold": self.auto_promote_threshold,
            "threshold_overrides": dict(self.threshold_overrides),
            "matcher_weights": dict(self.matcher_weights),
            "duplicate_similarity_threshold": self.duplicate_similarity_threshold,
            "batch_size": self.batch_size,
            "batch_delay_seconds": self.batch_delay_seconds,
            "batch_timeout_seconds": self.batch_timeout_seconds,
            "default_jurisdiction": self.default_jurisdiction,
            "high_confidence_threshold": self.high_confidence_threshold,
            "recent_days": self.recent_days,
            "default_page_size": self.default_page_size,
            "max_page_size": self.max_page_size,
            "auto_promote_on_ingest": self.auto_promote_on_ingest,
        }


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another validation result into this one."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings
        )


class ConfigurationError(Exception):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.message = message
        self.validation_result = validation_result


@dataclass
class SystemConfiguration:
    """
    Complete engine configuration.

    Aggregates the engine constants and custom classification rules.
    """
    engine: EngineConfiguration = field(default_factory=EngineConfiguration)
    classification_rules: List[ClassificationRule] = field(default_factory=list)
    version: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_rules_by_priority(self) -> List[ClassificationRule]:
        """Enabled rules, title rules first, then by priority."""
        return sorted(
            [r for r in self.classification_rules if r.enabled],
            key=lambda r: (0 if r.field == "title" else 1, r.priority)
        )
