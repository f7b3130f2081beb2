"""Configuration management for the contract composition engine."""

from .config_manager import ConfigurationManager
from .models import (
    ClassificationRule,
    ConfigurationError,
    ConfigurationType,
    DEFAULT_MATCHER_WEIGHTS,
    EngineConfiguration,
    SystemConfiguration,
    ValidationResult,
)

__all__ = [
    "ConfigurationManager",
    "ClassificationRule",
    "ConfigurationError",
    "ConfigurationType",
    "DEFAULT_MATCHER_WEIGHTS",
    "EngineConfiguration",
    "SystemConfiguration",
    "ValidationResult",
]
