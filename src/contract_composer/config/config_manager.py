"""Configuration Manager for the contract composition engine.

Loads, validates and saves the engine constants (thresholds, matcher
weights, batching) and custom classification rules.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import (
    ClassificationRule,
    ConfigurationError,
    EngineConfiguration,
    SystemConfiguration,
    ValidationResult,
)

logger = logging.getLogger(__name__)

ENGINE_FILE = "engine.json"
RULES_FILE = "classification_rules.json"

_RULE_FIELDS = ("title", "content")


class ConfigurationManager:
    """
    Manager for engine configuration.

    Handles loading, validation, and access to engine settings and
    classification rules.
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_dir: Optional directory path for configuration files.
        """
        self._config_dir = Path(config_dir) if config_dir else None
        self._configuration = SystemConfiguration()
        self._is_loaded = False

    @property
    def configuration(self) -> SystemConfiguration:
        """Get the current system configuration."""
        return self._configuration

    @property
    def engine(self) -> EngineConfiguration:
        return self._configuration.engine

    @property
    def is_loaded(self) -> bool:
        """Check if configuration has been loaded."""
        return self._is_loaded

    # =========================================================================
    # Engine settings
    # =========================================================================

    def load_engine_settings(
        self,
        source: Union[str, Path, Dict[str, Any]]
    ) -> ValidationResult:
        """
        Load and validate engine settings.

        Unknown keys produce warnings; known keys are type- and range-checked.

        Args:
            source: JSON file path or dictionary.

        Returns:
            ValidationResult indicating success with any warnings.

        Raises:
            ConfigurationError: If validation fails.
        """
        data = self._parse_source(source)
        if not isinstance(data, dict):
            raise ConfigurationError("Engine settings must be a JSON object")

        result = ValidationResult(is_valid=True)
        defaults = EngineConfiguration()
        known = set(defaults.to_dict().keys())

        for key in data:
            if key not in known:
                result.add_warning(f"Unknown engine setting '{key}' ignored")

        values = {k: v for k, v in data.items() if k in known}

        for key in ("auto_promote_threshold", "duplicate_similarity_threshold", "high_confidence_threshold"):
            if key in values and not self._is_unit_interval(values[key]):
                result.add_error(f"'{key}' must be a number between 0 and 1")

        overrides = values.get("threshold_overrides", {})
        if not isinstance(overrides, dict):
            result.add_error("'threshold_overrides' must be an object")
        else:
            for category, threshold in overrides.items():
                if not self._is_unit_interval(threshold):
                    result.add_error(
                        f"Threshold override for '{category}' must be between 0 and 1"
                    )

        if "matcher_weights" in values:
            result = result.merge(self._validate_weights(values["matcher_weights"]))

        for key in ("batch_size", "recent_days", "default_page_size", "max_page_size"):
            if key in values and (not isinstance(values[key], int) or values[key] < 1):
                result.add_error(f"'{key}' must be a positive integer")

        for key in ("batch_delay_seconds", "batch_timeout_seconds"):
            if key in values and (not isinstance(values[key], (int, float)) or values[key] < 0):
                result.add_error(f"'{key}' must be a non-negative number")

        if not result.is_valid:
            raise ConfigurationError(
                "Engine settings validation failed",
                validation_result=result
            )

        merged = defaults.to_dict()
        merged.update(values)
        if "matcher_weights" in values:
            weights = dict(defaults.matcher_weights)
            weights.update(values["matcher_weights"])
            merged["matcher_weights"] = weights
        self._configuration.engine = EngineConfiguration(**merged)
        self._is_loaded = True

        logger.info("Engine settings loaded")
        return result

    def _validate_weights(self, weights: Any) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if not isinstance(weights, dict):
            result.add_error("'matcher_weights' must be an object")
            return result

        expected = {"category", "industry", "complexity"}
        unknown = set(weights) - expected
        if unknown:
            result.add_error(f"Unknown matcher weights: {sorted(unknown)}")
        missing = expected - set(weights)
        if missing:
            result.add_error(f"Missing matcher weights: {sorted(missing)}")
        if not all(self._is_unit_interval(w) for w in weights.values()):
            result.add_error("Matcher weights must be numbers between 0 and 1")
        elif not unknown and not missing and abs(sum(weights.values()) - 1.0) > 1e-6:
            result.add_error("Matcher weights must sum to 1.0")
        return result

    @staticmethod
    def _is_unit_interval(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 1

    # =========================================================================
    # Classification rules
    # =========================================================================

    def load_classification_rules(
        self,
        source: Union[str, Path, Dict[str, Any], List[Dict[str, Any]]],
        valid_categories: Optional[List[str]] = None,
    ) -> ValidationResult:
        """
        Load and validate classification rules.

        Supports a JSON file path, a dictionary with a "rules" key, or a
        list of rule dictionaries.

        Args:
            source: File path, dictionary, or list of dictionaries.
            valid_categories: When given, every rule category must be one of these.

        Returns:
            ValidationResult indicating success or failure with details.

        Raises:
            ConfigurationError: If validation fails.
        """
        raw_data = self._parse_source(source)

        if isinstance(raw_data, dict):
            rules_data = raw_data.get("rules", [raw_data])
        else:
            rules_data = raw_data

        result = ValidationResult(is_valid=True)
        rules: List[ClassificationRule] = []

        for i, rule_dict in enumerate(rules_data):
            rule_result, rule = self._validate_rule(rule_dict, i, valid_categories)
            result = result.merge(rule_result)
            if rule:
                rules.append(rule)

        ids = [r.id for r in rules]
        duplicates = {rule_id for rule_id in ids if ids.count(rule_id) > 1}
        if duplicates:
            result.add_error(f"Duplicate classification rule IDs found: {duplicates}")

        if not result.is_valid:
            raise ConfigurationError(
                "Classification rule validation failed",
                validation_result=result
            )

        self._configuration.classification_rules = rules
        self._is_loaded = True
        logger.info(f"Loaded {len(rules)} classification rules")
        return result

    def _validate_rule(
        self,
        data: Dict[str, Any],
        index: int,
        valid_categories: Optional[List[str]],
    ) -> tuple[ValidationResult, Optional[ClassificationRule]]:
        """Validate a single classification rule dictionary."""
        result = ValidationResult(is_valid=True)
        prefix = f"Classification rule [{index}]"

        if not isinstance(data, dict):
            result.add_error(f"{prefix}: must be an object")
            return result, None

        for name in ("id", "field", "keywords", "category"):
            if name not in data:
                result.add_error(f"{prefix}: Missing required field '{name}'")
        if not result.is_valid:
            return result, None

        if not isinstance(data["id"], str) or not data["id"].strip():
            result.add_error(f"{prefix}: 'id' must be a non-empty string")
        if data["field"] not in _RULE_FIELDS:
            result.add_error(f"{prefix}: 'field' must be one of {_RULE_FIELDS}")
        keywords = data["keywords"]
        if not isinstance(keywords, list) or not keywords:
            result.add_error(f"{prefix}: 'keywords' must be a non-empty list")
        elif not all(isinstance(k, str) and k.strip() for k in keywords):
            result.add_error(f"{prefix}: All keywords must be non-empty strings")
        if valid_categories is not None and data["category"] not in valid_categories:
            result.add_error(f"{prefix}: Unknown category '{data['category']}'")
        priority = data.get("priority", 100)
        if not isinstance(priority, int):
            result.add_error(f"{prefix}: 'priority' must be an integer")

        if not result.is_valid:
            return result, None

        return result, ClassificationRule(
            id=data["id"],
            field=data["field"],
            keywords=list(keywords),
            category=data["category"],
            priority=priority,
            enabled=bool(data.get("enabled", True)),
            description=data.get("description"),
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _parse_source(
        self,
        source: Union[str, Path, Dict[str, Any], List[Dict[str, Any]]]
    ) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Parse configuration source to raw data."""
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")

            with open(path, "r", encoding="utf-8") as f:
                try:
                    return json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

        return source

    def load_from_directory(self, config_dir: Union[str, Path]) -> ValidationResult:
        """
        Load all configuration files from a directory.

        Expects files named `engine.json` and `classification_rules.json`;
        missing files keep the defaults.

        Args:
            config_dir: Directory containing configuration files.

        Returns:
            Combined ValidationResult for all loaded configurations.
        """
        config_dir = Path(config_dir)
        result = ValidationResult(is_valid=True)

        engine_file = config_dir / ENGINE_FILE
        if engine_file.exists():
            try:
                result = result.merge(self.load_engine_settings(engine_file))
            except ConfigurationError as e:
                result.add_error(f"Engine settings loading failed: {e.message}")
                if e.validation_result:
                    result = result.merge(e.validation_result)

        rules_file = config_dir / RULES_FILE
        if rules_file.exists():
            try:
                result = result.merge(self.load_classification_rules(rules_file))
            except ConfigurationError as e:
                result.add_error(f"Classification rules loading failed: {e.message}")
                if e.validation_result:
                    result = result.merge(e.validation_result)

        self._config_dir = config_dir
        return result

    def save_to_directory(
        self,
        config_dir: Optional[Union[str, Path]] = None
    ) -> None:
        """
        Save current configuration to a directory.

        Args:
            config_dir: Directory to save to. Uses current config_dir if None.
        """
        config_dir = Path(config_dir) if config_dir else self._config_dir
        if not config_dir:
            raise ConfigurationError("No configuration directory specified")

        config_dir.mkdir(parents=True, exist_ok=True)

        with open(config_dir / ENGINE_FILE, "w", encoding="utf-8") as f:
            json.dump(self._configuration.engine.to_dict(), f, indent=2, ensure_ascii=False)

        if self._configuration.classification_rules:
            rules_data = {
                "rules": [r.to_dict() for r in self._configuration.classification_rules]
            }
            with open(config_dir / RULES_FILE, "w", encoding="utf-8") as f:
                json.dump(rules_data, f, indent=2, ensure_ascii=False)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        self._configuration = SystemConfiguration()
        self._is_loaded = False

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as a dictionary."""
        return {
            "version": self._configuration.version,
            "engine": self._configuration.engine.to_dict(),
            "classification_rules": [
                r.to_dict() for r in self._configuration.classification_rules
            ],
        }
