"""Unit tests for the Configuration Manager."""

import json
import tempfile
from pathlib import Path

import pytest

from contract_composer.config import (
    ConfigurationError,
    ConfigurationManager,
    EngineConfiguration,
)


class TestEngineSettings:
    """Tests for engine constant loading."""

    def test_load_engine_settings_from_dict(self):
        """Test loading engine settings from a dictionary."""
        manager = ConfigurationManager()

        result = manager.load_engine_settings({
            "auto_promote_threshold": 0.9,
            "threshold_overrides": {"비밀/보안": 0.95},
            "batch_size": 5,
        })

        assert result.is_valid
        assert manager.is_loaded
        assert manager.engine.auto_promote_threshold == 0.9
        assert manager.engine.threshold_for("비밀/보안") == 0.95
        assert manager.engine.threshold_for("용역/프로젝트") == 0.9
        assert manager.engine.batch_size == 5

    def test_unknown_keys_are_warnings(self):
        """Test that unknown settings are ignored with a warning."""
        manager = ConfigurationManager()

        result = manager.load_engine_settings({"colour": "blue"})

        assert result.is_valid
        assert any("colour" in w for w in result.warnings)

    def test_partial_matcher_weights_are_rejected(self):
        """Test that matcher weights must name every component."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_engine_settings({"matcher_weights": {"category": 1.0}})

        assert "Missing matcher weights" in str(exc_info.value.validation_result.errors)

    def test_matcher_weights_must_sum_to_one(self):
        """Test that matcher weights must sum to 1.0."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_engine_settings({
                "matcher_weights": {"category": 0.5, "industry": 0.5, "complexity": 0.5}
            })

        assert "sum to 1.0" in str(exc_info.value.validation_result.errors)

    @pytest.mark.parametrize("settings", [
        {"auto_promote_threshold": 1.5},
        {"auto_promote_threshold": True},
        {"threshold_overrides": {"용역/프로젝트": -0.1}},
        {"threshold_overrides": []},
        {"batch_size": 0},
        {"batch_delay_seconds": -1},
    ])
    def test_invalid_settings(self, settings):
        """Test that out-of-range settings fail validation and leave defaults."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError):
            manager.load_engine_settings(settings)

        assert manager.engine == EngineConfiguration()
        assert not manager.is_loaded


class TestClassificationRules:
    """Tests for custom classification rules."""

    def test_load_rules_from_dict(self):
        """Test loading rules from a dictionary with a rules key."""
        manager = ConfigurationManager()

        result = manager.load_classification_rules({
            "rules": [
                {"id": "r1", "field": "content", "keywords": ["데이터"], "category": "비밀유지 의무"},
                {"id": "r2", "field": "title", "keywords": ["검수"], "category": "납품 및 검수", "priority": 5},
            ]
        })

        assert result.is_valid
        rules = manager.configuration.get_rules_by_priority()
        assert [r.id for r in rules] == ["r2", "r1"]

    def test_disabled_rules_are_skipped(self):
        """Test that disabled rules are excluded from the priority list."""
        manager = ConfigurationManager()

        manager.load_classification_rules([
            {"id": "r1", "field": "title", "keywords": ["x"], "category": "기타 조항", "enabled": False},
        ])

        assert manager.configuration.get_rules_by_priority() == []

    def test_rule_validation(self):
        """Test that malformed rules are reported per index."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_classification_rules([
                {"id": "r1", "field": "body", "keywords": ["x"], "category": "기타 조항"},
                {"id": "r2", "field": "title", "keywords": [], "category": "기타 조항"},
                {"id": "r3", "field": "title"},
            ])

        errors = exc_info.value.validation_result.errors
        assert any("[0]" in e and "'field'" in e for e in errors)
        assert any("[1]" in e and "non-empty list" in e for e in errors)
        assert any("[2]" in e and "Missing required field" in e for e in errors)

    def test_unknown_category(self):
        """Test that categories are checked against the given vocabulary."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError):
            manager.load_classification_rules(
                [{"id": "r1", "field": "title", "keywords": ["x"], "category": "없는 조항"}],
                valid_categories=["기타 조항"],
            )

    def test_duplicate_ids(self):
        """Test that duplicate rule ids are rejected."""
        manager = ConfigurationManager()
        rule = {"id": "r1", "field": "title", "keywords": ["x"], "category": "기타 조항"}

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_classification_rules([rule, dict(rule)])

        assert "Duplicate" in str(exc_info.value.validation_result.errors)


class TestConfigurationPersistence:
    """Tests for configuration save/load from directory."""

    def test_save_and_load_from_directory(self):
        """Test saving and loading configuration from a directory."""
        manager = ConfigurationManager()
        manager.load_engine_settings({"auto_promote_threshold": 0.75})
        manager.load_classification_rules([
            {"id": "r1", "field": "title", "keywords": ["검수"], "category": "납품 및 검수"},
        ])

        with tempfile.TemporaryDirectory() as tmpdir:
            manager.save_to_directory(tmpdir)

            assert (Path(tmpdir) / "engine.json").exists()
            assert (Path(tmpdir) / "classification_rules.json").exists()

            loaded = ConfigurationManager()
            result = loaded.load_from_directory(tmpdir)

            assert result.is_valid
            assert loaded.engine.auto_promote_threshold == 0.75
            assert loaded.configuration.classification_rules[0].keywords == ["검수"]

    def test_load_from_directory_collects_errors(self):
        """Test that a broken file is reported instead of raised."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with open(Path(tmpdir) / "engine.json", "w", encoding="utf-8") as f:
                json.dump({"batch_size": -3}, f)

            result = ConfigurationManager().load_from_directory(tmpdir)

        assert not result.is_valid
        assert any("Engine settings loading failed" in e for e in result.errors)

    def test_invalid_json_file(self):
        """Test that unparseable JSON raises a ConfigurationError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "engine.json"
            path.write_text("{not json", encoding="utf-8")

            with pytest.raises(ConfigurationError) as exc_info:
                ConfigurationManager().load_engine_settings(path)

        assert "Invalid JSON" in exc_info.value.message

    def test_save_requires_directory(self):
        """Test that saving without a directory fails."""
        with pytest.raises(ConfigurationError):
            ConfigurationManager().save_to_directory()

    def test_reset(self):
        """Test resetting configuration to defaults."""
        manager = ConfigurationManager()
        manager.load_engine_settings({"auto_promote_threshold": 0.5})

        manager.reset()

        assert not manager.is_loaded
        assert manager.to_dict()["engine"]["auto_promote_threshold"] == 0.85
