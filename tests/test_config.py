"""
Tests for configuration building and validation.
"""

import dataclasses
from unittest.mock import patch

import pytest

from persona_council import (
    PRESETS,
    ConfigurationError,
    DiscussionConfig,
    OptimizationStrategy,
    build_config,
    compare_configurations,
    update_configuration,
    validate_config,
)


class TestDefaults:
    """Default values"""

    def test_defaults_are_valid(self):
        errors, warnings = validate_config(DiscussionConfig())
        assert errors == []
        assert warnings == []

    def test_default_values(self):
        config = DiscussionConfig()
        assert config.quality_thresholds.intervention == 0.65
        assert config.evaluator_weights.total() == pytest.approx(1.0)
        assert config.optimization_strategy == OptimizationStrategy.BALANCED
        assert config.monitoring_interval_seconds == 5.0
        assert config.history_size == 1000

    def test_config_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DiscussionConfig().history_size = 5

    def test_secrets_hidden_from_repr(self):
        assert "hunter2" not in repr(DiscussionConfig(redis_password="hunter2"))


class TestBuildConfig:
    """Layered merge and validation"""

    def test_preset_applied(self):
        config = build_config(preset="high_quality").unwrap()
        assert config.optimization_strategy == OptimizationStrategy.QUALITY_FOCUSED
        assert config.quality_thresholds.performance == 0.9
        assert config.evaluator_weights.seven_dimension == 0.40

    def test_overrides_win_over_preset(self):
        config = build_config(preset="diversity", overrides={'quality_thresholds': {'intervention': 0.5}}).unwrap()
        assert config.quality_thresholds.intervention == 0.5
        assert config.quality_thresholds.persona_alignment == 0.9

    def test_all_presets_build(self):
        for name in PRESETS:
            assert build_config(preset=name).is_valid

    def test_out_of_range_threshold_is_error(self):
        result = build_config(overrides={'quality_thresholds': {'performance': 1.5}})
        assert not result.is_valid
        assert result.config is None
        assert any("performance" in e for e in result.errors)
        with pytest.raises(ConfigurationError):
            result.unwrap()

    def test_non_positive_sizes_are_errors(self):
        result = build_config(overrides={'history_size': 0, 'monitoring_interval_seconds': -1})
        assert len(result.errors) == 2

    def test_alert_ordering_is_error(self):
        result = build_config(overrides={'alert_thresholds': {'error_rate_warning': 0.3}})
        assert not result.is_valid

    def test_weight_sum_is_warning(self):
        result = build_config(overrides={'evaluator_weights': {'performance': 0.5}})
        assert result.is_valid
        assert any("sum" in w for w in result.warnings)

    def test_short_interval_is_warning(self):
        result = build_config(overrides={'monitoring_interval_seconds': 0.5})
        assert result.is_valid
        assert result.warnings

    def test_unknown_keys_and_presets(self):
        assert not build_config(overrides={'nonsense': 1}).is_valid
        assert not build_config(overrides={'quality_thresholds': {'nonsense': 1}}).is_valid
        assert not build_config(preset="turbo").is_valid
        assert not build_config(overrides={'optimization_strategy': "chaotic"}).is_valid


class TestUpdateAndCompare:
    """Partial updates and diffs"""

    def test_update_keeps_other_values(self):
        base = build_config(preset="efficiency").unwrap()
        updated = update_configuration(base, {'history_size': 50})
        assert updated.history_size == 50
        assert updated.optimization_strategy == OptimizationStrategy.EFFICIENCY_FOCUSED
        assert base.history_size == 1000

    def test_invalid_update_raises(self):
        with pytest.raises(ConfigurationError):
            update_configuration(DiscussionConfig(), {'langfuse_sample_rate': 2.0})

    def test_compare(self):
        first = DiscussionConfig()
        second = update_configuration(first, {'history_size': 10, 'llm_api_key': "sk-secret"})

        diff = compare_configurations(first, second)

        assert not diff.identical
        assert "history_size: 1000 -> 10" in diff.differences
        assert "llm_api_key: changed" in diff.differences
        assert compare_configurations(first, first).identical

    def test_nested_diff_keys(self):
        second = update_configuration(DiscussionConfig(), {'quality_thresholds': {'performance': 0.7}})
        diff = compare_configurations(DiscussionConfig(), second)
        assert diff.differences == ["quality_thresholds.performance: 0.8 -> 0.7"]


class TestFromEnv:
    """Environment loading"""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PERSONA_COUNCIL_STRATEGY", "diversity-focused")
        monkeypatch.setenv("PERSONA_COUNCIL_HISTORY_SIZE", "250")
        monkeypatch.setenv("REDIS_ENABLED", "true")
        monkeypatch.setenv("REDIS_PORT", "6380")
        monkeypatch.setenv("LANGFUSE_ENABLED", "false")
        monkeypatch.delenv("PERSONA_COUNCIL_PRESET", raising=False)

        with patch("persona_council.config.load_dotenv") as load:
            config = DiscussionConfig.from_env()

        load.assert_called_once()
        assert config.optimization_strategy == OptimizationStrategy.DIVERSITY_FOCUSED
        assert config.history_size == 250
        assert config.redis_enabled
        assert config.redis_port == 6380
        assert not config.langfuse_enabled

    def test_invalid_environment_raises(self, monkeypatch):
        monkeypatch.setenv("PERSONA_COUNCIL_HISTORY_SIZE", "-1")
        with patch("persona_council.config.load_dotenv"):
            with pytest.raises(ConfigurationError):
                DiscussionConfig.from_env()

    def test_preset_from_environment(self, monkeypatch):
        monkeypatch.setenv("PERSONA_COUNCIL_PRESET", "high_quality")
        for name in ("PERSONA_COUNCIL_STRATEGY", "PERSONA_COUNCIL_HISTORY_SIZE", "LANGFUSE_ENABLED"):
            monkeypatch.delenv(name, raising=False)

        with patch("persona_council.config.load_dotenv"):
            config = DiscussionConfig.from_env()

        assert config.optimization_strategy == OptimizationStrategy.QUALITY_FOCUSED
        assert config.quality_thresholds.performance == 0.9
        assert config.history_size == 1000

    def test_set_variables_override_preset(self, monkeypatch):
        monkeypatch.setenv("PERSONA_COUNCIL_PRESET", "high_quality")
        monkeypatch.setenv("PERSONA_COUNCIL_STRATEGY", "efficiency-focused")

        with patch("persona_council.config.load_dotenv"):
            config = DiscussionConfig.from_env()

        assert config.optimization_strategy == OptimizationStrategy.EFFICIENCY_FOCUSED
        assert config.quality_thresholds.performance == 0.9

    def test_unparseable_number_raises(self, monkeypatch):
        monkeypatch.setenv("REDIS_PORT", "not-a-port")
        with patch("persona_council.config.load_dotenv"):
            with pytest.raises(ConfigurationError):
                DiscussionConfig.from_env()
