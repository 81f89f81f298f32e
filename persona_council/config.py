# =============================================================================
# CONFIGURATION
# =============================================================================
"""
Immutable configuration for a discussion session.

- DiscussionConfig: frozen value type with nested threshold/weight groups
- build_config(): merges defaults <- base <- preset <- overrides, validates,
  and returns a ConfigBuildResult (config or None, errors, warnings)
- Presets: high_quality, diversity, efficiency, balanced
- update_configuration() / compare_configurations()
- DiscussionConfig.from_env(): reads .env and PERSONA_COUNCIL_*, REDIS_*,
  LANGFUSE_* variables
"""

import os
from dataclasses import dataclass, field, fields, is_dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION GROUPS
# =============================================================================

class OptimizationStrategy(str, Enum):
    QUALITY_FOCUSED = "quality-focused"
    DIVERSITY_FOCUSED = "diversity-focused"
    EFFICIENCY_FOCUSED = "efficiency-focused"
    BALANCED = "balanced"


@dataclass(frozen=True)
class QualityThresholds:
    """Minimum acceptable scores; all in [0, 1]"""
    performance: float = 0.8
    psychological: float = 0.8
    content_quality: float = 0.8
    persona_alignment: float = 0.75
    overall_minimum: float = 0.78
    intervention: float = 0.65


@dataclass(frozen=True)
class EvaluatorWeights:
    """Ensemble weights; expected to sum to 1.0"""
    seven_dimension: float = 0.40
    performance: float = 0.35
    persona_alignment: float = 0.25

    def total(self) -> float:
        return self.seven_dimension + self.performance + self.persona_alignment


@dataclass(frozen=True)
class PerformanceTarget:
    response_time_ms: float = 2000.0
    accuracy: float = 0.85
    throughput_per_minute: float = 80.0
    memory_usage_mb: float = 512.0


@dataclass(frozen=True)
class AlertThresholdSettings:
    """Initial monitor alert thresholds (error rate: above, quality: below)"""
    error_rate_warning: float = 0.10
    error_rate_critical: float = 0.20
    quality_warning: float = 0.50
    quality_critical: float = 0.30


@dataclass(frozen=True)
class DiscussionConfig:
    """Configuration for a discussion session"""
    quality_thresholds: QualityThresholds = field(default_factory=QualityThresholds)
    evaluator_weights: EvaluatorWeights = field(default_factory=EvaluatorWeights)
    optimization_strategy: OptimizationStrategy = OptimizationStrategy.BALANCED
    enable_realtime_optimization: bool = True
    performance_target: PerformanceTarget = field(default_factory=PerformanceTarget)
    alert_thresholds: AlertThresholdSettings = field(default_factory=AlertThresholdSettings)

    # Monitoring
    monitoring_interval_seconds: float = 5.0
    history_size: int = 1000
    metrics_window_size: int = 100
    error_window_size: int = 1000
    error_retention_seconds: float = 3600.0
    alert_history_size: int = 100

    # Redis
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = field(default=None, repr=False)
    redis_db: int = 0

    # Langfuse
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = field(default=None, repr=False)
    langfuse_host: str = "http://localhost:3000"
    langfuse_enabled: bool = True
    langfuse_sample_rate: float = 1.0

    # LLM
    llm_model: str = "gpt-4o-mini"
    llm_api_key: Optional[str] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['optimization_strategy'] = self.optimization_strategy.value
        return data

    @classmethod
    def from_env(cls) -> 'DiscussionConfig':
        """
        Create config from environment variables (and .env).

        Only variables that are set become overrides, so a
        PERSONA_COUNCIL_PRESET still supplies everything the environment
        leaves out.
        """
        load_dotenv()
        overrides: Dict[str, Any] = {}
        for env_var, key, convert in _ENV_SETTINGS:
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                overrides[key] = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {raw!r}") from e
        preset = os.getenv("PERSONA_COUNCIL_PRESET")
        return build_config(overrides=overrides, preset=preset).unwrap()


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() == "true"


# (environment variable, config key, converter)
_ENV_SETTINGS = (
    ("PERSONA_COUNCIL_STRATEGY", 'optimization_strategy', str),
    ("PERSONA_COUNCIL_MONITOR_INTERVAL", 'monitoring_interval_seconds', float),
    ("PERSONA_COUNCIL_HISTORY_SIZE", 'history_size', int),
    ("PERSONA_COUNCIL_METRICS_WINDOW", 'metrics_window_size', int),
    ("PERSONA_COUNCIL_LLM_MODEL", 'llm_model', str),
    ("OPENAI_API_KEY", 'llm_api_key', str),
    ("REDIS_ENABLED", 'redis_enabled', _env_flag),
    ("REDIS_HOST", 'redis_host', str),
    ("REDIS_PORT", 'redis_port', int),
    ("REDIS_PASSWORD", 'redis_password', str),
    ("REDIS_DB", 'redis_db', int),
    ("LANGFUSE_PUBLIC_KEY", 'langfuse_public_key', str),
    ("LANGFUSE_SECRET_KEY", 'langfuse_secret_key', str),
    ("LANGFUSE_HOST", 'langfuse_host', str),
    ("LANGFUSE_ENABLED", 'langfuse_enabled', _env_flag),
    ("LANGFUSE_SAMPLE_RATE", 'langfuse_sample_rate', float),
)


# =============================================================================
# PRESETS
# =============================================================================

PRESETS: Dict[str, Dict[str, Any]] = {
    'high_quality': {
        'quality_thresholds': {
            'performance': 0.9, 'psychological': 0.85, 'content_quality': 0.9,
            'persona_alignment': 0.8, 'overall_minimum': 0.85, 'intervention': 0.7,
        },
        'optimization_strategy': OptimizationStrategy.QUALITY_FOCUSED,
        'enable_realtime_optimization': True,
        'performance_target': {'response_time_ms': 3000.0, 'accuracy': 0.9, 'throughput_per_minute': 50.0},
    },
    'diversity': {
        'quality_thresholds': {
            'performance': 0.75, 'psychological': 0.8, 'content_quality': 0.75,
            'persona_alignment': 0.9, 'overall_minimum': 0.75, 'intervention': 0.6,
        },
        'optimization_strategy': OptimizationStrategy.DIVERSITY_FOCUSED,
        'enable_realtime_optimization': True,
        'evaluator_weights': {'seven_dimension': 0.30, 'performance': 0.25, 'persona_alignment': 0.45},
    },
    'efficiency': {
        'quality_thresholds': {
            'performance': 0.8, 'psychological': 0.75, 'content_quality': 0.8,
            'persona_alignment': 0.75, 'overall_minimum': 0.75, 'intervention': 0.65,
        },
        'optimization_strategy': OptimizationStrategy.EFFICIENCY_FOCUSED,
        'enable_realtime_optimization': True,
        'performance_target': {'response_time_ms': 1500.0, 'accuracy': 0.85, 'throughput_per_minute': 120.0},
    },
    'balanced': {
        'quality_thresholds': {
            'performance': 0.8, 'psychological': 0.8, 'content_quality': 0.8,
            'persona_alignment': 0.75, 'overall_minimum': 0.78, 'intervention': 0.65,
        },
        'optimization_strategy': OptimizationStrategy.BALANCED,
        'enable_realtime_optimization': True,
        'evaluator_weights': {'seven_dimension': 0.40, 'performance': 0.35, 'persona_alignment': 0.25},
        'performance_target': {'response_time_ms': 2000.0, 'accuracy': 0.85, 'throughput_per_minute': 80.0},
    },
}


# =============================================================================
# BUILD AND VALIDATE
# =============================================================================

@dataclass
class ConfigBuildResult:
    """Outcome of build_config(): config is None when errors is non-empty"""
    config: Optional[DiscussionConfig]
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.errors

    def unwrap(self) -> DiscussionConfig:
        if not self.is_valid:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(self.errors)}")
        return self.config

    def to_dict(self) -> Dict[str, Any]:
        return {
            'config': self.config.to_dict() if self.config else None,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


_NESTED_GROUPS = {
    'quality_thresholds': QualityThresholds,
    'evaluator_weights': EvaluatorWeights,
    'performance_target': PerformanceTarget,
    'alert_thresholds': AlertThresholdSettings,
}


def _to_plain(config: DiscussionConfig) -> Dict[str, Any]:
    data = {}
    for f in fields(config):
        value = getattr(config, f.name)
        data[f.name] = asdict(value) if is_dataclass(value) else value
    return data


def _merge(target: Dict[str, Any], updates: Mapping[str, Any], errors: List[str], prefix: str = "") -> None:
    for key, value in updates.items():
        if key not in target:
            errors.append(f"Unknown configuration key: {prefix}{key}")
            continue
        if isinstance(target[key], dict):
            if is_dataclass(value):
                value = asdict(value)
            if not isinstance(value, Mapping):
                errors.append(f"Configuration group {prefix}{key} expects a mapping")
                continue
            _merge(target[key], value, errors, prefix=f"{prefix}{key}.")
        else:
            target[key] = value


def _from_plain(data: Dict[str, Any], errors: List[str]) -> Optional[DiscussionConfig]:
    kwargs = dict(data)
    for name, group_cls in _NESTED_GROUPS.items():
        kwargs[name] = group_cls(**kwargs[name])
    try:
        kwargs['optimization_strategy'] = OptimizationStrategy(kwargs['optimization_strategy'])
    except ValueError:
        errors.append(f"Unknown optimization strategy: {kwargs['optimization_strategy']!r}")
        return None
    return DiscussionConfig(**kwargs)


def validate_config(config: DiscussionConfig) -> Tuple[List[str], List[str]]:
    """Return (errors, warnings) for a config value"""
    errors: List[str] = []
    warnings: List[str] = []

    for key, value in asdict(config.quality_thresholds).items():
        if not 0.0 <= value <= 1.0:
            errors.append(f"Quality threshold {key} out of range: {value}")

    for key, value in asdict(config.evaluator_weights).items():
        if value <= 0:
            errors.append(f"Evaluator weight {key} must be positive: {value}")
    total = config.evaluator_weights.total()
    if abs(total - 1.0) > 0.01:
        warnings.append(f"Evaluator weights sum to {total:.3f}, not 1.0")

    alerts = config.alert_thresholds
    for key, value in asdict(alerts).items():
        if not 0.0 <= value <= 1.0:
            errors.append(f"Alert threshold {key} out of range: {value}")
    if alerts.error_rate_warning >= alerts.error_rate_critical:
        errors.append("Error rate warning threshold must be below the critical threshold")
    if alerts.quality_warning <= alerts.quality_critical:
        errors.append("Quality warning threshold must be above the critical threshold")

    for key in ('monitoring_interval_seconds', 'history_size', 'metrics_window_size',
                'error_window_size', 'error_retention_seconds', 'alert_history_size'):
        value = getattr(config, key)
        if value <= 0:
            errors.append(f"{key} must be positive: {value}")
    if 0 < config.monitoring_interval_seconds < 1.0:
        warnings.append(f"Monitoring interval is very short: {config.monitoring_interval_seconds}s")

    if not 0.0 <= config.langfuse_sample_rate <= 1.0:
        errors.append(f"Langfuse sample rate out of range: {config.langfuse_sample_rate}")

    target = config.performance_target
    if target.response_time_ms < 100:
        warnings.append("Response time target is very short")
    if target.accuracy > 0.95:
        warnings.append("Accuracy target is very high")

    return errors, warnings


def build_config(
    overrides: Optional[Mapping[str, Any]] = None,
    preset: Optional[str] = None,
    base: Optional[DiscussionConfig] = None
) -> ConfigBuildResult:
    """Merge defaults <- base <- preset <- overrides and validate the result"""
    errors: List[str] = []
    data = _to_plain(base or DiscussionConfig())

    if preset:
        if preset not in PRESETS:
            errors.append(f"Unknown preset: {preset!r}")
        else:
            _merge(data, PRESETS[preset], errors)
    if overrides:
        _merge(data, overrides, errors)

    if errors:
        return ConfigBuildResult(config=None, errors=errors)

    try:
        config = _from_plain(data, errors)
    except (TypeError, ValueError) as e:
        errors.append(f"Invalid configuration value: {e}")
        config = None
    if config is None:
        return ConfigBuildResult(config=None, errors=errors)

    try:
        validation_errors, warnings = validate_config(config)
    except TypeError as e:
        return ConfigBuildResult(config=None, errors=[f"Invalid configuration value: {e}"])

    for warning in warnings:
        logger.warning(f"Configuration warning: {warning}")
    if validation_errors:
        return ConfigBuildResult(config=None, errors=validation_errors, warnings=warnings)
    return ConfigBuildResult(config=config, warnings=warnings)


def update_configuration(current: DiscussionConfig, updates: Mapping[str, Any]) -> DiscussionConfig:
    """Apply a partial update; raises ConfigurationError if the result is invalid"""
    return build_config(overrides=updates, base=current).unwrap()


# =============================================================================
# COMPARISON
# =============================================================================

@dataclass
class ConfigurationDiff:
    identical: bool
    differences: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {'identical': self.identical, 'differences': list(self.differences)}


_SECRET_KEYS = {'redis_password', 'langfuse_secret_key', 'llm_api_key'}


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            flat.update(_flatten(value, prefix=f"{prefix}{key}."))
        else:
            flat[f"{prefix}{key}"] = value
    return flat


def compare_configurations(first: DiscussionConfig, second: DiscussionConfig) -> ConfigurationDiff:
    """List every setting that differs, as 'key: old -> new'"""
    left = _flatten(first.to_dict())
    right = _flatten(second.to_dict())
    differences = []
    for key in left:
        if left[key] == right[key]:
            continue
        if key in _SECRET_KEYS:
            differences.append(f"{key}: changed")
        else:
            differences.append(f"{key}: {left[key]} -> {right[key]}")
    return ConfigurationDiff(identical=not differences, differences=differences)
