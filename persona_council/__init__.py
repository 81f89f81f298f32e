# =============================================================================
# Persona Council Package
# =============================================================================
"""
Persona Council - weighting and evaluation engine for multi-agent
discussions between sixteen personality-type personas.

Components:
- Traits: persona registry, cognitive groups, compatibility, phase modifiers
- Weighting: turn-priority weights with interaction decay
- Evaluators: performance, persona alignment and seven-dimension scoring
- EvaluatorChain: weighted evaluator ensemble
- InteractionTracker: per-session history ledger
- PerformanceMonitor: health checks, metrics history and alerts
- EvaluationTracer: Langfuse tracing of evaluations
- Summarizer: LLM summaries with an algorithmic fallback
- DiscussionEngine: facade wiring everything per discussion turn
"""

from .errors import (
    DiscussionError,
    ConfigurationError,
    ValidationError,
    TransientError,
    StateError,
)

from .traits import (
    PersonaType,
    CognitiveGroup,
    Phase,
    TraitProfile,
    TRAIT_PROFILES,
    ALL_PERSONA_TYPES,
    GROUP_COMPATIBILITY,
    PHASE_WEIGHT_MODIFIERS,
    COMPATIBILITY_MATRIX,
    PERSONA_KEYWORDS,
    parse_persona_type,
    parse_phase,
    get_profile,
    get_group,
    get_keywords,
    get_phase_modifier,
    get_compatibility,
    get_group_compatibility,
    average_compatibility,
    types_in_group,
)

from .weighting import (
    WeightCalculator,
    WeightFactors,
    WeightAdjustment,
    WeightDistribution,
    interaction_modifier,
    weight_factors,
    compute_weight,
)

from .evaluators import (
    QualityEvaluator,
    PerformanceEvaluator,
    PersonaAlignmentEvaluator,
    SevenDimensionEvaluator,
    EvaluatorType,
    EvaluatorConfig,
    EvaluationContext,
    EvaluationResult,
    SEVEN_DIMENSION_WEIGHTS,
    default_evaluators,
)

from .evaluator_chain import (
    EvaluatorChain,
    QualityScores,
    QualityBreakdown,
    ChainEvaluation,
    fallback_scores,
)

from .tracker import (
    InteractionTracker,
    ResponseSample,
    ErrorRecord,
)

from .monitoring import (
    PerformanceMonitor,
    HealthStatus,
    HealthCheck,
    AlertLevel,
    Alert,
    AlertThresholds,
    ThresholdLevels,
    SystemMetrics,
    AgentMetrics,
    MetricsSnapshot,
    RealtimeStats,
)

from .tracing import EvaluationTracer

from .config import (
    DiscussionConfig,
    OptimizationStrategy,
    QualityThresholds,
    EvaluatorWeights,
    ConfigBuildResult,
    ConfigurationDiff,
    PRESETS,
    build_config,
    validate_config,
    update_configuration,
    compare_configurations,
)

from .llm import (
    TextGenerator,
    AutogenTextGenerator,
)

from .summarizer import (
    DiscussionStatement,
    DiscussionQualityMetrics,
    DiscussionSummary,
    SummaryResult,
    SummaryStrategy,
    summarize_discussion,
)

from .engine import (
    DiscussionEngine,
    TurnOutcome,
    build_evaluator_chain,
)

__version__ = "1.0.0"
__all__ = [
    # Engine
    "DiscussionEngine",
    "TurnOutcome",
    "build_evaluator_chain",

    # Errors
    "DiscussionError",
    "ConfigurationError",
    "ValidationError",
    "TransientError",
    "StateError",

    # Traits
    "PersonaType",
    "CognitiveGroup",
    "Phase",
    "TraitProfile",
    "TRAIT_PROFILES",
    "ALL_PERSONA_TYPES",
    "GROUP_COMPATIBILITY",
    "PHASE_WEIGHT_MODIFIERS",
    "COMPATIBILITY_MATRIX",
    "PERSONA_KEYWORDS",
    "parse_persona_type",
    "parse_phase",
    "get_profile",
    "get_group",
    "get_keywords",
    "get_phase_modifier",
    "get_compatibility",
    "get_group_compatibility",
    "average_compatibility",
    "types_in_group",

    # Weighting
    "WeightCalculator",
    "WeightFactors",
    "WeightAdjustment",
    "WeightDistribution",
    "interaction_modifier",
    "weight_factors",
    "compute_weight",

    # Evaluators
    "QualityEvaluator",
    "PerformanceEvaluator",
    "PersonaAlignmentEvaluator",
    "SevenDimensionEvaluator",
    "EvaluatorType",
    "EvaluatorConfig",
    "EvaluationContext",
    "EvaluationResult",
    "SEVEN_DIMENSION_WEIGHTS",
    "default_evaluators",
    "EvaluatorChain",
    "QualityScores",
    "QualityBreakdown",
    "ChainEvaluation",
    "fallback_scores",

    # Tracking & Monitoring
    "InteractionTracker",
    "ResponseSample",
    "ErrorRecord",
    "PerformanceMonitor",
    "HealthStatus",
    "HealthCheck",
    "AlertLevel",
    "Alert",
    "AlertThresholds",
    "ThresholdLevels",
    "SystemMetrics",
    "AgentMetrics",
    "MetricsSnapshot",
    "RealtimeStats",
    "EvaluationTracer",

    # Configuration
    "DiscussionConfig",
    "OptimizationStrategy",
    "QualityThresholds",
    "EvaluatorWeights",
    "ConfigBuildResult",
    "ConfigurationDiff",
    "PRESETS",
    "build_config",
    "validate_config",
    "update_configuration",
    "compare_configurations",

    # Summaries
    "TextGenerator",
    "AutogenTextGenerator",
    "DiscussionStatement",
    "DiscussionQualityMetrics",
    "DiscussionSummary",
    "SummaryResult",
    "SummaryStrategy",
    "summarize_discussion",
]
