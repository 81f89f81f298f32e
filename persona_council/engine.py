# =============================================================================
# DISCUSSION ENGINE - Main Integration Module
# =============================================================================
"""
Main integration module that ties together the discussion components:
- InteractionTracker (per-session history)
- EvaluatorChain (statement scoring)
- WeightCalculator (turn-priority weights)
- PerformanceMonitor (health, metrics, alerts)
- EvaluationTracer (Langfuse)
- Summarizer (LLM with algorithmic fallback)

Each recorded turn flows: evaluate -> record interaction, quality and
response time -> recompute the speaker's weight -> intervention flag.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import logging

import redis.asyncio as redis

from .config import DiscussionConfig
from .errors import ValidationError
from .evaluator_chain import EvaluatorChain, QualityScores
from .evaluators import EvaluatorConfig, EvaluatorType, default_evaluators
from .llm import AutogenTextGenerator, TextGenerator
from .monitoring import AlertThresholds, HealthCheck, PerformanceMonitor, SystemMetrics
from .summarizer import DiscussionQualityMetrics, DiscussionStatement, SummaryResult, summarize_discussion
from .tracing import EvaluationTracer
from .tracker import InteractionTracker
from .traits import PersonaKey, PersonaType, PhaseKey, average_compatibility, parse_persona_type
from .weighting import WeightAdjustment, WeightDistribution, WeightCalculator, compute_weight

logger = logging.getLogger(__name__)


# =============================================================================
# TURN OUTCOME
# =============================================================================

@dataclass
class TurnOutcome:
    """Everything the engine learned from one statement"""
    node_id: str
    persona_type: PersonaType
    phase: str
    scores: QualityScores
    weight: float
    interaction_count: int
    needs_intervention: bool
    average_compatibility: float
    evaluator_errors: Dict[str, str] = field(default_factory=dict)
    execution_time_ms: float = 0.0
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'node_id': self.node_id,
            'persona_type': self.persona_type.value,
            'phase': self.phase,
            'scores': self.scores.to_dict(),
            'weight': self.weight,
            'interaction_count': self.interaction_count,
            'needs_intervention': self.needs_intervention,
            'average_compatibility': self.average_compatibility,
            'evaluator_errors': dict(self.evaluator_errors),
            'execution_time_ms': self.execution_time_ms,
            'timestamp': self.timestamp.isoformat(),
        }


def build_evaluator_chain(config: DiscussionConfig, tracer: Optional[EvaluationTracer] = None) -> EvaluatorChain:
    """Default evaluators weighted from config"""
    weights = {
        EvaluatorType.SEVEN_DIMENSION: config.evaluator_weights.seven_dimension,
        EvaluatorType.PERFORMANCE: config.evaluator_weights.performance,
        EvaluatorType.PERSONA_ALIGNMENT: config.evaluator_weights.persona_alignment,
    }
    chain = EvaluatorChain(default_evaluators(), tracer=tracer)
    chain.update_configuration({kind: EvaluatorConfig(weight=weight) for kind, weight in weights.items()})
    return chain


# =============================================================================
# DISCUSSION ENGINE
# =============================================================================

class DiscussionEngine:
    """
    Unified interface for one discussion session.

    All collaborators can be injected; anything not supplied is built from
    the config. Redis is only connected when enabled in config and no client
    was injected.
    """

    def __init__(
        self,
        config: Optional[DiscussionConfig] = None,
        tracker: Optional[InteractionTracker] = None,
        monitor: Optional[PerformanceMonitor] = None,
        chain: Optional[EvaluatorChain] = None,
        tracer: Optional[EvaluationTracer] = None,
        generator: Optional[TextGenerator] = None,
        redis_client=None
    ):
        self.config = config or DiscussionConfig.from_env()
        self.redis = redis_client

        self.tracker = tracker or InteractionTracker(
            response_window_size=self.config.metrics_window_size,
            error_window_size=self.config.error_window_size,
            score_window_size=self.config.metrics_window_size,
            error_retention_seconds=self.config.error_retention_seconds,
        )
        self.tracer = tracer or EvaluationTracer.from_config(self.config)
        self.chain = chain or build_evaluator_chain(self.config, tracer=self.tracer)
        self.weights = WeightCalculator(self.tracker)
        self.monitor = monitor or PerformanceMonitor(
            self.tracker,
            interval_seconds=self.config.monitoring_interval_seconds,
            history_size=self.config.history_size,
            alert_history_size=self.config.alert_history_size,
            thresholds=AlertThresholds.from_settings(self.config.alert_thresholds),
            redis_client=redis_client,
            response_time_target_ms=self.config.performance_target.response_time_ms,
        )
        self.generator = generator

        self._statements: List[DiscussionStatement] = []
        self._owns_redis = False
        self._owns_generator = False
        self._started = False

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self):
        """Connect optional backends and start periodic monitoring"""
        if self._started:
            return

        logger.info("Starting discussion engine...")
        if self.redis is None and self.config.redis_enabled:
            await self._connect_redis()
        await self.monitor.start_monitoring()

        self._started = True
        logger.info("Discussion engine started")

    async def stop(self):
        if not self._started:
            return

        logger.info("Stopping discussion engine...")
        await self.monitor.stop_monitoring()
        await self.monitor.drain()
        self.tracer.flush()

        if self._owns_generator and self.generator is not None:
            await self.generator.close()
            self.generator = None
            self._owns_generator = False

        if self._owns_redis and self.redis is not None:
            await self.redis.close()
            self.redis = None
            self.monitor.redis = None
            self._owns_redis = False

        self._started = False
        logger.info("Discussion engine stopped")

    async def _connect_redis(self):
        client = redis.Redis(
            host=self.config.redis_host,
            port=self.config.redis_port,
            password=self.config.redis_password,
            db=self.config.redis_db,
            decode_responses=True
        )
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Redis unavailable, continuing without mirroring: {e}")
            await client.close()
            return

        self.redis = client
        self.monitor.redis = client
        self._owns_redis = True
        logger.info(f"Connected to Redis at {self.config.redis_host}:{self.config.redis_port}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # ========================================================================
    # AGENTS
    # ========================================================================

    def register_agent(self, node_id: str, persona_type: PersonaKey) -> PersonaType:
        """Register an agent at its persona's base weight"""
        if not node_id:
            raise ValidationError("node_id must be a non-empty string")
        resolved = self.weights.register_node(node_id, persona_type)
        logger.info(f"Registered agent: {node_id} ({resolved.value})")
        return resolved

    def participant_types(self) -> List[PersonaType]:
        """Distinct persona types of the registered agents, in registration order"""
        seen: List[PersonaType] = []
        for entry in self.weights.get_weight_distribution().entries:
            if entry.persona_type not in seen:
                seen.append(entry.persona_type)
        return seen

    # ========================================================================
    # TURNS
    # ========================================================================

    async def record_turn(
        self,
        node_id: str,
        persona_type: PersonaKey,
        statement: str,
        topic: str,
        phase: PhaseKey,
        participant_types: Optional[Iterable[PersonaKey]] = None
    ) -> TurnOutcome:
        """
        Score one statement and fold it into the session.

        Args:
            node_id: Agent node identifier
            persona_type: Speaker's persona type
            statement: Statement text
            topic: Discussion topic
            phase: Current discussion phase (unknown phases weigh at 1.0)
            participant_types: Persona types present; defaults to the registered agents

        Returns:
            TurnOutcome with scores, the speaker's new weight and an
            intervention flag.
        """
        if not node_id:
            raise ValidationError("node_id must be a non-empty string")

        resolved = parse_persona_type(persona_type)
        phase_name = getattr(phase, 'value', str(phase))
        participants = (
            [parse_persona_type(t) for t in participant_types]
            if participant_types is not None
            else self.participant_types()
        )

        start_time = time.perf_counter()
        evaluation = await self.chain.evaluate_detailed({
            'statement': statement,
            'topic': topic,
            'mbti_type': resolved.value,
            'phase': phase_name,
            'participant_types': [t.value for t in participants],
        })

        for kind, error in evaluation.errors.items():
            self.monitor.record_error(f"evaluator:{kind.value}", error)

        scores = evaluation.scores
        count = self.tracker.record_interaction(node_id)
        self.monitor.record_quality_score(resolved, scores)
        self.monitor.record_response_time("record_turn", (time.perf_counter() - start_time) * 1000)

        weight = self.weights.update_weight(node_id, resolved, phase)

        intervention = scores.overall_score < self.config.quality_thresholds.intervention
        if intervention:
            logger.warning(
                f"Statement from {node_id} ({resolved.value}) below intervention threshold: "
                f"{scores.overall_score:.2f}"
            )

        self._statements.append(DiscussionStatement(
            persona_type=resolved,
            content=statement,
            confidence=scores.overall_score,
            relevance=scores.performance,
            node_id=node_id,
        ))

        outcome = TurnOutcome(
            node_id=node_id,
            persona_type=resolved,
            phase=phase_name,
            scores=scores,
            weight=weight,
            interaction_count=count,
            needs_intervention=intervention,
            average_compatibility=average_compatibility(resolved, participants),
            evaluator_errors={kind.value: str(e) for kind, e in evaluation.errors.items()},
            execution_time_ms=evaluation.execution_time_ms,
        )
        logger.debug(f"Turn recorded for {node_id}: overall={scores.overall_score:.2f}, weight={weight:.3f}")
        return outcome

    def get_statements(self) -> List[DiscussionStatement]:
        return list(self._statements)

    # ========================================================================
    # WEIGHTS
    # ========================================================================

    def compute_weight(self, persona_type: PersonaKey, phase: PhaseKey, previous_interactions: int = 0) -> float:
        return compute_weight(persona_type, phase, previous_interactions)

    def get_weight(self, node_id: str) -> Optional[float]:
        return self.weights.get_weight(node_id)

    def adjust_all_weights(
        self,
        phase: PhaseKey,
        agent_map: Optional[Mapping[str, PersonaKey]] = None
    ) -> List[WeightAdjustment]:
        return self.weights.adjust_all_weights(phase, agent_map)

    def get_weight_distribution(self) -> WeightDistribution:
        return self.weights.get_weight_distribution()

    # ========================================================================
    # MONITORING
    # ========================================================================

    def perform_health_check(self) -> HealthCheck:
        return self.monitor.perform_health_check()

    def get_system_metrics(self) -> SystemMetrics:
        return self.monitor.get_system_metrics()

    def set_alert_thresholds(self, thresholds: Union[AlertThresholds, Mapping[str, Any]]) -> AlertThresholds:
        return self.monitor.set_alert_thresholds(thresholds)

    def register_alert_handler(self, handler) -> None:
        self.monitor.register_alert_handler(handler)

    # ========================================================================
    # SUMMARY
    # ========================================================================

    async def summarize(
        self,
        topic: str,
        quality_metrics: Optional[DiscussionQualityMetrics] = None,
        use_llm: bool = True
    ) -> SummaryResult:
        """
        Summarize the statements recorded so far.

        With use_llm, a generator is built from config when none was
        injected and an API key is configured.
        """
        generator = self.generator
        if use_llm and generator is None and self.config.llm_api_key:
            generator = AutogenTextGenerator.from_config(self.config)
            self.generator = generator
            self._owns_generator = True

        return await summarize_discussion(
            self._statements,
            topic,
            self.participant_types() or list(dict.fromkeys(s.persona_type for s in self._statements)),
            quality_metrics=quality_metrics or self.quality_metrics(),
            generator=generator if use_llm else None,
        )

    def quality_metrics(self) -> DiscussionQualityMetrics:
        """Session-level diversity, consistency and collaboration scores"""
        evaluations = self._statements
        if not evaluations:
            return DiscussionQualityMetrics()

        types = {s.persona_type for s in evaluations}
        diversity = min(1.0, len(types) / 4)
        confidences = [s.confidence for s in evaluations]
        mean = sum(confidences) / len(confidences)
        spread = max(confidences) - min(confidences)
        return DiscussionQualityMetrics(
            diversity_score=diversity,
            consistency_score=max(0.0, 1.0 - spread),
            social_decision_score=mean,
        )

    # ========================================================================
    # RESET
    # ========================================================================

    def reset(self) -> None:
        """Start a new session: clears history, weights and statements"""
        self.monitor.reset()
        self.weights.reset()
        self._statements.clear()
        logger.info("Discussion engine reset")
