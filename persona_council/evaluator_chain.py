# =============================================================================
# EVALUATOR CHAIN - Weighted Evaluator Ensemble
# =============================================================================
"""
Runs a set of QualityEvaluators concurrently and folds their results into
one QualityScores record.

Features:
- Add/remove evaluators, explicit evaluation order
- Per-evaluator configuration (weight, enabled, thresholds)
- Concurrent evaluation with per-evaluator error isolation
- Weighted mean of the enabled evaluators that succeeded
- Dimension extraction (performance, psychological, content quality,
  persona alignment) with a 0.7 default
- Fallback scores when no evaluator succeeds
- Statistics and a self health check
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging

from .evaluators import (
    ContextInput,
    EvaluationContext,
    EvaluationResult,
    EvaluatorConfig,
    EvaluatorType,
    QualityEvaluator,
    as_context,
)

logger = logging.getLogger(__name__)


DEFAULT_DIMENSION_SCORE = 0.7
FALLBACK_SCORE = 0.7
WEIGHT_SUM_TOLERANCE = 0.1

# dimension -> (breakdown key, evaluator types consulted in order)
DIMENSION_SOURCES: Dict[str, tuple] = {
    'performance': ('performance', [EvaluatorType.PERFORMANCE, EvaluatorType.SEVEN_DIMENSION]),
    'psychological': ('psychological', [EvaluatorType.PERSONA_ALIGNMENT, EvaluatorType.SEVEN_DIMENSION]),
    'content_quality': ('content_quality', [EvaluatorType.SEVEN_DIMENSION, EvaluatorType.PERFORMANCE]),
    'mbti_alignment': ('persona_alignment', [EvaluatorType.PERSONA_ALIGNMENT]),
}

STRENGTH_MARKERS = ("maintain", "keep this level", "high quality")
WEAKNESS_MARKERS = ("add ", "include", "use ", "relate", "show", "keep the")


# =============================================================================
# SCHEMAS
# =============================================================================

@dataclass
class QualityBreakdown:
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    specific_improvements: List[str] = field(default_factory=list)
    dimension_scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'strengths': list(self.strengths),
            'weaknesses': list(self.weaknesses),
            'specific_improvements': list(self.specific_improvements),
            'dimension_scores': dict(self.dimension_scores),
        }


@dataclass
class QualityScores:
    """Aggregated scores for one statement"""
    performance: float
    psychological: float
    content_quality: float
    mbti_alignment: float
    overall_score: float
    breakdown: QualityBreakdown = field(default_factory=QualityBreakdown)
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'performance': self.performance,
            'psychological': self.psychological,
            'content_quality': self.content_quality,
            'mbti_alignment': self.mbti_alignment,
            'overall_score': self.overall_score,
            'breakdown': self.breakdown.to_dict(),
            'is_fallback': self.is_fallback,
        }


@dataclass
class ChainEvaluation:
    """Full record of one chain run"""
    context: EvaluationContext
    results: Dict[EvaluatorType, EvaluationResult]
    errors: Dict[EvaluatorType, Exception]
    scores: QualityScores
    execution_time_ms: float
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'context': self.context.model_dump(),
            'results': {t.value: r.to_dict() for t, r in self.results.items()},
            'errors': {t.value: str(e) for t, e in self.errors.items()},
            'scores': self.scores.to_dict(),
            'execution_time_ms': self.execution_time_ms,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class EvaluatorInfo:
    type: EvaluatorType
    weight: float
    enabled: bool
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'weight': self.weight, 'enabled': self.enabled, 'order': self.order}


@dataclass
class ChainHealth:
    healthy: bool
    issues: List[str]
    warnings: List[str]
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'healthy': self.healthy,
            'issues': self.issues,
            'warnings': self.warnings,
            'timestamp': self.timestamp.isoformat(),
        }


def fallback_scores() -> QualityScores:
    return QualityScores(
        performance=FALLBACK_SCORE,
        psychological=FALLBACK_SCORE,
        content_quality=FALLBACK_SCORE,
        mbti_alignment=FALLBACK_SCORE,
        overall_score=FALLBACK_SCORE,
        breakdown=QualityBreakdown(
            strengths=["Basic evaluation performed"],
            weaknesses=["Evaluators failed to run"],
            specific_improvements=["Check evaluator health"],
        ),
        is_fallback=True,
    )


# =============================================================================
# EVALUATOR CHAIN
# =============================================================================

class EvaluatorChain:
    """
    Strategy-style ensemble of evaluators keyed by evaluator type.

    Adding an evaluator of an already registered type replaces it.
    """

    def __init__(
        self,
        evaluators: Optional[Iterable[QualityEvaluator]] = None,
        tracer=None
    ):
        self._evaluators: Dict[EvaluatorType, QualityEvaluator] = {}
        self._order: List[EvaluatorType] = []
        self._last_evaluation: Optional[ChainEvaluation] = None
        self.tracer = tracer
        for evaluator in evaluators or []:
            self.add_evaluator(evaluator)

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def add_evaluator(self, evaluator: QualityEvaluator) -> 'EvaluatorChain':
        kind = evaluator.get_type()
        self._evaluators[kind] = evaluator
        if kind not in self._order:
            self._order.append(kind)
        logger.debug(f"Registered evaluator: {kind.value}")
        return self

    def remove_evaluator(self, kind: EvaluatorType) -> bool:
        kind = EvaluatorType(kind)
        removed = self._evaluators.pop(kind, None) is not None
        self._order = [t for t in self._order if t != kind]
        return removed

    def set_evaluation_order(self, order: Iterable[EvaluatorType]) -> 'EvaluatorChain':
        """Set run order; unknown types are dropped"""
        self._order = [EvaluatorType(t) for t in order if EvaluatorType(t) in self._evaluators]
        return self

    def configure_evaluator(self, kind: EvaluatorType, config: EvaluatorConfig) -> bool:
        evaluator = self._evaluators.get(EvaluatorType(kind))
        if evaluator is None:
            logger.warning(f"Cannot configure unregistered evaluator: {kind}")
            return False
        evaluator.configure(config)
        return True

    def update_configuration(self, updates: Dict[EvaluatorType, EvaluatorConfig]) -> None:
        for kind, config in updates.items():
            if config is not None:
                self.configure_evaluator(kind, config)

    # ========================================================================
    # EVALUATION
    # ========================================================================

    async def evaluate(self, context: ContextInput) -> QualityScores:
        """Run every enabled evaluator and aggregate"""
        evaluation = await self.evaluate_detailed(context)
        return evaluation.scores

    async def evaluate_with(self, context: ContextInput, kinds: Iterable[EvaluatorType]) -> QualityScores:
        """Run only the given evaluator types, in the given order"""
        order = [EvaluatorType(k) for k in kinds if EvaluatorType(k) in self._evaluators]
        evaluation = await self.evaluate_detailed(context, order=order)
        return evaluation.scores

    async def evaluate_detailed(
        self,
        context: ContextInput,
        order: Optional[List[EvaluatorType]] = None
    ) -> ChainEvaluation:
        ctx = as_context(context)
        start_time = time.perf_counter()

        selected = [
            self._evaluators[kind]
            for kind in (order if order is not None else self._order)
            if kind in self._evaluators and self._evaluators[kind].is_enabled()
        ]
        outcomes = await asyncio.gather(
            *(evaluator.evaluate(ctx) for evaluator in selected),
            return_exceptions=True
        )

        results: Dict[EvaluatorType, EvaluationResult] = {}
        errors: Dict[EvaluatorType, Exception] = {}
        for evaluator, outcome in zip(selected, outcomes):
            kind = evaluator.get_type()
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error(f"Evaluator {kind.value} failed: {outcome}")
                errors[kind] = outcome
            else:
                results[kind] = outcome

        scores = self._aggregate(results)
        evaluation = ChainEvaluation(
            context=ctx,
            results=results,
            errors=errors,
            scores=scores,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        self._last_evaluation = evaluation

        if self.tracer is not None:
            self.tracer.record_evaluation(evaluation)

        return evaluation

    def _aggregate(self, results: Dict[EvaluatorType, EvaluationResult]) -> QualityScores:
        if not results:
            logger.warning("No evaluator produced a result, using fallback scores")
            return fallback_scores()

        breakdown = QualityBreakdown()
        weighted_total = 0.0
        total_weight = 0.0
        for kind, result in results.items():
            weight = self._evaluators[kind].get_weight()
            weighted_total += result.score * weight
            total_weight += weight

            for suggestion in result.suggestions:
                lowered = suggestion.lower()
                if any(marker in lowered for marker in STRENGTH_MARKERS):
                    breakdown.strengths.append(suggestion)
                elif any(marker in lowered for marker in WEAKNESS_MARKERS):
                    breakdown.weaknesses.append(suggestion)
            breakdown.specific_improvements.extend(result.suggestions)
            breakdown.dimension_scores[kind.value] = result.score

        overall = weighted_total / total_weight if total_weight > 0 else 0.0
        return QualityScores(
            overall_score=overall,
            breakdown=breakdown,
            **self._extract_dimensions(results)
        )

    @staticmethod
    def _extract_dimensions(results: Dict[EvaluatorType, EvaluationResult]) -> Dict[str, float]:
        dimensions = {}
        for dimension, (breakdown_key, kinds) in DIMENSION_SOURCES.items():
            value = None
            for kind in kinds:
                result = results.get(kind)
                if result is not None:
                    value = result.breakdown.get(breakdown_key)
                    if value is None:
                        value = result.score
                    break
            dimensions[dimension] = DEFAULT_DIMENSION_SCORE if value is None else value
        return dimensions

    # ========================================================================
    # INTROSPECTION
    # ========================================================================

    def get_registered_evaluators(self) -> List[EvaluatorInfo]:
        return [
            EvaluatorInfo(
                type=kind,
                weight=evaluator.get_weight(),
                enabled=evaluator.is_enabled(),
                order=self._order.index(kind) if kind in self._order else -1,
            )
            for kind, evaluator in self._evaluators.items()
        ]

    def get_last_evaluation(self) -> Optional[ChainEvaluation]:
        return self._last_evaluation

    def get_statistics(self) -> Dict[str, Any]:
        infos = self.get_registered_evaluators()
        enabled = [info for info in infos if info.enabled]
        total_weight = sum(info.weight for info in enabled)
        return {
            'total_evaluators': len(infos),
            'enabled_evaluators': len(enabled),
            'total_weight': total_weight,
            'average_weight': total_weight / len(enabled) if enabled else 0.0,
            'last_execution_time_ms': self._last_evaluation.execution_time_ms if self._last_evaluation else 0.0,
            'evaluation_order': [kind.value for kind in self._order],
        }

    def health_check(self) -> ChainHealth:
        issues = []
        warnings = []

        if not self._evaluators:
            issues.append("No evaluators registered")

        enabled = [e for e in self._evaluators.values() if e.is_enabled()]
        if not enabled:
            issues.append("No enabled evaluators")

        total_weight = sum(e.get_weight() for e in enabled)
        if abs(total_weight - 1.0) > WEIGHT_SUM_TOLERANCE:
            warnings.append(f"Evaluator weights sum to {total_weight:.3f}, far from 1.0")

        unordered = [kind.value for kind in self._evaluators if kind not in self._order]
        if unordered:
            warnings.append(f"Evaluators missing from evaluation order: {', '.join(unordered)}")

        return ChainHealth(healthy=not issues, issues=issues, warnings=warnings)
