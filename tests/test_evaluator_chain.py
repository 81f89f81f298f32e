"""
Tests for the weighted evaluator ensemble.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from persona_council import (
    EvaluationResult,
    EvaluatorChain,
    EvaluatorConfig,
    EvaluatorType,
    PerformanceEvaluator,
    QualityEvaluator,
    default_evaluators,
)


class StubEvaluator(QualityEvaluator):
    """Returns a fixed score or raises"""

    def __init__(self, kind, score=0.5, breakdown=None, error=None, weight=1.0):
        super().__init__(weight=weight)
        self.kind = kind
        self.score = score
        self.breakdown = breakdown or {}
        self.error = error
        self.calls = 0

    def get_type(self):
        return self.kind

    async def evaluate(self, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return EvaluationResult(score=self.score, confidence=0.8, breakdown=self.breakdown,
                                suggestions=["Add more detail"])


CONTEXT = {'statement': "A practical plan.", 'topic': "plan", 'mbti_type': "ISTJ"}


class TestAggregation:
    """Weighted mean and dimension extraction"""

    @pytest.mark.asyncio
    async def test_weighted_mean(self):
        chain = EvaluatorChain([
            StubEvaluator(EvaluatorType.PERFORMANCE, score=1.0, weight=3.0),
            StubEvaluator(EvaluatorType.SEVEN_DIMENSION, score=0.0, weight=1.0),
        ])
        scores = await chain.evaluate(CONTEXT)
        assert scores.overall_score == pytest.approx(0.75)
        assert not scores.is_fallback

    @pytest.mark.asyncio
    async def test_dimensions_from_breakdowns(self):
        chain = EvaluatorChain([
            StubEvaluator(EvaluatorType.PERSONA_ALIGNMENT, score=0.4, breakdown={'persona_alignment': 0.2}),
            StubEvaluator(EvaluatorType.SEVEN_DIMENSION, score=0.6,
                          breakdown={'performance': 0.9, 'content_quality': 0.3}),
        ])
        scores = await chain.evaluate(CONTEXT)
        assert scores.performance == pytest.approx(0.9)
        assert scores.content_quality == pytest.approx(0.3)
        assert scores.mbti_alignment == pytest.approx(0.2)
        # alignment evaluator has no psychological key, so its score is used
        assert scores.psychological == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_missing_dimension_defaults(self):
        chain = EvaluatorChain([StubEvaluator(EvaluatorType.PERFORMANCE, score=0.5)])
        scores = await chain.evaluate(CONTEXT)
        assert scores.mbti_alignment == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_real_evaluators_in_range(self):
        chain = EvaluatorChain(default_evaluators())
        scores = await chain.evaluate(CONTEXT)
        for value in (scores.performance, scores.psychological, scores.content_quality,
                      scores.mbti_alignment, scores.overall_score):
            assert 0.0 <= value <= 1.0


class TestFailureIsolation:
    """One failing evaluator never sinks the chain"""

    @pytest.mark.asyncio
    async def test_failed_evaluator_excluded(self):
        chain = EvaluatorChain([
            StubEvaluator(EvaluatorType.PERFORMANCE, score=0.8),
            StubEvaluator(EvaluatorType.SEVEN_DIMENSION, error=RuntimeError("boom")),
        ])
        evaluation = await chain.evaluate_detailed(CONTEXT)
        assert evaluation.scores.overall_score == pytest.approx(0.8)
        assert EvaluatorType.SEVEN_DIMENSION in evaluation.errors
        assert evaluation.to_dict()['errors'] == {'seven-dimension': "boom"}

    @pytest.mark.asyncio
    async def test_all_failed_gives_fallback(self):
        chain = EvaluatorChain([StubEvaluator(EvaluatorType.PERFORMANCE, error=ValueError("bad"))])
        scores = await chain.evaluate(CONTEXT)
        assert scores.is_fallback
        assert scores.overall_score == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        chain = EvaluatorChain([StubEvaluator(EvaluatorType.PERFORMANCE, error=asyncio.CancelledError())])
        with pytest.raises(asyncio.CancelledError):
            await chain.evaluate(CONTEXT)


class TestRegistration:
    """Add/remove/order/configure"""

    @pytest.mark.asyncio
    async def test_disabled_evaluator_skipped(self):
        stub = StubEvaluator(EvaluatorType.PERFORMANCE, score=0.1)
        chain = EvaluatorChain([stub, StubEvaluator(EvaluatorType.SEVEN_DIMENSION, score=0.9)])
        chain.configure_evaluator(EvaluatorType.PERFORMANCE, EvaluatorConfig(enabled=False))

        scores = await chain.evaluate(CONTEXT)

        assert stub.calls == 0
        assert scores.overall_score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_evaluate_with_subset(self):
        performance = StubEvaluator(EvaluatorType.PERFORMANCE, score=0.2)
        seven = StubEvaluator(EvaluatorType.SEVEN_DIMENSION, score=0.6)
        chain = EvaluatorChain([performance, seven])

        scores = await chain.evaluate_with(CONTEXT, [EvaluatorType.SEVEN_DIMENSION])

        assert performance.calls == 0
        assert scores.overall_score == pytest.approx(0.6)
        assert chain.get_statistics()['evaluation_order'] == ["performance", "seven-dimension"]

    def test_remove_and_statistics(self):
        chain = EvaluatorChain(default_evaluators())
        assert chain.remove_evaluator(EvaluatorType.PERFORMANCE)
        assert not chain.remove_evaluator(EvaluatorType.PERFORMANCE)
        stats = chain.get_statistics()
        assert stats['total_evaluators'] == 2
        assert stats['enabled_evaluators'] == 2

    def test_health_check(self):
        assert not EvaluatorChain().health_check().healthy

        chain = EvaluatorChain([PerformanceEvaluator()])
        chain.configure_evaluator(EvaluatorType.PERFORMANCE, EvaluatorConfig(weight=1.0))
        health = chain.health_check()
        assert health.healthy
        assert health.warnings == []

    @pytest.mark.asyncio
    async def test_tracer_receives_evaluation(self):
        tracer = MagicMock()
        chain = EvaluatorChain([StubEvaluator(EvaluatorType.PERFORMANCE)], tracer=tracer)
        evaluation = await chain.evaluate_detailed(CONTEXT)
        tracer.record_evaluation.assert_called_once_with(evaluation)
        assert chain.get_last_evaluation() is evaluation
