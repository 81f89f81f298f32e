"""
Tests for statement evaluators.
"""

import pytest

from persona_council import (
    EvaluationContext,
    EvaluatorConfig,
    EvaluatorType,
    PerformanceEvaluator,
    PersonaAlignmentEvaluator,
    SEVEN_DIMENSION_WEIGHTS,
    SevenDimensionEvaluator,
)
from persona_council.evaluators import (
    GENERIC_KEYWORDS,
    alignment_keywords,
    keyword_overlap,
    score_ethics,
    score_length,
    score_structure,
)


class TestHeuristics:
    """Shared scoring helpers"""

    def test_length_bands(self):
        assert score_length("") == 0.1
        assert score_length("   ") == 0.1
        assert score_length("x" * 10) == 0.5
        assert score_length("x" * 40) == 0.7
        assert score_length("x" * 100) == 0.9
        assert score_length("x" * 400) == 0.7
        assert score_length("x" * 600) == 0.5

    def test_keyword_overlap(self):
        assert keyword_overlap("", ["a"]) == 0.0
        assert keyword_overlap("Efficiency matters", ["efficien", "logic"]) == 1.0
        assert keyword_overlap("nothing here", ["efficien", "logic", "plan", "goal"]) == 0.0
        assert keyword_overlap("a plan", ["efficien", "logic", "plan", "goal"]) == pytest.approx(0.5)

    def test_structure(self):
        assert score_structure("") == 0.0
        assert score_structure("no punctuation at all") == pytest.approx(0.7)
        assert score_structure("First point.\nSecond point.") == pytest.approx(1.0)

    def test_ethics(self):
        assert score_ethics("We should not discriminate against anyone") == 0.3
        assert score_ethics("A PREJUDICE-free plan") == 0.3
        assert score_ethics("A fair plan") == 0.9


class TestEvaluationContext:
    """Input coercion"""

    def test_none_values_coerced(self):
        ctx = EvaluationContext.model_validate({'statement': None, 'topic': None, 'mbti_type': None})
        assert ctx.statement == ""
        assert ctx.topic == ""
        assert ctx.mbti_type == ""

    def test_extra_keys_ignored(self):
        ctx = EvaluationContext.model_validate({'statement': "hi", 'unused': 1})
        assert ctx.statement == "hi"


class TestPerformanceEvaluator:
    """Length, relevance, structure"""

    @pytest.mark.asyncio
    async def test_empty_statement(self):
        result = await PerformanceEvaluator().evaluate({'statement': "", 'topic': "urban transport"})
        assert result.breakdown['basic_quality'] == 0.1
        assert result.breakdown['topic_relevance'] == 0.0
        assert result.breakdown['structure'] == 0.0
        assert 0.0 <= result.score <= 1.0

    @pytest.mark.asyncio
    async def test_no_topic_overlap(self):
        statement = "x" * 100
        result = await PerformanceEvaluator().evaluate({'statement': statement, 'topic': "climate policy"})
        assert result.breakdown['topic_relevance'] == 0.0
        assert result.breakdown['basic_quality'] == 0.9
        assert "Use key terms from the topic" in result.suggestions

    @pytest.mark.asyncio
    async def test_good_statement(self):
        statement = "Climate policy needs clear carbon targets.\nPolicy should also fund adaptation."
        result = await PerformanceEvaluator().evaluate({'statement': statement, 'topic': "climate policy"})
        assert result.breakdown['topic_relevance'] == 1.0
        assert result.score == pytest.approx(0.9 * 0.4 + 1.0 * 0.4 + 1.0 * 0.2)
        assert result.suggestions == ["Maintain the current quality"]
        assert result.confidence == 0.8
        assert result.metadata['topic_keyword_count'] == 2

    def test_type_and_configure(self):
        evaluator = PerformanceEvaluator()
        assert evaluator.get_type() == EvaluatorType.PERFORMANCE
        evaluator.configure(EvaluatorConfig(weight=0.35, thresholds={'minimum': 0.5}, enabled=False))
        assert evaluator.get_weight() == 0.35
        assert not evaluator.is_enabled()
        assert evaluator.config.thresholds == {'minimum': 0.5}


class TestPersonaAlignmentEvaluator:
    """Persona keyword and dichotomy cues"""

    @pytest.mark.asyncio
    async def test_aligned_intj(self):
        statement = "I think a long-term strategy with a clear plan and logic will improve efficiency."
        result = await PersonaAlignmentEvaluator().evaluate({'statement': statement, 'mbti_type': "INTJ"})
        assert result.breakdown['persona_alignment'] == 1.0
        assert result.breakdown['characteristics'] == pytest.approx(0.85)
        assert "Include logical analysis and supporting evidence" in result.suggestions
        assert "strategy" in result.metadata['detected_characteristics']

    @pytest.mark.asyncio
    async def test_unaligned_feeling_type(self):
        result = await PersonaAlignmentEvaluator().evaluate({'statement': "Numbers only.", 'mbti_type': "ESFJ"})
        assert result.breakdown['persona_alignment'] == 0.0
        assert result.suggestions[0].startswith("Keep the ESFJ traits in mind")
        assert "Include values and consideration for others" in result.suggestions

    @pytest.mark.asyncio
    async def test_unknown_type_uses_generic_keywords(self):
        assert alignment_keywords("ZZZZ") == GENERIC_KEYWORDS
        result = await PersonaAlignmentEvaluator().evaluate({'statement': "I think so", 'mbti_type': "ZZZZ"})
        assert 0.0 <= result.score <= 1.0

    @pytest.mark.asyncio
    async def test_empty_statement_does_not_raise(self):
        result = await PersonaAlignmentEvaluator().evaluate({'statement': None, 'mbti_type': "INFP"})
        assert result.breakdown['persona_alignment'] == 0.0
        assert result.breakdown['characteristics'] == 0.5


class TestSevenDimensionEvaluator:
    """Composite scoring"""

    def test_weights_sum_to_one(self):
        assert sum(SEVEN_DIMENSION_WEIGHTS.values()) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_dimensions_present(self):
        result = await SevenDimensionEvaluator().evaluate({
            'statement': "Let us cooperate and discuss the transport plan together.",
            'topic': "transport plan",
        })
        assert set(result.breakdown) == set(SEVEN_DIMENSION_WEIGHTS)
        assert result.breakdown['ethics'] == 0.9
        assert result.breakdown['external_alignment'] == 1.0
        expected = sum(result.breakdown[k] * w for k, w in SEVEN_DIMENSION_WEIGHTS.items())
        assert result.score == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_flagged_ethics(self):
        result = await SevenDimensionEvaluator().evaluate({'statement': "That is bigoted", 'topic': "x"})
        assert result.breakdown['ethics'] == 0.3
        assert result.breakdown['internal_consistency'] == 0.5

    @pytest.mark.asyncio
    async def test_feedback_names_lowest_dimension(self):
        result = await SevenDimensionEvaluator().evaluate({'statement': "", 'topic': "energy"})
        assert result.feedback.startswith("Improvement recommended in")
        assert "Include more detailed and concrete content" in result.suggestions
