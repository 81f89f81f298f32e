"""
Tests for turn-priority weights.
"""

import pytest

from persona_council import (
    PersonaType,
    Phase,
    WeightCalculator,
    compute_weight,
    interaction_modifier,
    weight_factors,
)


class TestComputeWeight:
    """Pure weight function"""

    def test_sj_in_brainstorming(self):
        assert compute_weight(PersonaType.ISFJ, Phase.BRAINSTORMING, 0) == pytest.approx(0.8)

    def test_nt_in_analysis_with_history(self):
        assert compute_weight(PersonaType.ENTP, Phase.ANALYSIS, 3) == pytest.approx(0.91)

    def test_string_keys(self):
        assert compute_weight("enfj", "brainstorming") == pytest.approx(1.2)

    def test_unknown_phase_is_neutral(self):
        assert compute_weight(PersonaType.ESTP, "voting", 0) == pytest.approx(1.0)

    def test_negative_interactions_clamped(self):
        assert compute_weight(PersonaType.INFP, Phase.SYNTHESIS, -4) == compute_weight(
            PersonaType.INFP, Phase.SYNTHESIS, 0
        )

    def test_monotonically_non_increasing(self):
        weights = [compute_weight(PersonaType.INTJ, Phase.ANALYSIS, n) for n in range(12)]
        assert all(a >= b for a, b in zip(weights, weights[1:]))

    def test_interaction_floor(self):
        assert interaction_modifier(5) == pytest.approx(0.5)
        assert interaction_modifier(50) == pytest.approx(0.5)
        floor = compute_weight(PersonaType.INTJ, Phase.ANALYSIS, 100)
        assert floor == pytest.approx(compute_weight(PersonaType.INTJ, Phase.ANALYSIS, 0) * 0.5)

    def test_factors_breakdown(self):
        factors = weight_factors(PersonaType.ENTP, Phase.ANALYSIS, 3)
        assert factors.phase_modifier == pytest.approx(1.3)
        assert factors.interaction_modifier == pytest.approx(0.7)
        assert factors.to_dict()['weight'] == pytest.approx(0.91)
        assert factors.to_dict()['persona_type'] == "ENTP"


class TestWeightCalculator:
    """Stateful ledger over the tracker"""

    def test_registered_node_starts_at_base_weight(self, tracker):
        calculator = WeightCalculator(tracker)
        calculator.register_node("a", "INTJ")
        assert calculator.get_weight("a") == pytest.approx(1.0)
        assert calculator.get_weight("missing") is None

    def test_update_reads_live_counts(self, tracker):
        calculator = WeightCalculator(tracker)
        for _ in range(3):
            tracker.record_interaction("a")
        assert calculator.update_weight("a", "ENTP", Phase.ANALYSIS) == pytest.approx(0.91)

    def test_adjust_all_weights_audit_trail(self, tracker):
        calculator = WeightCalculator(tracker)
        calculator.register_node("a", "ISFJ")
        calculator.register_node("b", "ENFP")
        tracker.record_interaction("b")

        adjustments = {a.node_id: a for a in calculator.adjust_all_weights(Phase.BRAINSTORMING)}

        assert adjustments["a"].old_weight == pytest.approx(1.0)
        assert adjustments["a"].new_weight == pytest.approx(0.8)
        assert adjustments["a"].delta == pytest.approx(-0.2)
        assert adjustments["b"].interaction_count == 1
        assert adjustments["b"].new_weight == pytest.approx(1.2 * 0.9)
        assert adjustments["b"].phase == "brainstorming"

    def test_adjust_with_explicit_map(self, tracker):
        calculator = WeightCalculator(tracker)
        adjustments = calculator.adjust_all_weights("conclusion", {"x": "ESTJ"})
        assert len(adjustments) == 1
        assert calculator.get_weight("x") == pytest.approx(1.2)

    def test_distribution(self, tracker):
        calculator = WeightCalculator(tracker)
        assert calculator.get_weight_distribution().average_weight == 0.0

        calculator.register_node("a", "INTJ")
        calculator.register_node("b", "ISFJ")
        calculator.adjust_all_weights(Phase.BRAINSTORMING)
        distribution = calculator.get_weight_distribution()

        assert distribution.total_weight == pytest.approx(0.9 + 0.8)
        assert distribution.average_weight == pytest.approx(0.85)
        assert len(distribution.to_dict()['entries']) == 2

    def test_reset(self, tracker):
        calculator = WeightCalculator(tracker)
        calculator.register_node("a", "INTJ")
        calculator.reset()
        assert calculator.get_weight("a") is None
