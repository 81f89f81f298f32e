# =============================================================================
# DYNAMIC WEIGHT CALCULATOR
# =============================================================================
"""
Turn-priority weights for discussion agents.

weight = base_weight * phase_modifier * interaction_modifier

- base_weight comes from the persona's trait profile (> 0)
- phase_modifier comes from the phase table for the persona's cognitive group
  (1.0 for unknown phases)
- interaction_modifier = max(0.5, 1.0 - 0.1 * previous_interactions)

Weights are deliberately not clamped to [0, 1]: amplifying phase modifiers
can push them above 1. Negative interaction counts are clamped to 0.

WeightCalculator adds the stateful side: a per-node weight ledger, batch
recomputation with an old/new audit trail (reading live counts from the
InteractionTracker), and a weight distribution view.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import logging

from .traits import (
    PersonaKey,
    PersonaType,
    PhaseKey,
    get_group,
    get_phase_modifier,
    get_profile,
    parse_persona_type,
)
from .tracker import InteractionTracker

logger = logging.getLogger(__name__)


INTERACTION_DECAY_STEP = 0.1
INTERACTION_MODIFIER_FLOOR = 0.5


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def interaction_modifier(previous_interactions: int) -> float:
    """Decay factor for prior turns, floored at 0.5 from five turns on"""
    count = max(0, previous_interactions)
    return max(INTERACTION_MODIFIER_FLOOR, 1.0 - INTERACTION_DECAY_STEP * count)


@dataclass(frozen=True)
class WeightFactors:
    """Breakdown of one weight computation"""
    persona_type: PersonaType
    phase: str
    previous_interactions: int
    base_weight: float
    phase_modifier: float
    interaction_modifier: float

    @property
    def weight(self) -> float:
        return self.base_weight * self.phase_modifier * self.interaction_modifier

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['persona_type'] = self.persona_type.value
        data['weight'] = self.weight
        return data


def weight_factors(
    persona_type: PersonaKey,
    phase: PhaseKey,
    previous_interactions: int = 0
) -> WeightFactors:
    resolved = parse_persona_type(persona_type)
    if previous_interactions < 0:
        logger.debug(
            f"Negative interaction count {previous_interactions} for {resolved.value}, clamping to 0"
        )
        previous_interactions = 0
    return WeightFactors(
        persona_type=resolved,
        phase=getattr(phase, 'value', str(phase)),
        previous_interactions=previous_interactions,
        base_weight=get_profile(resolved).base_weight,
        phase_modifier=get_phase_modifier(phase, get_group(resolved)),
        interaction_modifier=interaction_modifier(previous_interactions),
    )


def compute_weight(
    persona_type: PersonaKey,
    phase: PhaseKey,
    previous_interactions: int = 0
) -> float:
    """Deterministic turn-priority weight for one agent"""
    return weight_factors(persona_type, phase, previous_interactions).weight


# =============================================================================
# AUDIT SCHEMAS
# =============================================================================

@dataclass
class WeightAdjustment:
    """Old/new weight for one node after a batch recomputation"""
    node_id: str
    persona_type: PersonaType
    old_weight: float
    new_weight: float
    interaction_count: int
    phase: str
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    @property
    def delta(self) -> float:
        return self.new_weight - self.old_weight

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['persona_type'] = self.persona_type.value
        data['delta'] = self.delta
        data['timestamp'] = self.timestamp.isoformat()
        return data


@dataclass
class WeightEntry:
    node_id: str
    persona_type: PersonaType
    weight: float
    interaction_count: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['persona_type'] = self.persona_type.value
        return data


@dataclass
class WeightDistribution:
    """Snapshot of every known node's current weight"""
    entries: List[WeightEntry] = field(default_factory=list)
    total_weight: float = 0.0
    average_weight: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entries': [e.to_dict() for e in self.entries],
            'total_weight': self.total_weight,
            'average_weight': self.average_weight,
        }


# =============================================================================
# WEIGHT CALCULATOR
# =============================================================================

class WeightCalculator:
    """
    Stateful weight ledger over an InteractionTracker.

    Nodes that have never been weighted report their persona's base weight.
    """

    def __init__(self, tracker: InteractionTracker):
        self.tracker = tracker
        self._weights: Dict[str, float] = {}
        self._types: Dict[str, PersonaType] = {}

    def register_node(self, node_id: str, persona_type: PersonaKey) -> PersonaType:
        resolved = parse_persona_type(persona_type)
        self._types[node_id] = resolved
        self._weights.setdefault(node_id, get_profile(resolved).base_weight)
        return resolved

    def get_weight(self, node_id: str) -> Optional[float]:
        return self._weights.get(node_id)

    def update_weight(self, node_id: str, persona_type: PersonaKey, phase: PhaseKey) -> float:
        """Recompute one node's weight from its live interaction count"""
        resolved = self.register_node(node_id, persona_type)
        weight = compute_weight(resolved, phase, self.tracker.get_interaction_count(node_id))
        self._weights[node_id] = weight
        return weight

    def adjust_all_weights(
        self,
        phase: PhaseKey,
        agent_map: Optional[Mapping[str, PersonaKey]] = None
    ) -> List[WeightAdjustment]:
        """
        Recompute weights for every (node_id -> persona type) pair.

        Interaction counts are read from the tracker at call time. With no
        agent_map, every registered node is recomputed.
        """
        if agent_map is None:
            agent_map = dict(self._types)

        phase_name = getattr(phase, 'value', str(phase))
        adjustments = []
        for node_id, persona_type in agent_map.items():
            resolved = self.register_node(node_id, persona_type)
            old_weight = self._weights[node_id]
            count = self.tracker.get_interaction_count(node_id)
            new_weight = compute_weight(resolved, phase, count)
            self._weights[node_id] = new_weight
            adjustments.append(WeightAdjustment(
                node_id=node_id,
                persona_type=resolved,
                old_weight=old_weight,
                new_weight=new_weight,
                interaction_count=count,
                phase=phase_name,
            ))

        logger.info(f"Adjusted weights for {len(adjustments)} agents (phase: {phase_name})")
        return adjustments

    def get_weight_distribution(self) -> WeightDistribution:
        entries = [
            WeightEntry(
                node_id=node_id,
                persona_type=self._types[node_id],
                weight=weight,
                interaction_count=self.tracker.get_interaction_count(node_id),
            )
            for node_id, weight in self._weights.items()
        ]
        total = sum(e.weight for e in entries)
        average = total / len(entries) if entries else 0.0
        return WeightDistribution(entries=entries, total_weight=total, average_weight=average)

    def reset(self) -> None:
        self._weights.clear()
        self._types.clear()
