# =============================================================================
# TRAIT REGISTRY - Persona Reference Data
# =============================================================================
"""
Static reference data for the sixteen discussion personas.

Provides:
- Persona type -> cognitive group mapping (NT, NF, SJ, SP)
- Trait profiles (cognitive function stack, communication style,
  decision making, base weight)
- Persona and group compatibility matrices
- Phase weight modifiers per cognitive group
- Curated keyword lists used by the persona alignment evaluator

All tables are read-only after import and safe to share between threads.

Unknown persona keys follow a single fallback policy: they resolve to
FALLBACK_PERSONA_TYPE (INTJ, the first type of the first group) with a
warning. Callers that prefer rejection use parse_persona_type(strict=True),
which raises ConfigurationError instead.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Iterable, Optional, Union
import logging

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class PersonaType(str, Enum):
    """The sixteen persona (MBTI) types"""
    # NT (Rational)
    INTJ = "INTJ"
    INTP = "INTP"
    ENTJ = "ENTJ"
    ENTP = "ENTP"
    # NF (Idealist)
    INFJ = "INFJ"
    INFP = "INFP"
    ENFJ = "ENFJ"
    ENFP = "ENFP"
    # SJ (Guardian)
    ISTJ = "ISTJ"
    ISFJ = "ISFJ"
    ESTJ = "ESTJ"
    ESFJ = "ESFJ"
    # SP (Artisan)
    ISTP = "ISTP"
    ISFP = "ISFP"
    ESTP = "ESTP"
    ESFP = "ESFP"


class CognitiveGroup(str, Enum):
    """Coarse cognitive-style clusters"""
    NT = "NT"
    NF = "NF"
    SJ = "SJ"
    SP = "SP"


class Phase(str, Enum):
    """Ordered discussion phases"""
    BRAINSTORMING = "brainstorming"
    ANALYSIS = "analysis"
    SYNTHESIS = "synthesis"
    CONCLUSION = "conclusion"


PersonaKey = Union[PersonaType, str]
PhaseKey = Union[Phase, str]

ALL_PERSONA_TYPES: List[PersonaType] = list(PersonaType)

FALLBACK_PERSONA_TYPE = PersonaType.INTJ


# =============================================================================
# TRAIT PROFILES
# =============================================================================

@dataclass(frozen=True)
class CognitiveFunctions:
    """Jungian function stack"""
    dominant: str
    auxiliary: str
    tertiary: str
    inferior: str


@dataclass(frozen=True)
class CommunicationStyle:
    focus: str
    approach: str
    preference: str


@dataclass(frozen=True)
class DecisionMaking:
    primary: str
    secondary: str


@dataclass(frozen=True)
class TraitProfile:
    """Read-only trait profile for one persona type"""
    persona_type: PersonaType
    group: CognitiveGroup
    cognitive_functions: CognitiveFunctions
    communication_style: CommunicationStyle
    decision_making: DecisionMaking
    base_weight: float = 1.0

    def __post_init__(self):
        if self.base_weight <= 0:
            raise ConfigurationError(
                f"base_weight must be positive for {self.persona_type.value}: {self.base_weight}"
            )

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data['persona_type'] = self.persona_type.value
        data['group'] = self.group.value
        return data


def _profile(
    persona_type: PersonaType,
    group: CognitiveGroup,
    functions: str,
    style: tuple,
    decision: tuple,
    base_weight: float = 1.0
) -> TraitProfile:
    dominant, auxiliary, tertiary, inferior = functions.split()
    return TraitProfile(
        persona_type=persona_type,
        group=group,
        cognitive_functions=CognitiveFunctions(dominant, auxiliary, tertiary, inferior),
        communication_style=CommunicationStyle(*style),
        decision_making=DecisionMaking(*decision),
        base_weight=base_weight,
    )


TRAIT_PROFILES: Dict[PersonaType, TraitProfile] = {
    # NT
    PersonaType.INTJ: _profile(
        PersonaType.INTJ, CognitiveGroup.NT, "Ni Te Fi Se",
        ("strategic, long-term view", "logical and systematic", "efficient, structured discussion"),
        ("logical analysis", "intuitive insight"),
    ),
    PersonaType.INTP: _profile(
        PersonaType.INTP, CognitiveGroup.NT, "Ti Ne Si Fe",
        ("theoretical, conceptual inquiry", "analytical and objective", "discussion valuing logical coherence"),
        ("logical consistency", "exploring possibilities"),
    ),
    PersonaType.ENTJ: _profile(
        PersonaType.ENTJ, CognitiveGroup.NT, "Te Ni Se Fi",
        ("goal achievement and leadership", "decisive and driving", "efficient, results-oriented discussion"),
        ("efficiency and outcomes", "strategic thinking"),
    ),
    PersonaType.ENTP: _profile(
        PersonaType.ENTP, CognitiveGroup.NT, "Ne Ti Fe Si",
        ("possibilities and novel ideas", "argumentative and challenging", "creative, stimulating discussion"),
        ("new possibilities", "logical verification"),
    ),
    # NF
    PersonaType.INFJ: _profile(
        PersonaType.INFJ, CognitiveGroup.NF, "Ni Fe Ti Se",
        ("people and values", "empathetic and insightful", "discussion grounded in meaning and purpose"),
        ("consistency with values", "intuitive understanding"),
    ),
    PersonaType.INFP: _profile(
        PersonaType.INFP, CognitiveGroup.NF, "Fi Ne Si Te",
        ("personal values and authenticity", "idealistic and individual", "discussion about values and meaning"),
        ("personal values", "exploring possibilities"),
    ),
    PersonaType.ENFJ: _profile(
        PersonaType.ENFJ, CognitiveGroup.NF, "Fe Ni Se Ti",
        ("relationships and harmony", "inspiring and cooperative", "inclusive discussion everyone can join"),
        ("impact on others", "intuitive understanding"),
    ),
    PersonaType.ENFP: _profile(
        PersonaType.ENFP, CognitiveGroup.NF, "Ne Fi Te Si",
        ("human potential and inspiration", "enthusiastic and creative", "free, creative discussion"),
        ("human potential", "personal values"),
    ),
    # SJ
    PersonaType.ISTJ: _profile(
        PersonaType.ISTJ, CognitiveGroup.SJ, "Si Te Fi Ne",
        ("practical, concrete facts", "careful and detail-oriented", "structured, step-by-step discussion"),
        ("past experience and track record", "logical consistency"),
    ),
    PersonaType.ISFJ: _profile(
        PersonaType.ISFJ, CognitiveGroup.SJ, "Si Fe Ti Ne",
        ("care and support for others", "cooperative and responsible", "safe, cooperative discussion"),
        ("impact on others", "practical experience"),
    ),
    PersonaType.ESTJ: _profile(
        PersonaType.ESTJ, CognitiveGroup.SJ, "Te Si Ne Fi",
        ("organization and efficiency", "directive and realistic", "structured, goal-oriented discussion"),
        ("efficiency and track record", "established practice"),
    ),
    PersonaType.ESFJ: _profile(
        PersonaType.ESFJ, CognitiveGroup.SJ, "Fe Si Ne Ti",
        ("harmony and social responsibility", "supportive and cooperative", "comfortable, collaborative discussion"),
        ("group harmony", "practical experience"),
    ),
    # SP
    PersonaType.ISTP: _profile(
        PersonaType.ISTP, CognitiveGroup.SP, "Ti Se Ni Fe",
        ("practical problem solving", "analytical and hands-on", "concrete, actionable discussion"),
        ("logical analysis", "practical effectiveness"),
    ),
    PersonaType.ISFP: _profile(
        PersonaType.ISFP, CognitiveGroup.SP, "Fi Se Ni Te",
        ("personal experience and aesthetics", "flexible and individual", "free, personal discussion"),
        ("personal values", "present experience"),
    ),
    PersonaType.ESTP: _profile(
        PersonaType.ESTP, CognitiveGroup.SP, "Se Ti Fe Ni",
        ("realistic, action-oriented", "pragmatic and energetic", "active, practical discussion"),
        ("immediate practicality", "logical analysis"),
    ),
    PersonaType.ESFP: _profile(
        PersonaType.ESFP, CognitiveGroup.SP, "Se Fi Te Ni",
        ("people and enjoyment", "sociable and present-focused", "fun, easy-to-join discussion"),
        ("impact on people", "present experience"),
    ),
}


# =============================================================================
# COMPATIBILITY AND PHASE TABLES
# =============================================================================

GROUP_COMPATIBILITY: Dict[CognitiveGroup, Dict[CognitiveGroup, float]] = {
    CognitiveGroup.NT: {CognitiveGroup.NT: 0.8, CognitiveGroup.NF: 0.6, CognitiveGroup.SJ: 0.5, CognitiveGroup.SP: 0.7},
    CognitiveGroup.NF: {CognitiveGroup.NT: 0.6, CognitiveGroup.NF: 0.9, CognitiveGroup.SJ: 0.4, CognitiveGroup.SP: 0.5},
    CognitiveGroup.SJ: {CognitiveGroup.NT: 0.5, CognitiveGroup.NF: 0.4, CognitiveGroup.SJ: 0.8, CognitiveGroup.SP: 0.3},
    CognitiveGroup.SP: {CognitiveGroup.NT: 0.7, CognitiveGroup.NF: 0.5, CognitiveGroup.SJ: 0.3, CognitiveGroup.SP: 0.8},
}

PHASE_WEIGHT_MODIFIERS: Dict[Phase, Dict[CognitiveGroup, float]] = {
    Phase.BRAINSTORMING: {CognitiveGroup.NT: 0.9, CognitiveGroup.NF: 1.2, CognitiveGroup.SJ: 0.8, CognitiveGroup.SP: 1.1},
    Phase.ANALYSIS: {CognitiveGroup.NT: 1.3, CognitiveGroup.NF: 0.9, CognitiveGroup.SJ: 1.1, CognitiveGroup.SP: 0.8},
    Phase.SYNTHESIS: {CognitiveGroup.NT: 1.1, CognitiveGroup.NF: 1.0, CognitiveGroup.SJ: 0.9, CognitiveGroup.SP: 0.9},
    Phase.CONCLUSION: {CognitiveGroup.NT: 1.0, CognitiveGroup.NF: 0.8, CognitiveGroup.SJ: 1.2, CognitiveGroup.SP: 1.0},
}

DEFAULT_PHASE_MODIFIER = 1.0

# Rows and columns follow ALL_PERSONA_TYPES order
_COMPATIBILITY_ROWS = {
    PersonaType.INTJ: (0.8, 0.9, 0.7, 0.8, 0.6, 0.5, 0.4, 0.6, 0.5, 0.3, 0.6, 0.2, 0.7, 0.4, 0.5, 0.3),
    PersonaType.INTP: (0.9, 0.8, 0.8, 0.9, 0.7, 0.6, 0.5, 0.7, 0.4, 0.3, 0.5, 0.2, 0.8, 0.5, 0.6, 0.4),
    PersonaType.ENTJ: (0.7, 0.8, 0.8, 0.9, 0.5, 0.4, 0.6, 0.7, 0.6, 0.4, 0.8, 0.5, 0.6, 0.3, 0.7, 0.5),
    PersonaType.ENTP: (0.8, 0.9, 0.9, 0.8, 0.6, 0.7, 0.7, 0.8, 0.3, 0.4, 0.6, 0.5, 0.7, 0.6, 0.8, 0.7),
    PersonaType.INFJ: (0.6, 0.7, 0.5, 0.6, 0.9, 0.8, 0.8, 0.7, 0.4, 0.6, 0.3, 0.5, 0.5, 0.7, 0.4, 0.6),
    PersonaType.INFP: (0.5, 0.6, 0.4, 0.7, 0.8, 0.8, 0.7, 0.9, 0.3, 0.5, 0.2, 0.4, 0.6, 0.8, 0.5, 0.7),
    PersonaType.ENFJ: (0.4, 0.5, 0.6, 0.7, 0.8, 0.7, 0.8, 0.8, 0.5, 0.7, 0.6, 0.8, 0.4, 0.6, 0.6, 0.8),
    PersonaType.ENFP: (0.6, 0.7, 0.7, 0.8, 0.7, 0.9, 0.8, 0.8, 0.3, 0.5, 0.5, 0.7, 0.5, 0.7, 0.7, 0.8),
    PersonaType.ISTJ: (0.5, 0.4, 0.6, 0.3, 0.4, 0.3, 0.5, 0.3, 0.8, 0.7, 0.8, 0.6, 0.6, 0.5, 0.5, 0.4),
    PersonaType.ISFJ: (0.3, 0.3, 0.4, 0.4, 0.6, 0.5, 0.7, 0.5, 0.7, 0.8, 0.6, 0.8, 0.5, 0.6, 0.4, 0.6),
    PersonaType.ESTJ: (0.6, 0.5, 0.8, 0.6, 0.3, 0.2, 0.6, 0.5, 0.8, 0.6, 0.8, 0.7, 0.5, 0.3, 0.6, 0.5),
    PersonaType.ESFJ: (0.2, 0.2, 0.5, 0.5, 0.5, 0.4, 0.8, 0.7, 0.6, 0.8, 0.7, 0.8, 0.3, 0.5, 0.5, 0.7),
    PersonaType.ISTP: (0.7, 0.8, 0.6, 0.7, 0.5, 0.6, 0.4, 0.5, 0.6, 0.5, 0.5, 0.3, 0.8, 0.7, 0.8, 0.6),
    PersonaType.ISFP: (0.4, 0.5, 0.3, 0.6, 0.7, 0.8, 0.6, 0.7, 0.5, 0.6, 0.3, 0.5, 0.7, 0.8, 0.6, 0.7),
    PersonaType.ESTP: (0.5, 0.6, 0.7, 0.8, 0.4, 0.5, 0.6, 0.7, 0.5, 0.4, 0.6, 0.5, 0.8, 0.6, 0.8, 0.8),
    PersonaType.ESFP: (0.3, 0.4, 0.5, 0.7, 0.6, 0.7, 0.8, 0.8, 0.4, 0.6, 0.5, 0.7, 0.6, 0.7, 0.8, 0.8),
}

COMPATIBILITY_MATRIX: Dict[PersonaType, Dict[PersonaType, float]] = {
    row_type: dict(zip(ALL_PERSONA_TYPES, row))
    for row_type, row in _COMPATIBILITY_ROWS.items()
}


# =============================================================================
# ALIGNMENT KEYWORDS
# =============================================================================

PERSONA_KEYWORDS: Dict[PersonaType, List[str]] = {
    PersonaType.INTJ: ["plan", "strategy", "logic", "analysis", "efficien", "independent"],
    PersonaType.INTP: ["theory", "concept", "logic", "hypothesis", "consisten", "principle"],
    PersonaType.ENTJ: ["goal", "lead", "decision", "efficien", "result", "execute"],
    PersonaType.ENTP: ["idea", "possibilit", "innovat", "debate", "creat", "flexib"],
    PersonaType.INFJ: ["ideal", "insight", "values", "harmony", "deep", "meaning"],
    PersonaType.INFP: ["authentic", "values", "meaning", "individual", "empathy", "ideal"],
    PersonaType.ENFJ: ["people", "inspire", "harmony", "together", "growth", "support"],
    PersonaType.ENFP: ["passion", "creat", "relationship", "possibilit", "freedom", "inspir"],
    PersonaType.ISTJ: ["responsib", "practical", "tradition", "stab", "plan", "reliab"],
    PersonaType.ISFJ: ["care", "support", "tradition", "harmony", "responsib", "cooperat"],
    PersonaType.ESTJ: ["organiz", "efficien", "rule", "structure", "result", "manage"],
    PersonaType.ESFJ: ["harmony", "community", "help", "cooperat", "everyone", "responsib"],
    PersonaType.ISTP: ["practical", "solve", "mechanism", "analysis", "tool", "hands-on"],
    PersonaType.ISFP: ["experience", "beauty", "personal", "flexib", "values", "express"],
    PersonaType.ESTP: ["action", "practical", "reality", "flexib", "adapt", "experience"],
    PersonaType.ESFP: ["fun", "relationship", "present", "cooperat", "freedom", "express"],
}


# =============================================================================
# LOOKUPS
# =============================================================================

def parse_persona_type(value: PersonaKey, strict: bool = False) -> PersonaType:
    """
    Resolve a persona key.

    Lenient mode (default) maps unknown keys to FALLBACK_PERSONA_TYPE with a
    warning; strict mode raises ConfigurationError.
    """
    if isinstance(value, PersonaType):
        return value
    try:
        return PersonaType(str(value).strip().upper())
    except ValueError:
        if strict:
            raise ConfigurationError(f"Unknown persona type: {value!r}")
        logger.warning(
            f"Unknown persona type {value!r}, falling back to {FALLBACK_PERSONA_TYPE.value}"
        )
        return FALLBACK_PERSONA_TYPE


def parse_phase(value: PhaseKey, strict: bool = False) -> Optional[Phase]:
    """Resolve a phase key; unknown keys give None unless strict"""
    if isinstance(value, Phase):
        return value
    try:
        return Phase(str(value).strip().lower())
    except ValueError:
        if strict:
            raise ConfigurationError(f"Unknown discussion phase: {value!r}")
        logger.warning(f"Unknown discussion phase {value!r}, using neutral modifier")
        return None


def get_profile(persona_type: PersonaKey) -> TraitProfile:
    return TRAIT_PROFILES[parse_persona_type(persona_type)]


def get_group(persona_type: PersonaKey) -> CognitiveGroup:
    return get_profile(persona_type).group


def get_keywords(persona_type: PersonaKey) -> List[str]:
    return list(PERSONA_KEYWORDS[parse_persona_type(persona_type)])


def get_phase_modifier(phase: PhaseKey, group: CognitiveGroup) -> float:
    """Phase multiplier for a cognitive group (1.0 for unknown phases)"""
    resolved = parse_phase(phase)
    if resolved is None:
        return DEFAULT_PHASE_MODIFIER
    return PHASE_WEIGHT_MODIFIERS.get(resolved, {}).get(group, DEFAULT_PHASE_MODIFIER)


def get_compatibility(first: PersonaKey, second: PersonaKey) -> float:
    return COMPATIBILITY_MATRIX[parse_persona_type(first)][parse_persona_type(second)]


def get_group_compatibility(first: CognitiveGroup, second: CognitiveGroup) -> float:
    return GROUP_COMPATIBILITY[CognitiveGroup(first)][CognitiveGroup(second)]


def average_compatibility(persona_type: PersonaKey, participants: Iterable[PersonaKey]) -> float:
    """Mean compatibility against the other participants (0.0 when alone)"""
    resolved = parse_persona_type(persona_type)
    scores = [
        get_compatibility(resolved, other)
        for other in participants
        if parse_persona_type(other) != resolved
    ]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def types_in_group(group: CognitiveGroup) -> List[PersonaType]:
    return [t for t, profile in TRAIT_PROFILES.items() if profile.group == group]
