# =============================================================================
# STATEMENT EVALUATORS
# =============================================================================
"""
Heuristic scorers that turn a discussion statement into a quality breakdown.

Evaluators:
- PerformanceEvaluator: length band, topic relevance, structure
- PersonaAlignmentEvaluator: persona keyword overlap plus dichotomy cues
- SevenDimensionEvaluator: seven named sub-scores in a fixed convex blend

Every evaluator shares the QualityEvaluator interface (evaluate, get_type,
get_weight, configure) so they can be combined in an EvaluatorChain.
Malformed input never raises: empty statements or topics degrade to floor
scores. All scores and confidences are clamped to [0, 1].
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .traits import PERSONA_KEYWORDS, PersonaType

logger = logging.getLogger(__name__)


def clamp_score(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


# =============================================================================
# SCHEMAS
# =============================================================================

class EvaluatorType(str, Enum):
    """Evaluator kind tags"""
    PERFORMANCE = "performance"
    PERSONA_ALIGNMENT = "mbti-alignment"
    SEVEN_DIMENSION = "seven-dimension"


class EvaluationContext(BaseModel):
    """Input for one evaluation call"""
    model_config = ConfigDict(extra="ignore")

    statement: str = Field(default="", description="The statement being scored")
    topic: str = Field(default="", description="Discussion topic")
    mbti_type: str = Field(default="", description="Speaker's persona type tag")
    phase: Optional[str] = Field(default=None, description="Discussion phase")
    participant_types: List[str] = Field(default_factory=list)

    @field_validator('statement', 'topic', 'mbti_type', mode='before')
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, Enum):
            return str(v.value)
        return str(v)

    @field_validator('phase', mode='before')
    @classmethod
    def coerce_phase(cls, v):
        if isinstance(v, Enum):
            return str(v.value)
        return v

    @field_validator('participant_types', mode='before')
    @classmethod
    def coerce_participants(cls, v):
        if v is None:
            return []
        return [str(getattr(p, 'value', p)) for p in v]


class EvaluationResult(BaseModel):
    """Immutable output of one evaluator"""
    model_config = ConfigDict(frozen=True)

    score: float
    confidence: float
    breakdown: Dict[str, float] = Field(default_factory=dict)
    feedback: str = ""
    suggestions: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('score', 'confidence', mode='before')
    @classmethod
    def clamp(cls, v):
        return clamp_score(v)

    @field_validator('breakdown', mode='before')
    @classmethod
    def clamp_breakdown(cls, v):
        return {key: clamp_score(value) for key, value in (v or {}).items()}

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


ContextInput = Union[EvaluationContext, Mapping[str, Any]]


def as_context(context: ContextInput) -> EvaluationContext:
    if isinstance(context, EvaluationContext):
        return context
    return EvaluationContext.model_validate(dict(context or {}))


@dataclass
class EvaluatorConfig:
    """Ensemble configuration for one evaluator"""
    weight: float = 1.0
    thresholds: Dict[str, float] = field(default_factory=dict)
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# SHARED HEURISTICS
# =============================================================================

IDEAL_LENGTH_BAND = (50, 300)
ACCEPTABLE_LENGTH_BAND = (30, 500)
MAX_LENGTH_SCORE = 0.95

SENTENCE_END_PATTERN = re.compile(r"[.!?。！？]")


def score_length(statement: str) -> float:
    """Length-banded basic quality; empty or whitespace gives 0.1"""
    if not statement or not statement.strip():
        return 0.1

    length = len(statement.strip())
    if IDEAL_LENGTH_BAND[0] <= length <= IDEAL_LENGTH_BAND[1]:
        score = 0.9
    elif ACCEPTABLE_LENGTH_BAND[0] <= length <= ACCEPTABLE_LENGTH_BAND[1]:
        score = 0.7
    else:
        score = 0.5
    return min(MAX_LENGTH_SCORE, score)


def keyword_overlap(statement: str, keywords: List[str]) -> float:
    """
    Fraction of keywords present in the statement (case-insensitive
    substring match), normalized against half the keyword count.
    """
    if not statement:
        return 0.0
    lowered = statement.lower()
    matches = sum(1 for keyword in keywords if keyword and keyword.lower() in lowered)
    return min(1.0, matches / max(1, len(keywords) * 0.5))


def score_structure(statement: str) -> float:
    if not statement:
        return 0.0

    score = 0.5
    if SENTENCE_END_PATTERN.search(statement):
        score += 0.2

    lines = [line for line in statement.split("\n") if line.strip()]
    if len(lines) > 1:
        score += 0.1

    sentences = [s for s in SENTENCE_END_PATTERN.split(statement) if s.strip()]
    if sentences:
        average_length = sum(len(s) for s in sentences) / len(sentences)
        if 0 < average_length < 100:
            score += 0.2

    return min(1.0, score)


def topic_keywords(topic: str, min_length: int = 3) -> List[str]:
    return [word for word in (topic or "").split() if len(word) >= min_length]


def contains_any(text: str, terms: List[str]) -> bool:
    lowered = text.lower()
    return any(term in lowered for term in terms)


# =============================================================================
# BASE EVALUATOR
# =============================================================================

class QualityEvaluator(ABC):
    """Shared interface for every evaluator kind"""

    def __init__(self, weight: float = 1.0):
        self.config = EvaluatorConfig(weight=weight)

    @abstractmethod
    async def evaluate(self, context: ContextInput) -> EvaluationResult:
        ...

    @abstractmethod
    def get_type(self) -> EvaluatorType:
        ...

    def get_weight(self) -> float:
        return self.config.weight

    def is_enabled(self) -> bool:
        return self.config.enabled

    def configure(self, config: EvaluatorConfig) -> None:
        """Replace weight and enabled flag; thresholds are merged"""
        thresholds = {**self.config.thresholds, **config.thresholds}
        self.config = EvaluatorConfig(
            weight=config.weight,
            thresholds=thresholds,
            enabled=config.enabled,
        )
        logger.debug(
            f"Configured {self.get_type().value} evaluator: weight={config.weight}, enabled={config.enabled}"
        )


# =============================================================================
# PERFORMANCE EVALUATOR
# =============================================================================

class PerformanceEvaluator(QualityEvaluator):
    """Length, topic relevance and structure"""

    def get_type(self) -> EvaluatorType:
        return EvaluatorType.PERFORMANCE

    async def evaluate(self, context: ContextInput) -> EvaluationResult:
        ctx = as_context(context)
        keywords = topic_keywords(ctx.topic)

        basic = score_length(ctx.statement)
        relevance = keyword_overlap(ctx.statement, keywords)
        structure = score_structure(ctx.statement)
        overall = basic * 0.4 + relevance * 0.4 + structure * 0.2

        return EvaluationResult(
            score=overall,
            confidence=0.8,
            breakdown={
                'basic_quality': basic,
                'topic_relevance': relevance,
                'structure': structure,
            },
            feedback=self._feedback(basic, relevance, structure),
            suggestions=self._suggestions(basic, relevance, structure),
            metadata={
                'statement_length': len(ctx.statement),
                'topic_keyword_count': len(keywords),
            },
        )

    @staticmethod
    def _feedback(basic: float, relevance: float, structure: float) -> str:
        if basic < 0.5:
            return "Develop the statement further: it is too short or too long to carry its point."
        if relevance < 0.5:
            return "Tie the statement more closely to the discussion topic."
        if structure < 0.5:
            return "Organize the statement more clearly."
        return "Good quality statement. Keep raising the bar."

    @staticmethod
    def _suggestions(basic: float, relevance: float, structure: float) -> List[str]:
        suggestions = []
        if basic < 0.7:
            suggestions.append("Add a more detailed explanation")
        if relevance < 0.7:
            suggestions.append("Use key terms from the topic")
        if structure < 0.7:
            suggestions.append("Use punctuation and line breaks to improve readability")
        if not suggestions:
            suggestions.append("Maintain the current quality")
        return suggestions


# =============================================================================
# PERSONA ALIGNMENT EVALUATOR
# =============================================================================

GENERIC_KEYWORDS = ["think", "analy", "cooperat", "creat"]

INTROVERSION_CUES = ["think", "analy", "reflect", "believe"]
EXTRAVERSION_CUES = ["everyone", "together", "action", "let's"]
INTUITION_CUES = ["possibilit", "idea", "future"]
SENSING_CUES = ["concrete", "actual", "realistic"]
THINKING_CUES = ["logic", "analy", "efficien"]
FEELING_CUES = ["value", "harmony", "care"]


def alignment_keywords(mbti_type: str) -> List[str]:
    """Curated keywords for a known type, a generic list otherwise"""
    try:
        return list(PERSONA_KEYWORDS[PersonaType(mbti_type.strip().upper())])
    except ValueError:
        return list(GENERIC_KEYWORDS)


class PersonaAlignmentEvaluator(QualityEvaluator):
    """How well a statement reflects the speaker's persona"""

    def get_type(self) -> EvaluatorType:
        return EvaluatorType.PERSONA_ALIGNMENT

    async def evaluate(self, context: ContextInput) -> EvaluationResult:
        ctx = as_context(context)
        type_tag = ctx.mbti_type.strip().upper()
        keywords = alignment_keywords(type_tag)

        alignment = keyword_overlap(ctx.statement, keywords)
        characteristics = self._characteristics(ctx.statement, type_tag)
        overall = alignment * 0.6 + characteristics * 0.4

        lowered = ctx.statement.lower()
        return EvaluationResult(
            score=overall,
            confidence=0.75,
            breakdown={
                'persona_alignment': alignment,
                'characteristics': characteristics,
            },
            feedback=self._feedback(type_tag, alignment),
            suggestions=self._suggestions(type_tag, alignment, keywords),
            metadata={
                'mbti_type': type_tag,
                'detected_characteristics': [k for k in keywords if k.lower() in lowered],
            },
        )

    @staticmethod
    def _characteristics(statement: str, type_tag: str) -> float:
        score = 0.5
        if type_tag.startswith('I'):
            if contains_any(statement, INTROVERSION_CUES):
                score += 0.2
        elif contains_any(statement, EXTRAVERSION_CUES):
            score += 0.2

        if 'N' in type_tag:
            if contains_any(statement, INTUITION_CUES):
                score += 0.15
        elif contains_any(statement, SENSING_CUES):
            score += 0.15

        if 'T' in type_tag:
            if contains_any(statement, THINKING_CUES):
                score += 0.15
        elif contains_any(statement, FEELING_CUES):
            score += 0.15

        return min(1.0, score)

    @staticmethod
    def _feedback(type_tag: str, alignment: float) -> str:
        label = type_tag or "this persona"
        if alignment < 0.5:
            return f"Lean more on the characteristic strengths of {label}."
        if alignment < 0.7:
            return f"A recognizably {label} perspective. There is room to use it further."
        return f"The {label} perspective comes through clearly."

    @staticmethod
    def _suggestions(type_tag: str, alignment: float, keywords: List[str]) -> List[str]:
        suggestions = []
        if alignment < 0.7:
            suggestions.append(
                f"Keep the {type_tag or 'persona'} traits in mind ({', '.join(keywords[:3])})"
            )
        if 'T' in type_tag:
            suggestions.append("Include logical analysis and supporting evidence")
        else:
            suggestions.append("Include values and consideration for others")
        return suggestions


# =============================================================================
# SEVEN-DIMENSION EVALUATOR
# =============================================================================

SEVEN_DIMENSION_WEIGHTS: Dict[str, float] = {
    'performance': 0.15,
    'psychological': 0.15,
    'external_alignment': 0.15,
    'internal_consistency': 0.15,
    'social_decision_making': 0.10,
    'content_quality': 0.20,
    'ethics': 0.10,
}

DIMENSION_LABELS: Dict[str, str] = {
    'performance': "performance",
    'psychological': "psychological fit",
    'external_alignment': "topic alignment",
    'internal_consistency': "internal consistency",
    'social_decision_making': "social consideration",
    'content_quality': "content quality",
    'ethics': "ethics",
}

SOCIAL_KEYWORDS = ["cooperat", "consider", "discuss", "agree", "everyone", "together"]
ETHICS_DENYLIST = ["discriminat", "prejudice", "bigot", "attack"]

LOW_DIMENSION_THRESHOLD = 0.6
ETHICS_FLAGGED_SCORE = 0.3
ETHICS_CLEAR_SCORE = 0.9


def score_ethics(statement: str) -> float:
    """0.3 when any denylisted term appears (case-insensitive), else 0.9"""
    if contains_any(statement or "", ETHICS_DENYLIST):
        return ETHICS_FLAGGED_SCORE
    return ETHICS_CLEAR_SCORE


class SevenDimensionEvaluator(QualityEvaluator):
    """Composite of seven named quality axes"""

    def get_type(self) -> EvaluatorType:
        return EvaluatorType.SEVEN_DIMENSION

    async def evaluate(self, context: ContextInput) -> EvaluationResult:
        ctx = as_context(context)
        statement = ctx.statement
        basic = score_length(statement)

        dimensions = {
            'performance': basic,
            'psychological': basic * 0.8 + 0.2,
            'external_alignment': keyword_overlap(statement, ctx.topic.split()),
            'internal_consistency': 0.8 if len(statement) > 20 else 0.5,
            'social_decision_making': keyword_overlap(statement, SOCIAL_KEYWORDS) * 0.5 + 0.5,
            'content_quality': basic,
            'ethics': score_ethics(statement),
        }
        overall = sum(value * SEVEN_DIMENSION_WEIGHTS[key] for key, value in dimensions.items())

        return EvaluationResult(
            score=overall,
            confidence=0.8,
            breakdown=dimensions,
            feedback=self._feedback(dimensions),
            suggestions=self._suggestions(dimensions),
            metadata={'overall_score': overall},
        )

    @staticmethod
    def _feedback(dimensions: Dict[str, float]) -> str:
        lowest_key, lowest_value = min(dimensions.items(), key=lambda item: item[1])
        if lowest_value < LOW_DIMENSION_THRESHOLD:
            return f"Improvement recommended in {DIMENSION_LABELS[lowest_key]}."
        return "A well balanced statement overall."

    @staticmethod
    def _suggestions(dimensions: Dict[str, float]) -> List[str]:
        suggestions = []
        if dimensions['content_quality'] < 0.7:
            suggestions.append("Include more detailed and concrete content")
        if dimensions['social_decision_making'] < 0.7:
            suggestions.append("Show consideration for others and willingness to cooperate")
        if dimensions['external_alignment'] < 0.7:
            suggestions.append("Relate the content more closely to the topic")
        if not suggestions:
            suggestions.append("High quality statement. Keep this level")
        return suggestions


def default_evaluators() -> List[QualityEvaluator]:
    return [PerformanceEvaluator(), PersonaAlignmentEvaluator(), SevenDimensionEvaluator()]
