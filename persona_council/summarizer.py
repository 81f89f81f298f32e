# =============================================================================
# DISCUSSION SUMMARIZER
# =============================================================================
"""
End-of-discussion summaries with two strategies:

- LLM: seven prompts through a TextGenerator (themes, progress, per-type
  contributions, consensus, insights, process characteristics, overview)
- Algorithmic: keyword and statistics based, no external calls

The LLM strategy is attempted first when a generator is supplied. Any
failure from it falls back to the algorithmic strategy; the SummaryResult
records which strategy produced the summary and why the primary failed.
"""

import math
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from .errors import TransientError
from .llm import TextGenerator
from .traits import CognitiveGroup, PersonaKey, PersonaType, get_group, parse_persona_type

logger = logging.getLogger(__name__)


# =============================================================================
# SCHEMAS
# =============================================================================

@dataclass
class DiscussionStatement:
    """One recorded turn"""
    persona_type: PersonaType
    content: str
    confidence: float = 0.7
    relevance: float = 0.7
    node_id: Optional[str] = None
    timestamp: datetime = None

    def __post_init__(self):
        self.persona_type = parse_persona_type(self.persona_type)
        self.content = self.content or ""
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['persona_type'] = self.persona_type.value
        data['timestamp'] = self.timestamp.isoformat()
        return data


@dataclass
class DiscussionQualityMetrics:
    diversity_score: float = 0.0
    consistency_score: float = 0.0
    social_decision_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DiscussionSummary:
    overview: str
    key_themes: List[str] = field(default_factory=list)
    progress_analysis: str = ""
    persona_contributions: Dict[str, str] = field(default_factory=dict)
    consensus: str = ""
    insights: List[str] = field(default_factory=list)
    process_characteristics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SummaryStrategy(str, Enum):
    LLM = "llm"
    ALGORITHMIC = "algorithmic"


@dataclass
class SummaryResult:
    """Summary plus the strategy that produced it"""
    summary: DiscussionSummary
    strategy: SummaryStrategy
    error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.strategy == SummaryStrategy.ALGORITHMIC and self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary.to_dict(),
            'strategy': self.strategy.value,
            'error': self.error,
        }


# =============================================================================
# ENTRY POINT
# =============================================================================

async def summarize_discussion(
    statements: Sequence[DiscussionStatement],
    topic: str,
    participant_types: Iterable[PersonaKey],
    quality_metrics: Optional[DiscussionQualityMetrics] = None,
    generator: Optional[TextGenerator] = None
) -> SummaryResult:
    """Summarize with the LLM when available, algorithmically otherwise"""
    statements = list(statements)
    participants = [parse_persona_type(t) for t in participant_types]
    metrics = quality_metrics or DiscussionQualityMetrics()

    if generator is None:
        return SummaryResult(
            summary=algorithmic_summary(statements, topic, participants, metrics),
            strategy=SummaryStrategy.ALGORITHMIC,
        )

    try:
        summary = await llm_summary(statements, topic, participants, metrics, generator)
        return SummaryResult(summary=summary, strategy=SummaryStrategy.LLM)
    except Exception as e:
        logger.warning(f"LLM summary failed, using algorithmic fallback: {e}")
        return SummaryResult(
            summary=algorithmic_summary(statements, topic, participants, metrics),
            strategy=SummaryStrategy.ALGORITHMIC,
            error=str(e),
        )


# =============================================================================
# LLM STRATEGY
# =============================================================================

SUMMARY_ANALYST_ROLE = "You are an analyst who summarizes discussions. Be concise and insightful."
THEME_ANALYST_ROLE = "You are an expert in discussion analysis. Identify the important themes precisely."
PROGRESS_ANALYST_ROLE = "You analyze how discussions unfold. Describe the progression precisely."
PERSONA_ANALYST_ROLE = "You are an expert in personality types. Describe each type's distinctive contribution."
CONSENSUS_ANALYST_ROLE = "You analyze consensus building. Describe how the discussion converged."
INSIGHT_ANALYST_ROLE = "You extract valuable insights from discussions. Identify the key points."
PROCESS_ANALYST_ROLE = "You analyze discussion processes. Identify their structural characteristics."

_BULLET_PATTERN = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s*")


async def _ask(generator: TextGenerator, system: str, prompt: str) -> str:
    response = await generator.generate([
        {'role': 'system', 'content': system},
        {'role': 'user', 'content': prompt},
    ])
    text = (response or {}).get('text', '').strip()
    if not text:
        raise TransientError("LLM returned an empty response")
    return text


def _list_items(text: str, limit: int, min_length: int = 10) -> List[str]:
    items = [_BULLET_PATTERN.sub("", line).strip() for line in text.split("\n")]
    return [item for item in items if len(item) > min_length][:limit]


def _transcript(statements: Sequence[DiscussionStatement], limit: int) -> str:
    return "\n".join(f"{s.persona_type.value}: {s.content[:limit]}" for s in statements)


async def llm_summary(
    statements: List[DiscussionStatement],
    topic: str,
    participants: List[PersonaType],
    metrics: DiscussionQualityMetrics,
    generator: TextGenerator
) -> DiscussionSummary:
    count = len(statements)

    themes_text = await _ask(generator, THEME_ANALYST_ROLE, (
        f"Topic: {topic}\n\nDiscussion:\n{_transcript(statements, 200)}\n\n"
        "Extract 3-5 main themes from this discussion. Express each in one or two words, "
        "comma separated. Example: efficiency, creativity, cooperation"
    ))
    key_themes = [t.strip() for t in themes_text.split(",") if t.strip()][:5]

    third = count // 3
    progress_analysis = await _ask(generator, PROGRESS_ANALYST_ROLE, (
        f"Early stage:\n{_transcript(statements[:third], 100)}\n\n"
        f"Middle stage:\n{_transcript(statements[third:2 * third], 100)}\n\n"
        f"Late stage:\n{_transcript(statements[2 * third:], 100)}\n\n"
        "In two or three sentences, describe how this discussion developed and deepened."
    ))

    persona_contributions = {}
    for persona_type in participants:
        own = [s for s in statements if s.persona_type == persona_type]
        if not own:
            continue
        sample = " | ".join(s.content[:100] for s in own[:3])
        persona_contributions[persona_type.value] = await _ask(generator, PERSONA_ANALYST_ROLE, (
            f"Statements by {persona_type.value}: {sample}\n\n"
            f"In one sentence, summarize the perspective, values and style {persona_type.value} contributed."
        ))

    consensus = await _ask(generator, CONSENSUS_ANALYST_ROLE, (
        f"Later statements:\n{_transcript(statements[-(count // 2):] if count >= 2 else statements, 120)}\n\n"
        "In one or two sentences, describe how participants moved toward agreement "
        "or kept their diversity of views."
    ))

    highlights = sorted(statements, key=lambda s: s.confidence, reverse=True)[:5]
    insights = _list_items(await _ask(generator, INSIGHT_ANALYST_ROLE, (
        f"Topic: {topic}\nDiversity score: {metrics.diversity_score:.2f}\n\n"
        f"Highlights:\n{_transcript(highlights, 400)}\n\n"
        "List 2-3 important insights, one per line."
    )), limit=3)

    process_characteristics = _list_items(await _ask(generator, PROCESS_ANALYST_ROLE, (
        f"Participants: {', '.join(t.value for t in participants)}\n"
        f"Statement count: {count}\n\n"
        "List 2-3 characteristic patterns of how this discussion was run, one per line."
    )), limit=3)

    overview = await _ask(generator, SUMMARY_ANALYST_ROLE, (
        f"Topic: {topic}\nParticipants: {', '.join(t.value for t in participants)}\n"
        f"Main themes: {', '.join(key_themes)}\n\n"
        f"Opening statements:\n{_transcript(statements[:6], 150)}\n\n"
        "Write a four or five sentence overview covering notable speakers, the main arguments, "
        "the flow of the discussion and the conclusions reached."
    ))

    return DiscussionSummary(
        overview=overview,
        key_themes=key_themes,
        progress_analysis=progress_analysis,
        persona_contributions=persona_contributions,
        consensus=consensus,
        insights=insights,
        process_characteristics=process_characteristics,
    )


# =============================================================================
# ALGORITHMIC STRATEGY
# =============================================================================

THEME_KEYWORDS: Dict[str, str] = {
    "efficien": "efficiency",
    "innovat": "innovation",
    "cooperat": "cooperation",
    "analy": "analysis",
    "value": "values",
    "implement": "implementation",
    "solution": "solutions",
    "strateg": "strategy",
    "emotion": "emotion",
    "logic": "logic",
}

COMPOSITE_THEMES = [
    (("technolog", "system"), "technical perspective"),
    (("human", "societ"), "human and social perspective"),
    (("future",), "future outlook"),
    (("challenge", "problem"), "problem solving"),
]

CONSENSUS_KEYWORDS = ["agree", "consensus", "support", "understand", "convinced", "conclusion", "in summary"]

GROUP_CONTRIBUTIONS: Dict[CognitiveGroup, str] = {
    CognitiveGroup.NT: "from a strategic, analytical perspective, adding logical structure",
    CognitiveGroup.NF: "from a values-driven, human perspective, giving the discussion meaning",
    CognitiveGroup.SJ: "from a practical, organizational perspective, making ideas concrete and systematic",
    CognitiveGroup.SP: "from a flexible, adaptive perspective, steering toward realistic solutions",
}

PHASE_SIZE = 4
MAX_THEMES = 5
MAX_INSIGHTS = 4


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def extract_key_themes(statements: Sequence[DiscussionStatement]) -> List[str]:
    themes: List[str] = []
    for statement in statements:
        content = statement.content.lower()
        for stem, label in THEME_KEYWORDS.items():
            if stem in content and label not in themes:
                themes.append(label)
        for stems, label in COMPOSITE_THEMES:
            if any(stem in content for stem in stems) and label not in themes:
                themes.append(label)
    return themes[:MAX_THEMES]


def analyze_progress(statements: Sequence[DiscussionStatement]) -> str:
    if not statements:
        return "No statements were recorded."

    phases = math.ceil(len(statements) / PHASE_SIZE)
    patterns = []
    for index in range(phases):
        chunk = statements[index * PHASE_SIZE:(index + 1) * PHASE_SIZE]
        confidence = _mean(s.confidence for s in chunk)
        relevance = _mean(s.relevance for s in chunk)
        if confidence > 0.8 and relevance > 0.8:
            patterns.append(f"phase {index + 1}: high quality discussion")
        elif confidence > 0.7:
            patterns.append(f"phase {index + 1}: steady discussion")
        else:
            patterns.append(f"phase {index + 1}: exploratory discussion")

    depth = "a thorough" if len(statements) > 12 else "an efficient"
    return f"The discussion ran in {phases} phases ({', '.join(patterns)}), {depth} process overall."


def analyze_contributions(
    statements: Sequence[DiscussionStatement],
    participants: Sequence[PersonaType]
) -> Dict[str, str]:
    contributions = {}
    for persona_type in participants:
        own = [s for s in statements if s.persona_type == persona_type]
        if not own:
            continue
        quality = _mean(s.confidence for s in own)
        contributions[persona_type.value] = (
            f"{len(own)} statements {GROUP_CONTRIBUTIONS[get_group(persona_type)]} "
            f"(quality: {quality:.0%})"
        )
    return contributions


def analyze_consensus(statements: Sequence[DiscussionStatement]) -> str:
    later = list(statements[-(len(statements) // 3):]) if len(statements) >= 3 else []
    hits = sum(
        1
        for statement in later
        for keyword in CONSENSUS_KEYWORDS
        if keyword in statement.content.lower()
    )
    rate = hits / len(later) if later else 0.0

    if rate > 0.3:
        return "Active consensus building in the closing stage deepened mutual understanding."
    if rate > 0.1:
        return "Consensus formed gradually and a shared understanding emerged."
    return "Diverse viewpoints were maintained while understanding of each issue deepened."


def participation_pattern(statements: Sequence[DiscussionStatement]) -> Dict[str, bool]:
    counts: Dict[PersonaType, int] = {}
    for statement in statements:
        counts[statement.persona_type] = counts.get(statement.persona_type, 0) + 1
    balanced = bool(counts) and max(counts.values()) / min(counts.values()) <= 2

    half = len(statements) // 2
    first, second = statements[:half], statements[half:]
    progression = bool(first) and bool(second) and (
        _mean(s.confidence for s in second) > _mean(s.confidence for s in first) + 0.05
    )
    return {'balanced': balanced, 'quality_progression': progression}


def confidence_progression(statements: Sequence[DiscussionStatement]) -> float:
    if len(statements) < 4:
        return 0.0
    quarter = len(statements) // 4
    return _mean(s.confidence for s in statements[-quarter:]) - _mean(s.confidence for s in statements[:quarter])


def interaction_density(statements: Sequence[DiscussionStatement]) -> float:
    """Share of turn gaps notably shorter than the average gap (0.5 when unknown)"""
    intervals = [
        (later.timestamp - earlier.timestamp).total_seconds()
        for earlier, later in zip(statements, statements[1:])
    ]
    if not intervals:
        return 0.5
    average = _mean(intervals)
    return sum(1 for i in intervals if i < average * 0.8) / len(intervals)


def extract_insights(
    statements: Sequence[DiscussionStatement],
    metrics: DiscussionQualityMetrics
) -> List[str]:
    insights = []
    if metrics.diversity_score >= 0.85:
        insights.append("The diversity of persona types greatly enriched the discussion")
    if metrics.consistency_score >= 0.85:
        insights.append("Creative discussion was achieved while keeping logical consistency")
    if metrics.social_decision_score >= 0.8:
        insights.append("The collaborative decision process worked effectively")

    pattern = participation_pattern(statements)
    if pattern['balanced']:
        insights.append("Balanced participation produced a comprehensive discussion")
    if pattern['quality_progression']:
        insights.append("Statement quality improved as the discussion progressed")
    return insights[:MAX_INSIGHTS]


def group_counts(participants: Sequence[PersonaType]) -> Dict[CognitiveGroup, int]:
    counts = {group: 0 for group in CognitiveGroup}
    for persona_type in participants:
        counts[get_group(persona_type)] += 1
    return counts


def analyze_process(
    statements: Sequence[DiscussionStatement],
    participants: Sequence[PersonaType]
) -> List[str]:
    characteristics = []
    if sum(1 for count in group_counts(participants).values() if count >= 2) >= 3:
        characteristics.append("The four cognitive groups participated in good balance")
    if confidence_progression(statements) > 0.05:
        characteristics.append("Participant confidence rose as the discussion progressed")
    if interaction_density(statements) > 0.7:
        characteristics.append("High interaction density produced a lively discussion")
    else:
        characteristics.append("A structured, orderly progression of turns")
    return characteristics


def build_overview(
    topic: str,
    participants: Sequence[PersonaType],
    statement_count: int,
    metrics: DiscussionQualityMetrics,
    key_themes: List[str]
) -> str:
    groups = ", ".join(
        f"{group.value}({count})" for group, count in group_counts(participants).items() if count > 0
    )
    if metrics.diversity_score >= 0.85:
        quality_level = "very high quality"
    elif metrics.diversity_score >= 0.75:
        quality_level = "high quality"
    else:
        quality_level = "standard"
    themes = ", ".join(key_themes[:3]) if key_themes else "none identified"
    return (
        f'On "{topic}", {len(participants)} persona types ({groups or "none"}) held a '
        f"{quality_level} discussion over {statement_count} statements. "
        f"Main themes: {themes}. Overall quality score {metrics.diversity_score:.0%}."
    )


def algorithmic_summary(
    statements: List[DiscussionStatement],
    topic: str,
    participants: List[PersonaType],
    metrics: DiscussionQualityMetrics
) -> DiscussionSummary:
    key_themes = extract_key_themes(statements)
    return DiscussionSummary(
        overview=build_overview(topic, participants, len(statements), metrics, key_themes),
        key_themes=key_themes,
        progress_analysis=analyze_progress(statements),
        persona_contributions=analyze_contributions(statements, participants),
        consensus=analyze_consensus(statements),
        insights=extract_insights(statements, metrics),
        process_characteristics=analyze_process(statements, participants),
    )
