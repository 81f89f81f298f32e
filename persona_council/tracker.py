# =============================================================================
# INTERACTION TRACKER - Per-Agent History Ledger
# =============================================================================
"""
The InteractionTracker is the owned, mutable ledger behind the weighting
and monitoring components.

It keeps:
- Per-node interaction counters (feed the interaction decay of weights)
- A bounded window of response-time samples
- A bounded, time-limited window of error records (1 hour retention)
- Bounded windows of recent quality scores per persona type

One tracker is created per discussion session and injected into the
components that need it. All operations take an internal lock so parallel
discussion turns never lose updates.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Union
import logging

from .traits import PersonaKey, PersonaType, parse_persona_type

logger = logging.getLogger(__name__)


DEFAULT_RESPONSE_WINDOW_SIZE = 100
DEFAULT_ERROR_WINDOW_SIZE = 1000
DEFAULT_SCORE_WINDOW_SIZE = 100
DEFAULT_ERROR_RETENTION_SECONDS = 3600.0


# =============================================================================
# RECORD SCHEMAS
# =============================================================================

@dataclass
class ResponseSample:
    """One timed operation"""
    operation: str
    duration_ms: float
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ErrorRecord:
    """One recorded error"""
    kind: str
    message: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ScoreInput = Union[float, int, Mapping[str, Any], Any]


def extract_overall_score(scores: ScoreInput) -> float:
    """
    Pull an overall score out of a float, a mapping with 'overall_score',
    or an object with an overall_score attribute. Result is clamped to [0, 1].
    """
    if isinstance(scores, (int, float)):
        value = float(scores)
    elif isinstance(scores, Mapping):
        value = float(scores.get('overall_score', scores.get('score', 0.0)))
    else:
        value = float(getattr(scores, 'overall_score', getattr(scores, 'score', 0.0)))
    return max(0.0, min(1.0, value))


# =============================================================================
# TRACKER
# =============================================================================

class InteractionTracker:
    """
    Process-local ledger keyed by agent node id.

    Window sizes and error retention are configurable; every window evicts
    its oldest entries first once capacity is exceeded.
    """

    def __init__(
        self,
        response_window_size: int = DEFAULT_RESPONSE_WINDOW_SIZE,
        error_window_size: int = DEFAULT_ERROR_WINDOW_SIZE,
        score_window_size: int = DEFAULT_SCORE_WINDOW_SIZE,
        error_retention_seconds: float = DEFAULT_ERROR_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self.response_window_size = response_window_size
        self.error_window_size = error_window_size
        self.score_window_size = score_window_size
        self.error_retention_seconds = error_retention_seconds
        self._clock = clock
        self._lock = threading.RLock()

        self._interactions: Dict[str, int] = {}
        self._response_times: Deque[ResponseSample] = deque(maxlen=response_window_size)
        self._errors: Deque[ErrorRecord] = deque(maxlen=error_window_size)
        self._quality_scores: Dict[PersonaType, Deque[float]] = {}
        self._quality_totals: Dict[PersonaType, int] = {}

    # ========================================================================
    # INTERACTIONS
    # ========================================================================

    def record_interaction(self, node_id: str) -> int:
        """Increment the node's interaction counter and return the new count"""
        with self._lock:
            count = self._interactions.get(node_id, 0) + 1
            self._interactions[node_id] = count
        logger.debug(f"Recorded interaction for {node_id} (total {count})")
        return count

    def get_interaction_count(self, node_id: str) -> int:
        with self._lock:
            return self._interactions.get(node_id, 0)

    def get_all_interaction_counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._interactions)

    # ========================================================================
    # ROLLING WINDOWS
    # ========================================================================

    def record_response_time(self, operation: str, duration_ms: float) -> None:
        sample = ResponseSample(
            operation=operation,
            duration_ms=max(0.0, float(duration_ms)),
            timestamp=self._clock()
        )
        with self._lock:
            self._response_times.append(sample)

    def record_error(self, kind: str, error: Union[BaseException, str]) -> ErrorRecord:
        """Record an error and purge entries older than the retention window"""
        now = self._clock()
        record = ErrorRecord(kind=kind, message=str(error), timestamp=now)
        with self._lock:
            self._purge_expired_errors(now)
            self._errors.append(record)
        return record

    def record_quality_score(self, persona_type: PersonaKey, scores: ScoreInput) -> float:
        """Record a persona's overall score; returns the clamped value stored"""
        resolved = parse_persona_type(persona_type)
        overall = extract_overall_score(scores)
        with self._lock:
            window = self._quality_scores.get(resolved)
            if window is None:
                window = deque(maxlen=self.score_window_size)
                self._quality_scores[resolved] = window
            window.append(overall)
            self._quality_totals[resolved] = self._quality_totals.get(resolved, 0) + 1
        return overall

    def _purge_expired_errors(self, now: float) -> None:
        cutoff = now - self.error_retention_seconds
        while self._errors and self._errors[0].timestamp <= cutoff:
            self._errors.popleft()

    # ========================================================================
    # READS
    # ========================================================================

    def get_response_times(self) -> List[ResponseSample]:
        with self._lock:
            return list(self._response_times)

    def get_errors(self) -> List[ErrorRecord]:
        with self._lock:
            self._purge_expired_errors(self._clock())
            return list(self._errors)

    def get_quality_scores(self, persona_type: PersonaKey) -> List[float]:
        resolved = parse_persona_type(persona_type)
        with self._lock:
            return list(self._quality_scores.get(resolved, ()))

    def get_all_quality_scores(self) -> Dict[PersonaType, List[float]]:
        with self._lock:
            return {t: list(scores) for t, scores in self._quality_scores.items()}

    def get_quality_total(self, persona_type: PersonaKey) -> int:
        """Number of scores ever recorded for the persona (not capped)"""
        with self._lock:
            return self._quality_totals.get(parse_persona_type(persona_type), 0)

    def response_count(self) -> int:
        with self._lock:
            return len(self._response_times)

    def responses_since(self, seconds: float) -> int:
        """Response samples recorded within the last `seconds`"""
        cutoff = self._clock() - seconds
        with self._lock:
            return sum(1 for s in self._response_times if s.timestamp >= cutoff)

    def error_count(self) -> int:
        return len(self.get_errors())

    def average_response_time(self) -> float:
        with self._lock:
            if not self._response_times:
                return 0.0
            return sum(s.duration_ms for s in self._response_times) / len(self._response_times)

    def error_rate(self) -> float:
        """errors / (responses + errors) over the current windows"""
        with self._lock:
            self._purge_expired_errors(self._clock())
            total = len(self._response_times) + len(self._errors)
            if total == 0:
                return 0.0
            return len(self._errors) / total

    def sample_count(self) -> int:
        with self._lock:
            self._purge_expired_errors(self._clock())
            return len(self._response_times) + len(self._errors)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def reset_all(self) -> None:
        """Clear every counter and window (start of a new session)"""
        with self._lock:
            self._interactions.clear()
            self._response_times.clear()
            self._errors.clear()
            self._quality_scores.clear()
            self._quality_totals.clear()
        logger.info("Interaction tracker reset")
