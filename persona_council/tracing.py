# =============================================================================
# LANGFUSE EVALUATION TRACING
# =============================================================================
"""
Langfuse integration for statement evaluations.

Features:
- One span per evaluated statement (input context, aggregated output)
- One score per evaluator plus the overall score
- Sampling
- Failures are logged and never reach the scoring path
"""

import random
from typing import Any, Dict, Optional
import logging

from langfuse import Langfuse

logger = logging.getLogger(__name__)


SPAN_NAME = "statement_evaluation"


class EvaluationTracer:
    """
    Sends evaluation traces to Langfuse.

    A disabled tracer is a no-op. A client can be injected; otherwise one is
    built from the given keys.
    """

    def __init__(
        self,
        langfuse_client: Optional[Any] = None,
        enabled: bool = True,
        sample_rate: float = 1.0,
        public_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        host: str = "http://localhost:3000"
    ):
        self.enabled = enabled
        self.sample_rate = sample_rate

        if self.enabled and langfuse_client is not None:
            self.langfuse = langfuse_client
        elif self.enabled:
            self.langfuse = Langfuse(public_key=public_key, secret_key=secret_key, host=host)
        else:
            self.langfuse = None

        self.traced_count = 0

    @classmethod
    def from_config(cls, config) -> 'EvaluationTracer':
        """Build from a DiscussionConfig; disabled when no keys are configured"""
        enabled = config.langfuse_enabled and bool(config.langfuse_public_key and config.langfuse_secret_key)
        return cls(
            enabled=enabled,
            sample_rate=config.langfuse_sample_rate,
            public_key=config.langfuse_public_key,
            secret_key=config.langfuse_secret_key,
            host=config.langfuse_host,
        )

    def _should_sample(self) -> bool:
        return random.random() < self.sample_rate

    def record_evaluation(self, evaluation) -> Optional[Any]:
        """Trace one ChainEvaluation; returns the span or None"""
        if not self.enabled or self.langfuse is None or not self._should_sample():
            return None

        try:
            span = self.langfuse.start_span(
                name=SPAN_NAME,
                input=evaluation.context.model_dump(),
                metadata={
                    'mbti_type': evaluation.context.mbti_type,
                    'phase': evaluation.context.phase,
                    'failed_evaluators': [kind.value for kind in evaluation.errors],
                },
            )
            span.update(output=evaluation.scores.to_dict())
            for kind, result in evaluation.results.items():
                span.score(name=kind.value, value=result.score)
            span.score(name="overall_score", value=evaluation.scores.overall_score)
            span.end()
        except Exception as e:
            logger.error(f"Failed to trace evaluation: {e}")
            return None

        self.traced_count += 1
        return span

    def flush(self) -> None:
        if self.langfuse is None:
            return
        try:
            self.langfuse.flush()
        except Exception as e:
            logger.error(f"Failed to flush Langfuse client: {e}")

    def get_stats(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'sample_rate': self.sample_rate,
            'traced_count': self.traced_count,
        }
