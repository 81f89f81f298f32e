"""
Shared fixtures for persona council tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from persona_council import (
    DiscussionConfig,
    EvaluationTracer,
    InteractionTracker,
    PerformanceMonitor,
)


class FakeClock:
    """Manually advanced clock for window and retention tests"""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return InteractionTracker(clock=clock)


@pytest.fixture
def monitor(tracker):
    return PerformanceMonitor(tracker, interval_seconds=0.01, memory_probe=lambda: 0.25)


@pytest.fixture
def config():
    return DiscussionConfig(langfuse_enabled=False)


@pytest.fixture
def disabled_tracer():
    return EvaluationTracer(enabled=False)


@pytest.fixture
def mock_redis():
    client = MagicMock()
    client.lpush = AsyncMock(return_value=1)
    client.ltrim = AsyncMock(return_value=True)
    client.expire = AsyncMock(return_value=True)
    client.ping = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_langfuse():
    client = MagicMock()
    span = MagicMock()
    client.start_span.return_value = span
    return client


@pytest.fixture
def mock_generator():
    generator = MagicMock()
    generator.generate = AsyncMock(return_value={'text': "efficiency, innovation, cooperation"})
    generator.close = AsyncMock()
    return generator
