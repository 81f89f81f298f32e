"""
Tests for the performance monitor.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from persona_council import (
    AlertLevel,
    AlertThresholds,
    ConfigurationError,
    HealthStatus,
    InteractionTracker,
    PerformanceMonitor,
    PersonaType,
    ThresholdLevels,
)


def record_samples(monitor, responses, errors):
    for _ in range(responses):
        monitor.record_response_time("turn", 100)
    for _ in range(errors):
        monitor.record_error("turn", "failed")


class TestHealthCheck:
    """Two-tier health with cold-start leniency"""

    def test_cold_start_is_healthy(self, monitor):
        health = monitor.perform_health_check()
        assert health.status == HealthStatus.HEALTHY
        assert health.overall
        assert health.recommendations == []

    def test_few_samples_stay_healthy(self, monitor):
        record_samples(monitor, responses=0, errors=2)
        assert monitor.check_error_rate_health().status == HealthStatus.HEALTHY

    def test_critical_error_rate(self, monitor):
        record_samples(monitor, responses=3, errors=1)
        health = monitor.perform_health_check()
        assert health.components['error_rate'].status == HealthStatus.CRITICAL
        assert health.status == HealthStatus.CRITICAL
        assert not health.overall
        assert "Reduce the error rate of discussion turns" in health.recommendations

    def test_warning_error_rate(self, monitor):
        record_samples(monitor, responses=8, errors=1)
        assert monitor.check_error_rate_health().status == HealthStatus.WARNING

    def test_low_quality(self, monitor):
        for persona_type in ("INTJ", "ENFP", "ISTJ"):
            monitor.record_quality_score(persona_type, 0.2)
        assert monitor.check_quality_health().status == HealthStatus.CRITICAL

    def test_quality_needs_several_agents(self, monitor):
        monitor.record_quality_score("INTJ", 0.2)
        assert monitor.check_quality_health().status == HealthStatus.HEALTHY

    def test_slow_responses_recommend(self, tracker):
        monitor = PerformanceMonitor(tracker, response_time_target_ms=50, memory_probe=lambda: 0.0)
        monitor.record_response_time("turn", 200)
        assert any("exceeds target" in r for r in monitor.perform_health_check().recommendations)


class TestMetrics:
    """System and per-agent aggregates"""

    def test_system_metrics(self, monitor):
        record_samples(monitor, responses=4, errors=0)
        monitor.record_quality_score("INTJ", 0.8)
        monitor.record_quality_score("INTJ", 0.6)
        monitor.record_quality_score("ENFP", 0.4)

        metrics = monitor.get_system_metrics()

        assert metrics.response_time_ms == pytest.approx(100.0)
        assert metrics.error_rate == 0.0
        assert metrics.average_quality == pytest.approx(0.6)
        assert metrics.participant_balance == pytest.approx(0.5)
        assert metrics.active_agents == 2
        assert metrics.throughput_per_minute == 4.0
        expected_load = (0.25 + 100 / 5000 + 0.0) / 3
        assert metrics.system_load == pytest.approx(expected_load)

    def test_agent_metrics_and_trend(self, monitor):
        for score in (0.2, 0.3, 0.8, 0.9):
            monitor.record_quality_score("ISTP", score)

        metrics = monitor.get_performance_metrics("ISTP")

        assert metrics.best_score == 0.9
        assert metrics.worst_score == 0.2
        assert metrics.last_score == 0.9
        assert metrics.recent_trend == "improving"
        assert metrics.participation_share == 1.0

    def test_unknown_agent_metrics_are_empty(self, monitor):
        assert monitor.get_performance_metrics("ESFP").sample_count == 0

    def test_history_bounded_newest_first(self, tracker):
        monitor = PerformanceMonitor(tracker, history_size=3, memory_probe=lambda: 0.0)
        snapshots = [monitor.collect_metrics() for _ in range(5)]

        history = monitor.get_metrics_history()

        assert len(history) == 3
        assert history[0] is snapshots[-1]
        assert monitor.get_metrics_history(limit=1) == [snapshots[-1]]
        assert monitor.get_metrics_history(limit=0) == []

    def test_history_since(self, monitor):
        old = monitor.collect_metrics()
        old.timestamp = datetime.now(timezone.utc) - timedelta(hours=2)
        recent = monitor.collect_metrics()
        since = datetime.now(timezone.utc) - timedelta(hours=1)
        assert monitor.get_metrics_history(since=since) == [recent]

    def test_realtime_stats(self, monitor):
        monitor.record_quality_score("INTJ", 0.7)
        stats = monitor.get_realtime_stats()
        assert stats.active_agents == 1
        assert not stats.monitoring


class TestAlerts:
    """Thresholds, handlers and history"""

    def test_quality_alert_emitted(self, monitor):
        received = []
        monitor.register_alert_handler(received.append)

        monitor.record_quality_score(PersonaType.ESFJ, 0.25)

        assert len(received) == 1
        assert received[0].level == AlertLevel.CRITICAL
        assert received[0].persona_type == "ESFJ"
        assert monitor.get_alert_history()[0] is received[0]

    def test_error_rate_alert_after_min_samples(self, monitor):
        received = []
        monitor.register_alert_handler(received.append)
        monitor.record_error("turn", "x")
        monitor.record_error("turn", "y")
        assert received == []
        monitor.record_error("turn", "z")
        assert received[-1].kind == "error_rate"

    def test_handler_errors_are_contained(self, monitor):
        def broken(alert):
            raise RuntimeError("handler failed")

        monitor.register_alert_handler(broken)
        monitor.record_quality_score("INTJ", 0.1)
        assert len(monitor.get_alert_history()) == 1

    @pytest.mark.asyncio
    async def test_async_handler_scheduled(self, monitor):
        handler = AsyncMock()
        monitor.register_alert_handler(handler)
        monitor.record_quality_score("INTJ", 0.1)
        await monitor.drain()
        handler.assert_awaited_once()

    def test_alert_history_bounded(self, tracker):
        monitor = PerformanceMonitor(tracker, alert_history_size=2, memory_probe=lambda: 0.0)
        for _ in range(5):
            monitor.record_quality_score("INTJ", 0.1)
        assert len(monitor.get_alert_history()) == 2

    def test_partial_threshold_update(self, monitor):
        updated = monitor.set_alert_thresholds({'error_rate': {'critical': 0.5}})
        assert updated.error_rate.critical == 0.5
        assert updated.error_rate.warning == 0.10
        assert updated.quality_score.warning == 0.50

    def test_replaced_thresholds_take_effect(self, monitor):
        record_samples(monitor, responses=3, errors=1)
        monitor.set_alert_thresholds(AlertThresholds(
            error_rate=ThresholdLevels(warning=0.4, critical=0.6),
            quality_score=ThresholdLevels(warning=0.5, critical=0.3),
        ))
        assert monitor.check_error_rate_health().status == HealthStatus.HEALTHY

    def test_invalid_thresholds_rejected(self, monitor):
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds({'error_rate': {'warning': 0.9, 'critical': 0.2}})
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds({'latency': {'warning': 0.1}})
        assert monitor.get_alert_thresholds().error_rate.warning == 0.10

    def test_malformed_partial_update_rejected(self, monitor):
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds({'error_rate': 0.3})
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds({'quality_score': {'warning': "high"}})
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds(0.3)

        thresholds = monitor.get_alert_thresholds()
        assert thresholds.error_rate.warning == 0.10
        assert thresholds.quality_score.warning == 0.50

    def test_equal_levels_rejected(self, monitor):
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds({'error_rate': {'warning': 0.2, 'critical': 0.2}})
        with pytest.raises(ConfigurationError):
            monitor.set_alert_thresholds({'quality_score': {'warning': 0.3, 'critical': 0.3}})

    def test_initial_thresholds_are_copied(self, tracker):
        thresholds = AlertThresholds()
        monitor = PerformanceMonitor(tracker, thresholds=thresholds, memory_probe=lambda: 0.0)

        thresholds.error_rate.critical = 0.99

        assert monitor.get_alert_thresholds().error_rate.critical == 0.20

    def test_returned_thresholds_are_copies(self, monitor):
        thresholds = monitor.get_alert_thresholds()
        thresholds.error_rate.critical = 0.99
        assert monitor.get_alert_thresholds().error_rate.critical == 0.20


class TestLifecycle:
    """Sampling loop and Redis mirroring"""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, monitor):
        await monitor.start_monitoring()
        assert monitor.is_active()
        await monitor.start_monitoring()
        await asyncio.sleep(0.05)
        await monitor.stop_monitoring()

        assert not monitor.is_active()
        assert len(monitor.get_metrics_history()) >= 1

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self, monitor):
        await monitor.stop_monitoring()
        assert not monitor.is_active()

    @pytest.mark.asyncio
    async def test_redis_mirroring(self, tracker, mock_redis):
        monitor = PerformanceMonitor(tracker, redis_client=mock_redis, memory_probe=lambda: 0.0)
        monitor.collect_metrics()
        monitor.record_quality_score("INTJ", 0.1)
        await monitor.drain()

        keys = [call.args[0] for call in mock_redis.lpush.await_args_list]
        assert "monitor:snapshots" in keys
        assert "monitor:alerts" in keys
        payload = json.loads(mock_redis.lpush.await_args_list[0].args[1])
        assert 'system' in payload

    @pytest.mark.asyncio
    async def test_redis_failure_is_contained(self, tracker):
        failing = MagicMock()
        failing.lpush = AsyncMock(side_effect=ConnectionError("down"))
        monitor = PerformanceMonitor(tracker, redis_client=failing, memory_probe=lambda: 0.0)
        monitor.collect_metrics()
        await monitor.drain()
        assert len(monitor.get_metrics_history()) == 1

    def test_reset(self, monitor):
        record_samples(monitor, responses=3, errors=1)
        monitor.record_quality_score("INTJ", 0.1)
        monitor.collect_metrics()

        monitor.reset()

        assert monitor.get_metrics_history() == []
        assert monitor.get_alert_history() == []
        assert monitor.tracker.sample_count() == 0

    def test_invalid_initial_thresholds(self):
        with pytest.raises(ConfigurationError):
            PerformanceMonitor(InteractionTracker(), thresholds=AlertThresholds(
                error_rate=ThresholdLevels(warning=0.5, critical=0.1),
            ))
