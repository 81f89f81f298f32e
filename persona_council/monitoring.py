# =============================================================================
# PERFORMANCE MONITOR
# =============================================================================
"""
System-wide health and metrics aggregation over an InteractionTracker.

Features:
- Periodic sampling loop (start/stop, misuse is a logged no-op)
- System metrics: memory, load, error rate, response time, throughput
- Per-agent aggregates (average/best/worst score, trend, participation)
- Bounded metrics history (oldest evicted first)
- Two-tier health check with cold-start leniency
- Runtime-reconfigurable alert thresholds (partial merge or replacement)
- Alert handlers (sync or async) with a bounded alert history
- Optional Redis mirroring of snapshots and alerts
"""

import asyncio
import inspect
import json
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Set, Union
import logging

from .errors import ConfigurationError
from .traits import PersonaKey, PersonaType, parse_persona_type
from .tracker import InteractionTracker, ScoreInput

logger = logging.getLogger(__name__)


MIN_HEALTH_SAMPLES = 3
RESPONSE_TIME_LOAD_CEILING_MS = 5000.0
ERROR_LOAD_FACTOR = 10.0
TREND_TOLERANCE = 0.05
REDIS_TTL_SECONDS = 24 * 3600


# =============================================================================
# MONITORING SCHEMAS
# =============================================================================

class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertLevel(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class ThresholdLevels:
    warning: float
    critical: float


@dataclass
class AlertThresholds:
    """
    Two-tier alert thresholds.

    Error rate alerts fire when the rate is at or above a level; quality
    alerts fire when the score is at or below a level.
    """
    error_rate: ThresholdLevels = field(default_factory=lambda: ThresholdLevels(warning=0.10, critical=0.20))
    quality_score: ThresholdLevels = field(default_factory=lambda: ThresholdLevels(warning=0.50, critical=0.30))

    def validate(self) -> None:
        for name, levels in (('error_rate', self.error_rate), ('quality_score', self.quality_score)):
            for level_name, value in (('warning', levels.warning), ('critical', levels.critical)):
                if not 0.0 <= value <= 1.0:
                    raise ConfigurationError(f"Alert threshold {name}.{level_name} out of range: {value}")
        if self.error_rate.warning >= self.error_rate.critical:
            raise ConfigurationError("Error rate warning threshold must be below the critical threshold")
        if self.quality_score.warning <= self.quality_score.critical:
            raise ConfigurationError("Quality warning threshold must be above the critical threshold")

    @classmethod
    def from_settings(cls, settings) -> 'AlertThresholds':
        """Build from config.AlertThresholdSettings"""
        return cls(
            error_rate=ThresholdLevels(settings.error_rate_warning, settings.error_rate_critical),
            quality_score=ThresholdLevels(settings.quality_warning, settings.quality_critical),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Alert:
    level: AlertLevel
    kind: str  # error_rate, quality_score
    message: str
    value: float
    threshold: float
    persona_type: Optional[str] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['level'] = self.level.value
        data['timestamp'] = self.timestamp.isoformat()
        return data


@dataclass
class SystemMetrics:
    evaluation_count: int = 0
    average_quality: float = 0.0
    system_load: float = 0.0
    memory_usage: float = 0.0
    response_time_ms: float = 0.0
    error_rate: float = 0.0
    throughput_per_minute: float = 0.0
    participant_balance: float = 1.0
    active_agents: int = 0
    last_updated: datetime = None

    def __post_init__(self):
        if self.last_updated is None:
            self.last_updated = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['last_updated'] = self.last_updated.isoformat()
        return data


@dataclass
class AgentMetrics:
    """Rolling aggregates for one persona type"""
    persona_type: PersonaType
    average_score: float = 0.0
    best_score: float = 0.0
    worst_score: float = 1.0
    last_score: float = 0.0
    sample_count: int = 0
    recent_trend: str = "stable"  # improving, declining, stable
    participation_share: float = 0.0
    throughput_per_minute: float = 0.0
    error_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['persona_type'] = self.persona_type.value
        return data


@dataclass
class MetricsSnapshot:
    system: SystemMetrics
    agents: Dict[PersonaType, AgentMetrics]
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'system': self.system.to_dict(),
            'agents': {t.value: m.to_dict() for t, m in self.agents.items()},
        }


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: str
    last_check: datetime = None

    def __post_init__(self):
        if self.last_check is None:
            self.last_check = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status.value, 'message': self.message, 'last_check': self.last_check.isoformat()}


@dataclass
class HealthCheck:
    status: HealthStatus
    overall: bool
    components: Dict[str, ComponentHealth]
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'overall': self.overall,
            'components': {k: c.to_dict() for k, c in self.components.items()},
            'recommendations': list(self.recommendations),
        }


@dataclass
class RealtimeStats:
    current_load: float
    active_agents: int
    processing_latency_ms: float
    monitoring: bool
    last_update: datetime = None

    def __post_init__(self):
        if self.last_update is None:
            self.last_update = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['last_update'] = self.last_update.isoformat()
        return data


def process_memory_fraction() -> float:
    """Peak resident memory of this process as a fraction of physical memory"""
    try:
        import os
        import resource
        rss_kb = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        total_bytes = os.sysconf('SC_PAGE_SIZE') * os.sysconf('SC_PHYS_PAGES')
    except (ImportError, ValueError, OSError, AttributeError):
        return 0.0
    if total_bytes <= 0:
        return 0.0
    return max(0.0, min(1.0, rss_kb * 1024 / total_bytes))


# =============================================================================
# PERFORMANCE MONITOR
# =============================================================================

AlertHandler = Callable[[Alert], Any]


class PerformanceMonitor:
    """
    Samples the tracker on a timer and derives health, alerts and history.

    The monitor owns no counters of its own: recordings go through the
    tracker, and the record_* helpers here add threshold checks on top.
    """

    def __init__(
        self,
        tracker: InteractionTracker,
        interval_seconds: float = 5.0,
        history_size: int = 1000,
        alert_history_size: int = 100,
        thresholds: Optional[AlertThresholds] = None,
        redis_client=None,
        response_time_target_ms: Optional[float] = None,
        memory_probe: Callable[[], float] = process_memory_fraction
    ):
        self.tracker = tracker
        self.interval_seconds = interval_seconds
        self.redis = redis_client
        self.response_time_target_ms = response_time_target_ms
        self._memory_probe = memory_probe

        self._thresholds = self._copy_thresholds(thresholds) if thresholds else AlertThresholds()
        self._thresholds.validate()

        self._history: Deque[MetricsSnapshot] = deque(maxlen=history_size)
        self._alerts: Deque[Alert] = deque(maxlen=alert_history_size)
        self._alert_handlers: List[AlertHandler] = []
        self._agent_metrics: Dict[PersonaType, AgentMetrics] = {}
        self._system_metrics = SystemMetrics()
        self._pending_tasks: Set[asyncio.Task] = set()

        self._running = False
        self._monitor_task: Optional[asyncio.Task] = None

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start_monitoring(self) -> None:
        if self._running:
            logger.warning("Monitoring already running")
            return

        self._running = True
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info(f"Performance monitoring started (interval: {self.interval_seconds}s)")

    async def stop_monitoring(self) -> None:
        if not self._running:
            logger.warning("Monitoring is not running")
            return

        self._running = False
        if self._monitor_task:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            self._monitor_task = None
        logger.info("Performance monitoring stopped")

    def is_active(self) -> bool:
        return self._running

    async def _monitor_loop(self) -> None:
        while self._running:
            try:
                self.collect_metrics()
            except Exception as e:
                logger.error(f"Metrics collection failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    # ========================================================================
    # RECORDING
    # ========================================================================

    def record_response_time(self, operation: str, duration_ms: float) -> None:
        self.tracker.record_response_time(operation, duration_ms)

    def record_error(self, kind: str, error: Union[BaseException, str]) -> None:
        self.tracker.record_error(kind, error)
        logger.error(f"Recorded error [{kind}]: {error}")
        self._check_error_rate()

    def record_quality_score(self, persona_type: PersonaKey, scores: ScoreInput) -> float:
        resolved = parse_persona_type(persona_type)
        overall = self.tracker.record_quality_score(resolved, scores)
        self._check_quality_score(resolved, overall)
        return overall

    # ========================================================================
    # COLLECTION
    # ========================================================================

    def collect_metrics(self) -> MetricsSnapshot:
        """One sampling tick: refresh system and agent aggregates, append history"""
        self._system_metrics = self._compute_system_metrics()
        self._agent_metrics = self._compute_agent_metrics()

        snapshot = MetricsSnapshot(system=self._system_metrics, agents=dict(self._agent_metrics))
        self._history.append(snapshot)

        if self.redis:
            self._schedule(self._store_snapshot(snapshot))
        logger.debug(
            f"Collected metrics: load={snapshot.system.system_load:.3f}, "
            f"error_rate={snapshot.system.error_rate:.3f}"
        )
        return snapshot

    def _throughput_per_minute(self) -> float:
        return float(self.tracker.responses_since(60.0))

    def _compute_system_metrics(self) -> SystemMetrics:
        memory = self._memory_probe()
        response_time = self.tracker.average_response_time()
        error_rate = self.tracker.error_rate()
        load = (
            memory
            + min(1.0, response_time / RESPONSE_TIME_LOAD_CEILING_MS)
            + min(1.0, error_rate * ERROR_LOAD_FACTOR)
        ) / 3

        scores = self.tracker.get_all_quality_scores()
        all_scores = [s for window in scores.values() for s in window]
        totals = [self.tracker.get_quality_total(t) for t in scores]
        balance = min(totals) / max(totals) if totals and max(totals) > 0 else 1.0

        return SystemMetrics(
            evaluation_count=sum(totals),
            average_quality=sum(all_scores) / len(all_scores) if all_scores else 0.0,
            system_load=load,
            memory_usage=memory,
            response_time_ms=response_time,
            error_rate=error_rate,
            throughput_per_minute=self._throughput_per_minute(),
            participant_balance=balance,
            active_agents=len(scores),
        )

    def _compute_agent_metrics(self) -> Dict[PersonaType, AgentMetrics]:
        scores = self.tracker.get_all_quality_scores()
        totals = {t: self.tracker.get_quality_total(t) for t in scores}
        grand_total = sum(totals.values())
        throughput = self._throughput_per_minute()
        error_rate = self.tracker.error_rate()

        metrics = {}
        for persona_type, window in scores.items():
            if not window:
                continue
            metrics[persona_type] = AgentMetrics(
                persona_type=persona_type,
                average_score=sum(window) / len(window),
                best_score=max(window),
                worst_score=min(window),
                last_score=window[-1],
                sample_count=totals[persona_type],
                recent_trend=self._trend(window),
                participation_share=totals[persona_type] / grand_total if grand_total else 0.0,
                throughput_per_minute=throughput,
                error_rate=error_rate,
            )
        return metrics

    @staticmethod
    def _trend(window: List[float]) -> str:
        if len(window) < 4:
            return "stable"
        half = len(window) // 2
        earlier = sum(window[:half]) / half
        later = sum(window[half:]) / (len(window) - half)
        if later - earlier > TREND_TOLERANCE:
            return "improving"
        if earlier - later > TREND_TOLERANCE:
            return "declining"
        return "stable"

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_system_metrics(self) -> SystemMetrics:
        """Fresh system metrics (does not append to history)"""
        self._system_metrics = self._compute_system_metrics()
        return self._system_metrics

    def get_performance_metrics(
        self,
        persona_type: Optional[PersonaKey] = None
    ) -> Union[AgentMetrics, Dict[PersonaType, AgentMetrics]]:
        self._agent_metrics = self._compute_agent_metrics()
        if persona_type is None:
            return dict(self._agent_metrics)
        resolved = parse_persona_type(persona_type)
        return self._agent_metrics.get(resolved, AgentMetrics(persona_type=resolved))

    def get_realtime_stats(self) -> RealtimeStats:
        return RealtimeStats(
            current_load=self._system_metrics.system_load,
            active_agents=len(self.tracker.get_all_quality_scores()),
            processing_latency_ms=self.tracker.average_response_time(),
            monitoring=self._running,
        )

    def get_metrics_history(self, limit: int = 100, since: Optional[datetime] = None) -> List[MetricsSnapshot]:
        """Most recent snapshots first"""
        history = list(self._history)
        if since is not None:
            history = [s for s in history if s.timestamp >= since]
        if limit <= 0:
            return []
        return list(reversed(history[-limit:]))

    def get_alert_history(self, limit: int = 50) -> List[Alert]:
        alerts = list(self._alerts)
        return list(reversed(alerts[-limit:])) if limit > 0 else []

    # ========================================================================
    # HEALTH CHECK
    # ========================================================================

    def perform_health_check(self) -> HealthCheck:
        components = {
            'error_rate': self.check_error_rate_health(),
            'quality': self.check_quality_health(),
        }
        recommendations = []
        if components['error_rate'].status != HealthStatus.HEALTHY:
            recommendations.append("Reduce the error rate of discussion turns")
        if components['quality'].status != HealthStatus.HEALTHY:
            recommendations.append("Improve discussion quality")

        response_time = self.tracker.average_response_time()
        if self.response_time_target_ms and response_time > self.response_time_target_ms:
            recommendations.append(
                f"Average response time {response_time:.0f}ms exceeds target {self.response_time_target_ms:.0f}ms"
            )

        statuses = [c.status for c in components.values()]
        if HealthStatus.CRITICAL in statuses:
            status = HealthStatus.CRITICAL
        elif HealthStatus.WARNING in statuses:
            status = HealthStatus.WARNING
        else:
            status = HealthStatus.HEALTHY

        return HealthCheck(
            status=status,
            overall=status == HealthStatus.HEALTHY,
            components=components,
            recommendations=recommendations,
        )

    def check_error_rate_health(self) -> ComponentHealth:
        samples = self.tracker.sample_count()
        if samples == 0:
            return ComponentHealth(HealthStatus.HEALTHY, "Error rate data not yet available")

        error_rate = self.tracker.error_rate()
        if samples < MIN_HEALTH_SAMPLES:
            return ComponentHealth(
                HealthStatus.HEALTHY,
                f"Accumulating error rate data: {error_rate:.1%} ({samples} samples)"
            )

        levels = self._thresholds.error_rate
        if error_rate >= levels.critical:
            return ComponentHealth(HealthStatus.CRITICAL, f"Error rate critical: {error_rate:.1%}")
        if error_rate >= levels.warning:
            return ComponentHealth(HealthStatus.WARNING, f"Error rate high: {error_rate:.1%}")
        return ComponentHealth(HealthStatus.HEALTHY, f"Error rate normal: {error_rate:.1%}")

    def check_quality_health(self) -> ComponentHealth:
        averages = [
            sum(window) / len(window)
            for window in self.tracker.get_all_quality_scores().values()
            if window
        ]
        averages = [a for a in averages if a > 0]
        if not averages:
            return ComponentHealth(HealthStatus.HEALTHY, "Quality data not yet available")

        average = sum(averages) / len(averages)
        if len(averages) < MIN_HEALTH_SAMPLES:
            return ComponentHealth(
                HealthStatus.HEALTHY,
                f"Accumulating quality data: {average:.1%} ({len(averages)} agents)"
            )

        levels = self._thresholds.quality_score
        if average <= levels.critical:
            return ComponentHealth(HealthStatus.CRITICAL, f"Discussion quality critical: {average:.1%}")
        if average <= levels.warning:
            return ComponentHealth(HealthStatus.WARNING, f"Discussion quality low: {average:.1%}")
        return ComponentHealth(HealthStatus.HEALTHY, f"Discussion quality normal: {average:.1%}")

    # ========================================================================
    # ALERTS
    # ========================================================================

    def get_alert_thresholds(self) -> AlertThresholds:
        return self._copy_thresholds(self._thresholds)

    def set_alert_thresholds(self, thresholds: Union[AlertThresholds, Mapping[str, Any]]) -> AlertThresholds:
        """
        Replace thresholds wholesale (AlertThresholds instance) or merge a
        partial mapping such as {'error_rate': {'critical': 0.3}}.
        Invalid results raise ConfigurationError and leave thresholds unchanged.
        """
        if isinstance(thresholds, AlertThresholds):
            candidate = self._copy_thresholds(thresholds)
        elif not isinstance(thresholds, Mapping):
            raise ConfigurationError(f"Unsupported alert threshold update: {thresholds!r}")
        else:
            merged = self._thresholds.to_dict()
            for group, levels in thresholds.items():
                if group not in merged:
                    raise ConfigurationError(f"Unknown alert threshold group: {group}")
                if isinstance(levels, ThresholdLevels):
                    levels = asdict(levels)
                if not isinstance(levels, Mapping):
                    raise ConfigurationError(
                        f"Alert threshold group {group} needs warning/critical levels, got {levels!r}"
                    )
                for level, value in levels.items():
                    if level not in merged[group]:
                        raise ConfigurationError(f"Unknown alert threshold level: {group}.{level}")
                    try:
                        merged[group][level] = float(value)
                    except (TypeError, ValueError) as e:
                        raise ConfigurationError(
                            f"Alert threshold {group}.{level} is not a number: {value!r}"
                        ) from e
            candidate = AlertThresholds(
                error_rate=ThresholdLevels(**merged['error_rate']),
                quality_score=ThresholdLevels(**merged['quality_score']),
            )

        candidate.validate()
        self._thresholds = candidate
        logger.info(f"Alert thresholds updated: {candidate.to_dict()}")
        return self.get_alert_thresholds()

    @staticmethod
    def _copy_thresholds(thresholds: AlertThresholds) -> AlertThresholds:
        return AlertThresholds(
            error_rate=ThresholdLevels(**asdict(thresholds.error_rate)),
            quality_score=ThresholdLevels(**asdict(thresholds.quality_score)),
        )

    def register_alert_handler(self, handler: AlertHandler) -> None:
        """Register handler for monitoring alerts (sync or async)"""
        self._alert_handlers.append(handler)

    def _check_error_rate(self) -> None:
        if self.tracker.sample_count() < MIN_HEALTH_SAMPLES:
            return
        error_rate = self.tracker.error_rate()
        levels = self._thresholds.error_rate
        if error_rate >= levels.critical:
            self._emit(Alert(AlertLevel.CRITICAL, "error_rate", f"Error rate critical: {error_rate:.1%}",
                             error_rate, levels.critical))
        elif error_rate >= levels.warning:
            self._emit(Alert(AlertLevel.WARNING, "error_rate", f"Error rate high: {error_rate:.1%}",
                             error_rate, levels.warning))

    def _check_quality_score(self, persona_type: PersonaType, score: float) -> None:
        levels = self._thresholds.quality_score
        if score <= levels.critical:
            self._emit(Alert(AlertLevel.CRITICAL, "quality_score",
                             f"{persona_type.value} quality score critical: {score:.1%}",
                             score, levels.critical, persona_type=persona_type.value))
        elif score <= levels.warning:
            self._emit(Alert(AlertLevel.WARNING, "quality_score",
                             f"{persona_type.value} quality score low: {score:.1%}",
                             score, levels.warning, persona_type=persona_type.value))

    def _emit(self, alert: Alert) -> None:
        self._alerts.append(alert)
        logger.warning(f"[{alert.level.value}] {alert.message}")

        for handler in self._alert_handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    if not self._schedule(handler(alert)):
                        logger.warning(f"No running event loop, async alert handler skipped: {alert.kind}")
                else:
                    handler(alert)
            except Exception as e:
                logger.error(f"Error in alert handler: {e}")

        if self.redis:
            self._schedule(self._store_alert(alert))

    async def trigger_alert(self, alert: Alert) -> None:
        """Deliver an alert to every handler, awaiting async ones"""
        self._alerts.append(alert)
        for handler in self._alert_handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(alert)
                else:
                    handler(alert)
            except Exception as e:
                logger.error(f"Error in alert handler: {e}")

    # ========================================================================
    # REDIS MIRRORING
    # ========================================================================

    def _schedule(self, coro) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return False
        task = loop.create_task(coro)
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)
        return True

    async def _store_snapshot(self, snapshot: MetricsSnapshot) -> None:
        """Store snapshot in Redis"""
        key = "monitor:snapshots"
        try:
            await self.redis.lpush(key, json.dumps(snapshot.to_dict()))
            await self.redis.ltrim(key, 0, self._history.maxlen - 1)
            await self.redis.expire(key, REDIS_TTL_SECONDS)
        except Exception as e:
            logger.error(f"Failed to mirror snapshot to Redis: {e}")

    async def _store_alert(self, alert: Alert) -> None:
        """Store alert in Redis"""
        key = "monitor:alerts"
        try:
            await self.redis.lpush(key, json.dumps(alert.to_dict()))
            await self.redis.ltrim(key, 0, self._alerts.maxlen - 1)
            await self.redis.expire(key, REDIS_TTL_SECONDS)
        except Exception as e:
            logger.error(f"Failed to mirror alert to Redis: {e}")

    async def drain(self) -> None:
        """Wait for scheduled handler and mirroring tasks"""
        if self._pending_tasks:
            await asyncio.gather(*list(self._pending_tasks), return_exceptions=True)

    # ========================================================================
    # RESET
    # ========================================================================

    def reset(self) -> None:
        """Clear tracker windows, history, alerts and agent aggregates"""
        self.tracker.reset_all()
        self._history.clear()
        self._alerts.clear()
        self._agent_metrics.clear()
        self._system_metrics = SystemMetrics()
        logger.info("Performance metrics reset")
