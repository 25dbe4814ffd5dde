"""Bot health — host metrics behind an injectable provider.

The default provider reads real host telemetry with psutil; tests and
demos inject ``StaticMetricsProvider``.
"""

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

import psutil

from papertrader.session.alerts import AlertLog


@dataclass(frozen=True)
class HostMetrics:
    """Point-in-time host readings (percentages and milliseconds)."""

    cpu_usage: float
    memory_usage: float
    api_latency_ms: float = 0.0
    error_rate: float = 0.0


@dataclass(frozen=True)
class BotHealth:
    """Aggregated health view for dashboards."""

    status: str  # "healthy", "warning" or "critical"
    uptime_seconds: float
    last_heartbeat: str
    cpu_usage: float
    memory_usage: float
    api_latency_ms: float
    error_rate: float
    connection_status: str  # "connected" or "disconnected"
    alerts: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@runtime_checkable
class MetricsProvider(Protocol):
    """Source of host metrics."""

    def read(self) -> HostMetrics:
        ...


class PsutilMetricsProvider:
    """Host CPU and memory usage from psutil.

    Latency and error rate are not host properties; the engine reports
    them through ``record_latency`` / ``record_cycle``.
    """

    def __init__(self) -> None:
        self._latency_ms = 0.0
        self._cycles = 0
        self._errors = 0
        # Prime the CPU counter so the first non-blocking read is meaningful.
        psutil.cpu_percent(interval=None)

    def record_latency(self, latency_ms: float) -> None:
        self._latency_ms = latency_ms

    def record_cycle(self, failed: bool = False) -> None:
        self._cycles += 1
        if failed:
            self._errors += 1

    def read(self) -> HostMetrics:
        error_rate = self._errors / self._cycles * 100.0 if self._cycles else 0.0
        return HostMetrics(
            cpu_usage=psutil.cpu_percent(interval=None),
            memory_usage=psutil.virtual_memory().percent,
            api_latency_ms=self._latency_ms,
            error_rate=error_rate,
        )


class StaticMetricsProvider:
    """Returns fixed readings."""

    def __init__(self, metrics: Optional[HostMetrics] = None) -> None:
        self._metrics = metrics or HostMetrics(cpu_usage=0.0, memory_usage=0.0)

    def read(self) -> HostMetrics:
        return self._metrics


def classify_health(metrics: HostMetrics) -> str:
    """``critical`` / ``warning`` / ``healthy`` from threshold checks."""
    if (
        metrics.cpu_usage > 80
        or metrics.memory_usage > 85
        or metrics.api_latency_ms > 500
        or metrics.error_rate > 5
    ):
        return "critical"
    if (
        metrics.cpu_usage > 60
        or metrics.memory_usage > 70
        or metrics.api_latency_ms > 300
        or metrics.error_rate > 2
    ):
        return "warning"
    return "healthy"


def build_bot_health(
    provider: MetricsProvider,
    alerts: AlertLog,
    started_at: float,
    connected: bool = True,
) -> BotHealth:
    """Combine provider readings with the five newest unresolved alerts.

    Args:
        started_at: ``time.monotonic()`` value when the bot started.
    """
    metrics = provider.read()
    return BotHealth(
        status=classify_health(metrics),
        uptime_seconds=max(0.0, time.monotonic() - started_at),
        last_heartbeat=datetime.now(timezone.utc).isoformat(),
        cpu_usage=metrics.cpu_usage,
        memory_usage=metrics.memory_usage,
        api_latency_ms=metrics.api_latency_ms,
        error_rate=metrics.error_rate,
        connection_status="connected" if connected else "disconnected",
        alerts=[a.to_dict() for a in alerts.unresolved(limit=5)],
    )
