"""Tests for papertrader.health — bot health classification."""

import time

import pytest

from papertrader.health import (
    HostMetrics,
    PsutilMetricsProvider,
    StaticMetricsProvider,
    build_bot_health,
    classify_health,
)
from papertrader.session.alerts import AlertLog


class TestClassifyHealth:
    def test_healthy(self):
        assert classify_health(HostMetrics(cpu_usage=20.0, memory_usage=40.0)) == "healthy"

    @pytest.mark.parametrize(
        "metrics",
        [
            HostMetrics(cpu_usage=65.0, memory_usage=10.0),
            HostMetrics(cpu_usage=10.0, memory_usage=75.0),
            HostMetrics(cpu_usage=10.0, memory_usage=10.0, api_latency_ms=350.0),
            HostMetrics(cpu_usage=10.0, memory_usage=10.0, error_rate=3.0),
        ],
    )
    def test_warning(self, metrics):
        assert classify_health(metrics) == "warning"

    @pytest.mark.parametrize(
        "metrics",
        [
            HostMetrics(cpu_usage=85.0, memory_usage=10.0),
            HostMetrics(cpu_usage=10.0, memory_usage=90.0),
            HostMetrics(cpu_usage=10.0, memory_usage=10.0, api_latency_ms=600.0),
            HostMetrics(cpu_usage=10.0, memory_usage=10.0, error_rate=6.0),
        ],
    )
    def test_critical(self, metrics):
        assert classify_health(metrics) == "critical"


class TestBuildBotHealth:
    def test_uses_injected_metrics(self):
        provider = StaticMetricsProvider(HostMetrics(cpu_usage=70.0, memory_usage=30.0))
        health = build_bot_health(provider, AlertLog(), time.monotonic() - 5.0)
        assert health.status == "warning"
        assert health.cpu_usage == 70.0
        assert health.uptime_seconds >= 5.0
        assert health.connection_status == "connected"

    def test_five_newest_unresolved_alerts(self):
        alerts = AlertLog()
        for i in range(7):
            alerts.add("info", f"a{i}")
        alerts.resolve(alerts.all()[0].id)
        health = build_bot_health(StaticMetricsProvider(), alerts, time.monotonic())
        assert [a["message"] for a in health.alerts] == ["a5", "a4", "a3", "a2", "a1"]

    def test_disconnected(self):
        health = build_bot_health(StaticMetricsProvider(), AlertLog(), time.monotonic(), connected=False)
        assert health.connection_status == "disconnected"


class TestPsutilProvider:
    def test_reads_host_percentages(self):
        metrics = PsutilMetricsProvider().read()
        assert 0.0 <= metrics.cpu_usage <= 100.0
        assert 0.0 <= metrics.memory_usage <= 100.0

    def test_error_rate_from_cycles(self):
        provider = PsutilMetricsProvider()
        for failed in (False, False, False, True):
            provider.record_cycle(failed=failed)
        provider.record_latency(42.0)
        metrics = provider.read()
        assert metrics.error_rate == pytest.approx(25.0)
        assert metrics.api_latency_ms == 42.0
