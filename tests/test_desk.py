"""Tests for papertrader.desk — composition root, equity views, snapshots."""

import json
import sqlite3
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from papertrader.desk import PaperDesk
from papertrader.errors import InvalidStateError, NotFoundError
from papertrader.health import HostMetrics, StaticMetricsProvider
from papertrader.ledger.models import CLOSED

_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestDeskLifecycle:
    def test_independent_desks(self):
        a, b = PaperDesk(), PaperDesk()
        a.initialize(800.0)
        a.record_trade(10.0, True, _NOW)
        b.initialize(500.0)
        assert a.session.equity == 810.0
        assert b.session.equity == 500.0

    def test_reset_discards_trades_and_keeps_starting_equity(self):
        desk = PaperDesk()
        desk.initialize(1000.0)
        position = desk.open_trade("BTC-USD", 25.0, 45000.0)
        desk.close_trade(position.trade_id, 45900.0, _NOW)
        desk.open_trade("ETH-USD", 20.0, 2500.0)

        session = desk.reset_session()
        assert session.starting_equity == 1000.0
        assert session.equity == 1000.0
        assert desk.ledger.open_positions == []
        assert desk.ledger.closed_trades == []

    def test_start_and_stop(self):
        desk = PaperDesk()
        assert desk.stop_trading() is None
        session = desk.start_trading()
        assert session.auto_trading_enabled is True
        assert desk.stop_trading().is_active is False


class TestEquityViews:
    def test_mark_to_market_adds_unrealized(self):
        desk = PaperDesk()
        desk.initialize(800.0)
        position = desk.open_trade("BTC-USD", 25.0, 45000.0)
        desk.update_trade_price(position.trade_id, 46800.0)
        assert desk.session.equity == 800.0
        assert desk.mark_to_market_equity() == pytest.approx(801.0)

    def test_drawdown_follows_closes(self):
        desk = PaperDesk()
        desk.initialize(800.0)
        position = desk.open_trade("ETH-USD", 40.0, 2500.0)
        desk.close_trade(position.trade_id, 2250.0, _NOW)
        assert desk.drawdown.current_equity == pytest.approx(796.0)
        assert desk.drawdown.max_drawdown_pct == pytest.approx(0.5)

    def test_summary_shape(self):
        desk = PaperDesk()
        desk.initialize(800.0)
        desk.record_trade(8.0, True, _NOW)
        summary = desk.summary()
        assert summary["roi_percent"] == pytest.approx(1.0)
        assert summary["open_trades_count"] == 0
        assert summary["risk"]["max_open_trades"] == 3
        assert "weekly_target" in summary
        json.dumps(summary)

    def test_health_uses_injected_provider(self):
        desk = PaperDesk(StaticMetricsProvider(HostMetrics(cpu_usage=90.0, memory_usage=10.0)))
        desk.initialize(800.0)
        health = desk.health()
        assert health.status == "critical"
        assert health.alerts[0]["message"].startswith("Trading session initialized")

    def test_cancel_through_desk(self):
        desk = PaperDesk()
        desk.initialize(800.0)
        position = desk.open_trade("SOL-USD", 22.0, 150.0)
        desk.cancel_trade(position.trade_id)
        with pytest.raises(InvalidStateError):
            desk.update_trade_price(position.trade_id, 151.0)


class TestTradeHistorySink:
    def test_close_is_recorded_once(self):
        repo = MagicMock()
        desk = PaperDesk(trade_repo=repo)
        desk.initialize(800.0)
        position = desk.open_trade("BTC-USD", 25.0, 45000.0)
        closed = desk.close_trade(position.trade_id, 45900.0, _NOW)
        repo.record_closed.assert_called_once_with(closed, desk.session.id)

    def test_storage_failure_keeps_close_and_alerts(self):
        repo = MagicMock()
        repo.record_closed.side_effect = sqlite3.OperationalError("database is locked")
        desk = PaperDesk(trade_repo=repo)
        desk.initialize(800.0)
        position = desk.open_trade("BTC-USD", 25.0, 45000.0)

        closed = desk.close_trade(position.trade_id, 45900.0, _NOW)

        assert desk.ledger.state_of(closed.trade_id) == CLOSED
        assert desk.session.equity == pytest.approx(800.5)
        warning = desk.alerts.all()[0]
        assert warning.type == "warning"
        assert "database is locked" in warning.message

    def test_rejected_close_is_not_recorded(self):
        repo = MagicMock()
        desk = PaperDesk(trade_repo=repo)
        desk.initialize(800.0)
        with pytest.raises(NotFoundError):
            desk.close_trade(42, 100.0, _NOW)
        repo.record_closed.assert_not_called()


class TestSnapshot:
    def _populated_desk(self) -> PaperDesk:
        desk = PaperDesk()
        desk.initialize(800.0)
        desk.start_trading()
        a = desk.open_trade("BTC-USD", 25.0, 45000.0)
        b = desk.open_trade("ETH-USD", 20.0, 2500.0)
        desk.update_trade_price(a.trade_id, 45500.0)
        desk.close_trade(b.trade_id, 2450.0, _NOW)
        return desk

    def test_snapshot_is_json_serializable(self):
        snapshot = self._populated_desk().snapshot()
        assert json.loads(json.dumps(snapshot)) == snapshot

    def test_restore_reproduces_state(self):
        desk = self._populated_desk()
        snapshot = json.loads(json.dumps(desk.snapshot()))

        restored = PaperDesk()
        restored.restore(snapshot)

        assert restored.session == desk.session
        assert restored.snapshot() == desk.snapshot()
        assert restored.mark_to_market_equity() == pytest.approx(desk.mark_to_market_equity())
        assert restored.open_trade("SOL-USD", 22.0, 150.0).trade_id == 3

    def test_unknown_version_rejected(self):
        desk = PaperDesk()
        with pytest.raises(ValueError, match="version"):
            desk.restore({"version": 99})

    def test_malformed_snapshot_leaves_state(self):
        desk = self._populated_desk()
        before = desk.snapshot()
        bad = dict(before)
        bad["ledger"] = {"open": [{"trade_id": 9}]}
        with pytest.raises(TypeError):
            desk.restore(bad)
        assert desk.snapshot() == before
