"""Tests for the internal API endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from papertrader.api.routers import configure_routers
from papertrader.broker.models import BotStatus
from papertrader.desk import PaperDesk
from papertrader.errors import UpstreamError
from papertrader.main import app

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


@pytest.fixture
def desk():
    desk = PaperDesk()
    configure_routers(desk)
    yield desk
    configure_routers(None)


def _oversold_bounce() -> list[float]:
    return [200.0 - i for i in range(100)] + [104.0]


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealthEndpoint:
    def test_health_returns_ok(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_unconfigured_desk_is_503(self):
        configure_routers(None)
        assert client.get("/session").status_code == 503


class TestSessionEndpoints:
    def test_session_null_before_init(self, desk):
        assert client.get("/session").json() == {"session": None}

    def test_init_start_stop(self, desk):
        resp = client.post("/session/init", json={"starting_equity": 1000})
        assert resp.status_code == 200
        assert resp.json()["session"]["equity"] == 1000.0

        assert client.post("/session/start").json()["session"]["auto_trading_enabled"] is True
        assert client.post("/session/stop").json()["session"]["is_active"] is False

    def test_init_rejects_non_positive(self, desk):
        assert client.post("/session/init", json={"starting_equity": 0}).status_code == 422

    def test_record_trade_scenario(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        for _ in range(3):
            client.post("/trades/record", json={"profit": 10, "is_win": True})
        resp = client.post("/trades/record", json={"profit": -5, "is_win": False})
        session = resp.json()["session"]
        assert session["win_rate"] == pytest.approx(75.0)
        assert session["equity"] == pytest.approx(825.0)

    def test_reset(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        client.post("/trades", json={"pair": "BTC-USD", "stake_amount": 25, "open_rate": 45000})
        resp = client.post("/session/reset", json={})
        assert resp.json()["session"]["equity"] == 800.0
        assert client.get("/positions").json() == {"positions": []}


class TestTradeEndpoints:
    def test_open_update_close(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        trade = client.post(
            "/trades", json={"pair": "BTC-USD", "stake_amount": 25, "open_rate": 45000},
        ).json()["trade"]

        marked = client.post(f"/trades/{trade['trade_id']}/price", json={"rate": 45450}).json()
        assert marked["trade"]["profit_abs"] == pytest.approx(0.25)

        closed = client.post(f"/trades/{trade['trade_id']}/close", json={"rate": 45900}).json()
        assert closed["trade"]["profit_abs"] == pytest.approx(0.5)

        history = client.get("/trades/closed").json()
        assert history["total"] == 1
        assert client.get("/performance").json()["winning_trades"] == 1

    def test_error_mapping(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        bad = client.post("/trades", json={"pair": "BTC-USD", "stake_amount": 0, "open_rate": 45000})
        assert bad.status_code == 400
        assert client.post("/trades/99/close", json={"rate": 1}).status_code == 404

        trade_id = client.post(
            "/trades", json={"pair": "BTC-USD", "stake_amount": 25, "open_rate": 45000},
        ).json()["trade"]["trade_id"]
        client.post(f"/trades/{trade_id}/cancel")
        assert client.post(f"/trades/{trade_id}/close", json={"rate": 1}).status_code == 409


    def test_close_recorded_in_trade_history(self):
        repo = MagicMock()
        desk = PaperDesk(trade_repo=repo)
        configure_routers(desk)
        client.post("/session/init", json={"starting_equity": 800})
        trade_id = client.post(
            "/trades", json={"pair": "BTC-USD", "stake_amount": 25, "open_rate": 45000},
        ).json()["trade"]["trade_id"]

        client.post(f"/trades/{trade_id}/close", json={"rate": 45900})

        repo.record_closed.assert_called_once()
        closed, session_id = repo.record_closed.call_args.args
        assert closed.trade_id == trade_id
        assert session_id == desk.session.id
        assert desk.drawdown.peak_equity == pytest.approx(800.5)

class TestViewEndpoints:
    def test_risk_and_target(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        risk = client.get("/risk").json()
        assert risk["max_position_size"] == pytest.approx(40.0)
        assert risk["is_within_limits"] is True
        target = client.get("/target/weekly").json()
        assert target["target_profit"] == 100.0

    def test_alerts_and_resolve(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        alerts = client.get("/alerts").json()["alerts"]
        assert alerts
        alert_id = alerts[0]["id"]
        assert client.post(f"/alerts/{alert_id}/resolve").status_code == 200
        assert client.get("/alerts", params={"unresolved": True}).json()["alerts"] == []
        assert client.post("/alerts/alert_999/resolve").status_code == 404

    def test_bot_health(self, desk):
        data = client.get("/health/bot").json()
        assert data["status"] in {"healthy", "warning", "critical"}
        assert data["connection_status"] == "connected"

    def test_summary(self, desk):
        client.post("/session/init", json={"starting_equity": 800})
        assert client.get("/summary").json()["roi_percent"] == 0.0


class TestSignalEndpoint:
    def test_analyze(self, desk):
        resp = client.post(
            "/signals/analyze", json={"symbol": "BTC-USD", "prices": _oversold_bounce()},
        )
        data = resp.json()
        assert data["signal"]["signal"] == "BUY"
        assert 20 <= data["entry"]["confidence"] <= 95

    def test_empty_prices_rejected(self, desk):
        resp = client.post("/signals/analyze", json={"symbol": "BTC-USD", "prices": []})
        assert resp.status_code == 400


class TestUpstreamEndpoint:
    def test_connected(self):
        status_client = AsyncMock()
        status_client.ping.return_value = BotStatus(state="running", version="2024.1")
        desk = PaperDesk()
        configure_routers(desk, status_client=status_client)
        data = client.get("/upstream/status").json()
        assert data["connected"] is True
        assert data["status"]["version"] == "2024.1"

    def test_unreachable(self):
        status_client = AsyncMock()
        status_client.ping.side_effect = UpstreamError("Failed to connect to Freqtrade bot")
        desk = PaperDesk()
        configure_routers(desk, status_client=status_client)
        data = client.get("/upstream/status").json()
        assert data["connected"] is False
        assert desk.upstream_connected is False


class TestSnapshotEndpoints:
    def test_save_and_restore(self):
        desk = PaperDesk()
        repo = MagicMock()
        repo.save.return_value = 1
        configure_routers(desk, snapshot_repo=repo)
        client.post("/session/init", json={"starting_equity": 800})

        assert client.post("/snapshot").json() == {"status": "saved", "id": 1}
        saved = repo.save.call_args.args[0]

        client.post("/trades/record", json={"profit": 10, "is_win": True})
        repo.load_latest.return_value = saved
        assert client.post("/snapshot/restore").json() == {"status": "restored"}
        assert desk.session.equity == 800.0

    def test_restore_without_snapshot(self):
        repo = MagicMock()
        repo.load_latest.return_value = None
        configure_routers(PaperDesk(), snapshot_repo=repo)
        assert client.post("/snapshot/restore").status_code == 404


class TestBacktestEndpoints:
    def test_run_with_supplied_prices(self, desk):
        resp = client.post("/backtest", json={"prices": _oversold_bounce() + [106.6]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] is None
        assert data["result"]["final_equity"] == pytest.approx(801.0)
        assert data["result"]["trades"][0]["exit_reason"] == "take_profit"
        assert desk.session is None

    def test_run_is_stored(self):
        repo = MagicMock()
        repo.insert_run.return_value = 7
        configure_routers(PaperDesk(), backtest_repo=repo)
        resp = client.post("/backtest", json={"strategy": "momentum", "seed": 3, "periods": 120})
        assert resp.json()["id"] == 7
        stored = repo.insert_run.call_args.args[0]
        assert stored["strategy"] == "momentum"
        assert len(stored["equity_curve"]) == 120 - 49

    def test_synthetic_prices_are_seeded(self, desk):
        body = {"strategy": "rsi", "seed": 11, "periods": 200}
        first = client.post("/backtest", json=body).json()["result"]
        second = client.post("/backtest", json=body).json()["result"]
        assert first["equity_curve"] == second["equity_curve"]

    def test_unknown_strategy_is_400(self, desk):
        resp = client.post("/backtest", json={"strategy": "martingale", "seed": 1})
        assert resp.status_code == 400
        assert "Unknown strategy" in resp.json()["detail"]

    def test_invalid_parameters_are_422(self, desk):
        assert client.post("/backtest", json={"take_profit_pct": 0}).status_code == 422
        assert client.post("/backtest", json={"periods": 1}).status_code == 422

    def test_compare(self, desk):
        resp = client.post("/backtest/compare", json={"prices": _oversold_bounce() + [106.6]})
        results = resp.json()["results"]
        assert results[0]["strategy"] == "rsi_macd_bb"
        assert len(results) == 5
        assert "equity_curve" not in results[0]
        pnls = [r["stats"]["net_pnl"] for r in results]
        assert pnls == sorted(pnls, reverse=True)

    def test_history_and_stats(self):
        repo = MagicMock()
        repo.get_runs.return_value = [{"id": 2, "strategy": "rsi"}]
        repo.get_stats.return_value = {"total_backtests": 2}
        repo.get_run.return_value = None
        configure_routers(PaperDesk(), backtest_repo=repo)

        history = client.get("/backtest/history", params={"limit": 5, "strategy": "rsi"})
        assert history.json() == {"runs": [{"id": 2, "strategy": "rsi"}]}
        repo.get_runs.assert_called_once_with(limit=5, strategy="rsi")
        assert client.get("/backtest/stats").json() == {"total_backtests": 2}
        assert client.get("/backtest/9").status_code == 404

    def test_history_without_store_is_503(self, desk):
        assert client.get("/backtest/history").status_code == 503
        assert client.get("/backtest/stats").status_code == 503
