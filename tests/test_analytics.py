"""Tests for papertrader.analytics — performance statistics."""

import pytest

from papertrader.analytics import calculate_stats
from papertrader.ledger.models import ClosedTrade


def _trade(trade_id: int, profit: float) -> ClosedTrade:
    return ClosedTrade(
        trade_id=trade_id,
        pair="BTC-USD",
        stake_amount=25.0,
        quantity=0.0005,
        open_rate=50000.0,
        close_rate=50000.0 * (1 + profit / 25.0),
        opened_at="2025-01-15T10:00:00+00:00",
        closed_at="2025-01-15T11:00:00+00:00",
        profit_abs=profit,
        profit_ratio=profit / 25.0,
    )


class TestCalculateStats:
    def test_empty(self):
        stats = calculate_stats([])
        assert stats["total_trades"] == 0
        assert stats["win_rate"] == 0.0
        assert stats["profit_factor"] is None

    def test_basic_counts(self):
        trades = [_trade(i, p) for i, p in enumerate([10.0, -5.0, 10.0, 10.0], 1)]
        stats = calculate_stats(trades)
        assert stats["total_trades"] == 4
        assert stats["winning_trades"] == 3
        assert stats["losing_trades"] == 1
        assert stats["win_rate"] == pytest.approx(75.0)
        assert stats["net_pnl"] == pytest.approx(25.0)
        assert stats["average_trade_profit"] == pytest.approx(6.25)
        assert stats["profit_factor"] == pytest.approx(6.0)

    def test_zero_profit_is_loss(self):
        stats = calculate_stats([_trade(1, 0.0)])
        assert stats["losing_trades"] == 1
        assert stats["current_streak"] == -1

    def test_max_drawdown(self):
        trades = [_trade(i, p) for i, p in enumerate([10.0, -4.0, -6.0, 3.0, 20.0], 1)]
        assert calculate_stats(trades)["max_drawdown"] == pytest.approx(10.0)

    def test_streaks(self):
        trades = [_trade(i, p) for i, p in enumerate([1.0, 1.0, 1.0, -1.0, -1.0, 1.0], 1)]
        stats = calculate_stats(trades)
        assert stats["max_consecutive_wins"] == 3
        assert stats["max_consecutive_losses"] == 2
        assert stats["current_streak"] == 1

    def test_sharpe_zero_variance(self):
        trades = [_trade(i, 5.0) for i in range(1, 4)]
        assert calculate_stats(trades)["sharpe_ratio"] == 0.0

    def test_sharpe_sign(self):
        trades = [_trade(i, p) for i, p in enumerate([4.0, 6.0, -1.0, 5.0], 1)]
        assert calculate_stats(trades)["sharpe_ratio"] > 0
