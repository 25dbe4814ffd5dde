"""Tests for papertrader.ledger.sample_data — demo trades and price series."""

from unittest.mock import MagicMock

import pytest

from papertrader.desk import PaperDesk
from papertrader.ledger.ledger import TradeLedger
from papertrader.ledger.sample_data import SAMPLE_TRADES, generate_sample_trades, synthetic_prices
from papertrader.session.tracker import SessionTracker


class TestSampleTrades:
    def test_mix_of_open_and_closed(self):
        tracker = SessionTracker()
        ledger = TradeLedger(tracker)
        ledger.initialize(800.0)
        generate_sample_trades(ledger)

        assert len(ledger.closed_trades) == 3
        assert len(ledger.open_positions) == 2
        assert {p.pair for p in ledger.open_positions} == {"ADA-USD", "SOL-USD"}

        session = tracker.session
        assert session.winning_trades == 2
        assert session.losing_trades == 1
        assert session.equity == pytest.approx(800.0 + ledger.realized_profit())

    def test_open_positions_marked_to_exit_rate(self):
        ledger = TradeLedger(SessionTracker())
        generate_sample_trades(ledger)
        rates = {pair: exit_rate for pair, _, _, exit_rate, close in SAMPLE_TRADES if not close}
        for position in ledger.open_positions:
            assert position.current_rate == rates[position.pair]
            assert position.profit_abs > 0


class TestSyntheticPrices:
    def test_length_and_start(self):
        prices = synthetic_prices(50, start_price=2500.0, seed=7)
        assert len(prices) == 50
        assert prices[0] == pytest.approx(2500.0)

    def test_reproducible_with_seed(self):
        assert synthetic_prices(30, seed=1) == synthetic_prices(30, seed=1)

    def test_strictly_positive(self):
        prices = synthetic_prices(500, volatility=0.2, seed=3)
        assert min(prices) > 0

    def test_empty(self):
        assert synthetic_prices(0) == []


class TestSampleTradesOnDesk:
    def test_closes_reach_drawdown_and_history(self):
        repo = MagicMock()
        desk = PaperDesk(trade_repo=repo)
        desk.initialize(800.0)
        generate_sample_trades(desk)

        assert repo.record_closed.call_count == 3
        assert desk.drawdown.current_equity == pytest.approx(desk.session.equity)
        # BTC win, ETH loss, XRP win: the ETH close is the only decline
        assert desk.drawdown.max_drawdown_pct == pytest.approx(0.4 / (800.0 + 25.0 / 45.0) * 100)
