"""Backtest engine — replays a price series through a strategy and a scratch desk.

Iterates prices chronologically, asks the chosen strategy for a signal at
each step and simulates long trades on a private ``PaperDesk``, closing
them at the take-profit / stop-loss thresholds.  Nothing touches the live
desk.
"""

import logging
from typing import Callable, Optional

from papertrader.analytics import calculate_stats
from papertrader.desk import PaperDesk
from papertrader.ledger.models import ClosedTrade
from papertrader.risk.drawdown import DrawdownTracker
from papertrader.risk.position_sizer import calculate_stake
from papertrader.strategy import indicators
from papertrader.strategy.models import BUY, HOLD, SELL
from papertrader.strategy.signals import generate_signal

logger = logging.getLogger("papertrader.backtest")

DEFAULT_STRATEGY = "rsi_macd_bb"
WARMUP = 50
MIN_STAKE = 10.0


# ── Strategies ───────────────────────────────────────────────────────────
#
# Each strategy maps (symbol, prices so far) to BUY / SELL / HOLD.  The
# backtest only trades the long side, so SELL simply means "do not enter".


def _combined_signal(symbol: str, prices: list[float]) -> str:
    return generate_signal(symbol, prices, prices[-1]).signal


def _rsi_signal(symbol: str, prices: list[float]) -> str:
    value = indicators.rsi(prices)
    if value < 30:
        return BUY
    if value > 70:
        return SELL
    return HOLD


def _bollinger_signal(symbol: str, prices: list[float]) -> str:
    bands = indicators.bollinger_bands(prices)
    price = prices[-1]
    if price <= bands.lower * 1.01:
        return BUY
    if price >= bands.upper * 0.99:
        return SELL
    return HOLD


def _mean_reversion_signal(symbol: str, prices: list[float]) -> str:
    sma = indicators.bollinger_bands(prices).middle
    if sma == 0:
        return HOLD
    deviation = (prices[-1] - sma) / sma * 100.0
    if deviation < -2.0:
        return BUY
    if deviation > 2.0:
        return SELL
    return HOLD


def _momentum_signal(symbol: str, prices: list[float]) -> str:
    fast = indicators.bollinger_bands(prices, period=5).middle
    slow = indicators.bollinger_bands(prices, period=20).middle
    price = prices[-1]
    if fast > slow * 1.005 and price > fast:
        return BUY
    if fast < slow * 0.995 and price < fast:
        return SELL
    return HOLD


STRATEGIES: dict[str, Callable[[str, list[float]], str]] = {
    "rsi_macd_bb": _combined_signal,
    "rsi": _rsi_signal,
    "bollinger_bounce": _bollinger_signal,
    "mean_reversion": _mean_reversion_signal,
    "momentum": _momentum_signal,
}


class BacktestEngine:
    """Simulates trading a single symbol over a historical price series.

    Args:
        take_profit_pct: Close once the open position gains this much (%).
        stop_loss_pct: Close once it loses this much (%, positive number).
        position_size_pct: Stake as a percentage of current equity.
        warmup: Prices needed before the first signal is evaluated.
    """

    def __init__(
        self,
        take_profit_pct: float = 2.0,
        stop_loss_pct: float = 1.0,
        position_size_pct: float = 5.0,
        warmup: int = WARMUP,
    ) -> None:
        if take_profit_pct <= 0 or stop_loss_pct <= 0:
            raise ValueError("take_profit_pct and stop_loss_pct must be positive")
        self._take_profit_pct = take_profit_pct
        self._stop_loss_pct = stop_loss_pct
        self._position_size_pct = position_size_pct
        self._warmup = max(1, warmup)

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        prices: list[float],
        symbol: str = "BTC-USD",
        strategy: str = DEFAULT_STRATEGY,
        initial_equity: float = 800.0,
    ) -> dict:
        """Execute a full backtest.

        Args:
            prices: Price series, oldest first.
            symbol: Pair name recorded on the simulated trades.
            strategy: Key of ``STRATEGIES``.
            initial_equity: Starting virtual equity.

        Returns:
            Dict with ``strategy``, ``symbol``, ``initial_equity``,
            ``final_equity``, ``total_profit_percent``, ``max_drawdown_pct``
            (of the mark-to-market equity curve), ``stats`` (see
            ``calculate_stats``), ``trades`` and ``equity_curve``.

        Raises:
            ValueError: Unknown strategy or non-positive equity.
        """
        signal_fn = STRATEGIES.get(strategy)
        if signal_fn is None:
            raise ValueError(
                f"Unknown strategy {strategy!r}; choose from {', '.join(STRATEGIES)}"
            )

        desk = PaperDesk()
        desk.initialize(initial_equity)
        curve_tracker = DrawdownTracker(initial_equity)
        equity_curve: list[float] = []
        exits: list[tuple[ClosedTrade, str, int, int]] = []
        position = None
        entry_index = 0

        for i in range(self._warmup - 1, len(prices)):
            price = prices[i]

            # 1 — Exit check for the open position
            if position is not None:
                position = desk.update_trade_price(position.trade_id, price)
                reason = self._exit_reason(position.profit_ratio * 100.0)
                if reason is not None:
                    closed = desk.close_trade(position.trade_id, price)
                    exits.append((closed, reason, entry_index, i))
                    position = None

            # 2 — Entry when flat
            elif signal_fn(symbol, prices[: i + 1]) == BUY:
                stake = calculate_stake(desk.session.equity, self._position_size_pct)
                if stake >= MIN_STAKE:
                    position = desk.open_trade(symbol, stake, price)
                    entry_index = i

            equity = desk.mark_to_market_equity()
            curve_tracker.update(equity)
            equity_curve.append(round(equity, 4))

        # Close any remaining position at the last price
        if position is not None:
            closed = desk.close_trade(position.trade_id, prices[-1])
            exits.append((closed, "end_of_data", entry_index, len(prices) - 1))

        final_equity = desk.session.equity
        stats = calculate_stats(desk.ledger.closed_trades)
        logger.info(
            "Backtest %s %s: %d trades, net %.2f",
            strategy, symbol, stats["total_trades"], stats["net_pnl"],
        )
        return {
            "strategy": strategy,
            "symbol": symbol,
            "initial_equity": initial_equity,
            "final_equity": final_equity,
            "total_profit_percent": (final_equity - initial_equity) / initial_equity * 100.0,
            "max_drawdown_pct": round(curve_tracker.max_drawdown_pct, 4),
            "stats": stats,
            "trades": [
                {
                    **closed.to_dict(),
                    "exit_reason": reason,
                    "entry_index": opened_at,
                    "exit_index": closed_at,
                }
                for closed, reason, opened_at, closed_at in exits
            ],
            "equity_curve": equity_curve,
        }

    def compare(
        self,
        prices: list[float],
        symbol: str = "BTC-USD",
        initial_equity: float = 800.0,
        strategies: Optional[list[str]] = None,
    ) -> list[dict]:
        """Run every strategy on the same prices, best net PnL first."""
        results = [
            self.run(prices, symbol, name, initial_equity)
            for name in (strategies or list(STRATEGIES))
        ]
        results.sort(key=lambda r: r["stats"]["net_pnl"], reverse=True)
        return results

    # ── Helpers ──────────────────────────────────────────────────────────

    def _exit_reason(self, change_pct: float) -> Optional[str]:
        if change_pct >= self._take_profit_pct:
            return "take_profit"
        if change_pct <= -self._stop_loss_pct:
            return "stop_loss"
        return None
