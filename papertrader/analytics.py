"""Performance analytics — pure functions over closed trades."""

import math
from typing import Iterable, Optional

from papertrader.ledger.models import ClosedTrade


def calculate_stats(trades: Iterable[ClosedTrade]) -> dict:
    """Compute summary statistics from closed ledger trades.

    Zero-profit trades count as losses, matching the ledger.

    Returns:
        Dict with ``total_trades``, ``winning_trades``, ``losing_trades``,
        ``win_rate`` (percent), ``profit_factor``, ``sharpe_ratio``,
        ``max_drawdown``, ``net_pnl``, ``average_trade_profit``,
        ``max_consecutive_wins``, ``max_consecutive_losses``,
        ``current_streak``.
    """
    pnls = [t.profit_abs for t in trades]
    if not pnls:
        return {
            "total_trades": 0,
            "winning_trades": 0,
            "losing_trades": 0,
            "win_rate": 0.0,
            "profit_factor": None,
            "sharpe_ratio": 0.0,
            "max_drawdown": 0.0,
            "net_pnl": 0.0,
            "average_trade_profit": 0.0,
            "max_consecutive_wins": 0,
            "max_consecutive_losses": 0,
            "current_streak": 0,
        }

    total = len(pnls)
    winners = [p for p in pnls if p > 0]
    losers = [p for p in pnls if p <= 0]

    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    profit_factor: Optional[float] = (
        gross_profit / gross_loss if gross_loss > 0 else None
    )
    net_pnl = sum(pnls)
    max_wins, max_losses, streak = _streaks(pnls)

    return {
        "total_trades": total,
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": round(len(winners) / total * 100.0, 4),
        "profit_factor": round(profit_factor, 4) if profit_factor is not None else None,
        "sharpe_ratio": round(_sharpe(pnls), 4),
        "max_drawdown": round(_max_drawdown(pnls), 4),
        "net_pnl": round(net_pnl, 4),
        "average_trade_profit": round(net_pnl / total, 4),
        "max_consecutive_wins": max_wins,
        "max_consecutive_losses": max_losses,
        "current_streak": streak,
    }


# ── Helpers ──────────────────────────────────────────────────────────────


def _sharpe(pnls: list[float]) -> float:
    """Per-trade Sharpe ratio (mean / sample std), not annualised.

    Returns 0.0 with fewer than 2 observations or zero variance.
    """
    n = len(pnls)
    if n < 2:
        return 0.0
    mean = sum(pnls) / n
    variance = sum((p - mean) ** 2 for p in pnls) / (n - 1)
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return mean / std


def _max_drawdown(pnls: list[float]) -> float:
    """Largest peak-to-trough decline of the cumulative P&L curve."""
    cumulative = 0.0
    peak = 0.0
    max_dd = 0.0
    for p in pnls:
        cumulative += p
        if cumulative > peak:
            peak = cumulative
        dd = peak - cumulative
        if dd > max_dd:
            max_dd = dd
    return max_dd


def _streaks(pnls: list[float]) -> tuple[int, int, int]:
    """Return ``(max_wins, max_losses, current)``.

    *current* is positive for a running win streak, negative for losses.
    """
    max_wins = max_losses = 0
    current = 0
    for p in pnls:
        if p > 0:
            current = current + 1 if current > 0 else 1
            max_wins = max(max_wins, current)
        else:
            current = current - 1 if current < 0 else -1
            max_losses = max(max_losses, -current)
    return max_wins, max_losses, current
