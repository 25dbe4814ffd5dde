"""Risk limits derived from the session — pure math, no I/O.

Recomputed on every read; nothing is cached.  The manager never blocks a
trade itself: callers check ``is_within_limits`` (or ``can_open_trade``)
before opening positions.
"""

from dataclasses import asdict, dataclass
from typing import Optional

from papertrader.session.models import TradingSession
from papertrader.session.tracker import DEFAULT_STARTING_EQUITY, SessionTracker


MAX_DRAWDOWN_PERCENT = 10.0
MAX_POSITION_FRACTION = 0.05
MAX_OPEN_TRADES = 3
DAILY_LOSS_FRACTION = 0.03
RISK_PER_TRADE_PCT = 1.0

BASE_RISK_SCORE = 3
MAX_RISK_SCORE = 10


@dataclass(frozen=True)
class RiskState:
    """Risk limits and the session's position against them."""

    max_drawdown_percent: float
    current_drawdown: float
    max_position_size: float
    max_open_trades: int
    daily_loss_limit: float
    current_daily_loss: float
    risk_per_trade: float
    is_within_limits: bool
    risk_score: int  # 0–10, lower is safer

    def to_dict(self) -> dict:
        return asdict(self)


def assess_risk(session: Optional[TradingSession]) -> RiskState:
    """Derive a ``RiskState`` from *session*.

    ``current_daily_loss`` is the cumulative session loss
    (``max(0, -total_profit)``), not a rolling 24-hour window.

    Risk score: 3, +2 past 5 % drawdown, +2 past half the daily loss
    limit, forced to 10 once any limit is breached.

    A missing session is treated as an untouched $800 account.
    """
    if session is None:
        equity = starting = DEFAULT_STARTING_EQUITY
        total_profit = 0.0
    else:
        equity = session.equity
        starting = session.starting_equity
        total_profit = session.total_profit

    drawdown = (starting - equity) / starting * 100.0 if starting else 0.0
    current_drawdown = max(0.0, drawdown)

    max_position_size = equity * MAX_POSITION_FRACTION
    daily_loss_limit = equity * DAILY_LOSS_FRACTION
    current_daily_loss = max(0.0, -total_profit)

    within = (
        current_drawdown < MAX_DRAWDOWN_PERCENT
        and current_daily_loss < daily_loss_limit
    )

    score = BASE_RISK_SCORE
    if current_drawdown > 5:
        score += 2
    if current_daily_loss > daily_loss_limit * 0.5:
        score += 2
    if not within:
        score = MAX_RISK_SCORE
    score = min(MAX_RISK_SCORE, max(0, score))

    return RiskState(
        max_drawdown_percent=MAX_DRAWDOWN_PERCENT,
        current_drawdown=current_drawdown,
        max_position_size=max_position_size,
        max_open_trades=MAX_OPEN_TRADES,
        daily_loss_limit=daily_loss_limit,
        current_daily_loss=current_daily_loss,
        risk_per_trade=RISK_PER_TRADE_PCT,
        is_within_limits=within,
        risk_score=score,
    )


class RiskManager:
    """Reads the tracker's current session and derives risk on demand.

    Args:
        tracker: Session tracker whose session is assessed.
    """

    def __init__(self, tracker: SessionTracker) -> None:
        self._tracker = tracker

    @property
    def state(self) -> RiskState:
        return assess_risk(self._tracker.session)

    def can_open_trade(self, open_trade_count: int) -> bool:
        """``True`` when limits hold and another position fits."""
        state = self.state
        return state.is_within_limits and open_trade_count < state.max_open_trades
