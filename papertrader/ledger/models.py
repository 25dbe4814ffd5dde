"""Ledger data models — open positions and their terminal records."""

from dataclasses import asdict, dataclass


OPEN = "OPEN"
CLOSED = "CLOSED"
CANCELLED = "CANCELLED"


def profit_for(stake_amount: float, open_rate: float, rate: float) -> tuple[float, float]:
    """Return ``(profit_abs, profit_ratio)`` of a long stake valued at *rate*."""
    profit_abs = (rate - open_rate) / open_rate * stake_amount
    return profit_abs, profit_abs / stake_amount


@dataclass
class Position:
    """An open simulated trade.  Mutated only by ``TradeLedger``."""

    trade_id: int
    pair: str
    stake_amount: float
    quantity: float
    open_rate: float
    current_rate: float
    opened_at: str
    profit_abs: float = 0.0
    profit_ratio: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ClosedTrade:
    """A position after ``close_trade``.  Immutable."""

    trade_id: int
    pair: str
    stake_amount: float
    quantity: float
    open_rate: float
    close_rate: float
    opened_at: str
    closed_at: str
    profit_abs: float
    profit_ratio: float

    @property
    def is_win(self) -> bool:
        # Exactly-zero profit counts as a loss.
        return self.profit_abs > 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CancelledTrade:
    """A position withdrawn without a fill.  No PnL effect."""

    trade_id: int
    pair: str
    stake_amount: float
    quantity: float
    open_rate: float
    opened_at: str
    cancelled_at: str

    def to_dict(self) -> dict:
        return asdict(self)
