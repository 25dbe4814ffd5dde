"""Bot-status data models — typed representations of Freqtrade REST objects."""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class BotStatus:
    """Result of ``/api/v1/ping``."""

    state: str
    version: str


@dataclass(frozen=True)
class BotTrade:
    """A trade as reported by the external bot."""

    trade_id: int
    pair: str
    stake_amount: float
    amount: float
    open_rate: float
    current_rate: float
    profit_abs: float
    profit_ratio: float
    open_date: str
    is_open: bool
    close_date: Optional[str] = None
    fee_open: float = 0.0
    fee_close: float = 0.0
    exchange: str = ""

    @classmethod
    def from_api(cls, raw: dict) -> "BotTrade":
        """Build from a raw API dict, tolerating missing numeric fields."""
        return cls(
            trade_id=int(raw["trade_id"]),
            pair=raw.get("pair", ""),
            stake_amount=float(raw.get("stake_amount") or 0.0),
            amount=float(raw.get("amount") or 0.0),
            open_rate=float(raw.get("open_rate") or 0.0),
            current_rate=float(raw.get("current_rate") or 0.0),
            profit_abs=float(raw.get("profit_abs") or 0.0),
            profit_ratio=float(raw.get("profit_ratio") or 0.0),
            open_date=raw.get("open_date", ""),
            is_open=bool(raw.get("is_open", False)),
            close_date=raw.get("close_date"),
            fee_open=float(raw.get("fee_open") or 0.0),
            fee_close=float(raw.get("fee_close") or 0.0),
            exchange=raw.get("exchange", ""),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TradeHistory:
    """One page of trade history plus the bot's total count."""

    trades: list[BotTrade]
    total: int


@dataclass(frozen=True)
class PerformanceSummary:
    """Aggregate statistics computed from the bot's trade list."""

    total_profit: float = 0.0
    total_profit_percent: float = 0.0
    win_rate: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    total_trades: int = 0
    open_trades: int = 0
    closed_trades: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DailyStat:
    """Profit summary for one calendar day."""

    date: str
    profit: float
    profit_percent: float
    trades: int

    def to_dict(self) -> dict:
        return asdict(self)
