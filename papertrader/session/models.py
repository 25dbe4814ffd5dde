"""Session data models — the trading session, its alerts and weekly target."""

from dataclasses import asdict, dataclass, field
from datetime import datetime


@dataclass
class TradingSession:
    """Aggregate state of one simulated portfolio.

    ``equity`` holds realized profit only; unrealized PnL of open
    positions is computed on demand by the ledger.
    """

    id: str
    start_time: str
    equity: float
    starting_equity: float
    total_profit: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    target_win_rate: float = 90.0
    is_active: bool = False
    auto_trading_enabled: bool = False

    def apply_trade(self, profit: float, is_win: bool) -> None:
        """Fold one finished trade into the counters."""
        self.total_trades += 1
        self.total_profit += profit
        self.equity += profit
        if is_win:
            self.winning_trades += 1
        else:
            self.losing_trades += 1
        self.win_rate = (
            self.winning_trades / self.total_trades * 100.0
            if self.total_trades > 0
            else 0.0
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TradingSession":
        return cls(**data)


@dataclass
class HealthAlert:
    """A single entry in the session's alert log."""

    id: str
    type: str  # "info", "warning" or "error"
    message: str
    timestamp: str
    resolved: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class WeeklyTarget:
    """Progress toward the fixed weekly profit target."""

    target_profit: float
    current_profit: float
    progress_percent: float
    projected_profit: float
    days_remaining: int
    daily_average: float
    daily_target_remaining: float
    on_track: bool
    week_start: datetime
    week_end: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["week_start"] = self.week_start.isoformat()
        data["week_end"] = self.week_end.isoformat()
        return data


@dataclass
class SessionSnapshot:
    """Plain-data copy of a tracker, suitable for an external store."""

    session: dict | None
    alerts: list[dict] = field(default_factory=list)
    weekly_target_reached: bool = False
    win_rate_target_reached: bool = False
