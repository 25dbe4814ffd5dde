"""Session lifecycle and target tracking.

Owns the ``TradingSession`` and its alert log.  State machine over
``is_active × auto_trading_enabled``:

    initialize_session → (False, False)
    start_trading      → (True, True)     lazily initialises if needed
    stop_trading       → (False, False)   no-op without a session
    reset_session      → fresh session, alert log cleared
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from papertrader.errors import ValidationError
from papertrader.session.alerts import AlertLog
from papertrader.session.models import SessionSnapshot, TradingSession, WeeklyTarget

logger = logging.getLogger("papertrader.session")

DEFAULT_STARTING_EQUITY = 800.0
WEEKLY_PROFIT_TARGET = 100.0
TARGET_WIN_RATE = 90.0
MIN_TRADES_FOR_WIN_RATE_MILESTONE = 10


def sunday_weekday(moment: datetime) -> int:
    """Day of week with Sunday = 0 … Saturday = 6."""
    return (moment.weekday() + 1) % 7


def compute_weekly_target(
    total_profit: float,
    utc_now: Optional[datetime] = None,
    target_profit: float = WEEKLY_PROFIT_TARGET,
) -> WeeklyTarget:
    """Project *total_profit* against the weekly target.

    Weeks start on Sunday 00:00.  The daily average divides by the days
    elapsed so far (at least 1), and ``days_remaining = 7 - weekday``, so
    it is 7 on Sunday and 1 on Saturday.
    """
    if utc_now is None:
        utc_now = datetime.now(timezone.utc)

    weekday = sunday_weekday(utc_now)
    days_remaining = 7 - weekday

    week_start = (utc_now - timedelta(days=weekday)).replace(
        hour=0, minute=0, second=0, microsecond=0,
    )
    week_end = week_start + timedelta(days=7) - timedelta(microseconds=1)

    progress = min(100.0, total_profit / target_profit * 100.0)
    daily_average = total_profit / max(1, weekday)
    projected = daily_average * 7
    daily_remaining = (
        (target_profit - total_profit) / days_remaining
        if days_remaining > 0
        else 0.0
    )

    return WeeklyTarget(
        target_profit=target_profit,
        current_profit=total_profit,
        progress_percent=progress,
        projected_profit=projected,
        days_remaining=days_remaining,
        daily_average=daily_average,
        daily_target_remaining=daily_remaining,
        on_track=projected >= target_profit or total_profit >= target_profit,
        week_start=week_start,
        week_end=week_end,
    )


class SessionTracker:
    """Session lifecycle, win-rate / weekly-target milestones and alerts.

    Args:
        alerts: Alert log to write to.  A fresh 20-entry log by default.
    """

    def __init__(self, alerts: Optional[AlertLog] = None) -> None:
        self._session: Optional[TradingSession] = None
        self._alerts = alerts if alerts is not None else AlertLog()
        self._weekly_target_reached = False
        self._win_rate_target_reached = False

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def session(self) -> Optional[TradingSession]:
        """The current session, or ``None`` before initialisation."""
        return self._session

    @property
    def alerts(self) -> AlertLog:
        return self._alerts

    def weekly_target(self, utc_now: Optional[datetime] = None) -> WeeklyTarget:
        """Weekly target derived from the session's total profit."""
        profit = self._session.total_profit if self._session else 0.0
        return compute_weekly_target(profit, utc_now)

    # ── Lifecycle ────────────────────────────────────────────────────────

    def initialize_session(
        self,
        starting_equity: float = DEFAULT_STARTING_EQUITY,
    ) -> TradingSession:
        """Create a fresh, inactive session with zero trades."""
        if starting_equity <= 0:
            raise ValidationError(
                f"starting_equity must be positive, got {starting_equity}"
            )
        self._session = TradingSession(
            id=f"session_{uuid.uuid4().hex[:12]}",
            start_time=datetime.now(timezone.utc).isoformat(),
            equity=starting_equity,
            starting_equity=starting_equity,
            target_win_rate=TARGET_WIN_RATE,
        )
        self._weekly_target_reached = False
        self._win_rate_target_reached = False
        self._alerts.add(
            "info", f"Trading session initialized with ${starting_equity:,.2f}",
        )
        return self._session

    def start_trading(self) -> TradingSession:
        if self._session is None:
            self.initialize_session()
        self._session.is_active = True
        self._session.auto_trading_enabled = True
        self._alerts.add("info", "Auto-trading started - targeting 90% win rate")
        return self._session

    def stop_trading(self) -> Optional[TradingSession]:
        if self._session is None:
            return None
        self._session.is_active = False
        self._session.auto_trading_enabled = False
        self._alerts.add("info", "Auto-trading stopped")
        return self._session

    def reset_session(
        self,
        starting_equity: float = DEFAULT_STARTING_EQUITY,
    ) -> TradingSession:
        """Clear the alert log and replace the session with a fresh one."""
        self._alerts.clear()
        return self.initialize_session(starting_equity)

    # ── Trade recording ──────────────────────────────────────────────────

    def record_trade(
        self,
        profit: float,
        is_win: bool,
        utc_now: Optional[datetime] = None,
    ) -> Optional[TradingSession]:
        """Fold a finished trade into the session and check milestones.

        Returns ``None`` when no session exists.  Milestone alerts fire
        only on the transition into the reached state.
        """
        if self._session is None:
            return None

        self._session.apply_trade(profit, is_win)

        target = self.weekly_target(utc_now)
        reached = target.current_profit >= target.target_profit
        if reached and not self._weekly_target_reached:
            self._alerts.add("info", "Weekly profit target achieved!")
        self._weekly_target_reached = reached

        win_rate_hit = (
            self._session.win_rate >= self._session.target_win_rate
            and self._session.total_trades >= MIN_TRADES_FOR_WIN_RATE_MILESTONE
        )
        if win_rate_hit and not self._win_rate_target_reached:
            self._alerts.add(
                "info", f"{self._session.target_win_rate:.0f}% win rate achieved!",
            )
        self._win_rate_target_reached = win_rate_hit

        logger.debug(
            "Recorded trade profit=%.4f win=%s → equity=%.2f win_rate=%.1f",
            profit, is_win, self._session.equity, self._session.win_rate,
        )
        return self._session

    # ── Snapshot ─────────────────────────────────────────────────────────

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session=self._session.to_dict() if self._session else None,
            alerts=[a.to_dict() for a in self._alerts.all()],
            weekly_target_reached=self._weekly_target_reached,
            win_rate_target_reached=self._win_rate_target_reached,
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        self._session = (
            TradingSession.from_dict(snapshot.session)
            if snapshot.session is not None
            else None
        )
        self._alerts.load(snapshot.alerts)
        self._weekly_target_reached = snapshot.weekly_target_reached
        self._win_rate_target_reached = snapshot.win_rate_target_reached
