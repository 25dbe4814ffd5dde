"""PaperDesk — one simulated portfolio: session, ledger, risk and health.

Everything that shares the portfolio's mutable state hangs off a single
desk instance, so several desks (e.g. one per test) can coexist.  All
operations are synchronous; an async caller runs them between awaits.
"""

import logging
import sqlite3
import time
from datetime import datetime
from typing import Optional

from papertrader.analytics import calculate_stats
from papertrader.health import BotHealth, MetricsProvider, StaticMetricsProvider, build_bot_health
from papertrader.ledger.ledger import TradeLedger
from papertrader.ledger.models import CancelledTrade, ClosedTrade, Position
from papertrader.risk.drawdown import DrawdownTracker
from papertrader.repos.trade_repo import TradeRepo
from papertrader.risk.manager import RiskManager, RiskState
from papertrader.session.alerts import AlertLog
from papertrader.session.models import SessionSnapshot, TradingSession, WeeklyTarget
from papertrader.session.tracker import DEFAULT_STARTING_EQUITY, SessionTracker

logger = logging.getLogger("papertrader.desk")

SNAPSHOT_VERSION = 1


class PaperDesk:
    """Composition root for one paper-trading portfolio.

    Args:
        metrics_provider: Host metrics source for ``health()``.
            Defaults to fixed zero readings.
        trade_repo: Optional history sink; every closed trade is written
            to it, whichever caller closed it.
    """

    def __init__(
        self,
        metrics_provider: Optional[MetricsProvider] = None,
        trade_repo: Optional[TradeRepo] = None,
    ) -> None:
        self.tracker = SessionTracker(AlertLog())
        self.ledger = TradeLedger(self.tracker)
        self.risk = RiskManager(self.tracker)
        self.metrics_provider = metrics_provider or StaticMetricsProvider()
        self._drawdown = DrawdownTracker(DEFAULT_STARTING_EQUITY)
        self._started_at = time.monotonic()
        self.upstream_connected = True
        self.trade_repo = trade_repo

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def session(self) -> Optional[TradingSession]:
        return self.tracker.session

    @property
    def alerts(self) -> AlertLog:
        return self.tracker.alerts

    @property
    def drawdown(self) -> DrawdownTracker:
        return self._drawdown

    def risk_state(self) -> RiskState:
        return self.risk.state

    def weekly_target(self, utc_now: Optional[datetime] = None) -> WeeklyTarget:
        return self.tracker.weekly_target(utc_now)

    def mark_to_market_equity(self) -> float:
        """Realized equity plus unrealized PnL of open positions."""
        realized = self.session.equity if self.session else DEFAULT_STARTING_EQUITY
        return realized + self.ledger.unrealized_profit()

    def health(self) -> BotHealth:
        return build_bot_health(
            self.metrics_provider,
            self.alerts,
            self._started_at,
            connected=self.upstream_connected,
        )

    def performance(self) -> dict:
        return calculate_stats(self.ledger.closed_trades)

    def summary(self) -> dict:
        """Plain-data overview for dashboards and status endpoints."""
        session = self.session
        starting = session.starting_equity if session else DEFAULT_STARTING_EQUITY
        equity = session.equity if session else DEFAULT_STARTING_EQUITY
        return {
            "session": session.to_dict() if session else None,
            "mark_to_market_equity": self.mark_to_market_equity(),
            "unrealized_profit": self.ledger.unrealized_profit(),
            "open_trades_count": len(self.ledger.open_positions),
            "closed_trades_count": len(self.ledger.closed_trades),
            "roi_percent": (equity - starting) / starting * 100.0,
            "risk": self.risk_state().to_dict(),
            "weekly_target": self.weekly_target().to_dict(),
            "drawdown": self._drawdown.to_dict(),
        }

    # ── Session lifecycle ────────────────────────────────────────────────

    def initialize(self, starting_equity: float = DEFAULT_STARTING_EQUITY) -> TradingSession:
        """Fresh inactive session and an empty ledger."""
        session = self.ledger.initialize(starting_equity)
        self._drawdown = DrawdownTracker(starting_equity)
        return session

    def start_trading(self) -> TradingSession:
        had_session = self.session is not None
        session = self.tracker.start_trading()
        if not had_session:
            self._drawdown = DrawdownTracker(session.starting_equity)
        return session

    def stop_trading(self) -> Optional[TradingSession]:
        return self.tracker.stop_trading()

    def reset_session(self, starting_equity: Optional[float] = None) -> TradingSession:
        """Clear alerts, discard all trades and start a fresh session.

        Keeps the previous starting equity unless a new one is given.
        """
        if starting_equity is None:
            starting_equity = (
                self.session.starting_equity if self.session else DEFAULT_STARTING_EQUITY
            )
        session = self.tracker.reset_session(starting_equity)
        self.ledger.clear()
        self._drawdown = DrawdownTracker(starting_equity)
        return session

    def record_trade(
        self,
        profit: float,
        is_win: bool,
        utc_now: Optional[datetime] = None,
    ) -> Optional[TradingSession]:
        """Record an externally settled trade (no ledger position)."""
        session = self.tracker.record_trade(profit, is_win, utc_now)
        if session is not None:
            self._drawdown.update(session.equity)
        return session

    # ── Ledger operations ────────────────────────────────────────────────

    def open_trade(self, pair: str, stake_amount: float, open_rate: float) -> Position:
        had_session = self.session is not None
        position = self.ledger.open_trade(pair, stake_amount, open_rate)
        if not had_session:
            self._drawdown = DrawdownTracker(self.session.starting_equity)
        return position

    def update_trade_price(self, trade_id: int, current_rate: float) -> Position:
        return self.ledger.update_trade_price(trade_id, current_rate)

    def close_trade(
        self,
        trade_id: int,
        close_rate: float,
        utc_now: Optional[datetime] = None,
    ) -> ClosedTrade:
        closed = self.ledger.close_trade(trade_id, close_rate, utc_now)
        self._drawdown.update(self.session.equity)
        self._persist_closed(closed)
        return closed

    def cancel_trade(self, trade_id: int) -> CancelledTrade:
        return self.ledger.cancel_trade(trade_id)

    def _persist_closed(self, closed: ClosedTrade) -> None:
        # The ledger close stands even when storing it fails.
        if self.trade_repo is None:
            return
        try:
            self.trade_repo.record_closed(closed, self.session.id)
        except sqlite3.Error as exc:
            logger.warning("Could not store closed trade %d: %s", closed.trade_id, exc)
            self.alerts.add("warning", f"Trade {closed.trade_id} closed but not stored: {exc}")

    # ── Snapshot ─────────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        """Everything needed to re-seed an equivalent desk, as plain data."""
        tracked = self.tracker.snapshot()
        return {
            "version": SNAPSHOT_VERSION,
            "session": tracked.session,
            "alerts": tracked.alerts,
            "milestones": {
                "weekly_target_reached": tracked.weekly_target_reached,
                "win_rate_target_reached": tracked.win_rate_target_reached,
            },
            "ledger": self.ledger.snapshot(),
            "drawdown": self._drawdown.to_dict(),
        }

    def restore(self, data: dict) -> None:
        """Replace all state with a prior ``snapshot()``.

        Raises ``ValueError`` for an unknown snapshot version.  The snapshot
        is fully parsed before any live state is replaced.
        """
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version!r}")

        milestones = data.get("milestones", {})
        tracked = SessionSnapshot(
            session=data.get("session"),
            alerts=data.get("alerts", []),
            weekly_target_reached=milestones.get("weekly_target_reached", False),
            win_rate_target_reached=milestones.get("win_rate_target_reached", False),
        )
        if data.get("drawdown"):
            drawdown = DrawdownTracker.from_dict(data["drawdown"])
        elif tracked.session is not None:
            drawdown = DrawdownTracker(tracked.session["starting_equity"])
        else:
            drawdown = DrawdownTracker(DEFAULT_STARTING_EQUITY)

        # Dry run against scratch state so a malformed record fails early.
        scratch = SessionTracker()
        scratch.restore(tracked)
        TradeLedger(scratch).restore(data.get("ledger", {}))

        self.tracker.restore(tracked)
        self.ledger.restore(data.get("ledger", {}))
        self._drawdown = drawdown
        logger.info(
            "Restored desk snapshot: %d open, %d closed trades",
            len(self.ledger.open_positions), len(self.ledger.closed_trades),
        )
