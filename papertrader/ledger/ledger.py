"""Trade ledger — in-memory state machine for simulated positions.

Per-trade states::

    OPEN ──close_trade──▶ CLOSED      (terminal)
      └───cancel_trade──▶ CANCELLED   (terminal)

Every failing operation raises before touching any state, so a rejected
call leaves the ledger exactly as it was.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from papertrader.errors import InvalidStateError, NotFoundError, ValidationError
from papertrader.ledger.models import (
    CANCELLED,
    CLOSED,
    OPEN,
    CancelledTrade,
    ClosedTrade,
    Position,
    profit_for,
)
from papertrader.session.models import TradingSession
from papertrader.session.tracker import SessionTracker

logger = logging.getLogger("papertrader.ledger")


class TradeLedger:
    """Open and closed positions of one simulated portfolio.

    Closing a trade records it into the owning session through
    ``SessionTracker.record_trade``; opening one does not touch equity.

    Args:
        tracker: The session tracker that owns the portfolio's session.
    """

    def __init__(self, tracker: SessionTracker) -> None:
        self._tracker = tracker
        self._open: dict[int, Position] = {}
        self._closed: list[ClosedTrade] = []
        self._cancelled: list[CancelledTrade] = []
        self._states: dict[int, str] = {}
        # Ids are never reused, not even after initialize().
        self._next_id = 1

    # ── Lifecycle ────────────────────────────────────────────────────────

    def initialize(self, starting_equity: float) -> TradingSession:
        """Discard all trades and start a fresh, inactive session."""
        session = self._tracker.initialize_session(starting_equity)
        self.clear()
        return session

    def clear(self) -> None:
        """Drop every trade record without touching the session."""
        self._open.clear()
        self._closed.clear()
        self._cancelled.clear()
        self._states.clear()

    # ── Transitions ──────────────────────────────────────────────────────

    def open_trade(
        self,
        pair: str,
        stake_amount: float,
        open_rate: float,
        utc_now: Optional[datetime] = None,
    ) -> Position:
        """Open a new long position of *stake_amount* at *open_rate*.

        Raises ``ValidationError`` for a non-positive stake or rate.
        """
        if not stake_amount > 0:
            raise ValidationError(f"stake_amount must be positive, got {stake_amount}")
        if not open_rate > 0:
            raise ValidationError(f"open_rate must be positive, got {open_rate}")
        if self._tracker.session is None:
            self._tracker.initialize_session()
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        trade_id = self._next_id
        self._next_id += 1
        position = Position(
            trade_id=trade_id,
            pair=pair,
            stake_amount=stake_amount,
            quantity=stake_amount / open_rate,
            open_rate=open_rate,
            current_rate=open_rate,
            opened_at=utc_now.isoformat(),
        )
        self._open[trade_id] = position
        self._states[trade_id] = OPEN
        logger.info(
            "Opened trade %d: %s stake=%.2f @ %.6g", trade_id, pair, stake_amount, open_rate,
        )
        return position

    def update_trade_price(self, trade_id: int, current_rate: float) -> Position:
        """Mark an open position to *current_rate* and refresh its unrealized PnL."""
        position = self._require_open(trade_id)
        if not current_rate > 0:
            raise ValidationError(f"current_rate must be positive, got {current_rate}")

        position.current_rate = current_rate
        position.profit_abs, position.profit_ratio = profit_for(
            position.stake_amount, position.open_rate, current_rate,
        )
        return position

    def close_trade(
        self,
        trade_id: int,
        close_rate: float,
        utc_now: Optional[datetime] = None,
    ) -> ClosedTrade:
        """Close an open position at *close_rate* and realize its PnL.

        The trade counts as a win only when ``profit_abs > 0``.
        """
        position = self._require_open(trade_id)
        if not close_rate > 0:
            raise ValidationError(f"close_rate must be positive, got {close_rate}")
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        profit_abs, profit_ratio = profit_for(
            position.stake_amount, position.open_rate, close_rate,
        )
        closed = ClosedTrade(
            trade_id=position.trade_id,
            pair=position.pair,
            stake_amount=position.stake_amount,
            quantity=position.quantity,
            open_rate=position.open_rate,
            close_rate=close_rate,
            opened_at=position.opened_at,
            closed_at=utc_now.isoformat(),
            profit_abs=profit_abs,
            profit_ratio=profit_ratio,
        )

        del self._open[trade_id]
        self._closed.append(closed)
        self._states[trade_id] = CLOSED
        self._tracker.record_trade(profit_abs, closed.is_win, utc_now)

        logger.info(
            "Closed trade %d: %s @ %.6g profit=%.4f (%.2f%%)",
            trade_id, closed.pair, close_rate, profit_abs, profit_ratio * 100,
        )
        return closed

    def cancel_trade(
        self,
        trade_id: int,
        utc_now: Optional[datetime] = None,
    ) -> CancelledTrade:
        """Withdraw an open position without realizing any PnL."""
        position = self._require_open(trade_id)
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        cancelled = CancelledTrade(
            trade_id=position.trade_id,
            pair=position.pair,
            stake_amount=position.stake_amount,
            quantity=position.quantity,
            open_rate=position.open_rate,
            opened_at=position.opened_at,
            cancelled_at=utc_now.isoformat(),
        )
        del self._open[trade_id]
        self._cancelled.append(cancelled)
        self._states[trade_id] = CANCELLED
        logger.info("Cancelled trade %d: %s", trade_id, cancelled.pair)
        return cancelled

    def _require_open(self, trade_id: int) -> Position:
        state = self._states.get(trade_id)
        if state is None:
            raise NotFoundError(f"Unknown trade id {trade_id}")
        if state != OPEN:
            raise InvalidStateError(
                f"Trade {trade_id} is {state}, expected {OPEN}"
            )
        return self._open[trade_id]

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def open_positions(self) -> list[Position]:
        """Open positions in the order they were opened."""
        return list(self._open.values())

    @property
    def closed_trades(self) -> list[ClosedTrade]:
        return list(self._closed)

    @property
    def cancelled_trades(self) -> list[CancelledTrade]:
        return list(self._cancelled)

    def state_of(self, trade_id: int) -> str:
        """Return ``"OPEN"``, ``"CLOSED"`` or ``"CANCELLED"``."""
        state = self._states.get(trade_id)
        if state is None:
            raise NotFoundError(f"Unknown trade id {trade_id}")
        return state

    def get_trade(self, trade_id: int) -> Position | ClosedTrade | CancelledTrade:
        state = self.state_of(trade_id)
        if state == OPEN:
            return self._open[trade_id]
        records = self._closed if state == CLOSED else self._cancelled
        return next(t for t in records if t.trade_id == trade_id)

    def unrealized_profit(self) -> float:
        """Σ unrealized ``profit_abs`` across open positions."""
        return sum(p.profit_abs for p in self._open.values())

    def realized_profit(self) -> float:
        return sum(t.profit_abs for t in self._closed)

    # ── Snapshot ─────────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        return {
            "next_id": self._next_id,
            "open": [p.to_dict() for p in self._open.values()],
            "closed": [t.to_dict() for t in self._closed],
            "cancelled": [t.to_dict() for t in self._cancelled],
        }

    def restore(self, data: dict) -> None:
        """Replace all trade records with those in *data*.

        The id counter resumes at the stored ``next_id``, and never at or
        below the highest restored id.
        """
        self.clear()
        for raw in data.get("closed", []):
            trade = ClosedTrade(**raw)
            self._closed.append(trade)
            self._states[trade.trade_id] = CLOSED
        for raw in data.get("cancelled", []):
            trade = CancelledTrade(**raw)
            self._cancelled.append(trade)
            self._states[trade.trade_id] = CANCELLED
        for raw in data.get("open", []):
            position = Position(**raw)
            self._open[position.trade_id] = position
            self._states[position.trade_id] = OPEN
        highest = max(self._states, default=0)
        self._next_id = max(int(data.get("next_id", 1)), highest + 1)
