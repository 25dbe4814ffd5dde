"""Trade repository — SQLite history of closed paper trades."""

from typing import Optional

from papertrader.ledger.models import ClosedTrade
from papertrader.repos.db import get_connection


class TradeRepo:
    """Data access layer for closed-trade records.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def record_closed(self, trade: ClosedTrade, session_id: Optional[str] = None) -> int:
        """Insert a closed trade and return the row ``id``."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO trades
                    (trade_id, session_id, pair, stake_amount, quantity,
                     open_rate, close_rate, profit_abs, profit_ratio,
                     opened_at, closed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trade.trade_id, session_id, trade.pair, trade.stake_amount,
                    trade.quantity, trade.open_rate, trade.close_rate,
                    trade.profit_abs, trade.profit_ratio,
                    trade.opened_at, trade.closed_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_trades(
        self,
        limit: int = 20,
        pair: Optional[str] = None,
    ) -> dict:
        """Return recent closed trades, newest first.

        Returns:
            ``{"trades": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            where_clause = ""
            params: list = []
            if pair:
                where_clause = "WHERE pair = ?"
                params.append(pair)

            rows = conn.execute(
                f"SELECT * FROM trades {where_clause} ORDER BY id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM trades {where_clause}",
                params,
            ).fetchone()[0]

            return {"trades": [dict(row) for row in rows], "total": total}
        finally:
            conn.close()

    def total_profit(self) -> float:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT COALESCE(SUM(profit_abs), 0) FROM trades"
            ).fetchone()
            return float(row[0])
        finally:
            conn.close()
