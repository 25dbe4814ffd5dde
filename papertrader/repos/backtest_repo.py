"""Backtest run repository — persists backtest results to SQLite."""

import json
from datetime import datetime, timezone
from typing import Optional

from papertrader.repos.db import get_connection


class BacktestRepo:
    """Data access layer for the ``backtest_runs`` table.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert_run(self, result: dict) -> int:
        """Persist a ``BacktestEngine.run`` result.  Returns the row id."""
        stats = result["stats"]
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO backtest_runs
                    (strategy, symbol, initial_equity, final_equity,
                     total_trades, winning_trades, losing_trades, win_rate,
                     profit_factor, sharpe_ratio, max_drawdown, net_pnl,
                     result_data, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result["strategy"],
                    result["symbol"],
                    result["initial_equity"],
                    result["final_equity"],
                    stats["total_trades"],
                    stats["winning_trades"],
                    stats["losing_trades"],
                    stats["win_rate"],
                    stats.get("profit_factor"),
                    stats["sharpe_ratio"],
                    result["max_drawdown_pct"],
                    stats["net_pnl"],
                    json.dumps({
                        "trades": result["trades"],
                        "equity_curve": result["equity_curve"],
                    }),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def get_runs(self, limit: int = 10, strategy: Optional[str] = None) -> list[dict]:
        """Return recent run summaries, newest first, without the JSON payload."""
        conn = get_connection(self._db_path)
        try:
            if strategy is None:
                rows = conn.execute(
                    "SELECT * FROM backtest_runs ORDER BY id DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM backtest_runs WHERE strategy = ? ORDER BY id DESC LIMIT ?",
                    (strategy, limit),
                ).fetchall()
        finally:
            conn.close()
        runs = []
        for row in rows:
            run = dict(row)
            del run["result_data"]
            runs.append(run)
        return runs

    def get_run(self, run_id: int) -> Optional[dict]:
        """One run including its trades and equity curve, or ``None``."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT * FROM backtest_runs WHERE id = ?", (run_id,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        run = dict(row)
        run.update(json.loads(run.pop("result_data")))
        return run

    def get_stats(self) -> dict:
        """Aggregate over all stored runs.

        ``best_strategy`` is the strategy of the run with the highest win
        rate (``"N/A"`` when nothing is stored).
        """
        conn = get_connection(self._db_path)
        try:
            totals = conn.execute(
                """
                SELECT COUNT(*) AS runs,
                       COALESCE(AVG(win_rate), 0) AS avg_win_rate,
                       COALESCE(SUM(total_trades), 0) AS trades
                FROM backtest_runs
                """
            ).fetchone()
            best = conn.execute(
                "SELECT strategy, win_rate FROM backtest_runs ORDER BY win_rate DESC, id DESC LIMIT 1"
            ).fetchone()
        finally:
            conn.close()
        return {
            "total_backtests": totals["runs"],
            "average_win_rate": float(totals["avg_win_rate"]),
            "best_strategy": best["strategy"] if best else "N/A",
            "best_win_rate": float(best["win_rate"]) if best else 0.0,
            "total_simulated_trades": totals["trades"],
        }
