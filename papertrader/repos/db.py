"""Database initialization and connection management.

Runs migrations on first boot, provides connection factory.  The SQL
scripts ship inside the package, so an installed copy finds them too.
"""

import pathlib
import sqlite3
from importlib import resources


def _read_migration(name: str) -> str:
    return (resources.files("papertrader.repos") / "migrations" / name).read_text(
        encoding="utf-8"
    )


def init_db(db_path: str) -> None:
    """Create the schema if it is missing.

    Creates the parent directory of *db_path* when needed, runs
    ``001_initial_schema.sql`` unless the ``trades`` table already exists,
    then applies any incremental migrations not yet applied.
    """
    if db_path != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='trades'"
        )
        if cur.fetchone() is None:
            conn.executescript(_read_migration("001_initial_schema.sql"))

        _apply_migration_002(conn)
    finally:
        conn.close()


def _apply_migration_002(conn: sqlite3.Connection) -> None:
    """Add the ``backtest_runs`` table if missing."""
    cur = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='backtest_runs'"
    )
    if cur.fetchone() is None:
        conn.executescript(_read_migration("002_backtest_runs.sql"))


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with row-factory enabled.

    Callers are responsible for closing the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn
