"""Desk snapshot repository — JSON blobs in the desk_snapshots table."""

import json
from datetime import datetime, timezone
from typing import Optional

from papertrader.repos.db import get_connection


class SnapshotRepo:
    """Stores ``PaperDesk.snapshot()`` payloads; the newest row wins.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def save(self, snapshot: dict, label: str = "default") -> int:
        """Persist *snapshot* and return the row ``id``."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                "INSERT INTO desk_snapshots (label, payload, created_at) VALUES (?, ?, ?)",
                (label, json.dumps(snapshot), datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def load_latest(self, label: str = "default") -> Optional[dict]:
        """Return the most recent snapshot for *label*, or ``None``."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT payload FROM desk_snapshots WHERE label = ? ORDER BY id DESC LIMIT 1",
                (label,),
            ).fetchone()
            return json.loads(row["payload"]) if row else None
        finally:
            conn.close()

    def count(self, label: str = "default") -> int:
        conn = get_connection(self._db_path)
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM desk_snapshots WHERE label = ?", (label,),
            ).fetchone()[0]
        finally:
            conn.close()
