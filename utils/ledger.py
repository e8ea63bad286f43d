"""
Retry Ledger - SQLite-backed failure counts

Maps each URL whose archival failed to the number of failed attempts.
Success deletes the entry, failure increments it, and every change is
committed immediately so an interrupted run never loses a failure.

Schema:
- retries(url TEXT PRIMARY KEY, failures INTEGER NOT NULL)
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class RetryLedger:
    """Durable URL -> failure count store."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None

    def open(self) -> "RetryLedger":
        """
        Open the database and create the schema if needed.

        Raises:
            sqlite3.Error: If the database cannot be opened
        """
        if self._conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path))
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "RetryLedger":
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("RetryLedger is not open")
        return self._conn

    def _init_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS retries (
                url TEXT PRIMARY KEY,
                failures INTEGER NOT NULL
            )
        """)
        self.conn.commit()

    def load_all(self) -> dict[str, int]:
        """
        Snapshot the whole ledger.

        Returns:
            New dict of url -> failure count; later writes do not affect it
        """
        rows = self.conn.execute("SELECT url, failures FROM retries ORDER BY url").fetchall()
        return {row["url"]: row["failures"] for row in rows}

    def count(self, url: str) -> int:
        """Failure count for url (0 when absent)."""
        row = self.conn.execute("SELECT failures FROM retries WHERE url = ?", (url,)).fetchone()
        return row["failures"] if row else 0

    def record_outcome(self, url: str, success: bool) -> None:
        """
        Record an archival outcome for url.

        Args:
            url: Bookmark URL
            success: True deletes the entry, False increments it (starting at 1)
        """
        if success:
            self.conn.execute("DELETE FROM retries WHERE url = ?", (url,))
        else:
            self.conn.execute(
                """
                INSERT INTO retries (url, failures) VALUES (?, 1)
                ON CONFLICT(url) DO UPDATE SET failures = failures + 1
                """,
                (url,),
            )
        self.conn.commit()

        logger.debug("Recorded outcome: url=%s success=%s", url, success)
