"""
Fetch Cursor - Durable High-Water Mark

Stores the creation time of the latest dispatched bookmark in a one-line text
file. The stored value never moves backwards.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class CursorError(Exception):
    """The cursor file exists but does not hold a timestamp."""


def format_timestamp(ts: datetime) -> str:
    """Format an aware datetime as YYYY-MM-DDTHH:MM:SSZ (UTC), whole seconds."""
    return ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def serialize_timestamp(ts: datetime) -> str:
    """Lossless UTC form for the cursor file; microseconds are kept when present."""
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a cursor timestamp; naive values are taken as UTC."""
    ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class FetchCursor:
    """File-backed fetch cursor."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> datetime:
        """
        Read the stored cursor.

        Returns:
            Stored timestamp, or EPOCH when no cursor has been written yet

        Raises:
            CursorError: If the file exists but cannot be parsed
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return EPOCH

        if not raw.strip():
            return EPOCH

        try:
            return parse_timestamp(raw)
        except ValueError as e:
            raise CursorError(f"Unreadable fetch cursor in {self.path}: {raw.strip()!r}") from e

    def advance(self, candidate: datetime) -> bool:
        """
        Move the cursor forward to candidate.

        A candidate strictly earlier than the stored value is discarded and
        logged as an error; an equal candidate rewrites the same value.

        Args:
            candidate: Creation time of the bookmark just dispatched

        Returns:
            True if the cursor was written, False if the candidate was discarded
        """
        current = self.read()

        if candidate < current:
            logger.error(
                "Refusing to move fetch cursor backwards: stored=%s candidate=%s",
                serialize_timestamp(current),
                serialize_timestamp(candidate),
            )
            return False

        tmp = self.path.with_name(f"{self.path.name}.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(serialize_timestamp(candidate) + "\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

        logger.debug("Fetch cursor advanced: %s -> %s", serialize_timestamp(current), serialize_timestamp(candidate))
        return True
