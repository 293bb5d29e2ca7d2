from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Get the current time in UTC as a naive datetime.

    Stored timestamps are naive UTC so that SQLite and PostgreSQL round-trip
    them identically.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(ts: Optional[float]) -> Optional[datetime]:
    """Convert a POSIX timestamp (e.g. a JWT ``exp`` claim) to naive UTC."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)
