"""UTC helpers shared by discovery records and the persistence layer.

Everything stored or compared inside the orchestrator is a **naive** UTC
datetime (tzinfo=None), which is what SQLite hands back as well.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC time as a naive (tzinfo=None) datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcfromtimestamp(ts: float) -> datetime:
    """Convert a POSIX timestamp to a naive UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def hours_since(unix_ts: Optional[float], now: Optional[datetime] = None) -> Optional[float]:
    """Age in hours of a provider unix timestamp, or None when unknown.

    Millisecond timestamps (as some providers emit) are scaled down first.
    """
    if unix_ts is None:
        return None
    try:
        ts = float(unix_ts)
    except (TypeError, ValueError):
        return None
    if ts <= 0:
        return None
    if ts > 1e12:
        ts = ts / 1000.0
    reference = now or utcnow()
    return (reference - utcfromtimestamp(ts)).total_seconds() / 3600.0
