"""
Wall-clock helpers.

All timestamps are stored as naive UTC datetimes.
"""
import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def elapsed_seconds(since: datetime, now: datetime) -> int:
    """Whole seconds between two naive UTC datetimes, floored, never negative."""
    delta = (now - since).total_seconds()
    return max(0, math.floor(delta))
