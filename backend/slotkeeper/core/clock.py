"""UTC clock helpers. Engine operations take an explicit `now` so tests can move time."""
import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def seconds_remaining(expires_at: datetime | None, now: datetime | None = None) -> int:
    """Whole seconds until expires_at, never negative. Display projection only."""
    if expires_at is None:
        return 0
    now = as_utc(now) if now is not None else utcnow()
    delta = (as_utc(expires_at) - now).total_seconds()
    return max(0, math.floor(delta))
