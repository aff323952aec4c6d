"""Local lock countdown. A display projection of the server's expires_at, never an authority."""
from datetime import datetime

from slotkeeper.core.clock import as_utc, seconds_remaining, utcnow


class LockCountdown:
    def __init__(self, expires_at: datetime) -> None:
        self.expires_at = as_utc(expires_at)

    def remaining(self, now: datetime | None = None) -> int:
        return seconds_remaining(self.expires_at, now)

    def is_due(self, now: datetime | None = None) -> bool:
        """True once expires_at has actually passed (the label can read 0:00 a moment earlier)."""
        now = as_utc(now) if now is not None else utcnow()
        return self.expires_at <= now

    def label(self, now: datetime | None = None) -> str:
        minutes, seconds = divmod(self.remaining(now), 60)
        return f"{minutes}:{seconds:02d}"
