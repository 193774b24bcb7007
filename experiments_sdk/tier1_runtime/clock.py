"""
experiments_sdk.tier1_runtime.clock
────────────────────────────────────
Mockable time source. Cookie expiry and origin token expiration are both
computed from the session's Clock, never from datetime.now() directly, so
tests can freeze time.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Callable


class Clock:
    """Mockable clock. Pass now_fn to control time in tests."""

    def __init__(self, now_fn: Callable[[], datetime] | None = None) -> None:
        self._now_fn = now_fn or (lambda: datetime.now(tz=timezone.utc))

    def now(self) -> datetime:
        """Return the current UTC datetime."""
        return self._now_fn()

    def timestamp_ms(self) -> int:
        """Return the current Unix timestamp in milliseconds."""
        return int(self.now().timestamp() * 1000)

    def after(self, *, days: float = 0, seconds: float = 0) -> datetime:
        """Return the UTC datetime *days*/*seconds* from now."""
        return self.now() + timedelta(days=days, seconds=seconds)

    def freeze(self, dt: datetime) -> "Clock":
        """Return a new Clock frozen at the given datetime."""
        return Clock(now_fn=lambda: dt)

    def advance(self, seconds: float) -> "Clock":
        """Return a new Clock frozen *seconds* after the current time."""
        base = self.now()
        return Clock(now_fn=lambda: base + timedelta(seconds=seconds))


def http_date(dt: datetime) -> str:
    """Format *dt* as an RFC 7231 HTTP-date, e.g. 'Wed, 21 Oct 2015 07:28:00 GMT'."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


__all__ = ["Clock", "http_date"]
