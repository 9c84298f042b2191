"""
UTC timestamp utilities (stdlib-only).

Versions carry a ``created_at`` assigned at write time. Listing sorts on it,
so two writes from the same process must never share a timestamp:
``MonotonicClock`` nudges a reading forward by one microsecond when the wall
clock has not advanced (or went backwards) since the previous reading.

Features:
    - **utc_now():** Timezone-aware UTC datetime
    - **MonotonicClock / monotonic_utc_now():** Strictly increasing UTC readings
    - **to_iso8601() / from_iso8601():** Safe serialization round-trip

Tags:
    timestamps, utc, datetime, corpus, stdlib-only
"""

import threading
from datetime import UTC, datetime, timedelta

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class MonotonicClock:
    """UTC clock whose readings strictly increase within one process."""

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        now = utc_now()
        with self._lock:
            if self._last is not None and now <= self._last:
                now = self._last + _TICK
            self._last = now
        return now


_default_clock = MonotonicClock()


def monotonic_utc_now() -> datetime:
    """Reading from the process-wide monotonic clock."""
    return _default_clock()


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware datetime (naive input is taken as UTC)."""
    if s is None:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
