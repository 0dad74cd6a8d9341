"""
Domain time utilities (pure).

Centralized timestamp validation and the clock that issues `updated_at`
concurrency tokens.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

# PostgREST trims trailing zeros from fractional seconds (".12")
_FRACTION = re.compile(r"\.(\d{1,6})(?=[+-]|$)")


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def to_iso_utc(dt: datetime, *, name: str = "timestamp") -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a stored timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    Naive values are interpreted as UTC.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0"), value.replace("Z", "+00:00"))
        dt = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MonotonicClock:
    """
    Issues strictly increasing UTC timestamps.

    Two calls never return the same value, even when the wall clock stalls or
    steps backwards; the next value is then bumped by one microsecond. This keeps
    `updated_at` usable as a compare-and-swap token and keeps history ordering
    unambiguous within a process.
    """

    _STEP = timedelta(microseconds=1)

    def __init__(self, source: Optional[Callable[[], datetime]] = None) -> None:
        self._source = source or utc_now
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            require_utc_timestamp("clock value", current)
            if self._last is not None and current <= self._last:
                current = self._last + self._STEP
            self._last = current
            return current

    __call__ = now


__all__ = [
    "MonotonicClock",
    "parse_utc_datetime",
    "require_utc_timestamp",
    "to_iso_utc",
    "utc_now",
]
