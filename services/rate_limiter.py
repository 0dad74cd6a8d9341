"""
Fixed-window rate limiting keyed by actor.

The limiter holds no global state: counters live in an injected WindowStore so
that several API workers can share one backend. `InMemoryWindowStore` serves a
single process (and the tests).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from domain.errors import RateLimitExceeded


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float


class WindowStore(Protocol):
    def increment(self, key: str, window_seconds: float, now: float) -> Tuple[int, float]:
        """Increment the counter for `key`, starting a new window if expired.

        Returns (count in current window, window reset timestamp).
        """
        ...


class InMemoryWindowStore:
    def __init__(self) -> None:
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, window_seconds: float, now: float) -> Tuple[int, float]:
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
            self._evict_expired(now)
            return count, reset_at

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]


class RateLimiter:
    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: float,
        store: Optional[WindowStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_requests < 1 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store = store or InMemoryWindowStore()
        self._clock = clock

    def check(self, actor_id: str) -> RateLimitDecision:
        now = self._clock()
        count, reset_at = self._store.increment(f"{self.name}:{actor_id}", self.window_seconds, now)
        return RateLimitDecision(
            allowed=count <= self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=reset_at,
        )

    def enforce(self, actor_id: str) -> RateLimitDecision:
        """Like `check`, but raises RateLimitExceeded when over quota."""

        decision = self.check(actor_id)
        if not decision.allowed:
            raise RateLimitExceeded(
                f"{self.name}:{actor_id}",
                retry_after_seconds=max(0.0, decision.reset_at - self._clock()),
            )
        return decision


def default_limiters(store: Optional[WindowStore] = None) -> Dict[str, RateLimiter]:
    """Presets: general 100/15 min, create-update 10/min, import 5/hour."""

    store = store or InMemoryWindowStore()
    return {
        "general": RateLimiter("general", 100, 15 * 60, store),
        "create_update": RateLimiter("create_update", 10, 60, store),
        "import": RateLimiter("import", 5, 60 * 60, store),
    }


__all__ = [
    "InMemoryWindowStore",
    "RateLimitDecision",
    "RateLimiter",
    "WindowStore",
    "default_limiters",
]
