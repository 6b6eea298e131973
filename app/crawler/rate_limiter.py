"""Per-domain sliding-window admission control.

Advisory only: a denied caller skips the request and records why. Nothing
here sleeps or queues.
"""
from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    def __init__(self, *, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self._window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._timestamps: dict[str, list[float]] = {}

    def try_acquire(self, domain: str, limit_per_minute: int) -> bool:
        now = self._clock()
        window_start = now - self._window
        with self._lock:
            recent = [t for t in self._timestamps.get(domain, ()) if t > window_start]
            if len(recent) >= limit_per_minute:
                self._timestamps[domain] = recent
                return False
            recent.append(now)
            self._timestamps[domain] = recent
            return True

    def in_flight(self, domain: str) -> int:
        """Requests admitted for *domain* within the current window."""
        window_start = self._clock() - self._window
        with self._lock:
            return sum(1 for t in self._timestamps.get(domain, ()) if t > window_start)

    def reset(self, domain: str | None = None) -> None:
        with self._lock:
            if domain is None:
                self._timestamps.clear()
            else:
                self._timestamps.pop(domain, None)
