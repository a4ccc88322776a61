"""In-memory sliding window rate limiter guarding credential endpoints."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Deque, DefaultDict, Protocol


class RateLimiter(Protocol):
    """Admission check shared by the in-memory and Redis backends."""

    def allow(self, key: str) -> bool: ...

    def reset(self, key: str) -> None: ...


class SlidingWindowRateLimiter:
    """Thread-safe sliding window limiter keyed by caller-chosen strings."""

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        """Initialise limiter parameters and per-key storage."""
        if max_requests < 1 or window_seconds < 1:
            raise ValueError("rate limit parameters must be positive")
        self._max_requests = max_requests
        self._window = window_seconds
        self._events: DefaultDict[str, Deque[float]] = DefaultDict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Record an attempt and return ``True`` while ``key`` is under the limit."""
        now = time.monotonic()
        with self._lock:
            attempts = self._events[key]
            while attempts and now - attempts[0] > self._window:
                attempts.popleft()
            if len(attempts) >= self._max_requests:
                return False
            attempts.append(now)
            return True

    def reset(self, key: str) -> None:
        """Forget recorded attempts for ``key``, e.g. after a successful login."""
        with self._lock:
            self._events.pop(key, None)
