"""Redis-backed sliding window rate limiter shared by all service replicas."""

from __future__ import annotations

import time
import uuid

from redis import Redis


class RedisSlidingWindowRateLimiter:
    """Sliding window limiter kept in one Redis sorted set per key.

    Each attempt is scored by its arrival time in milliseconds. Trimming,
    recording and counting run in one MULTI/EXEC block, so replicas sharing
    the server agree on the window. An attempt over the limit is withdrawn
    again and does not occupy a slot.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "user-service:rate",
    ) -> None:
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    def allow(self, key: str) -> bool:
        """Record an attempt and return ``True`` while ``key`` is under the limit."""
        redis_key = self._key(key)
        now_ms = int(time.time() * 1000)
        attempt = f"{now_ms}:{uuid.uuid4().hex}"

        with self._client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
            pipe.zadd(redis_key, {attempt: now_ms})
            pipe.zcard(redis_key)
            pipe.pexpire(redis_key, self._window_ms)
            _, _, attempts, _ = pipe.execute()

        if attempts <= self._max_requests:
            return True
        self._client.zrem(redis_key, attempt)
        return False

    def reset(self, key: str) -> None:
        self._client.delete(self._key(key))
