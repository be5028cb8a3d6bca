"""
Per-client token bucket rate limiting.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class TokenBucketRateLimiter:
    """
    Allows `rate` requests per second per key with bursts up to `burst`.

    Buckets idle for longer than `idle_ttl_seconds` are dropped on cleanup so
    the table does not grow with every client ever seen.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        *,
        idle_ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0 or burst <= 0:
            raise ValueError("rate and burst must be positive")
        self.rate = rate
        self.burst = burst
        self.idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(tokens=float(self.burst), updated_at=now)
                self._buckets[key] = bucket
            else:
                elapsed = now - bucket.updated_at
                bucket.tokens = min(float(self.burst), bucket.tokens + elapsed * self.rate)
                bucket.updated_at = now

            if now - self._last_cleanup > self.idle_ttl_seconds:
                self._cleanup(now)

            if bucket.tokens < 1.0:
                return False
            bucket.tokens -= 1.0
            return True

    def _cleanup(self, now: float) -> None:
        stale = [
            key
            for key, bucket in self._buckets.items()
            if now - bucket.updated_at > self.idle_ttl_seconds
        ]
        for key in stale:
            del self._buckets[key]
        self._last_cleanup = now
