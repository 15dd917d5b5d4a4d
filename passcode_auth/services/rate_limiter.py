"""
Rate Limiter

Fixed-window token bucket keyed by an arbitrary string (usually the
normalised email). Each key gets `capacity` tokens per `window_seconds`;
the window restarts on the first take after it has elapsed.

Takes on the same key are serialised by that key's lock. The registry
lock only guards the key -> bucket map.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from passcode_auth.errors import RateLimited

LOGGER = logging.getLogger(__name__)


@dataclass
class Bucket:
    available: int
    window_start: float
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    evicted: bool = False


class TokenBucket:
    def __init__(
        self,
        name: str,
        capacity: int,
        window_seconds: float,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.name = name
        self.capacity = capacity
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._buckets: dict[str, Bucket] = {}
        self._registry_lock = threading.Lock()
        self._last_sweep = clock()

    def take(self, key: str) -> int:
        """
        Consume one token for key.

        Returns:
            Tokens left in the current window

        Raises:
            RateLimited: carrying the seconds until the next token
        """
        if not self.enabled:
            return self.capacity

        while True:
            bucket = self._get_bucket(key)
            with bucket.lock:
                if bucket.evicted:
                    # swept between lookup and lock; retry on the fresh bucket
                    continue
                now = self._clock()
                if now >= bucket.window_start + self.window_seconds:
                    bucket.available = self.capacity
                    bucket.window_start = now
                if bucket.available > 0:
                    bucket.available -= 1
                    return bucket.available
                countdown = self._remaining(bucket, now)
            LOGGER.debug("Bucket %s exhausted, %.1fs left", self.name, countdown)
            raise RateLimited(countdown)

    def countdown(self, key: str) -> float:
        """Seconds until key gets its next token, zero if one is available."""
        with self._registry_lock:
            bucket = self._buckets.get(key)
        if bucket is None:
            return 0.0
        with bucket.lock:
            if bucket.available > 0:
                return 0.0
            return self._remaining(bucket, self._clock())

    def reset(self) -> None:
        with self._registry_lock:
            for bucket in self._buckets.values():
                bucket.evicted = True
            self._buckets.clear()

    def sweep(self) -> int:
        """Drop buckets whose window has elapsed; they equal fresh ones."""
        with self._registry_lock:
            return self._sweep_locked(self._clock())

    def __len__(self) -> int:
        return len(self._buckets)

    def _remaining(self, bucket: Bucket, now: float) -> float:
        return max(0.0, bucket.window_start + self.window_seconds - now)

    def _get_bucket(self, key: str) -> Bucket:
        with self._registry_lock:
            now = self._clock()
            if now - self._last_sweep >= self.window_seconds:
                self._sweep_locked(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = Bucket(available=self.capacity, window_start=now)
                self._buckets[key] = bucket
            return bucket

    def _sweep_locked(self, now: float) -> int:
        self._last_sweep = now
        removed = 0
        for key, bucket in list(self._buckets.items()):
            # skip buckets in use; they'll be picked up next sweep
            if not bucket.lock.acquire(blocking=False):
                continue
            try:
                if now >= bucket.window_start + self.window_seconds:
                    bucket.evicted = True
                    del self._buckets[key]
                    removed += 1
            finally:
                bucket.lock.release()
        if removed:
            LOGGER.debug("Bucket %s evicted %d idle keys", self.name, removed)
        return removed
