"""
Rate Limiter
============

In-memory fixed-window rate limiter keyed by client identity.

Each key gets a window that starts on its first request. Requests inside the
window increment the counter (without clamping); once the window has passed
the record counts as absent and the next request opens a fresh window.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from screenshot_api.config.logging import get_logger
from screenshot_api.models.schemas import RateLimitInfo
from screenshot_api.utils.periodic import PeriodicTask

logger = get_logger(__name__)


@dataclass
class RateLimitRecord:
    """Request counter for one key and window."""
    key: str
    count: int
    window_start: float
    reset_at: float

    def expired(self, now: float) -> bool:
        return now > self.reset_at


class RateLimiter:
    """Fixed-window request counter."""

    KEY_PREFIX = "ratelimit:"

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        cleanup_interval: float = 300,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            max_requests: Requests allowed per window
            window_seconds: Window length in seconds
            cleanup_interval: Seconds between sweeps of expired records
            clock: Monotonic time source, overridable for tests
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._periodic = PeriodicTask("rate-limit-cleanup", cleanup_interval, self.cleanup)
        self.logger = logger.bind(component="rate_limiter")

    def __len__(self) -> int:
        return len(self._records)

    def check_and_consume(self, key: str) -> bool:
        """Count one request for ``key`` and report whether it is allowed."""
        record_key = self.KEY_PREFIX + key
        now = self._clock()

        with self._lock:
            record = self._records.get(record_key)
            if record is None or record.expired(now):
                self._records[record_key] = RateLimitRecord(
                    key=key, count=1, window_start=now, reset_at=now + self.window_seconds
                )
                return True

            record.count += 1
            count = record.count

        allowed = count <= self.max_requests
        if not allowed:
            self.logger.warning("Rate limit exceeded", key=key, count=count)
        return allowed

    def info(self, key: str) -> RateLimitInfo:
        """Current usage of ``key`` without consuming a request."""
        now = self._clock()

        with self._lock:
            record = self._records.get(self.KEY_PREFIX + key)
            if record is None or record.expired(now):
                return RateLimitInfo(
                    count=0,
                    limit=self.max_requests,
                    remaining=self.max_requests,
                    reset_in=math.floor(self.window_seconds),
                )
            count, reset_at = record.count, record.reset_at

        return RateLimitInfo(
            count=count,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_in=max(0, math.floor(reset_at - now)),
        )

    def cleanup(self) -> int:
        """Drop expired records. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, record in self._records.items() if record.expired(now)]
            for k in expired:
                del self._records[k]

        if expired:
            self.logger.info("Cleaned up expired rate limit records", removed=len(expired))
        return len(expired)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        with self._lock:
            if key is None:
                self._records.clear()
            else:
                self._records.pop(self.KEY_PREFIX + key, None)

    def start(self) -> None:
        self._periodic.start()

    async def stop(self) -> None:
        await self._periodic.stop()
