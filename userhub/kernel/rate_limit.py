"""
Fixed-window rate limit bookkeeping.

One store instance owns one table; nothing here is module-global, so two
routers (or two test cases) never share counters.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional

# Sweep expired windows every this many hits
DEFAULT_SWEEP_EVERY = 500


@dataclass
class Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int  # whole seconds until the window resets; 0 when allowed


class FixedWindowStore:
    """
    Key -> (count, reset_at). The read-check-increment runs under a lock.

    Keys come from caller-controlled values (client IPs), so the store evicts
    reset windows itself every ``sweep_every`` hits.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        sweep_every: int = DEFAULT_SWEEP_EVERY,
    ):
        if sweep_every < 1:
            raise ValueError("sweep_every must be at least 1")
        self._clock = clock or time.monotonic
        self._windows: Dict[Hashable, Window] = {}
        self._lock = asyncio.Lock()
        self._sweep_every = sweep_every
        self._hits = 0

    async def hit(self, key: Hashable, limit: int, window_seconds: float) -> RateLimitDecision:
        """Count one call for ``key``; rejected calls are not counted."""
        async with self._lock:
            now = self._clock()
            self._hits += 1
            if self._hits % self._sweep_every == 0:
                self._evict_expired(now)

            window = self._windows.get(key)

            if window is None or now >= window.reset_at:
                self._windows[key] = Window(count=1, reset_at=now + window_seconds)
                return RateLimitDecision(allowed=True, count=1, limit=limit, retry_after=0)

            if window.count >= limit:
                retry_after = max(1, math.ceil(window.reset_at - now))
                return RateLimitDecision(
                    allowed=False, count=window.count, limit=limit, retry_after=retry_after
                )

            window.count += 1
            return RateLimitDecision(allowed=True, count=window.count, limit=limit, retry_after=0)

    async def cleanup_expired(self) -> int:
        """Drop windows that have already reset."""
        async with self._lock:
            return self._evict_expired(self._clock())

    def _evict_expired(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)
