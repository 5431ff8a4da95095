"""Request limiter for the unauthenticated demo endpoint.

``InMemoryRateLimiter`` is process-local and non-durable: counters reset on
restart. It is created once at startup and handed to routes through a
dependency, so a distributed implementation can replace it without touching
call sites.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of counting one request against a window."""

    allowed: bool
    remaining: int
    limit: int
    reset_at: float


class RateLimiter(ABC):
    """Counts requests per caller key."""

    @abstractmethod
    async def hit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and return the decision."""
        ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter(RateLimiter):
    """Fixed-window counter keyed by caller.

    A window opens on the first request from a key and lasts
    ``window_seconds``. Requests beyond ``limit`` inside the window are
    refused; once the window elapses the counter starts over. Expired
    windows are evicted as they are encountered.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    async def hit(self, key: str) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)

            window = self._windows.get(key)
            if window is None:
                window = _Window(count=0, reset_at=now + self._window_seconds)
                self._windows[key] = window

            if window.count >= self._limit:
                return RateLimitDecision(False, 0, self._limit, window.reset_at)

            window.count += 1
            return RateLimitDecision(
                True,
                self._limit - window.count,
                self._limit,
                window.reset_at,
            )

    def reset(self) -> None:
        """Drop all counters."""
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]
