# src/scorekeep/services/rate_limiter.py

"""Fixed-window rate limiting for API keys.

Windows are keyed by the raw API key. The key never leaves the process:
it is only used as a map key and is not logged or persisted.

The default store is in-memory and per-process. Behind several workers the
effective limit is multiplied by the worker count; a shared store with an
atomic increment-and-expire (e.g. Redis INCR + PEXPIRE) implementing
``RateLimitStore`` gives a global limit without touching callers.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import time
from dataclasses import dataclass
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW_MS = int(os.getenv("RATE_LIMIT_WINDOW_MS", "60000"))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "60"))
RATE_LIMIT_SWEEP_SECONDS = float(os.getenv("RATE_LIMIT_SWEEP_SECONDS", "300"))


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitWindow:
    """Request count of one key in its current window."""

    count: int
    reset_at_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    """Admission decision for one request."""

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int

    def headers(self) -> dict[str, str]:
        """Rate limit headers, with the reset time in epoch seconds."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at_ms / 1000)),
        }

    def retry_after_seconds(self, now_ms: int) -> int:
        return max(0, math.ceil((self.reset_at_ms - now_ms) / 1000))


class RateLimitStore(Protocol):
    """Counter storage. ``increment`` must be atomic per key."""

    async def increment(
        self, key: str, now_ms: int, window_ms: int
    ) -> RateLimitWindow: ...

    async def sweep(self, now_ms: int) -> int: ...


class InMemoryRateLimitStore:
    """Process-local store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def increment(
        self, key: str, now_ms: int, window_ms: int
    ) -> RateLimitWindow:
        """Count a request, opening a new window when the old one elapsed.

        An over-limit request still counts but never extends the window.
        """
        async with self._lock:
            window = self._windows.get(key)
            if window is None or now_ms >= window.reset_at_ms:
                window = RateLimitWindow(count=1, reset_at_ms=now_ms + window_ms)
                self._windows[key] = window
            else:
                window.count += 1
            return RateLimitWindow(count=window.count, reset_at_ms=window.reset_at_ms)

    async def sweep(self, now_ms: int) -> int:
        """Drop windows that already elapsed. Returns how many were removed."""
        async with self._lock:
            expired = [
                key
                for key, window in self._windows.items()
                if now_ms >= window.reset_at_ms
            ]
            for key in expired:
                del self._windows[key]
            return len(expired)


class RateLimiter:
    """Fixed-window limiter: ``limit`` requests per ``window_ms`` per key."""

    def __init__(
        self,
        store: RateLimitStore | None = None,
        limit: int = RATE_LIMIT_MAX_REQUESTS,
        window_ms: int = RATE_LIMIT_WINDOW_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.limit = limit
        self.window_ms = window_ms
        self.clock = clock

    async def check(self, key: str) -> RateLimitResult:
        """Count a request for ``key`` and decide whether it is admitted."""
        window = await self.store.increment(key, self.clock(), self.window_ms)
        return RateLimitResult(
            allowed=window.count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - window.count),
            reset_at_ms=window.reset_at_ms,
        )

    async def sweep(self) -> int:
        return await self.store.sweep(self.clock())


async def run_sweeper(
    limiter: RateLimiter, interval_seconds: float = RATE_LIMIT_SWEEP_SECONDS
) -> None:
    """Periodically evict elapsed windows so memory tracks active keys only.

    Runs until cancelled.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await limiter.sweep()
        except Exception:
            logger.exception("Rate limit sweep failed")
            continue
        if removed:
            logger.debug("Evicted expired rate limit windows", extra={"removed": removed})


# Shared limiter for the application process
rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the process-wide limiter."""
    return rate_limiter
