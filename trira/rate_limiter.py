"""Token bucket rate limiter awaited on the event loop before API requests."""

from __future__ import annotations

import asyncio
import time
from typing import Any


class RateLimiter:
    """Token bucket rate limiter for fan-out batches

    Tokens are replenished at a constant rate and one is consumed per request.
    All coroutines of a batch share one bucket; the event loop is single
    threaded, so the bucket needs no lock.
    """

    def __init__(self, requests_per_second: float, burst_allowance: int = 5):
        """
        Args:
            requests_per_second: Sustained rate limit (tokens added per second)
            burst_allowance: Maximum tokens in bucket (allows short bursts)
        """
        if requests_per_second <= 0:
            raise ValueError(f"requests_per_second must be positive, got: {requests_per_second}")
        self.rate = requests_per_second
        self.burst_allowance = burst_allowance
        self.tokens = float(burst_allowance)
        self.last_update = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.burst_allowance, self.tokens + (now - self.last_update) * self.rate)
        self.last_update = now

    def try_acquire(self) -> bool:
        """Take a token if one is available right now"""
        self._refill()
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    async def acquire(self, timeout: float | None = 30.0) -> bool:
        """
        Wait for permission to make a request

        Suspends the calling coroutine (not the loop) until a token is
        available or timeout is reached.

        Args:
            timeout: Maximum time to wait for permission (seconds), None to
                wait as long as it takes

        Returns:
            True if permission granted, False if timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            if self.try_acquire():
                return True

            wait = (1.0 - self.tokens) / self.rate
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                wait = min(wait, remaining)
            await asyncio.sleep(wait)

    def get_status(self) -> dict[str, Any]:
        """Get current rate limiter status for debugging"""
        self._refill()
        return {
            "available_tokens": self.tokens,
            "max_tokens": self.burst_allowance,
            "rate_per_second": self.rate,
            "utilization_percent": (1 - self.tokens / self.burst_allowance) * 100,
        }
