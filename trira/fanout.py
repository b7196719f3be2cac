"""Fan-out/barrier helpers for issuing a batch of blocking reads concurrently."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, TypeVar

import requests

from trira.exceptions import FetchStageError, JiraAPIError, TrelloAPIError
from trira.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


async def gather_or_cancel(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await every awaitable, failing as a whole on the first error

    Results come back in submission order. When one awaitable raises, the
    ones still pending are cancelled and the first error propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fan_out(
    fetch: Callable[[K], T],
    keys: Sequence[K],
    stage: str,
    limiter: RateLimiter | None = None,
    log: logging.Logger | None = None,
) -> list[T]:
    """Run ``fetch(key)`` for every key concurrently and wait for all of them

    Each call runs in a worker thread so the event loop stays free while it
    blocks on the network. Results are returned in key order, but callers
    that combine entities should correlate them by identifier.

    With a limiter, at most ``burst_allowance`` requests are in flight and
    each waits for a token without a deadline: however large the batch, the
    pacing only stretches it out and never fails it.

    Args:
        fetch: Blocking function performing one remote read
        keys: One key per request
        stage: Name of the pipeline stage, used in errors and logs
        limiter: Optional rate limiter awaited before each request is dispatched
        log: Logger to report on (defaults to this module's logger)

    Returns:
        One result per key

    Raises:
        FetchStageError: If any request fails; the remaining ones are cancelled
    """
    log = log or logger
    slots: asyncio.Semaphore | None = None
    if limiter is not None:
        slots = asyncio.Semaphore(max(1, int(limiter.burst_allowance)))

    async def fetch_one(key: K) -> T:
        if limiter is None or slots is None:
            return await asyncio.to_thread(fetch, key)
        async with slots:
            await limiter.acquire(timeout=None)
            return await asyncio.to_thread(fetch, key)

    log.debug("Fetching %s: %d request(s)", stage, len(keys))
    try:
        results: list[Any] = await gather_or_cancel([fetch_one(key) for key in keys])
    except (TrelloAPIError, JiraAPIError, requests.RequestException) as e:
        log.debug("Fetching %s failed: %s", stage, e)
        raise FetchStageError(f"Unable to fetch {stage}: {e}", stage=stage, cause=e) from e
    return results
