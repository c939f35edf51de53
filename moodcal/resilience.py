"""
Retry with Backoff for parameter store calls.

Target component stores are remote and may be briefly unreachable. A store
call either returns its result (a committed or refused write), raises a
transient ``ParameterStoreUnavailable`` worth another attempt, or raises
something else that goes straight back to the caller.
"""

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

import structlog

from moodcal.exceptions import ParameterStoreUnavailable

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
    jitter: float = 0.05,
    retry_on: tuple = (ParameterStoreUnavailable,),
    operation_name: str = "store_call",
) -> T:
    """
    Run a store call, retrying transient outages.

    A refused write is a result, not an error, so it is returned on the first
    attempt and never retried. Only exceptions in ``retry_on`` are retried,
    at most ``max_retries`` times, sleeping
    ``min(base_delay * 2^attempt, max_delay)`` plus up to ``jitter`` seconds
    between attempts. Jitter is skipped when the delay is zero.

    Raises:
        The last ``retry_on`` exception once retries run out; any other
        exception immediately.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except retry_on as exc:
            if attempt >= max_retries:
                logger.error(
                    "store_retry_exhausted",
                    operation=operation_name,
                    attempts=attempt + 1,
                    error=str(exc),
                )
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)
            if delay > 0:
                delay += random.uniform(0, jitter)
            attempt += 1
            logger.warning(
                "store_retry_attempt",
                operation=operation_name,
                attempt=attempt,
                max_retries=max_retries,
                delay=round(delay, 3),
                error=str(exc),
            )
            await asyncio.sleep(delay)
