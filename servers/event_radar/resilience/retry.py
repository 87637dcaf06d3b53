"""Retry with exponential backoff for transient provider failures."""

import asyncio
import random
from typing import Any, Callable, Coroutine, TypeVar

import structlog

from ..errors import ProviderError

logger = structlog.get_logger()

T = TypeVar("T")


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before retry number `attempt` (0-based)."""
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


async def retry_with_backoff(
    coro_fn: Callable[[], Coroutine[Any, Any, T]],
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> T:
    """Run coro_fn(), retrying ProviderErrors that are transient.

    Non-transient provider errors (bad payload, 4xx, missing key) are raised
    immediately. The caller's timeout bounds the total time spent here.

    Args:
        coro_fn: Zero-argument async callable to run
        max_attempts: Total attempts including the first
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between delays
        jitter: Randomize delays to spread retries out

    Raises:
        ProviderError: The last error once attempts are exhausted
    """
    for attempt in range(max_attempts):
        try:
            return await coro_fn()
        except ProviderError as e:
            if not e.is_transient or attempt == max_attempts - 1:
                if e.is_transient:
                    logger.error(
                        "retry_exhausted",
                        source=e.source,
                        max_attempts=max_attempts,
                        error=e.describe(),
                    )
                raise

            delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
            logger.warning(
                "retry_attempt",
                source=e.source,
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay=round(delay, 2),
                error=e.describe(),
            )
            await asyncio.sleep(delay)

    raise RuntimeError("max_attempts must be at least 1")
