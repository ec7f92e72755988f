"""Retry utilities."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import ProviderError

T = TypeVar("T")

logger = logging.getLogger("snowball-citation-server")


def backoff_delay(
    attempt: int,
    base: float = 1.0,
    factor: float = 2.0,
    maximum: float = 30.0,
    retry_after: float | None = None,
) -> float:
    """Seconds to wait before retry number `attempt + 1`."""
    delay = base * (factor**attempt)
    if retry_after is not None:
        delay = max(delay, retry_after)
    return min(delay, maximum)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base: float = 1.0,
    factor: float = 2.0,
    maximum: float = 30.0,
    description: str = "request",
) -> T:
    """
    Execute async function with exponential backoff retry.

    Only retryable ProviderErrors are retried. The last error is re-raised
    once `max_attempts` is exhausted.
    """
    for attempt in range(max_attempts):
        try:
            return await fn()
        except ProviderError as e:
            if not e.retryable or attempt >= max_attempts - 1:
                raise
            wait_time = backoff_delay(
                attempt,
                base=base,
                factor=factor,
                maximum=maximum,
                retry_after=e.retry_after,
            )
            logger.warning(
                f"{description} failed ({e.reason.value}), "
                f"retrying in {wait_time:.1f}s [{attempt + 1}/{max_attempts}]"
            )
            await asyncio.sleep(wait_time)
    raise RuntimeError("with_retry called with max_attempts < 1")
