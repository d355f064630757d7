"""Async retry helpers used by HTTP clients."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")
AsyncFactory = Callable[[], Awaitable[T]]
RetryPredicate = Callable[[Exception], bool]


def _always(_: Exception) -> bool:
    return True


async def retry_async(
    operation: AsyncFactory[T],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.25,
    jitter: float = 0.15,
    retry_on: RetryPredicate = _always,
    logger=None,
    operation_name: str = "operation",
) -> T:
    """Retry an async operation with exponential backoff.

    Exceptions rejected by ``retry_on`` propagate immediately.
    """

    attempt = 1
    while attempt <= max_attempts:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= max_attempts or not retry_on(exc):
                raise
            delay = base_delay * (2 ** (attempt - 1))
            if jitter > 0:
                delay += random.uniform(0, jitter)
            if logger is not None:
                logger.warning(
                    "retrying_operation",
                    operation=operation_name,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay=round(delay, 3),
                    error=str(exc),
                )
            await asyncio.sleep(delay)
            attempt += 1

    # This point is never reached but keeps type-checkers happy.
    raise RuntimeError(f"{operation_name} failed after {max_attempts} attempts")


__all__ = ["retry_async"]
