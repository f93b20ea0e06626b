"""Bounded retry with exponential backoff for retryable I/O steps."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, and how long to wait in between."""

    max_attempts: int = 3
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""

        if self.backoff_base_seconds <= 0:
            return 0.0
        delay = self.backoff_base_seconds * (2 ** (attempt - 1))
        return min(delay, self.backoff_max_seconds)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    description: str,
) -> T:
    """Run ``operation`` until it succeeds or ``policy.max_attempts`` is spent.

    Only exceptions listed in ``retry_on`` are retried; the last one is
    re-raised once the budget is exhausted. Anything else propagates on the
    first occurrence.
    """

    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= attempts:
                logger.error(
                    "%s failed after %d attempt(s): %s", description, attempt, exc
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed attempt=%d/%d reason=%s retry_in=%.2fs",
                description,
                attempt,
                attempts,
                exc,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
    raise RuntimeError(f"{description} exhausted its retry budget")  # pragma: no cover


__all__ = ["RetryPolicy", "retry_async"]
