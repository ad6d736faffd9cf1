"""Bounded exponential backoff for rate-limited vendor calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

from ai_providers.errors import RateLimitedError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """``max_retries`` extra attempts after the first, sleeping
    ``base_delay * multiplier ** n`` seconds before retry ``n``."""

    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    retry_on: tuple[type[Exception], ...] = (RateLimitedError,)

    def delays(self) -> Iterator[float]:
        for attempt in range(self.max_retries):
            yield self.base_delay * self.multiplier**attempt


DEFAULT_RETRY_POLICY = RetryPolicy()


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    label: str = "call",
    retry_if: Callable[[Exception], bool] | None = None,
) -> T:
    """Await ``func()``, retrying on the policy's exception types.

    The last exception propagates once the retry ceiling is reached, or as
    soon as ``retry_if`` rejects it.
    """
    delays = list(policy.delays())
    attempt = 0
    while True:
        try:
            return await func()
        except policy.retry_on as exc:
            if attempt >= len(delays) or (retry_if is not None and not retry_if(exc)):
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(
                "%s rate limited, retrying in %.1fs (retry %d/%d): %s",
                label,
                delay,
                attempt,
                len(delays),
                exc,
            )
            await asyncio.sleep(delay)
