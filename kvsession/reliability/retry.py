"""
Retry Policy: Exponential Backoff with Jitter

Store clients report failure as Err(StoreUnavailable) rather than raising,
so the retry loop inspects results instead of catching exceptions.

- Exponential backoff: base × 2^n, capped
- Full jitter: random(0, backoff) to prevent thundering herd
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from kvsession.core.types import Result
from kvsession.core import constants as C

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration."""

    max_retries: int = C.RETRY_MAX_ATTEMPTS
    base_delay_ms: int = C.RETRY_BASE_MS
    max_delay_ms: int = 2000
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def default(cls) -> RetryPolicy:
        return cls()

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """No retries (for the housekeeper, which retries on its next tick)."""
        return cls(max_retries=0)


def calculate_backoff(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    exponential_base: float,
    jitter: bool,
) -> float:
    """
    Calculate backoff delay with optional jitter.

    Full jitter: random(0, min(cap, base * 2^attempt))
    """
    delay = min(max_delay_ms, base_delay_ms * (exponential_base ** attempt))
    if jitter:
        delay = random.uniform(0, delay)
    return delay


async def retry_result(
    func: Callable[[], Awaitable[Result[T, E]]],
    policy: Optional[RetryPolicy] = None,
    operation: str = "operation",
) -> Result[T, E]:
    """
    Call func until it returns Ok or retries are exhausted.

    Returns the last Err unchanged when every attempt fails.
    """
    if policy is None:
        policy = RetryPolicy.default()

    result = await func()
    attempt = 0
    while result.is_err() and attempt < policy.max_retries:
        delay = calculate_backoff(
            attempt=attempt,
            base_delay_ms=policy.base_delay_ms,
            max_delay_ms=policy.max_delay_ms,
            exponential_base=policy.exponential_base,
            jitter=policy.jitter,
        )
        logger.debug(
            f"{operation} failed ({result.error}), retrying in {delay:.0f}ms "
            f"(attempt {attempt + 2})"
        )
        await asyncio.sleep(delay / 1000)
        attempt += 1
        result = await func()

    return result
