"""Retry helper shared by the bulk write paths."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from ledgerkit.domain.errors import DomainError, RetryExhaustedError
from ledgerkit.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 5.0) -> float:
    """Delay in seconds before retry number ``attempt`` (1-based)."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 5.0,
    label: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Run ``operation`` until it succeeds or ``max_retries`` retries are spent.

    ``operation`` must be safe to run again after a failure; an atomic batch
    commit that rolled back qualifies. Domain errors (bad input, missing
    entities) are not transient and are raised immediately.

    Raises:
        RetryExhaustedError: after ``max_retries + 1`` failed attempts
    """
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except DomainError:
            raise
        except Exception as e:
            if attempt > max_retries:
                raise RetryExhaustedError(attempt, e) from e
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "retrying_after_failure",
                label=label,
                attempt=attempt,
                max_attempts=max_retries + 1,
                delay=delay,
                error=str(e),
            )
            await sleep(delay)
