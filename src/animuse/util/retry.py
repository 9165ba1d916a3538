"""Generic async retry with exponential backoff."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from animuse.util.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait before retry number ``attempt`` (1-based): 2, 4, 8, ..."""
    return float(2 ** attempt)


def always_retry(exc: BaseException) -> bool:
    return True


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    is_retryable: Callable[[BaseException], bool] = always_retry,
    backoff: Callable[[int], float] = exponential_backoff,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    name: str = "operation",
) -> T:
    """
    Call ``fn`` until it succeeds, retrying retryable failures.

    ``fn`` runs at most ``retries + 1`` times. A failure that
    ``is_retryable`` rejects, or the failure of the last attempt, is raised
    unchanged to the caller. Cancellation is never retried.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt.
        retries: Retries allowed after the first attempt.
        is_retryable: Predicate deciding whether an exception is transient.
        backoff: Maps the 1-based retry number to a delay in seconds.
        sleep: Awaitable sleep, replaceable in tests.
        name: Label used in log messages.

    Returns:
        Whatever ``fn`` returns on its first successful attempt.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= retries:
                logger.error("[RETRY] %s failed after %d retries: %s", name, retries, exc)
                raise
            attempt += 1
            delay = backoff(attempt)
            logger.warning(
                "[RETRY] %s failed (%s). Retrying in %.1fs (attempt %d/%d)",
                name, exc, delay, attempt, retries,
            )
            await sleep(delay)
