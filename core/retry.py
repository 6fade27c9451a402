"""
Retry — Fixed-delay retry primitives shared by every network operation.

A retry budget is "max_retries retries after the first attempt, delay seconds
apart", consumed per logical operation (one probe, one query, one page
download). Only the exception types listed in retry_on are retried; anything
else propagates immediately. When the budget is spent, RetryExhaustedError is
raised, chained to the last failure. Whether that stops the whole run is the
caller's decision.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Tuple, Type

from .errors import RetryExhaustedError

logger = logging.getLogger(__name__)


def _exhausted(description: str, attempts: int, error: BaseException) -> RetryExhaustedError:
    return RetryExhaustedError(
        f"Too many failed attempts for {description}: giving up after {attempts} tries. Last error: {error}"
    )


def retry_with_backoff(
    operation: Callable[[], Any],
    max_retries: int,
    delay: float,
    retry_on: Tuple[Type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
    description: str = "request",
) -> Any:
    """Call operation until it succeeds, at most 1 + max_retries times.

    Args:
        operation: Zero-argument callable performing one attempt.
        max_retries: Retries allowed after the first attempt.
        delay: Seconds slept between attempts.
        retry_on: Exception types considered transient.
        sleep: Sleep function (injected in tests).
        description: Used in warning messages.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        RetryExhaustedError: If every attempt failed.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= max_retries:
                raise _exhausted(description, attempt + 1, e) from e
            logger.warning("%s failed (%s). Retrying in %s seconds.", description, e, delay)
            attempt += 1
            sleep(delay)


async def retry_with_backoff_async(
    operation: Callable[[], Awaitable[Any]],
    max_retries: int,
    delay: float,
    retry_on: Tuple[Type[BaseException], ...],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "request",
) -> Any:
    """Coroutine version of retry_with_backoff(); the delay does not block other tasks."""
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_retries:
                raise _exhausted(description, attempt + 1, e) from e
            logger.warning("%s failed (%s). Retrying in %s seconds.", description, e, delay)
            attempt += 1
            await sleep(delay)
