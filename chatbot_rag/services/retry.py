"""Retry logic for failed operations."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, TypeVar, Union

from chatbot_rag.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Union[T, Awaitable[T]]],
    max_attempts: Optional[int] = None,
    delay: Optional[float] = None,
    backoff_multiplier: Optional[float] = None,
    exceptions: tuple = (Exception,),
    description: str = "operation",
) -> T:
    """
    Retry a function with backoff.

    A ``backoff_multiplier`` of 1.0 gives a fixed delay between attempts.

    Args:
        func: Sync or async callable taking no arguments.
        max_attempts: Total number of attempts, including the first.
        delay: Initial delay in seconds.
        backoff_multiplier: Multiplier applied to the delay after each attempt.
        exceptions: Tuple of exceptions to catch and retry.
        description: Label used in log messages.

    Returns:
        Result of the function call.

    Raises:
        Last exception if all attempts fail. Exceptions outside ``exceptions``
        propagate immediately.
    """
    max_attempts = settings.max_attempts if max_attempts is None else max_attempts
    delay = settings.retry_delay_seconds if delay is None else delay
    backoff_multiplier = (
        settings.retry_backoff_multiplier
        if backoff_multiplier is None
        else backoff_multiplier
    )
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except exceptions as e:
            if attempt >= max_attempts:
                logger.error(
                    f"{description}: all {max_attempts} attempts failed. Last error: {str(e)}")
                raise
            wait_time = delay * (backoff_multiplier ** (attempt - 1))
            logger.warning(
                f"{description}: attempt {attempt}/{max_attempts} failed: {str(e)}. "
                f"Retrying in {wait_time:.2f}s..."
            )
            await asyncio.sleep(wait_time)
