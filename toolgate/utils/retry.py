"""
Retry utilities - Async retry decorator with exponential backoff.

Used around persisted-slot I/O (files, SQLite, MongoDB) where transient
failures such as a locked database are expected. The default retries
file-system errors; database slots pass their driver's transient errors.
"""

import logging
from typing import Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from toolgate.utils.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (OSError,)


def retry_async(
    max_attempts: int = 3,
    min_wait: float = 0.1,
    max_wait: float = 2.0,
    exceptions: tuple[type[Exception], ...] = RETRYABLE_EXCEPTIONS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for async functions to add retry logic with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        exceptions: Tuple of exception types to retry on
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
