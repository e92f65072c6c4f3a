"""Retry utilities with exponential backoff for SQLite write-lock contention.

Only lock acquisition is retried. Domain errors are never retried.
"""

import logging
import sqlite3
from typing import Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_lock_contention(exc: BaseException) -> bool:
    """True for the transient sqlite3 errors raised while another writer holds the lock."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "database is locked" in message or "database is busy" in message


def with_db_retry(
    max_attempts: int = 5,
    min_wait: float = 0.05,
    max_wait: float = 1.0,
    multiplier: float = 0.1,
):
    """Decorator that retries a function with exponential backoff on lock contention.

    Args:
        max_attempts: Maximum number of attempts (default 5).
        min_wait: Minimum wait between retries in seconds (default 0.05).
        max_wait: Maximum wait between retries in seconds (default 1).
        multiplier: Base multiplier for exponential backoff (default 0.1).
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
            retry=retry_if_exception(is_lock_contention),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        def wrapper(*args, **kwargs) -> T:
            return func(*args, **kwargs)

        return wrapper

    return decorator
