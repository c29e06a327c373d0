"""Retry helpers for record store database operations."""

import functools
import sqlite3
import time
from typing import Any, Callable, TypeVar

from app.core.logging import get_logger

logger = get_logger()

T = TypeVar("T")

# Lock contention messages worth waiting out
_TRANSIENT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "cannot start a transaction within a transaction",
)

# Schema problems will not fix themselves
_PERMANENT_MESSAGES = ("no such table", "no such column", "syntax error")


def is_transient_error(exc: Exception) -> bool:
    """Return True if ``exc`` is a SQLite error that a retry may resolve."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    if any(fragment in message for fragment in _TRANSIENT_MESSAGES):
        return True
    return not any(fragment in message for fragment in _PERMANENT_MESSAGES)


def with_db_retry(
    max_retries: int = 5,
    base_delay: float = 0.05,
    max_delay: float = 1.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry a database operation with exponential backoff on lock contention.

    Args:
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Initial delay between retries in seconds
        max_delay: Upper bound for a single delay in seconds
        backoff_factor: Multiplier applied to the delay after each attempt

    Returns:
        Decorator wrapping the function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if attempt >= max_retries or not is_transient_error(e):
                        raise

                    delay = min(base_delay * (backoff_factor**attempt), max_delay)
                    logger.debug(
                        "db_operation_retry",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=max_retries + 1,
                        delay=round(delay, 3),
                        error=str(e),
                    )
                    time.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
