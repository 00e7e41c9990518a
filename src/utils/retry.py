"""
Retry decorator with exponential backoff for database operations

Provides retry logic for transient failures with:
- Exponential backoff (base 2.0)
- Jitter to prevent thundering herd
- A predicate deciding which exceptions are worth another attempt
- Callback support for metrics integration

Usage:
    from utils.retry import retry_with_backoff, is_retryable_db_exception

    @retry_with_backoff(max_retries=3, should_retry=is_retryable_db_exception)
    def fetch(cursor, query):
        cursor.execute(query)
        return cursor.fetchall()
"""

import logging
import random
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)

RETRYABLE_MESSAGE_PATTERNS = (
    "connection",
    "timeout",
    "timed out",
    "deadlock",
    "lock wait timeout",
    "lost connection",
    "server has gone away",
    "could not connect",
    "unable to connect",
    "connection refused",
    "connection reset",
    "broken pipe",
    "network error",
    "communication link failure",
    "connection closed",
    "connection terminated",
    "database is locked",
)

RETRYABLE_EXCEPTION_NAMES = (
    "connectionerror",
    "timeouterror",
    "operationalerror",
    "interfaceerror",
    "poolexhaustederror",
)


def is_retryable_db_exception(exception: BaseException) -> bool:
    """
    Determine if a database exception is transient.

    Connection drops, timeouts, deadlocks and lock waits are retryable;
    syntax errors, missing tables and constraint violations are not.
    """
    exception_str = str(exception).lower()
    exception_type = type(exception).__name__.lower()

    if exception_type in RETRYABLE_EXCEPTION_NAMES:
        return True

    return any(pattern in exception_str for pattern in RETRYABLE_MESSAGE_PATTERNS)


def compute_backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before retry number ``attempt + 1`` (attempt is 0-based)."""
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        # +/-25% of delay
        jitter_amount = delay * 0.25
        delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    should_retry: Callable[[Exception], bool] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (0 disables retrying)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        jitter: Add random jitter to each delay
        should_retry: Predicate on the raised exception; None retries everything
        on_retry: Callback(attempt, exception, delay) called before each sleep
    """
    def decorator(func: Callable) -> Callable:
        func_name = getattr(func, "__name__", "function")

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if should_retry is not None and not should_retry(e):
                        raise

                    if attempt == max_retries:
                        if max_retries:
                            logger.error(
                                f"Max retries ({max_retries}) exceeded for {func_name}: "
                                f"{type(e).__name__}: {e}"
                            )
                        raise

                    delay = compute_backoff_delay(
                        attempt, base_delay, max_delay, exponential_base, jitter
                    )

                    logger.warning(
                        f"Attempt {attempt + 1}/{max_retries} failed for {func_name}: "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )

                    if on_retry:
                        try:
                            on_retry(attempt + 1, e, delay)
                        except Exception as callback_error:
                            logger.error(f"Error in retry callback: {callback_error}")

                    time.sleep(delay)

            raise RuntimeError(f"Unexpected exit from retry loop in {func_name}")

        return wrapper
    return decorator
