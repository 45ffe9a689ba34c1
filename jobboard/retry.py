"""
Retry logic with exponential backoff for transient database failures.

Used to wait for a database that is still starting up, locked by
another writer, or briefly unreachable over the network.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    retry_if: Optional[Callable[[Exception], bool]] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)
        retry_if: Optional predicate; a caught exception for which it
            returns False is re-raised immediately

    Example:
        @exponential_backoff(max_retries=3, exceptions=(OperationalError,))
        def ping(engine):
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise

                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)

                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if a database error is likely transient and worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True for lock contention, refused/dropped connections and timeouts
    """
    error_str = str(exception).lower()

    transient_keywords = [
        'database is locked',
        'could not connect',
        'connection refused',
        'connection reset',
        'server closed the connection',
        'the database system is starting up',
        "can't connect",
        'lost connection',
        'timeout',
        'timed out',
    ]

    return any(keyword in error_str for keyword in transient_keywords)
