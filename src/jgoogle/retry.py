"""
Rate-limit aware retries for Google API calls.

Only the service wrappers use this. Token endpoint calls and the
authorization flows are never retried.
"""

import functools
import logging
import random
import time
from typing import Callable, Optional

from .errors import RateLimitError

logger = logging.getLogger(__name__)


def exponential_backoff(
    attempt: int,
    initial_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay.

    Args:
        attempt: Current attempt number (0-indexed)
        initial_delay: Initial delay in seconds
        exponential_base: Base for exponential calculation
        max_delay: Maximum delay in seconds
        jitter: Whether to add random jitter

    Returns:
        Delay in seconds
    """
    delay = min(initial_delay * (exponential_base**attempt), max_delay)

    if jitter:
        # Add jitter (0-25% of delay)
        delay += random.uniform(0, delay * 0.25)

    return delay


def retry_with_rate_limit(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    rate_limit_exceptions: Optional[tuple] = None,
):
    """
    Decorator for retrying with rate limit awareness.

    Uses ``retry_after`` from the exception when present, exponential
    backoff otherwise. Other exceptions propagate immediately. When every
    attempt is rate limited the last RateLimitError is raised.

    Usage:
        @retry_with_rate_limit(max_attempts=5)
        def api_call():
            # May raise RateLimitError
            pass
    """
    if rate_limit_exceptions is None:
        rate_limit_exceptions = (RateLimitError,)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except rate_limit_exceptions as e:
                    if attempt == max_attempts - 1:
                        raise

                    retry_after = getattr(e, "retry_after", None)
                    delay = retry_after or exponential_backoff(attempt, initial_delay)
                    logger.warning(
                        "Rate limited, retrying in %.1fs (attempt %d/%d)",
                        delay,
                        attempt + 1,
                        max_attempts,
                    )
                    time.sleep(delay)

        return wrapper

    return decorator
