"""Exponential backoff retry decorator for adapter sub-calls."""

import functools
import time

from .log import get_logger


def with_retry(max_retries: int = 1, base_delay: float = 1.0, retry_on: tuple = (Exception,)):
    """Decorator: retry with exponential backoff on the exceptions in ``retry_on``.

    Delays: base_delay * 2^attempt. Anything outside ``retry_on`` (a parse
    error, a bad argument) propagates on the first attempt. Keep the total
    well under the orchestrator's per-source timeout; a late success is
    discarded anyway.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger()
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_retries:
                        logger.warning(
                            "%s failed after %d attempts: %s",
                            func.__name__, attempt + 1, e
                        )
                        raise
                    delay = base_delay * (2 ** attempt)
                    attempt += 1
                    logger.debug(
                        "%s failed (attempt %d/%d): %s, retrying in %.1fs",
                        func.__name__, attempt, max_retries + 1, e, delay
                    )
                    time.sleep(delay)
        return wrapper
    return decorator
