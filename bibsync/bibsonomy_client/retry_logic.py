"""Retry logic with exponential backoff for temporarily unavailable BibSonomy.

This module retries idempotent calls that fail with ServiceUnavailableError
(HTTP 503 and 429). It implements exponential backoff (1s, 2s, 4s) and fails
fast for every other error, including InternalServerError.
"""

import time
import logging
from typing import Callable, TypeVar

from .errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3


def retry_on_unavailable(func: Callable[..., T], *args, **kwargs) -> T:
    """Retry function on ServiceUnavailableError with exponential backoff.

    Executes the given function with the provided arguments, retrying up to
    3 times with exponential backoff (1s, 2s, 4s). Only use this for
    idempotent requests: a retried POST could create a second post.

    Args:
        func: The function to execute with retry logic
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The return value of the function

    Raises:
        ServiceUnavailableError: If the service is still unavailable after 3 retries
        Other exceptions: Passed through immediately without retry

    Example:
        >>> user = retry_on_unavailable(fetch_user, "alice")
    """
    for retry_num in range(MAX_RETRIES + 1):
        try:
            return func(*args, **kwargs)
        except ServiceUnavailableError:
            if retry_num >= MAX_RETRIES:
                logger.error(
                    f"Service still unavailable after {MAX_RETRIES} retries, giving up"
                )
                raise

            wait_time = 2 ** retry_num
            logger.info(
                f"Service unavailable, retrying in {wait_time}s "
                f"(retry {retry_num + 1}/{MAX_RETRIES})"
            )
            time.sleep(wait_time)

    # Unreachable: the loop either returns or re-raises
    raise ServiceUnavailableError("Service unavailable")

