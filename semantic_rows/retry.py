"""
Retry utilities for embedding API calls.

Compute dispatches are never retried here: a failed dispatch falls back to
the CPU backend instead (see semantic_rows.compute.selector).
"""

import logging
from typing import Callable, TypeVar

from openai import APIConnectionError, APITimeoutError, RateLimitError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Common transient exceptions
TRANSIENT_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
)

OPENAI_TRANSIENT = (APIConnectionError, APITimeoutError, RateLimitError)

OPENAI_MAX_ATTEMPTS = 5


def retry_openai(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator for retrying OpenAI API calls with exponential backoff.

    Retries on:
    - Rate limits (429)
    - Connection errors
    - Timeouts

    Example:
        @retry_openai
        def create_embedding(text: str) -> List[float]:
            return client.embeddings.create(...)
    """
    return retry(
        stop=stop_after_attempt(OPENAI_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        retry=retry_if_exception_type(TRANSIENT_EXCEPTIONS + OPENAI_TRANSIENT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )(func)
