"""
Retry handler for model and network calls.

This module provides retry logic with exponential backoff for transient
failures. Retryability is decided in one place: timeouts, connection
errors, HTTP 5xx and 429/overloaded/rate-limit responses are retried;
other 4xx responses and everything else propagate immediately.
"""

import asyncio
import logging
import random
from typing import Callable, Optional, Awaitable, TypeVar

import aiohttp
import requests

from ...core.models.errors import LLMError, ExternalServiceError, RetryExhaustedError


logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MESSAGE_PATTERNS = (
    "timeout",
    "timed out",
    "econnreset",
    "connection reset",
    "overloaded",
    "529",
    "rate_limit",
    "rate limit",
    "service unavailable",
)


def _status_code(error: Exception) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retryable_error(error: Exception) -> bool:
    """
    Check if error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if the failure is transient
    """
    if isinstance(error, LLMError):
        return error.retryable

    status = _status_code(error)
    if status is not None:
        return status == 429 or status == 529 or status >= 500

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(error, (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError)):
        return True
    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True

    if isinstance(error, ExternalServiceError):
        return False

    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS)


class RetryHandler:
    """
    Retry handler with exponential backoff.

    Delays grow as ``base_delay * backoff_multiplier ** attempt`` with
    optional 10% jitter. When every retry fails the last error is wrapped
    in RetryExhaustedError.
    """

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 2.0,
        max_delay: float = 60.0,
        backoff_multiplier: float = 2.0,
        jitter: bool = False,
        is_retryable: Callable[[Exception], bool] = is_retryable_error
    ):
        """
        Initialize retry handler.

        Args:
            max_retries: Maximum number of retries after the first attempt
            base_delay: Base delay in seconds
            max_delay: Maximum delay in seconds
            backoff_multiplier: Backoff multiplier
            jitter: Whether to add jitter
            is_retryable: Predicate deciding whether a failure is transient
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.jitter = jitter
        self.is_retryable = is_retryable

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        label: str = "operation",
        **kwargs
    ) -> T:
        """
        Execute an async function with retry logic.

        Args:
            func: Coroutine function to execute
            *args: Function arguments
            label: Name used in log lines and the exhaustion error
            **kwargs: Function keyword arguments

        Returns:
            Function result

        Raises:
            RetryExhaustedError: If every attempt failed with a retryable error
            Exception: The first non-retryable error, unchanged
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                result = await func(*args, **kwargs)

                if attempt > 0:
                    logger.info(f"[retry] {label} succeeded after {attempt} retries")

                return result

            except Exception as e:
                last_exception = e

                if not self.is_retryable(e):
                    raise

                if attempt >= self.max_retries:
                    break

                delay = self._calculate_delay(attempt)

                logger.warning(
                    f"[retry] {label} failed (attempt {attempt + 1}/{self.max_retries + 1}): {e}. "
                    f"Retrying in {delay:.1f}s..."
                )

                await asyncio.sleep(delay)

        attempts = self.max_retries + 1
        logger.error(f"[retry] {label} failed after {attempts} attempts: {last_exception}")
        raise RetryExhaustedError(
            f"{label} failed after {attempts} attempts: {last_exception}",
            label=label,
            attempts=attempts
        ) from last_exception

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for retry attempt.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay * (self.backoff_multiplier ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            jitter_range = delay * 0.1
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    base_delay: float = 2.0,
    label: str = "operation",
    is_retryable: Callable[[Exception], bool] = is_retryable_error
) -> T:
    """Run ``operation`` under a one-off RetryHandler."""
    handler = RetryHandler(
        max_retries=max_retries,
        base_delay=base_delay,
        is_retryable=is_retryable
    )
    return await handler.execute_with_retry(operation, label=label)


async def with_timeout(awaitable: Awaitable[T], seconds: float, label: str = "operation") -> T:
    """Await with a deadline; raises asyncio.TimeoutError, which is retryable."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning(f"[timeout] {label} exceeded {seconds}s")
        raise
