"""Error handling and retry logic for upstream requests."""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar, cast

from creator_scout.collector.http_client import HttpResponse
from creator_scout.collector.rate_limiter import RateLimiter, parse_retry_after
from creator_scout.errors import UpstreamError, UpstreamRateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")
AsyncFunc = Callable[..., Awaitable[T]]


class ConsecutiveErrorTracker:
    """Tracker for consecutive failures with threshold checking."""

    def __init__(self, threshold: int, prometheus_exporter=None):
        """
        Initialize the error tracker.

        Args:
            threshold: Maximum number of consecutive errors allowed
            prometheus_exporter: Optional Prometheus exporter for metrics
        """
        self.threshold = threshold
        self.consecutive_errors = 0
        self.prometheus_exporter = prometheus_exporter

    def record_error(self) -> None:
        """Record an error occurrence and increment the counter."""
        self.consecutive_errors += 1
        logger.warning(f"Consecutive errors: {self.consecutive_errors}/{self.threshold}")

        if self.prometheus_exporter:
            self.prometheus_exporter.set_consecutive_failures(self.consecutive_errors)

    def record_success(self) -> None:
        """Record a success, resetting the consecutive error count."""
        if self.consecutive_errors > 0:
            logger.info(f"Resetting consecutive error counter (was {self.consecutive_errors})")
            self.consecutive_errors = 0

            if self.prometheus_exporter:
                self.prometheus_exporter.set_consecutive_failures(0)

    def should_abort(self) -> bool:
        """
        Check if we should abort due to too many consecutive errors.

        Returns:
            True if the failure threshold has been reached
        """
        return self.consecutive_errors >= self.threshold


def raise_for_status(response: HttpResponse, source: str) -> HttpResponse:
    """
    Convert a non-2xx response into the matching upstream error.

    Args:
        response: Response to check
        source: Strategy identifier

    Returns:
        The response unchanged when it is 2xx

    Raises:
        UpstreamRateLimited: On HTTP 429
        UpstreamError: On any other non-2xx status
    """
    if response.ok:
        return response
    body = response.text[:500]
    if response.status == 429:
        raise UpstreamRateLimited(
            source,
            retry_after=parse_retry_after(response.headers.get("retry-after")),
            body=body,
        )
    raise UpstreamError(source, status=response.status, body=body)


def _is_transient(error: UpstreamError) -> bool:
    return error.status is None or error.status >= 500


async def call_with_retries(
    func: AsyncFunc[T],
    *args: Any,
    max_retries: int = 3,
    retry_delay: float = 2.0,
    rate_limiter: Optional[RateLimiter] = None,
    error_tracker: Optional[ConsecutiveErrorTracker] = None,
    **kwargs: Any,
) -> T:
    """
    Await ``func`` with linear backoff on transient upstream failures.

    A 429 sleeps for the upstream's Retry-After (60s when absent) and counts
    as an attempt. 5xx, network failures and timeouts sleep
    ``retry_delay * attempt``. Any other 4xx is raised immediately, as is
    anything that is not an UpstreamError.

    Raises:
        UpstreamRateLimited: When the last attempt was rate limited
        UpstreamError: When the last attempt failed otherwise
    """
    attempts = max(1, max_retries)
    attempt = 0

    while True:
        attempt += 1
        try:
            result = await func(*args, **kwargs)
            if error_tracker:
                error_tracker.record_success()
            return result

        except UpstreamRateLimited as e:
            if attempt >= attempts:
                logger.error(f"Max retries ({attempts}) exceeded: {e}")
                raise
            if rate_limiter:
                await rate_limiter.handle_429(str(e.retry_after) if e.retry_after is not None else None)
            else:
                wait_seconds = e.retry_after if e.retry_after is not None else 60.0
                logger.warning(f"{e}. Waiting for {wait_seconds:.2f}s before retrying.")
                await asyncio.sleep(wait_seconds)

        except UpstreamError as e:
            if not _is_transient(e):
                logger.warning(f"Client error: {e}")
                raise

            if error_tracker:
                error_tracker.record_error()
            if attempt >= attempts:
                logger.error(f"Max retries ({attempts}) exceeded: {e}")
                raise

            backoff = retry_delay * attempt
            logger.warning(f"{e}. Retrying in {backoff:.2f}s ({attempt}/{attempts})")
            await asyncio.sleep(backoff)


def with_linear_backoff(
    max_retries: int = 3,
    retry_delay: float = 2.0,
    rate_limiter: Optional[RateLimiter] = None,
    error_tracker: Optional[ConsecutiveErrorTracker] = None,
) -> Callable[[AsyncFunc[T]], AsyncFunc[T]]:
    """
    Decorator form of :func:`call_with_retries` for fixed retry settings.

    Args:
        max_retries: Total number of attempts
        retry_delay: Base delay in seconds, multiplied by the attempt number
        rate_limiter: Optional rate limiter for handling 429 responses
        error_tracker: Optional tracker for consecutive transient failures

    Returns:
        Decorator function
    """
    def decorator(func: AsyncFunc[T]) -> AsyncFunc[T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await call_with_retries(
                func,
                *args,
                max_retries=max_retries,
                retry_delay=retry_delay,
                rate_limiter=rate_limiter,
                error_tracker=error_tracker,
                **kwargs,
            )

        return cast(AsyncFunc[T], wrapper)
    return decorator
