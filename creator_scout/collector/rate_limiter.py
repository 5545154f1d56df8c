"""Rate limiting for upstream requests."""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from creator_scout.config import RateLimitConfig

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-upstream request throttle.

    Enforces a minimum spacing between calls and, where the upstream reports
    X-Ratelimit headers, waits for the quota window to reset before it runs dry.
    One instance is held by each acquisition strategy.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None, name: str = "upstream"):
        """
        Initialize the rate limiter with configuration.

        Args:
            config: Rate limiting configuration
            name: Upstream label used in log messages
        """
        self.config = config or RateLimitConfig()
        self.name = name
        self.remaining_calls: Optional[int] = None
        self.reset_timestamp: Optional[float] = None
        self.last_request_time = 0.0

        # Whichever of the two limits is stricter wins
        self.min_interval = max(
            self.config.min_interval_sec,
            60.0 / self.config.max_requests_per_minute,
        )

    async def throttle(self) -> None:
        """
        Wait until this caller may issue its request.

        Each call reserves the next free slot before suspending, so a burst of
        concurrent callers is spread out evenly at min_interval spacing.
        """
        now = time.time()
        scheduled = max(now, self.last_request_time + self.min_interval)
        self.last_request_time = scheduled

        delay = scheduled - now
        if delay > 0:
            logger.debug(f"{self.name}: throttling for {delay:.2f}s")
            await asyncio.sleep(delay)

        if (self.remaining_calls is not None and
                self.reset_timestamp is not None and
                self.remaining_calls < self.config.min_remaining_calls):

            wait_time = self.reset_timestamp - time.time() + self.config.sleep_buffer_sec
            if wait_time > 0:
                logger.info(f"{self.name}: rate limit approaching, {self.remaining_calls} calls remaining. "
                            f"Sleeping for {wait_time:.2f}s until reset.")
                await asyncio.sleep(wait_time)
                self.remaining_calls = None
                self.reset_timestamp = None

    def touch(self) -> None:
        """Record that a request has just completed."""
        self.last_request_time = max(self.last_request_time, time.time())

    def update_from_headers(self, headers: Dict[str, Any]) -> None:
        """
        Update quota tracking based on upstream response headers.

        Args:
            headers: Lower-cased response headers
        """
        if "x-ratelimit-remaining" in headers:
            try:
                self.remaining_calls = int(float(headers["x-ratelimit-remaining"]))
            except (ValueError, TypeError):
                logger.warning("Failed to parse x-ratelimit-remaining header")

        if "x-ratelimit-reset" in headers:
            try:
                reset_seconds = float(headers["x-ratelimit-reset"])
                self.reset_timestamp = time.time() + reset_seconds
            except (ValueError, TypeError):
                logger.warning("Failed to parse x-ratelimit-reset header")

        if self.remaining_calls is not None and self.reset_timestamp is not None:
            reset_in = self.reset_timestamp - time.time()
            logger.debug(f"{self.name}: {self.remaining_calls} calls remaining, "
                         f"reset in {reset_in:.2f}s")

    async def handle_429(self, retry_after: Optional[str] = None) -> float:
        """
        Sleep out a 429 Too Many Requests response.

        Args:
            retry_after: Value of the Retry-After header, if available

        Returns:
            Seconds slept
        """
        wait_seconds = parse_retry_after(retry_after)

        logger.warning(f"{self.name}: rate limited (429). Waiting for {wait_seconds:.2f}s before retrying.")
        await asyncio.sleep(wait_seconds)

        self.remaining_calls = None
        self.reset_timestamp = None
        return wait_seconds


def parse_retry_after(value: Optional[str], default: float = 60.0) -> float:
    """Parse a Retry-After header value in seconds, falling back to ``default``."""
    if not value:
        return default
    try:
        return max(float(value), 0.0)
    except (ValueError, TypeError):
        return default
