"""Base class shared by every acquisition strategy.

A strategy knows how to reach one upstream and return that upstream's native
records for a subreddit. Mapping into canonical Posts is delegated to
:func:`creator_scout.models.mapping.normalize`, so every strategy gives the
same sentinel and de-duplication guarantees.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from creator_scout.collector.error_handler import (
    ConsecutiveErrorTracker,
    call_with_retries,
    raise_for_status,
)
from creator_scout.collector.http_client import HttpClient, HttpResponse
from creator_scout.collector.rate_limiter import RateLimiter
from creator_scout.models.mapping import normalize
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import Post

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class BaseStrategy(ABC):
    """Base class for all acquisition strategies."""

    # Strategy identifier, also used as the Post provenance tag
    name: str = ""

    def __init__(
        self,
        http: HttpClient,
        rate_limiter: Optional[RateLimiter] = None,
        error_tracker: Optional[ConsecutiveErrorTracker] = None,
    ):
        """
        Initialize the strategy.

        Args:
            http: Shared HTTP client
            rate_limiter: This strategy's own limiter (one per upstream)
            error_tracker: Optional tracker for consecutive transient failures
        """
        self.http = http
        self.rate_limiter = rate_limiter or RateLimiter(name=self.name)
        self.error_tracker = error_tracker

    def should_attempt(self, options: ScrapingOptions, previous: Mapping[str, int]) -> bool:
        """
        Decide whether the selector should run this strategy.

        Args:
            options: Options of the current run
            previous: Post counts of strategies already attempted in this run
                (strategies that raised are present with a count of 0)

        Returns:
            True if the strategy should be attempted
        """
        return True

    @abstractmethod
    async def fetch_raw(self, options: ScrapingOptions) -> List[Dict[str, Any]]:
        """
        Fetch native records for ``options.subreddit``.

        Raises:
            ScraperError: On authentication or upstream failure
        """

    async def fetch(self, options: ScrapingOptions) -> List[Post]:
        """Fetch and normalize posts for ``options.subreddit``."""
        raw = await self.fetch_raw(options)
        posts = normalize(raw, self.name, options.subreddit)
        logger.debug(f"{self.name}: {len(raw)} raw records, {len(posts)} usable posts for r/{options.subreddit}")
        return posts

    async def _request_once(self, url: str, **kwargs: Any) -> HttpResponse:
        await self.rate_limiter.throttle()
        response = await self.http.get(url, self.name, **kwargs)
        self.rate_limiter.update_from_headers(response.headers)
        return raise_for_status(response, self.name)

    async def get_with_retries(self, url: str, options: ScrapingOptions, **kwargs: Any) -> HttpResponse:
        """
        Rate-limited GET with linear backoff using the option's retry settings.

        Returns:
            The successful response

        Raises:
            UpstreamRateLimited: When still rate limited after the last attempt
            UpstreamError: On any other failure
        """
        return await call_with_retries(
            self._request_once,
            url,
            max_retries=options.max_retries,
            retry_delay=options.retry_delay,
            rate_limiter=self.rate_limiter,
            error_tracker=self.error_tracker,
            **kwargs,
        )
