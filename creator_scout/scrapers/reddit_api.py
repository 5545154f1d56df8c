"""Official Reddit API strategy (authenticated OAuth listing endpoints)."""

import logging
from typing import Any, Dict, List, Optional

from creator_scout.collector.auth import Authenticator
from creator_scout.collector.error_handler import ConsecutiveErrorTracker
from creator_scout.collector.http_client import HttpClient
from creator_scout.collector.rate_limiter import RateLimiter
from creator_scout.errors import ScraperError, UpstreamError
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import UserProfile
from creator_scout.scrapers.base_strategy import BaseStrategy

logger = logging.getLogger(__name__)

OAUTH_BASE_URL = "https://oauth.reddit.com"

# Reddit caps listing pages at 100 items
MAX_PAGE_SIZE = 100


class RedditApiStrategy(BaseStrategy):
    """Highest-fidelity strategy; quota-limited and needs client credentials."""

    name = "reddit_api"

    def __init__(
        self,
        http: HttpClient,
        authenticator: Authenticator,
        rate_limiter: Optional[RateLimiter] = None,
        error_tracker: Optional[ConsecutiveErrorTracker] = None,
    ):
        super().__init__(http, rate_limiter, error_tracker)
        self.authenticator = authenticator

    async def _auth_headers(self) -> Dict[str, str]:
        # AuthenticationError propagates untouched, without retries
        token = await self.authenticator.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "User-Agent": self.authenticator.user_agent,
        }

    async def fetch_raw(self, options: ScrapingOptions) -> List[Dict[str, Any]]:
        headers = await self._auth_headers()
        params: Dict[str, Any] = {
            "limit": min(options.limit, MAX_PAGE_SIZE),
            "raw_json": 1,
        }
        if options.sort == "top":
            params["t"] = options.timeframe

        url = f"{OAUTH_BASE_URL}/r/{options.subreddit}/{options.sort}"
        try:
            response = await self.get_with_retries(url, options, params=params, headers=headers)
        except UpstreamError as e:
            if e.status == 401:
                self.authenticator.invalidate()
            raise

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, status=response.status, body=response.text[:500],
                                message=f"{self.name}: malformed JSON listing") from e

        children = (payload.get("data") or {}).get("children") or []
        logger.info(f"{self.name}: fetched {len(children)} listing items from r/{options.subreddit}")
        return children

    async def get_user_profile(self, username: str) -> Optional[UserProfile]:
        """
        Look up karma figures for a user.

        Returns:
            The profile, or None when it cannot be retrieved
        """
        try:
            headers = await self._auth_headers()
            await self.rate_limiter.throttle()
            response = await self.http.get(f"{OAUTH_BASE_URL}/user/{username}/about", self.name, headers=headers)
            self.rate_limiter.update_from_headers(response.headers)
            if not response.ok:
                logger.warning(f"{self.name}: profile lookup for u/{username} failed with HTTP {response.status}")
                return None
            data = response.json().get("data") or {}
        except (ScraperError, ValueError) as e:
            logger.warning(f"{self.name}: profile lookup for u/{username} failed: {e}")
            return None

        link_karma = int(data.get("link_karma") or 0)
        comment_karma = int(data.get("comment_karma") or 0)
        return UserProfile(
            username=data.get("name") or username,
            link_karma=link_karma,
            comment_karma=comment_karma,
            total_karma=int(data.get("total_karma") or (link_karma + comment_karma)),
            created_utc=data.get("created_utc"),
        )
