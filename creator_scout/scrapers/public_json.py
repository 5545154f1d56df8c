"""Unauthenticated ``.json`` listing strategy."""

import logging
from typing import Any, Dict, List, Tuple

from creator_scout.errors import UpstreamError, UpstreamRateLimited
from creator_scout.models.mapping import normalize
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import Post
from creator_scout.scrapers.base_strategy import BROWSER_USER_AGENT, BaseStrategy

logger = logging.getLogger(__name__)

PUBLIC_BASE_URL = "https://www.reddit.com"


class PublicJsonStrategy(BaseStrategy):
    """
    Reads the public ``.json`` view of a subreddit listing.

    No quota, but aggressively blocked; several endpoint variants are tried
    in order and any failure simply moves on to the next one.
    """

    name = "public_json"

    def endpoint_variants(self, options: ScrapingOptions) -> List[str]:
        base = f"{PUBLIC_BASE_URL}/r/{options.subreddit}"
        variants = [f"{base}/hot.json", f"{base}/new.json", f"{base}.json"]
        requested = f"{base}/{options.sort}.json"
        if requested in variants:
            variants.remove(requested)
        return [requested] + variants

    async def _fetch_variant(self, url: str, options: ScrapingOptions) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": min(options.limit, 100), "raw_json": 1}
        if options.sort == "top":
            params["t"] = options.timeframe

        response = await self._request_once(url, params=params, headers={"User-Agent": BROWSER_USER_AGENT})
        try:
            payload = response.json()
        except ValueError:
            logger.debug(f"{self.name}: non-JSON payload from {url}")
            return []
        if not isinstance(payload, dict):
            return []
        return (payload.get("data") or {}).get("children") or []

    async def fetch_raw(self, options: ScrapingOptions) -> List[Dict[str, Any]]:
        children, _ = await self._first_usable(options)
        return children

    async def fetch(self, options: ScrapingOptions) -> List[Post]:
        _, posts = await self._first_usable(options)
        return posts

    async def _first_usable(self, options: ScrapingOptions) -> Tuple[List[Dict[str, Any]], List[Post]]:
        """
        Return the records and posts of the first endpoint variant yielding any post.

        Raises:
            UpstreamRateLimited: If every variant failed and at least one was a 429
        """
        rate_limited = None
        for url in self.endpoint_variants(options):
            try:
                children = await self._fetch_variant(url, options)
            except UpstreamRateLimited as e:
                logger.warning(f"{self.name}: {url} rate limited")
                rate_limited = e
                continue
            except UpstreamError as e:
                logger.info(f"{self.name}: {url} failed ({e}), trying next variant")
                continue

            posts = normalize(children, self.name, options.subreddit)
            if posts:
                logger.info(f"{self.name}: {len(posts)} posts from {url}")
                return children, posts
            logger.debug(f"{self.name}: {url} yielded no usable posts")

        if rate_limited is not None:
            raise rate_limited
        return [], []
