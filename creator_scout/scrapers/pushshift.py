"""Historical archive fallback using the Pushshift submission search API."""

import logging
import time
from typing import Any, Dict, List, Mapping

from creator_scout.errors import UpstreamError
from creator_scout.models.options import ScrapingOptions
from creator_scout.scrapers.base_strategy import BaseStrategy

logger = logging.getLogger(__name__)

PUSHSHIFT_API = "https://api.pushshift.io/reddit/search/submission"

# Archive caps a single page at 500 submissions
MAX_PAGE_SIZE = 500

TIMEFRAME_SECONDS = {
    "hour": 3600,
    "day": 86400,
    "week": 604800,
    "month": 2592000,
    "year": 31536000,
}


class PushshiftStrategy(BaseStrategy):
    """Queries the archive when the official API could not deliver."""

    name = "pushshift"

    def should_attempt(self, options: ScrapingOptions, previous: Mapping[str, int]) -> bool:
        if not options.use_archive:
            return False
        # Only a fallback for the official API, never a supplement to it
        return previous.get("reddit_api", 0) == 0

    def build_params(self, options: ScrapingOptions, now: float) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "subreddit": options.subreddit,
            "size": min(options.limit, MAX_PAGE_SIZE),
            "sort": "desc",
            "sort_type": "score" if options.sort == "top" else "created_utc",
        }
        window = TIMEFRAME_SECONDS.get(options.timeframe)
        if window is not None:
            params["after"] = int(now - window)
        if options.min_score is not None:
            params["score"] = f">{options.min_score}"
        return params

    async def fetch_raw(self, options: ScrapingOptions) -> List[Dict[str, Any]]:
        params = self.build_params(options, time.time())
        response = await self.get_with_retries(PUSHSHIFT_API, options, params=params)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(self.name, status=response.status, body=response.text[:500],
                                message=f"{self.name}: malformed JSON response") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        records = data or []
        logger.info(f"{self.name}: archive returned {len(records)} submissions for r/{options.subreddit}")
        return records
