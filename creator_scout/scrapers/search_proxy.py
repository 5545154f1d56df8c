"""Search-engine-proxy strategy.

Issues web-search queries about a subreddit through SerpAPI and recovers
usernames and engagement numbers from the unstructured result snippets. The
output is approximate by nature: it is the lowest-fidelity strategy, kept as
a best-effort fallback for when Reddit itself cannot be reached.
"""

import hashlib
import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from creator_scout.collector.error_handler import ConsecutiveErrorTracker
from creator_scout.collector.http_client import HttpClient
from creator_scout.collector.rate_limiter import RateLimiter
from creator_scout.errors import AuthenticationError, UpstreamError, UpstreamRateLimited
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import is_excluded_author
from creator_scout.scrapers.base_strategy import BaseStrategy

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search"

# Stop issuing queries once this many creators are known
ENOUGH_CREATORS = 8
MAX_CREATORS = 12

# Whole tokens are captured so over-long names fail validation instead of being cut
_NAME = r"([A-Za-z0-9_-]+)"

USERNAME_PATTERNS = [
    re.compile(r"reddit\.com/u/" + _NAME, re.IGNORECASE),
    re.compile(r"reddit\.com/user/" + _NAME, re.IGNORECASE),
    re.compile(r"\bu/" + _NAME),
    re.compile(r"\bsubmitted\s+by\s+(?:u/)?" + _NAME, re.IGNORECASE),
    re.compile(r"\bposted\s+by\s+(?:u/)?" + _NAME, re.IGNORECASE),
    re.compile(r"\bby\s+(?:u/)?" + _NAME, re.IGNORECASE),
    re.compile(r"\bauthor:?\s*" + _NAME, re.IGNORECASE),
]

UPVOTE_PATTERN = re.compile(r"(\d[\d,]*)\s*(?:upvotes?|points?|karma)\b", re.IGNORECASE)
COMMENT_PATTERN = re.compile(r"(\d[\d,]*)\s*comments?\b", re.IGNORECASE)

# Words the loose textual patterns tend to pick up
REJECTED_NAMES = frozenset({
    "reddit", "deleted", "removed", "automoderator", "bot", "user", "users",
    "the", "and", "for", "you", "this", "that", "with", "from", "people",
    "admin", "moderators", "comments",
})

SPECIALIZED_QUERIES = {
    "artificialintelligence": [
        'site:reddit.com "artificial intelligence" discussions users',
        'site:reddit.com AI discussions "u/"',
        'reddit "artificial intelligence" community posts',
    ],
    "chatgpt": [
        'site:reddit.com "ChatGPT" users posts',
        '"ChatGPT" reddit discussions authors',
        'site:reddit.com openai discussions "u/"',
    ],
    "llmops": [
        'site:reddit.com "LLM" operations users',
        '"LLMOps" OR "LLM Ops" reddit discussions',
        '"MLOps" reddit AI users discussions',
    ],
}


def is_valid_username(name: str, subreddit: str) -> bool:
    """Apply the same validation every extracted username must pass."""
    if not name or not 3 <= len(name) <= 20:
        return False
    if is_excluded_author(name):
        return False
    lowered = name.lower()
    return lowered != subreddit.lower() and lowered not in REJECTED_NAMES


def extract_username(text: str, subreddit: str) -> Optional[str]:
    """
    Return the first valid username found by the ordered extractor list.

    Args:
        text: Title, snippet and link of a search result
        subreddit: Subreddit being searched, never accepted as a username

    Returns:
        The username, or None
    """
    for pattern in USERNAME_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(1)
            if is_valid_username(candidate, subreddit):
                return candidate
    return None


def extract_engagement(text: str) -> Tuple[int, int]:
    """Return (upvotes, comments) mentioned in a snippet, 0 when absent."""
    upvotes = 0
    comments = 0
    match = UPVOTE_PATTERN.search(text)
    if match:
        upvotes = int(match.group(1).replace(",", ""))
    match = COMMENT_PATTERN.search(text)
    if match:
        comments = int(match.group(1).replace(",", ""))
    return upvotes, comments


def parse_result_date(value: Optional[str], fallback: float) -> float:
    """Parse a search result's date string, falling back to ``fallback``."""
    if not value:
        return fallback
    try:
        return date_parser.parse(value, fuzzy=True).timestamp()
    except (ValueError, OverflowError):
        return fallback


class SearchProxyStrategy(BaseStrategy):
    """Best-effort username discovery through a paid web-search API."""

    name = "search_proxy"

    def __init__(
        self,
        http: HttpClient,
        api_key: str,
        rate_limiter: Optional[RateLimiter] = None,
        error_tracker: Optional[ConsecutiveErrorTracker] = None,
    ):
        super().__init__(http, rate_limiter, error_tracker)
        self.api_key = api_key

    def build_queries(self, options: ScrapingOptions) -> List[str]:
        subreddit = options.subreddit
        queries = []
        if options.query:
            queries.append(f'site:reddit.com/r/{subreddit} "{options.query}" "u/"')
        queries.extend(SPECIALIZED_QUERIES.get(subreddit.lower(), []))
        queries.extend([
            f'site:reddit.com/r/{subreddit} "u/"',
            f'site:reddit.com "r/{subreddit}" "posted by" OR "submitted by"',
            f'site:reddit.com "{subreddit}" users posts',
            f'"{subreddit}" reddit community authors discussions',
        ])
        return queries

    def broad_query(self, options: ScrapingOptions) -> str:
        return f'reddit {options.subreddit} discussions'

    async def _search(self, query: str) -> List[Dict[str, Any]]:
        params = {
            "engine": "google",
            "q": query,
            "api_key": self.api_key,
            "num": 20,
            "tbs": "qdr:y",
        }
        response = await self._request_once(SERPAPI_URL, params=params)
        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"{self.name}: non-JSON response for query {query!r}")
            return []
        return payload.get("organic_results") or []

    def records_from_results(
        self,
        results: List[Dict[str, Any]],
        options: ScrapingOptions,
        seen: Dict[str, Dict[str, Any]],
        extracted_at: float,
    ) -> None:
        """Add one record per newly discovered username to ``seen``."""
        for result in results:
            if len(seen) >= MAX_CREATORS:
                return
            link = result.get("link") or ""
            title = result.get("title") or ""
            snippet = result.get("snippet") or ""
            text = f"{title} {snippet} {link}"

            username = extract_username(text, options.subreddit)
            if username is None or username.lower() in seen:
                continue

            upvotes, comments = extract_engagement(f"{title} {snippet}")
            digest = hashlib.sha1(f"{link}|{username}".encode("utf-8")).hexdigest()[:12]
            seen[username.lower()] = {
                "id": f"sp_{digest}",
                "title": title,
                "selftext": snippet,
                "author": username,
                "subreddit": options.subreddit,
                "score": upvotes,
                "upvotes": upvotes,
                "num_comments": comments,
                "created_utc": parse_result_date(result.get("date"), extracted_at),
                "url": link,
                "permalink": link if "/comments/" in link else "",
                "domain": "reddit.com" if "reddit.com" in link else "",
                "is_self": True,
            }

    async def fetch_raw(self, options: ScrapingOptions) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise AuthenticationError("SERPAPI_KEY not configured")

        extracted_at = time.time()
        seen: Dict[str, Dict[str, Any]] = {}
        rate_limited: Optional[UpstreamRateLimited] = None

        for query in self.build_queries(options):
            try:
                results = await self._search(query)
            except UpstreamRateLimited as e:
                rate_limited = e
                continue
            except UpstreamError as e:
                if e.status in (401, 403):
                    raise
                logger.warning(f"{self.name}: query {query!r} failed: {e}")
                continue

            self.records_from_results(results, options, seen, extracted_at)
            logger.debug(f"{self.name}: {len(seen)} creators after query {query!r}")
            if len(seen) >= ENOUGH_CREATORS:
                break

        if not seen:
            query = self.broad_query(options)
            logger.info(f"{self.name}: nothing found for r/{options.subreddit}, trying broad query")
            try:
                self.records_from_results(await self._search(query), options, seen, extracted_at)
            except UpstreamRateLimited as e:
                rate_limited = e
            except UpstreamError as e:
                logger.warning(f"{self.name}: broad query failed: {e}")

        if not seen and rate_limited is not None:
            raise rate_limited

        logger.info(f"{self.name}: extracted {len(seen)} creators for r/{options.subreddit}")
        return list(seen.values())
