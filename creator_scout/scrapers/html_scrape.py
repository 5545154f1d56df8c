"""Last-resort strategy parsing Reddit's rendered HTML."""

import json
import logging
import re
import time
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from creator_scout.errors import UpstreamError
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import is_excluded_author
from creator_scout.scrapers.base_strategy import BROWSER_USER_AGENT, BaseStrategy

logger = logging.getLogger(__name__)

OLD_REDDIT_URL = "https://old.reddit.com"

_ASSIGNMENT = re.compile(r"^\s*(?:window\.)?[\w.$]+\s*=\s*")
_POST_KEYS = ("id", "title", "author")


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(float(str(value).replace(",", "")))
    except (ValueError, TypeError):
        return 0


def _timestamp(value: Any, fallback: float) -> float:
    """Interpret seconds or milliseconds since the epoch."""
    try:
        ts = float(value)
    except (ValueError, TypeError):
        return fallback
    return ts / 1000.0 if ts > 1e11 else ts


def parse_listing_html(html: str, subreddit: str, extracted_at: float) -> List[Dict[str, Any]]:
    """
    Parse old-reddit ``div.thing`` post containers.

    Args:
        html: Rendered listing page
        subreddit: Subreddit requested
        extracted_at: Timestamp used when a container has no timestamp

    Returns:
        Records with canonical keys
    """
    soup = BeautifulSoup(html, "html.parser")
    records = []

    for thing in soup.select("div.thing"):
        if thing.get("data-type") not in (None, "link"):
            continue
        author = (thing.get("data-author") or "").strip()
        if is_excluded_author(author):
            continue

        fullname = thing.get("data-fullname") or ""
        post_id = fullname.split("_", 1)[-1] if fullname else thing.get("id", "")
        if not post_id:
            continue

        title_tag = thing.select_one("a.title")
        flair_tag = thing.select_one(".linkflairlabel")
        classes = thing.get("class") or []
        score = _to_int(thing.get("data-score"))

        records.append({
            "id": post_id,
            "title": title_tag.get_text(strip=True) if title_tag else "",
            "author": author,
            "subreddit": thing.get("data-subreddit") or subreddit,
            "score": score,
            "upvotes": score,
            "num_comments": _to_int(thing.get("data-comments-count")),
            "created_utc": _timestamp(thing.get("data-timestamp"), extracted_at),
            "url": thing.get("data-url") or "",
            "permalink": thing.get("data-permalink") or "",
            "flair_text": flair_tag.get_text(strip=True) if flair_tag else None,
            "domain": thing.get("data-domain") or "",
            "is_self": "self" in classes,
            "over_18": thing.get("data-nsfw") == "true",
            "stickied": "stickied" in classes,
            "locked": "locked" in classes,
            "archived": "archived" in classes,
        })

    return records


def _walk(node: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(node, dict):
        if all(key in node for key in _POST_KEYS) and isinstance(node.get("title"), str):
            yield node
        for value in node.values():
            yield from _walk(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk(item)


def _load_script_json(text: str) -> Optional[Any]:
    text = _ASSIGNMENT.sub("", text.strip(), count=1).rstrip().rstrip(";")
    if not text or text[0] not in "[{":
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def parse_embedded_json(html: str, subreddit: str, extracted_at: float) -> List[Dict[str, Any]]:
    """
    Scan ``<script>`` blobs for structured post objects.

    Any JSON object carrying ``id``, ``title`` and ``author`` is treated as a post.
    """
    soup = BeautifulSoup(html, "html.parser")
    records = []

    for script in soup.find_all("script"):
        payload = _load_script_json(script.string or "")
        if payload is None:
            continue
        for item in _walk(payload):
            author = item.get("author")
            if isinstance(author, dict):
                author = author.get("name")
            if not isinstance(author, str) or is_excluded_author(author):
                continue
            score = _to_int(item.get("score"))
            records.append({
                "id": str(item["id"]).split("_", 1)[-1],
                "title": item["title"],
                "selftext": item.get("selftext") or "",
                "author": author,
                "subreddit": item.get("subreddit") or subreddit,
                "score": score,
                "upvotes": score,
                "num_comments": _to_int(item.get("num_comments", item.get("numComments"))),
                "created_utc": _timestamp(item.get("created_utc", item.get("created")), extracted_at),
                "url": item.get("url") or "",
                "permalink": item.get("permalink") or "",
                "domain": item.get("domain") or "",
            })

    return records


class HtmlScrapeStrategy(BaseStrategy):
    """Parses the rendered subreddit page; DOM first, embedded JSON second."""

    name = "html_scrape"

    async def fetch_raw(self, options: ScrapingOptions) -> List[Dict[str, Any]]:
        url = f"{OLD_REDDIT_URL}/r/{options.subreddit}/"
        if options.sort != "hot":
            url += f"{options.sort}/"
        params = {"t": options.timeframe} if options.sort == "top" else None

        response = await self.get_with_retries(
            url, options, params=params, headers={"User-Agent": BROWSER_USER_AGENT}
        )
        if not response.text:
            raise UpstreamError(self.name, status=response.status, message=f"{self.name}: empty page")

        extracted_at = time.time()
        records = parse_listing_html(response.text, options.subreddit, extracted_at)
        if not records:
            logger.info(f"{self.name}: no post containers found, scanning embedded JSON")
            records = parse_embedded_json(response.text, options.subreddit, extracted_at)

        logger.info(f"{self.name}: parsed {len(records)} posts for r/{options.subreddit}")
        return records
