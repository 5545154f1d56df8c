"""Mapping functions that turn each upstream's native records into Posts."""

import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Optional

from creator_scout.models.post import Post, is_excluded_author

logger = logging.getLogger(__name__)

REDDIT_BASE_URL = "https://reddit.com"


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (ValueError, TypeError, OverflowError):
        return default


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (ValueError, TypeError):
        return default
    return number if math.isfinite(number) else default


def _absolute_permalink(permalink: Optional[str]) -> str:
    if not permalink:
        return ""
    if permalink.startswith("http"):
        return permalink
    return f"{REDDIT_BASE_URL}{permalink}"


def listing_child_to_post(raw: Dict[str, Any], source: str, subreddit: str) -> Post:
    """
    Convert a Reddit listing child (official API or public .json) to a Post.

    Args:
        raw: Either a ``{"kind": "t3", "data": {...}}`` child or its data dict
        source: Provenance tag
        subreddit: Subreddit requested, used when the record omits it

    Returns:
        The mapped Post
    """
    data = raw.get("data", raw) if "kind" in raw else raw
    score = _to_int(data.get("score"))

    return Post(
        id=str(data["id"]),
        title=data.get("title") or "",
        selftext=data.get("selftext") or "",
        author=data.get("author") or "",
        subreddit=data.get("subreddit") or subreddit,
        upvotes=max(_to_int(data.get("ups"), score), 0),
        score=score,
        num_comments=max(_to_int(data.get("num_comments")), 0),
        created_utc=_to_float(data.get("created_utc")),
        url=data.get("url") or "",
        permalink=_absolute_permalink(data.get("permalink")),
        flair_text=data.get("link_flair_text") or None,
        domain=data.get("domain") or "",
        is_self=bool(data.get("is_self", False)),
        over_18=bool(data.get("over_18", False)),
        stickied=bool(data.get("stickied", False)),
        locked=bool(data.get("locked", False)),
        archived=bool(data.get("archived", False)),
        awards=max(_to_int(data.get("total_awards_received")), 0),
        source=source,
    )


def pushshift_to_post(raw: Dict[str, Any], source: str, subreddit: str) -> Post:
    """
    Convert a Pushshift submission record to a Post.

    Args:
        raw: Submission dict from the archive's ``data`` array
        source: Provenance tag
        subreddit: Subreddit requested, used when the record omits it

    Returns:
        The mapped Post
    """
    sub = raw.get("subreddit") or subreddit
    post_id = str(raw["id"])
    permalink = raw.get("permalink") or f"/r/{sub}/comments/{post_id}/"
    score = _to_int(raw.get("score"))

    return Post(
        id=post_id,
        title=raw.get("title") or "",
        selftext=raw.get("selftext") or "",
        author=raw.get("author") or "",
        subreddit=sub,
        upvotes=max(score, 0),
        score=score,
        num_comments=max(_to_int(raw.get("num_comments")), 0),
        created_utc=_to_float(raw.get("created_utc")),
        url=raw.get("url") or "",
        permalink=_absolute_permalink(permalink),
        flair_text=raw.get("link_flair_text") or None,
        domain=raw.get("domain") or "",
        is_self=bool(raw.get("is_self", False)),
        over_18=bool(raw.get("over_18", False)),
        stickied=bool(raw.get("stickied", False)),
        locked=bool(raw.get("locked", False)),
        archived=True,
        awards=max(_to_int(raw.get("total_awards_received")), 0),
        source=source,
    )


def extracted_to_post(raw: Dict[str, Any], source: str, subreddit: str) -> Post:
    """
    Convert a record produced by a scraping strategy to a Post.

    Scraping strategies already emit canonical keys; this only fills in
    defaults and coerces types. ``created_utc`` must be set by the strategy.
    """
    score = _to_int(raw.get("score"))
    return Post(
        id=str(raw["id"]),
        title=raw.get("title") or "",
        selftext=raw.get("selftext") or "",
        author=raw.get("author") or "",
        subreddit=raw.get("subreddit") or subreddit,
        upvotes=max(_to_int(raw.get("upvotes"), score), 0),
        score=score,
        num_comments=max(_to_int(raw.get("num_comments")), 0),
        created_utc=_to_float(raw.get("created_utc")),
        url=raw.get("url") or "",
        permalink=_absolute_permalink(raw.get("permalink")),
        flair_text=raw.get("flair_text") or None,
        domain=raw.get("domain") or "",
        is_self=bool(raw.get("is_self", False)),
        over_18=bool(raw.get("over_18", False)),
        stickied=bool(raw.get("stickied", False)),
        locked=bool(raw.get("locked", False)),
        archived=bool(raw.get("archived", False)),
        awards=max(_to_int(raw.get("awards")), 0),
        source=source,
    )


MAPPERS: Dict[str, Callable[[Dict[str, Any], str, str], Post]] = {
    "reddit_api": listing_child_to_post,
    "public_json": listing_child_to_post,
    "pushshift": pushshift_to_post,
    "search_proxy": extracted_to_post,
    "html_scrape": extracted_to_post,
}


def normalize(raw_records: Iterable[Dict[str, Any]], source: str, subreddit: str) -> List[Post]:
    """
    Map a strategy's native records into canonical Posts.

    Records by sentinel or bot authors are dropped, as are duplicate ids
    (first occurrence wins) and records too malformed to map. Upstream order
    is preserved. The function is pure, so the same input always yields
    equal output.

    Args:
        raw_records: Native records as returned by the upstream
        source: Strategy identifier, selects the mapper and tags provenance
        subreddit: Subreddit requested

    Returns:
        List of canonical Posts
    """
    mapper = MAPPERS.get(source, extracted_to_post)
    posts: List[Post] = []
    seen_ids = set()

    for raw in raw_records:
        try:
            post = mapper(raw, source, subreddit)
        except (KeyError, TypeError, AttributeError) as e:
            logger.debug(f"{source}: skipping malformed record: {e}")
            continue

        if is_excluded_author(post.author):
            continue
        if post.id in seen_ids:
            continue

        post.author = post.author.strip()
        seen_ids.add(post.id)
        posts.append(post)

    return posts
