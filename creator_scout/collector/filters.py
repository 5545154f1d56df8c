"""User-facing post filters and result ordering."""

import time
from typing import List, Optional

from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import Post

SECONDS_PER_DAY = 86400


def apply_filters(posts: List[Post], options: ScrapingOptions, now: Optional[float] = None) -> List[Post]:
    """
    Filter posts by flair, keyword, minimum score and maximum age.

    Categories combine with AND; values within one category combine with OR.
    Flair and keyword matches are case-insensitive substring matches.

    Args:
        posts: Normalized posts
        options: Scraping options carrying the filters
        now: Reference time for the age filter (defaults to the current time)

    Returns:
        Posts passing every configured filter, in their original order
    """
    result = list(posts)

    if options.flair_filter:
        flairs = [flair.lower() for flair in options.flair_filter]
        result = [
            post for post in result
            if post.flair_text and any(flair in post.flair_text.lower() for flair in flairs)
        ]

    if options.keyword_filter:
        keywords = [keyword.lower() for keyword in options.keyword_filter]
        result = [
            post for post in result
            if any(keyword in post.text.lower() for keyword in keywords)
        ]

    if options.min_score is not None:
        result = [post for post in result if post.score >= options.min_score]

    if options.max_age_days is not None:
        reference = time.time() if now is None else now
        cutoff = reference - options.max_age_days * SECONDS_PER_DAY
        result = [post for post in result if post.created_utc >= cutoff]

    return result


def order_and_limit(posts: List[Post], options: ScrapingOptions) -> List[Post]:
    """Sort by ``options.sort`` (``new`` and ``top`` only) and truncate to the limit."""
    if options.sort == "new":
        posts = sorted(posts, key=lambda post: post.created_utc, reverse=True)
    elif options.sort == "top":
        posts = sorted(posts, key=lambda post: post.score, reverse=True)
    return list(posts[:options.limit])
