"""Group posts by author and rank the resulting creators."""

import logging
import re
from typing import Dict, Iterable, List, Set

from creator_scout.models.creator import CreatorAggregate
from creator_scout.models.post import Post, is_excluded_author

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Discussion"

# Checked in order; a post may fall into several categories. Keywords match
# at a word start and may carry a suffix ("datasets", "researchers").
CATEGORY_RULES = [
    ("Career", re.compile(r"\b(?:career|job)\w*", re.IGNORECASE)),
    ("Programming", re.compile(r"\b(?:python|coding|programm)\w*", re.IGNORECASE)),
    ("Machine Learning", re.compile(r"\b(?:machine learning|ml\w*|llms?|ai)\b", re.IGNORECASE)),
    ("Data Analysis", re.compile(r"\b(?:data|analy|visuali[sz])\w*", re.IGNORECASE)),
    ("Research", re.compile(r"\b(?:research|paper)\w*", re.IGNORECASE)),
]


def categorize(text: str) -> Set[str]:
    """Return the keyword categories matched by ``text``, or Discussion if none."""
    categories = {name for name, pattern in CATEGORY_RULES if pattern.search(text)}
    return categories or {DEFAULT_CATEGORY}


def group_by_author(posts: Iterable[Post]) -> Dict[str, CreatorAggregate]:
    """Build one aggregate per author, in order of first appearance."""
    creators: Dict[str, CreatorAggregate] = {}
    for post in posts:
        if is_excluded_author(post.author):
            continue
        creator = creators.get(post.author)
        if creator is None:
            creator = creators[post.author] = CreatorAggregate(username=post.author)
        creator.posts.append(post)

        # Discussion only stands in for a creator with no keyword category
        matched = categorize(post.text) - {DEFAULT_CATEGORY}
        if matched:
            creator.categories.discard(DEFAULT_CATEGORY)
            creator.categories |= matched
        elif not creator.categories:
            creator.categories.add(DEFAULT_CATEGORY)
    return creators


def aggregate_creators(posts: Iterable[Post], weight: int = 5, top_n: int = 15) -> List[CreatorAggregate]:
    """
    Group posts by author and rank the authors.

    Ranking is ``total_score + post_count * weight``; ties keep first-appearance
    order.

    Args:
        posts: Normalized posts
        weight: Per-post bonus used for ranking
        top_n: Maximum number of creators returned

    Returns:
        Top creators, best first
    """
    creators = list(group_by_author(posts).values())
    ranked = sorted(creators, key=lambda creator: creator.ranking_score(weight), reverse=True)
    logger.debug(f"Aggregated {len(creators)} creators, keeping top {min(top_n, len(ranked))}")
    return ranked[:top_n]
