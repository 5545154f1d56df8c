"""Bounded 0-100 engagement score."""

import math

from creator_scout.models.creator import CreatorAggregate

KARMA_CAP = 30
AVG_UPVOTE_CAP = 25
AWARD_CAP = 20
COMMENT_CAP = 15
ACTIVITY_CAP = 10
MAX_SCORE = 100


def calculate_engagement_score(
    karma: float = 0,
    avg_upvotes: float = 0,
    total_awards: float = 0,
    avg_comment_engagement: float = 0,
    post_count: float = 0,
) -> int:
    """
    Combine raw metrics into an integer score between 0 and 100.

    Each term is capped so no single signal dominates, and every term is
    non-decreasing in its input. Negative inputs count as zero.
    """
    karma_score = min(max(karma, 0) / 1000, KARMA_CAP)
    upvote_score = min(max(avg_upvotes, 0) / 10, AVG_UPVOTE_CAP)
    award_score = min(max(total_awards, 0) * 2, AWARD_CAP)
    comment_score = min(max(avg_comment_engagement, 0) / 5, COMMENT_CAP)
    activity_score = min(max(post_count, 0) / 5, ACTIVITY_CAP)

    total = min(karma_score + upvote_score + award_score + comment_score + activity_score, MAX_SCORE)
    # Round half up
    return int(math.floor(total + 0.5))


def score_creator(creator: CreatorAggregate, karma: int = 0) -> int:
    """
    Score an aggregated creator.

    Comment engagement is approximated by the average comment count of the
    creator's posts, since comment upvotes are not collected.
    """
    count = creator.post_count
    if count == 0:
        return calculate_engagement_score(karma=karma)
    return calculate_engagement_score(
        karma=karma,
        avg_upvotes=sum(post.upvotes for post in creator.posts) / count,
        total_awards=creator.total_awards,
        avg_comment_engagement=creator.total_comments / count,
        post_count=count,
    )
