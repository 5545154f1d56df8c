"""End-to-end creator discovery: queue, aggregate, score, classify, persist."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from creator_scout.analysis.aggregator import aggregate_creators
from creator_scout.analysis.classifier import GuardedClassifier
from creator_scout.analysis.engagement import score_creator
from creator_scout.collector.queue import ScrapingQueue
from creator_scout.config import CreatorConfig
from creator_scout.errors import NoDataAvailable
from creator_scout.models.post import Post, UserProfile
from creator_scout.storage.base_store import CreatorStore

logger = logging.getLogger(__name__)

ProfileLookup = Callable[[str], Awaitable[Optional[UserProfile]]]

# Posts judged off-topic with more than this confidence are dropped
IRRELEVANT_CONFIDENCE = 0.7


@dataclass
class RankedCreator:
    """A creator as reported to callers."""

    username: str
    rank: int
    total_score: int
    post_count: int
    average_score: float
    engagement_score: int
    karma: int = 0
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    summary: str = ""
    confidence: Optional[float] = None
    profile_link: str = ""


@dataclass
class DiscoveryReport:
    """Outcome of one discovery run for a subreddit."""

    subreddit: str
    source: str = "none"
    posts_found: int = 0
    creators: List[RankedCreator] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    rate_limited: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DiscoveryPipeline:
    """Turns a subreddit name into a ranked, tagged and stored creator list."""

    def __init__(
        self,
        queue: ScrapingQueue,
        classifier: GuardedClassifier,
        store: Optional[CreatorStore] = None,
        profile_lookup: Optional[ProfileLookup] = None,
        settings: Optional[CreatorConfig] = None,
        filter_relevance: bool = True,
    ):
        self.queue = queue
        self.classifier = classifier
        self.store = store
        self.profile_lookup = profile_lookup
        self.settings = settings or CreatorConfig()
        self.filter_relevance = filter_relevance

    async def relevant_posts(self, posts: List[Post]) -> List[Post]:
        """
        Drop posts the classifier confidently judges off-topic.

        Only the first ``relevance_sample_posts`` posts are checked; the rest
        are kept as they are.
        """
        if not self.filter_relevance:
            return posts

        sample_size = self.settings.relevance_sample_posts
        kept = []
        for index, post in enumerate(posts):
            if index < sample_size:
                analysis = await self.classifier.analyze_relevance(post.title, post.selftext)
                if not analysis.is_relevant and analysis.confidence > IRRELEVANT_CONFIDENCE:
                    logger.debug(f"Dropping off-topic post {post.id}")
                    continue
            kept.append(post)
        return kept

    async def _karma(self, username: str) -> int:
        if self.profile_lookup is None:
            return 0
        profile = await self.profile_lookup(username)
        return profile.total_karma if profile else 0

    async def rank(self, posts: List[Post]) -> List[RankedCreator]:
        creators = aggregate_creators(posts, weight=self.settings.ranking_weight, top_n=self.settings.top_n)
        ranked = []

        for index, creator in enumerate(creators):
            enriched = index < self.settings.classify_top_n
            karma = await self._karma(creator.username) if enriched else 0
            entry = RankedCreator(
                username=creator.username,
                rank=index + 1,
                total_score=creator.total_score,
                post_count=creator.post_count,
                average_score=round(creator.average_score, 2),
                engagement_score=score_creator(creator, karma),
                karma=karma,
                categories=sorted(creator.categories),
                tags=sorted(creator.categories),
                profile_link=creator.profile_link,
            )

            if enriched:
                samples = [post.text for post in creator.posts[:self.settings.classify_sample_posts]]
                analysis = await self.classifier.analyze_content(samples, [])
                if analysis.tags:
                    entry.tags = list(analysis.tags)
                entry.summary = analysis.summary
                entry.confidence = analysis.confidence

            ranked.append(entry)
        return ranked

    def persist(self, subreddit: str, ranked: List[RankedCreator], posts: List[Post]) -> None:
        """Upsert creators and store their not-yet-known posts."""
        by_author: Dict[str, List[Post]] = {}
        for post in posts:
            by_author.setdefault(post.author, []).append(post)

        for creator in ranked:
            creator_posts = by_author.get(creator.username, [])
            last_active = max((post.created_utc for post in creator_posts), default=None)
            fields = {
                "subreddit": subreddit,
                "karma": creator.karma,
                "engagement_score": creator.engagement_score,
                "tags": creator.tags,
                "profile_link": creator.profile_link,
                "last_active": datetime.fromtimestamp(last_active, tz=timezone.utc) if last_active else None,
                "comments_count": sum(post.num_comments for post in creator_posts),
            }

            existing = self.store.get_creator_by_username(creator.username)
            if existing is None:
                stored = self.store.create_creator(username=creator.username, posts_count=0, **fields)
            else:
                if not creator.karma:
                    fields["karma"] = existing.karma
                stored = self.store.update_creator(existing.id, **fields)

            new_posts = 0
            for post in creator_posts:
                if self.store.get_post_by_reddit_id(post.id) is not None:
                    continue
                self.store.create_post(
                    creator_id=stored.id,
                    title=post.title,
                    content=post.selftext,
                    subreddit=post.subreddit,
                    upvotes=post.upvotes,
                    comments=post.num_comments,
                    awards=post.awards,
                    reddit_id=post.id,
                    reddit_url=post.permalink or post.url,
                    source=post.source,
                    posted_at=datetime.fromtimestamp(post.created_utc, tz=timezone.utc),
                )
                new_posts += 1
            if new_posts:
                self.store.update_creator(stored.id, posts_count=stored.posts_count + new_posts)

        self.store.mark_subreddit_crawled(subreddit)

    async def discover(self, subreddit: str, priority: str = "medium") -> DiscoveryReport:
        """
        Run discovery for one subreddit.

        A subreddit with no obtainable data yields an empty report carrying the
        strategy errors rather than an exception.
        """
        report = DiscoveryReport(subreddit=subreddit)
        try:
            result = await self.queue.enqueue(subreddit, priority)
        except NoDataAvailable as e:
            logger.warning(f"No data available for r/{subreddit}")
            report.errors = list(e.result.errors)
            report.rate_limited = e.result.rate_limited
            return report

        report.source = result.source
        report.errors = list(result.errors)
        report.rate_limited = result.rate_limited

        posts = await self.relevant_posts(result.posts)
        report.posts_found = len(posts)
        report.creators = await self.rank(posts)

        if self.store is not None and report.creators:
            top_names = {creator.username for creator in report.creators}
            try:
                self.persist(subreddit, report.creators, [post for post in posts if post.author in top_names])
            except SQLAlchemyError as e:
                logger.error(f"Failed to persist creators for r/{subreddit}: {e}")
                report.errors.append(f"persistence: {e}")

        logger.info(f"Discovered {len(report.creators)} creators in r/{subreddit} from {report.posts_found} posts")
        return report
