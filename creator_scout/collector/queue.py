"""Serialized, cached, coalescing job queue in front of the fallback chain."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from creator_scout.collector.cache import TTLCache
from creator_scout.collector.rate_limiter import RateLimiter
from creator_scout.config import RateLimitConfig
from creator_scout.errors import NoDataAvailable
from creator_scout.models.post import ScrapingResult

logger = logging.getLogger(__name__)

PRIORITIES = ("high", "medium", "low")

Fetcher = Callable[[str], Awaitable[ScrapingResult]]
FallbackProvider = Callable[[str], Awaitable[Optional[ScrapingResult]]]


@dataclass
class ScrapingJob:
    """One pending acquisition for a subreddit and everyone waiting on it."""

    subreddit: str
    priority: str
    created_at: float = field(default_factory=time.time)
    waiters: List[asyncio.Future] = field(default_factory=list)


class ScrapingQueue:
    """
    Runs acquisition jobs one at a time, process-wide.

    Fresh cached results are returned without queueing. Concurrent requests
    for the same subreddit share one job, whether it is still waiting or
    already running. Jobs are ordered by priority, FIFO within a priority.
    Successful results are cached before waiters are resumed; failures are
    delivered to every waiter and never cached.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[TTLCache] = None,
        fallback_provider: Optional[FallbackProvider] = None,
        prometheus_exporter=None,
    ):
        """
        Initialize the queue.

        Args:
            fetcher: Coroutine function producing a result for a subreddit
            rate_limiter: Limiter spacing consecutive jobs (2s by default)
            cache: Result cache (15 minute TTL by default)
            fallback_provider: Optional source of data when the fetch comes back empty
            prometheus_exporter: Optional Prometheus exporter for metrics
        """
        self.fetcher = fetcher
        self.rate_limiter = rate_limiter or RateLimiter(
            RateLimitConfig(min_interval_sec=2.0, max_requests_per_minute=30), name="queue"
        )
        self.cache = cache or TTLCache(ttl_seconds=900)
        self.fallback_provider = fallback_provider
        self.prometheus_exporter = prometheus_exporter

        self._queue: List[ScrapingJob] = []
        self._jobs: Dict[str, ScrapingJob] = {}
        self._current: Optional[ScrapingJob] = None
        self._worker: Optional[asyncio.Task] = None

    @staticmethod
    def _key(subreddit: str) -> str:
        return subreddit.lower()

    def _insert(self, job: ScrapingJob) -> None:
        # Behind every queued job of equal or higher priority
        rank = PRIORITIES.index(job.priority)
        position = len(self._queue)
        for index, queued in enumerate(self._queue):
            if PRIORITIES.index(queued.priority) > rank:
                position = index
                break
        self._queue.insert(position, job)
        if self.prometheus_exporter:
            self.prometheus_exporter.set_queue_length(len(self._queue))

    async def enqueue(self, subreddit: str, priority: str = "medium") -> ScrapingResult:
        """
        Get a result for ``subreddit``, from cache or through a queued job.

        Args:
            subreddit: Subreddit name
            priority: ``high``, ``medium`` or ``low``

        Returns:
            The scraping result

        Raises:
            NoDataAvailable: If every strategy failed and no fallback data exists
        """
        if priority not in PRIORITIES:
            raise ValueError(f"Invalid priority {priority!r}, expected one of {', '.join(PRIORITIES)}")

        key = self._key(subreddit)
        cached = self.cache.get(key)
        if self.prometheus_exporter:
            self.prometheus_exporter.record_cache_lookup(cached is not None)
        if cached is not None:
            logger.info(f"Cache hit for r/{subreddit}")
            return cached

        waiter = asyncio.get_running_loop().create_future()
        job = self._jobs.get(key)
        if job is not None:
            logger.info(f"Reusing existing job for r/{subreddit}")
        else:
            job = ScrapingJob(subreddit=subreddit, priority=priority)
            self._jobs[key] = job
            self._insert(job)
        job.waiters.append(waiter)

        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._process())

        return await waiter

    async def batch_enqueue(
        self, subreddits: Sequence[str], priority: str = "medium"
    ) -> List[Union[ScrapingResult, BaseException]]:
        """Enqueue several subreddits; each entry is a result or the exception it failed with."""
        logger.info(f"Batch scraping {len(subreddits)} subreddits")
        return await asyncio.gather(
            *(self.enqueue(subreddit, priority) for subreddit in subreddits),
            return_exceptions=True,
        )

    async def _run_job(self, job: ScrapingJob) -> ScrapingResult:
        result = await self.fetcher(job.subreddit)
        if not result.is_empty:
            return result

        if self.fallback_provider is not None:
            fallback = await self.fallback_provider(job.subreddit)
            if fallback is not None and not fallback.is_empty:
                logger.info(f"Using fallback data for r/{job.subreddit}")
                fallback.errors = list(result.errors) + list(fallback.errors)
                fallback.rate_limited = fallback.rate_limited or result.rate_limited
                return fallback

        raise NoDataAvailable(result)

    async def _process(self) -> None:
        while self._queue:
            job = self._queue.pop(0)
            if self.prometheus_exporter:
                self.prometheus_exporter.set_queue_length(len(self._queue))
            key = self._key(job.subreddit)
            self._current = job

            await self.rate_limiter.throttle()
            logger.info(f"Processing scraping job for r/{job.subreddit} ({job.priority})")
            try:
                result = await self._run_job(job)
            except Exception as e:
                logger.error(f"Scraping failed for r/{job.subreddit}: {e}")
                self._jobs.pop(key, None)
                for waiter in job.waiters:
                    if not waiter.done():
                        waiter.set_exception(e)
            else:
                self.cache.set(key, result)
                self._jobs.pop(key, None)
                for waiter in job.waiters:
                    if not waiter.done():
                        waiter.set_result(result)
            finally:
                self._current = None
                self.rate_limiter.touch()

    def get_status(self) -> Dict[str, Any]:
        return {
            "queue_length": len(self._queue),
            "processing": self._current is not None,
            "current": self._current.subreddit if self._current else None,
            "cache_size": len(self.cache),
        }

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Scraping cache cleared")
