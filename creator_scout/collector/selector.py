"""Strategy selector: the ordered fallback chain over acquisition strategies.

Strategies are attempted strictly one after another. A strategy that raises,
times out or yields nothing contributes an entry to the result's error list;
one that yields more posts than the sufficiency threshold ends the chain.
Whatever happens, :meth:`StrategySelector.scrape_subreddit` returns a
:class:`ScrapingResult` and never raises.
"""

import asyncio
import dataclasses
import logging
import time
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from creator_scout.collector.error_handler import ConsecutiveErrorTracker
from creator_scout.collector.filters import apply_filters, order_and_limit
from creator_scout.errors import ScraperError, UpstreamRateLimited
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import Post, ScrapingResult
from creator_scout.scrapers.base_strategy import BaseStrategy

logger = logging.getLogger(__name__)


class StrategySelector:
    """Runs the fallback chain for one subreddit at a time."""

    def __init__(
        self,
        strategies: Sequence[BaseStrategy],
        sufficient_threshold: int = 5,
        strategy_timeout: float = 120.0,
        prometheus_exporter=None,
    ):
        """
        Initialize the selector.

        Args:
            strategies: Strategies in priority order
            sufficient_threshold: A strategy returning more posts than this ends the chain
            strategy_timeout: Seconds before a single strategy attempt is abandoned
            prometheus_exporter: Optional Prometheus exporter for metrics
        """
        self.strategies = list(strategies)
        self.sufficient_threshold = sufficient_threshold
        self.strategy_timeout = strategy_timeout
        self.prometheus_exporter = prometheus_exporter

    def get_strategy(self, name: str) -> Optional[BaseStrategy]:
        for strategy in self.strategies:
            if strategy.name == name:
                return strategy
        return None

    def _record(self, strategy: str, outcome: str) -> None:
        if self.prometheus_exporter:
            self.prometheus_exporter.record_strategy_attempt(strategy, outcome)

    async def _attempt(self, strategy: BaseStrategy, options: ScrapingOptions) -> List[Post]:
        if self.prometheus_exporter:
            with self.prometheus_exporter.time_strategy(strategy.name):
                return await asyncio.wait_for(strategy.fetch(options), self.strategy_timeout)
        return await asyncio.wait_for(strategy.fetch(options), self.strategy_timeout)

    async def scrape_subreddit(self, options: ScrapingOptions) -> ScrapingResult:
        """
        Acquire posts for ``options.subreddit`` through the fallback chain.

        Args:
            options: Scraping options

        Returns:
            A structured result; empty with a populated error list when every
            strategy failed
        """
        log_level = logging.INFO if options.verbose else logging.DEBUG
        start = time.time()
        errors: List[str] = []
        rate_limited = False
        counts: Dict[str, int] = {}
        best: Optional[Tuple[str, List[Post]]] = None

        for strategy in self.strategies:
            if not strategy.should_attempt(options, counts):
                logger.log(log_level, f"Skipping {strategy.name} for r/{options.subreddit}")
                self._record(strategy.name, "skipped")
                continue

            logger.log(log_level, f"Trying {strategy.name} for r/{options.subreddit}")
            counts[strategy.name] = 0
            try:
                posts = await self._attempt(strategy, options)
            except asyncio.TimeoutError:
                errors.append(f"{strategy.name}: timed out after {self.strategy_timeout:.0f}s")
                self._record(strategy.name, "error")
                logger.warning(errors[-1])
                continue
            except UpstreamRateLimited as e:
                rate_limited = True
                errors.append(str(e))
                self._record(strategy.name, "rate_limited")
                logger.warning(f"{strategy.name} failed: {e}")
                continue
            except ScraperError as e:
                message = str(e)
                errors.append(message if message.startswith(strategy.name) else f"{strategy.name}: {message}")
                self._record(strategy.name, "error")
                logger.warning(f"{strategy.name} failed: {e}")
                continue
            except Exception as e:
                # Unexpected failures are recorded like any other
                errors.append(f"{strategy.name}: unexpected error: {e}")
                self._record(strategy.name, "error")
                logger.exception(f"{strategy.name} raised an unexpected error")
                continue

            if not posts:
                errors.append(f"{strategy.name}: no usable posts extracted")
                self._record(strategy.name, "empty")
                logger.log(log_level, errors[-1])
                continue

            counts[strategy.name] = len(posts)
            if best is None or len(posts) > len(best[1]):
                best = (strategy.name, posts)

            if len(posts) > self.sufficient_threshold:
                self._record(strategy.name, "success")
                logger.log(log_level, f"{strategy.name} returned {len(posts)} posts for r/{options.subreddit}")
                break

            self._record(strategy.name, "insufficient")
            logger.log(log_level, f"{strategy.name} returned only {len(posts)} posts, trying next strategy")

        result = ScrapingResult(subreddit=options.subreddit, errors=errors, rate_limited=rate_limited)
        if best is not None:
            source, posts = best
            result.source = source
            result.posts = order_and_limit(apply_filters(posts, options), options)
            result.total_found = len(result.posts)
            if self.prometheus_exporter:
                self.prometheus_exporter.record_posts_collected(options.subreddit, source, result.total_found)

        result.execution_time = time.time() - start
        if result.is_empty:
            logger.warning(f"No posts for r/{options.subreddit} ({len(errors)} strategy errors)")
        else:
            logger.info(f"Scraped {result.total_found} posts from r/{options.subreddit} via {result.source} "
                        f"in {result.execution_time:.2f}s")
        return result

    async def scrape_multiple(
        self,
        subreddits: Sequence[str],
        base_options: ScrapingOptions,
        delay: float = 2.0,
        error_tracker: Optional[ConsecutiveErrorTracker] = None,
    ) -> List[ScrapingResult]:
        """
        Scrape several subreddits in sequence with a fixed delay between them.

        Args:
            subreddits: Subreddit names
            base_options: Options applied to every subreddit
            delay: Seconds to wait between subreddits
            error_tracker: Optional tracker aborting the batch after repeated total failures

        Returns:
            One result per scraped subreddit
        """
        results = []
        for index, subreddit in enumerate(subreddits):
            options = dataclasses.replace(base_options, subreddit=subreddit)
            result = await self.scrape_subreddit(options)
            results.append(result)

            if error_tracker:
                if result.is_empty:
                    error_tracker.record_error()
                    if error_tracker.should_abort():
                        logger.critical(
                            f"Aborting batch after {error_tracker.consecutive_errors} consecutive empty results"
                        )
                        break
                else:
                    error_tracker.record_success()

            if index < len(subreddits) - 1 and delay > 0:
                await asyncio.sleep(delay)

        return results


def get_stats(results: Sequence[ScrapingResult]) -> Dict[str, Any]:
    """
    Summarise a batch of scraping results.

    Returns:
        Dict with total_posts, total_errors, avg_execution_time,
        source_breakdown, subreddits_scraped and rate_limited_requests
    """
    source_breakdown: Dict[str, int] = defaultdict(int)
    for result in results:
        if result.posts:
            source_breakdown[result.source] += len(result.posts)

    return {
        "total_posts": sum(len(result.posts) for result in results),
        "total_errors": sum(len(result.errors) for result in results),
        "avg_execution_time": (
            sum(result.execution_time for result in results) / len(results) if results else 0.0
        ),
        "source_breakdown": dict(source_breakdown),
        "subreddits_scraped": len(results),
        "rate_limited_requests": sum(1 for result in results if result.rate_limited),
    }
