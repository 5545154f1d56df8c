"""Builds the scraping object graph from a Config.

Nothing in the package holds module-level client instances; the CLI and the
tests construct what they need through these functions and pass it along.
"""

import logging
from typing import Any, List, Optional

from creator_scout.collector.auth import Authenticator
from creator_scout.collector.cache import TTLCache
from creator_scout.collector.error_handler import ConsecutiveErrorTracker
from creator_scout.collector.http_client import HttpClient
from creator_scout.collector.queue import FallbackProvider, ScrapingQueue
from creator_scout.collector.rate_limiter import RateLimiter
from creator_scout.collector.selector import StrategySelector
from creator_scout.config import Config, RateLimitConfig
from creator_scout.models.options import ScrapingOptions
from creator_scout.scrapers.base_strategy import BaseStrategy
from creator_scout.scrapers.html_scrape import HtmlScrapeStrategy
from creator_scout.scrapers.public_json import PublicJsonStrategy
from creator_scout.scrapers.pushshift import PushshiftStrategy
from creator_scout.scrapers.reddit_api import RedditApiStrategy
from creator_scout.scrapers.search_proxy import SearchProxyStrategy

logger = logging.getLogger(__name__)


def build_strategies(
    config: Config,
    http: HttpClient,
    error_tracker: Optional[ConsecutiveErrorTracker] = None,
) -> List[BaseStrategy]:
    """
    Instantiate the strategies named in ``config.strategy_order``, in that order.

    Each strategy gets its own rate limiter.
    """
    authenticator = Authenticator(http, config.client_id, config.client_secret, config.user_agent)
    factories = {
        "reddit_api": lambda: RedditApiStrategy(
            http, authenticator, RateLimiter(config.rate_limit, name="reddit_api"), error_tracker
        ),
        "public_json": lambda: PublicJsonStrategy(
            http, RateLimiter(config.rate_limit, name="public_json"), error_tracker
        ),
        "pushshift": lambda: PushshiftStrategy(
            http, RateLimiter(config.rate_limit, name="pushshift"), error_tracker
        ),
        "search_proxy": lambda: SearchProxyStrategy(
            http, config.serpapi_key, RateLimiter(config.search_rate_limit, name="search_proxy"), error_tracker
        ),
        "html_scrape": lambda: HtmlScrapeStrategy(
            http, RateLimiter(config.rate_limit, name="html_scrape"), error_tracker
        ),
    }

    strategies = []
    for name in config.strategy_order:
        if name not in factories:
            raise ValueError(f"Unknown strategy: {name}")
        strategies.append(factories[name]())
    return strategies


def build_selector(config: Config, http: HttpClient, prometheus_exporter=None) -> StrategySelector:
    return StrategySelector(
        build_strategies(config, http),
        sufficient_threshold=config.sufficient_threshold,
        strategy_timeout=config.strategy_timeout_sec,
        prometheus_exporter=prometheus_exporter,
    )


def default_options(config: Config, subreddit: str, **overrides: Any) -> ScrapingOptions:
    """Options for ``subreddit`` using the configured retry settings."""
    values = {
        "subreddit": subreddit,
        "max_retries": config.retry.max_retries,
        "retry_delay": config.retry.retry_delay_sec,
    }
    values.update(overrides)
    return ScrapingOptions(**values)


def build_queue(
    config: Config,
    selector: StrategySelector,
    fallback_provider: Optional[FallbackProvider] = None,
    prometheus_exporter=None,
    **option_overrides: Any,
) -> ScrapingQueue:
    """Queue whose jobs run the selector with default options."""

    async def fetch(subreddit: str):
        return await selector.scrape_subreddit(default_options(config, subreddit, **option_overrides))

    interval = config.queue.min_interval_sec
    return ScrapingQueue(
        fetch,
        rate_limiter=RateLimiter(
            RateLimitConfig(min_interval_sec=interval, max_requests_per_minute=10_000), name="queue"
        ),
        cache=TTLCache(ttl_seconds=config.queue.cache_ttl_sec),
        fallback_provider=fallback_provider,
        prometheus_exporter=prometheus_exporter,
    )
