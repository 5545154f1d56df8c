"""Prometheus metrics for monitoring Creator Scout."""

import logging
import time
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Define metrics
STRATEGY_ATTEMPTS = Counter(
    "creator_scout_strategy_attempts_total",
    "Number of acquisition strategy attempts by outcome",
    ["strategy", "outcome"],
)

POSTS_COLLECTED = Counter(
    "creator_scout_posts_collected_total",
    "Total number of posts delivered by the fallback chain",
    ["subreddit", "source"],
)

RATE_LIMITED_EVENTS = Counter(
    "creator_scout_rate_limited_total",
    "Number of strategy attempts that ended rate limited",
    ["strategy"],
)

QUEUE_CACHE_LOOKUPS = Counter(
    "creator_scout_queue_cache_lookups_total",
    "Scraping queue cache lookups by result",
    ["result"],
)

QUEUE_LENGTH = Gauge(
    "creator_scout_queue_length",
    "Number of scraping jobs waiting in the queue",
)

CONSECUTIVE_FAILURES = Gauge(
    "creator_scout_consecutive_failures",
    "Number of consecutive total failures of the fallback chain",
)

STRATEGY_DURATION = Histogram(
    "creator_scout_strategy_duration_seconds",
    "Duration of acquisition strategy attempts in seconds",
    ["strategy"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)


class PrometheusExporter:
    """Prometheus metrics exporter for Creator Scout."""

    def __init__(self, port: int = 8000):
        """
        Initialize the Prometheus exporter.

        Args:
            port: Port to expose metrics on
        """
        self.port = port
        self.server_started = False

    def start_server(self) -> None:
        """Start the Prometheus metrics server."""
        if not self.server_started:
            try:
                start_http_server(self.port)
                self.server_started = True
                logger.info(f"Started Prometheus metrics server on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus metrics server: {str(e)}")

    def record_strategy_attempt(self, strategy: str, outcome: str) -> None:
        """
        Record the outcome of one strategy attempt.

        Args:
            strategy: Strategy identifier
            outcome: One of success, insufficient, empty, error, rate_limited, skipped
        """
        STRATEGY_ATTEMPTS.labels(strategy=strategy, outcome=outcome).inc()
        if outcome == "rate_limited":
            RATE_LIMITED_EVENTS.labels(strategy=strategy).inc()

    def record_posts_collected(self, subreddit: str, source: str, count: int) -> None:
        if count > 0:
            POSTS_COLLECTED.labels(subreddit=subreddit, source=source).inc(count)

    def record_cache_lookup(self, hit: bool) -> None:
        QUEUE_CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()

    def set_queue_length(self, length: int) -> None:
        QUEUE_LENGTH.set(length)

    def set_consecutive_failures(self, count: int) -> None:
        CONSECUTIVE_FAILURES.set(count)

    def time_strategy(self, strategy: str) -> "StrategyTimer":
        """
        Create a context manager for timing a strategy attempt.

        Returns:
            StrategyTimer context manager
        """
        return StrategyTimer(strategy)


class StrategyTimer:
    """Context manager for timing strategy attempts."""

    def __init__(self, strategy: str):
        self.strategy = strategy
        self.start_time: Optional[float] = None

    def __enter__(self) -> "StrategyTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            STRATEGY_DURATION.labels(strategy=self.strategy).observe(time.time() - self.start_time)
