"""Tests for the strategy selector fallback chain."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from creator_scout.collector.error_handler import ConsecutiveErrorTracker
from creator_scout.collector.http_client import HttpResponse
from creator_scout.collector.selector import StrategySelector, get_stats
from creator_scout.errors import AuthenticationError, UpstreamError, UpstreamRateLimited
from creator_scout.models.options import ScrapingOptions
from creator_scout.models.post import ScrapingResult
from creator_scout.scrapers.pushshift import PushshiftStrategy
from creator_scout.scrapers.reddit_api import RedditApiStrategy
from tests.fakes import FakeHttpClient, FakeStrategy, fast_limiter, json_response, make_post


def posts(count, prefix="p", **kwargs):
    return [make_post(f"{prefix}{i}", author=f"user{i}", score=i, **kwargs) for i in range(count)]


class TestStrategySelector(unittest.TestCase):
    """Test cases for StrategySelector.scrape_subreddit."""

    def setUp(self):
        self.options = ScrapingOptions(subreddit="MachineLearning", max_retries=1, retry_delay=0)

    def test_first_strategy_sufficient(self):
        official = FakeStrategy("reddit_api", posts=posts(10))
        fallback = FakeStrategy("public_json", posts=posts(10))
        selector = StrategySelector([official, fallback], sufficient_threshold=5)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertEqual(result.source, "reddit_api")
        self.assertEqual(result.total_found, 10)
        self.assertEqual(len(result.posts), 10)
        self.assertEqual(result.errors, [])
        self.assertFalse(result.rate_limited)
        self.assertEqual(fallback.calls, 0)
        self.assertGreaterEqual(result.execution_time, 0)

    def test_threshold_is_strict(self):
        """Exactly threshold posts is not enough to stop the chain."""
        first = FakeStrategy("reddit_api", posts=posts(5))
        second = FakeStrategy("public_json", posts=posts(3, prefix="q"))
        selector = StrategySelector([first, second], sufficient_threshold=5)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertEqual(second.calls, 1)
        self.assertEqual(result.source, "reddit_api")
        self.assertEqual(result.total_found, 5)
        self.assertEqual(result.errors, [])

    def test_best_candidate_kept_when_none_sufficient(self):
        chain = [
            FakeStrategy("reddit_api", posts=posts(2)),
            FakeStrategy("public_json", posts=posts(4, prefix="q")),
            FakeStrategy("html_scrape", error=UpstreamError("html_scrape", status=500)),
        ]
        selector = StrategySelector(chain, sufficient_threshold=5)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertEqual(result.source, "public_json")
        self.assertEqual(result.total_found, 4)
        self.assertEqual(result.errors, ["html_scrape: HTTP 500"])

    def test_official_forbidden_falls_back_to_archive(self):
        http = FakeHttpClient([
            HttpResponse(status=403, text="forbidden"),
            json_response({"data": [
                {"id": "a1", "author": "alice", "title": "one", "score": 5, "created_utc": 1_700_000_000},
                {"id": "a2", "author": "bob", "title": "two", "score": 7, "created_utc": 1_700_000_100},
                {"id": "a3", "author": "carol", "title": "three", "score": 9, "created_utc": 1_700_000_200},
            ]}),
        ])
        authenticator = MagicMock()
        authenticator.get_token = AsyncMock(return_value="token")
        authenticator.user_agent = "ua"
        chain = [
            RedditApiStrategy(http, authenticator, fast_limiter("reddit_api")),
            PushshiftStrategy(http, fast_limiter("pushshift")),
        ]
        selector = StrategySelector(chain, sufficient_threshold=5)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith("reddit_api"))
        self.assertEqual(result.source, "pushshift")
        self.assertEqual(result.total_found, 3)
        self.assertTrue(all(post.source == "pushshift" for post in result.posts))
        self.assertEqual(len(http.calls), 2)

    def test_total_failure_never_raises(self):
        chain = [
            FakeStrategy("reddit_api", error=AuthenticationError("Reddit API credentials not configured")),
            FakeStrategy("public_json", error=UpstreamError("public_json", status=403)),
            FakeStrategy("search_proxy", posts=[]),
            FakeStrategy("html_scrape", error=RuntimeError("parser exploded")),
        ]
        selector = StrategySelector(chain)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertTrue(result.is_empty)
        self.assertEqual(result.source, "none")
        self.assertEqual(result.total_found, 0)
        self.assertEqual(len(result.errors), 4)
        self.assertEqual(result.errors[0], "reddit_api: Reddit API credentials not configured")
        self.assertEqual(result.errors[2], "search_proxy: no usable posts extracted")
        self.assertIn("parser exploded", result.errors[3])
        self.assertFalse(result.rate_limited)

    def test_rate_limited_flag(self):
        chain = [
            FakeStrategy("public_json", error=UpstreamRateLimited("public_json", retry_after=60)),
            FakeStrategy("html_scrape", posts=posts(8)),
        ]
        selector = StrategySelector(chain)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertTrue(result.rate_limited)
        self.assertEqual(result.source, "html_scrape")
        self.assertEqual(len(result.errors), 1)

    def test_timeout_recorded_as_error(self):
        chain = [
            FakeStrategy("reddit_api", posts=posts(10), delay=1.0),
            FakeStrategy("public_json", posts=posts(10)),
        ]
        selector = StrategySelector(chain, strategy_timeout=0.01)

        result = asyncio.run(selector.scrape_subreddit(self.options))

        self.assertEqual(result.source, "public_json")
        self.assertEqual(len(result.errors), 1)
        self.assertIn("timed out", result.errors[0])

    def test_skipped_archive_contributes_no_error(self):
        options = ScrapingOptions(subreddit="MachineLearning", use_archive=False)
        archive = FakeStrategy("pushshift", posts=posts(10))
        archive.should_attempt = PushshiftStrategy.should_attempt.__get__(archive)
        chain = [FakeStrategy("reddit_api", error=UpstreamError("reddit_api", status=403)), archive]
        selector = StrategySelector(chain)

        result = asyncio.run(selector.scrape_subreddit(options))

        self.assertEqual(archive.calls, 0)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.is_empty)

    def test_filters_and_limit_applied_to_winner(self):
        options = ScrapingOptions(subreddit="MachineLearning", limit=3, sort="top", min_score=2)
        selector = StrategySelector([FakeStrategy("reddit_api", posts=posts(10))])

        result = asyncio.run(selector.scrape_subreddit(options))

        self.assertEqual([post.score for post in result.posts], [9, 8, 7])
        self.assertEqual(result.total_found, 3)

    def test_exporter_records_outcomes(self):
        exporter = MagicMock()
        chain = [
            FakeStrategy("reddit_api", error=UpstreamError("reddit_api", status=403)),
            FakeStrategy("public_json", posts=posts(6)),
        ]
        selector = StrategySelector(chain, prometheus_exporter=exporter)

        asyncio.run(selector.scrape_subreddit(self.options))

        exporter.record_strategy_attempt.assert_any_call("reddit_api", "error")
        exporter.record_strategy_attempt.assert_any_call("public_json", "success")
        exporter.record_posts_collected.assert_called_once_with("MachineLearning", "public_json", 6)

    def test_get_strategy(self):
        official = FakeStrategy("reddit_api")
        selector = StrategySelector([official])
        self.assertIs(selector.get_strategy("reddit_api"), official)
        self.assertIsNone(selector.get_strategy("pushshift"))


class TestScrapeMultiple(unittest.TestCase):
    """Test cases for batch scraping."""

    def test_scrapes_each_subreddit(self):
        selector = StrategySelector([FakeStrategy("reddit_api", posts=posts(6))])
        base = ScrapingOptions(subreddit="MachineLearning", limit=10)

        results = asyncio.run(selector.scrape_multiple(["datascience", "LocalLLaMA"], base, delay=0))

        self.assertEqual([r.subreddit for r in results], ["datascience", "LocalLLaMA"])
        self.assertTrue(all(r.total_found == 6 for r in results))

    def test_aborts_after_consecutive_failures(self):
        failing = FakeStrategy("reddit_api", error=UpstreamError("reddit_api", status=500))
        selector = StrategySelector([failing])
        base = ScrapingOptions(subreddit="MachineLearning")
        tracker = ConsecutiveErrorTracker(threshold=2)

        results = asyncio.run(
            selector.scrape_multiple(["a1", "b2", "c3"], base, delay=0, error_tracker=tracker)
        )

        self.assertEqual(len(results), 2)
        self.assertEqual(failing.calls, 2)


class TestGetStats(unittest.TestCase):

    def test_summary(self):
        results = [
            ScrapingResult(subreddit="a1", posts=posts(3), total_found=3, source="reddit_api",
                           execution_time=1.0),
            ScrapingResult(subreddit="b2", posts=posts(2), total_found=2, source="pushshift",
                           errors=["reddit_api: HTTP 403"], execution_time=3.0),
            ScrapingResult(subreddit="c3", errors=["x", "y"], rate_limited=True, execution_time=2.0),
        ]

        stats = get_stats(results)

        self.assertEqual(stats["total_posts"], 5)
        self.assertEqual(stats["total_errors"], 3)
        self.assertEqual(stats["avg_execution_time"], 2.0)
        self.assertEqual(stats["source_breakdown"], {"reddit_api": 3, "pushshift": 2})
        self.assertEqual(stats["subreddits_scraped"], 3)
        self.assertEqual(stats["rate_limited_requests"], 1)

    def test_empty(self):
        stats = get_stats([])
        self.assertEqual(stats["total_posts"], 0)
        self.assertEqual(stats["avg_execution_time"], 0.0)


if __name__ == "__main__":
    unittest.main()
