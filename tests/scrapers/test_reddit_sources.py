"""Tests for the Reddit-backed strategies: official API, public JSON and archive."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from creator_scout.collector.http_client import HttpResponse
from creator_scout.errors import AuthenticationError, UpstreamError, UpstreamRateLimited
from creator_scout.models.options import ScrapingOptions
from creator_scout.scrapers.public_json import PublicJsonStrategy
from creator_scout.scrapers.pushshift import PUSHSHIFT_API, PushshiftStrategy
from creator_scout.scrapers.reddit_api import RedditApiStrategy
from tests.fakes import FakeHttpClient, fast_limiter, json_response, listing_payload, reddit_child


def mock_authenticator(token="token"):
    authenticator = MagicMock()
    authenticator.get_token = AsyncMock(return_value=token)
    authenticator.user_agent = "creator_scout-tests"
    return authenticator


class TestRedditApiStrategy(unittest.TestCase):
    """Test cases for RedditApiStrategy."""

    def setUp(self):
        self.options = ScrapingOptions(subreddit="r/MachineLearning", sort="top", timeframe="month",
                                       limit=250, max_retries=1)

    def test_fetch_listing(self):
        http = FakeHttpClient([json_response(listing_payload([
            reddit_child("a1", author="alice"),
            reddit_child("a2", author="AutoModerator"),
            reddit_child("a3", author="bob"),
        ]))])
        strategy = RedditApiStrategy(http, mock_authenticator(), fast_limiter("reddit_api"))

        posts = asyncio.run(strategy.fetch(self.options))

        self.assertEqual([post.author for post in posts], ["alice", "bob"])
        call = http.calls[0]
        self.assertEqual(call["url"], "https://oauth.reddit.com/r/MachineLearning/top")
        self.assertEqual(call["params"], {"limit": 100, "raw_json": 1, "t": "month"})
        self.assertEqual(call["headers"]["Authorization"], "Bearer token")

    def test_missing_credentials_fail_fast(self):
        http = FakeHttpClient()
        authenticator = mock_authenticator()
        authenticator.get_token.side_effect = AuthenticationError("Reddit API credentials not configured")
        strategy = RedditApiStrategy(http, authenticator, fast_limiter("reddit_api"))

        with self.assertRaises(AuthenticationError):
            asyncio.run(strategy.fetch(self.options))
        self.assertEqual(http.calls, [])

    def test_unauthorized_invalidates_token(self):
        http = FakeHttpClient([HttpResponse(status=401, text="expired")])
        authenticator = mock_authenticator()
        strategy = RedditApiStrategy(http, authenticator, fast_limiter("reddit_api"))

        with self.assertRaises(UpstreamError):
            asyncio.run(strategy.fetch(self.options))
        authenticator.invalidate.assert_called_once()

    def test_updates_limiter_from_headers(self):
        http = FakeHttpClient([json_response(listing_payload([]), headers={
            "x-ratelimit-remaining": "99", "x-ratelimit-reset": "300",
        })])
        limiter = fast_limiter("reddit_api")
        strategy = RedditApiStrategy(http, mock_authenticator(), limiter)

        asyncio.run(strategy.fetch(self.options))

        self.assertEqual(limiter.remaining_calls, 99)

    def test_get_user_profile(self):
        http = FakeHttpClient([json_response({"data": {
            "name": "alice", "link_karma": 1200, "comment_karma": 300, "created_utc": 1_600_000_000,
        }})])
        strategy = RedditApiStrategy(http, mock_authenticator(), fast_limiter("reddit_api"))

        profile = asyncio.run(strategy.get_user_profile("alice"))

        self.assertEqual(profile.total_karma, 1500)
        self.assertEqual(profile.link_karma, 1200)
        self.assertEqual(http.calls[0]["url"], "https://oauth.reddit.com/user/alice/about")

    def test_get_user_profile_failure_returns_none(self):
        http = FakeHttpClient([HttpResponse(status=404, text="not found")])
        strategy = RedditApiStrategy(http, mock_authenticator(), fast_limiter("reddit_api"))

        self.assertIsNone(asyncio.run(strategy.get_user_profile("ghost")))


class TestPublicJsonStrategy(unittest.TestCase):
    """Test cases for PublicJsonStrategy."""

    def setUp(self):
        self.options = ScrapingOptions(subreddit="datascience", sort="new", max_retries=1)

    def test_endpoint_variants(self):
        strategy = PublicJsonStrategy(FakeHttpClient())
        self.assertEqual(strategy.endpoint_variants(self.options), [
            "https://www.reddit.com/r/datascience/new.json",
            "https://www.reddit.com/r/datascience/hot.json",
            "https://www.reddit.com/r/datascience.json",
        ])
        rising = ScrapingOptions(subreddit="datascience", sort="rising")
        self.assertEqual(len(strategy.endpoint_variants(rising)), 4)

    def test_moves_to_next_variant_on_failure(self):
        http = FakeHttpClient([
            HttpResponse(status=403, text="blocked"),
            HttpResponse(status=200, text="<html>captcha</html>"),
            json_response(listing_payload([reddit_child("d1", author="dana")])),
        ])
        strategy = PublicJsonStrategy(http, fast_limiter("public_json"))

        posts = asyncio.run(strategy.fetch(self.options))

        self.assertEqual([post.id for post in posts], ["d1"])
        self.assertEqual(posts[0].source, "public_json")
        self.assertEqual(len(http.calls), 3)
        self.assertEqual(http.calls[2]["url"], "https://www.reddit.com/r/datascience.json")

    def test_all_variants_blocked(self):
        http = FakeHttpClient(default=HttpResponse(status=403, text="blocked"))
        strategy = PublicJsonStrategy(http, fast_limiter("public_json"))

        self.assertEqual(asyncio.run(strategy.fetch(self.options)), [])

    def test_rate_limited_surfaces_when_nothing_worked(self):
        http = FakeHttpClient([
            HttpResponse(status=429, text=""),
            HttpResponse(status=403, text=""),
            HttpResponse(status=403, text=""),
        ])
        strategy = PublicJsonStrategy(http, fast_limiter("public_json"))

        with self.assertRaises(UpstreamRateLimited):
            asyncio.run(strategy.fetch(self.options))

    def test_fetch_raw_returns_listing_children(self):
        http = FakeHttpClient([json_response(listing_payload([reddit_child("d1")]))])
        strategy = PublicJsonStrategy(http, fast_limiter("public_json"))

        raw = asyncio.run(strategy.fetch_raw(self.options))

        self.assertEqual(raw[0]["data"]["id"], "d1")


class TestPushshiftStrategy(unittest.TestCase):
    """Test cases for PushshiftStrategy."""

    def setUp(self):
        self.strategy = PushshiftStrategy(FakeHttpClient(), fast_limiter("pushshift"))

    def test_should_attempt(self):
        options = ScrapingOptions(subreddit="datascience")
        self.assertTrue(self.strategy.should_attempt(options, {}))
        self.assertTrue(self.strategy.should_attempt(options, {"reddit_api": 0}))
        self.assertFalse(self.strategy.should_attempt(options, {"reddit_api": 3}))

        no_archive = ScrapingOptions(subreddit="datascience", use_archive=False)
        self.assertFalse(self.strategy.should_attempt(no_archive, {}))

    def test_build_params(self):
        options = ScrapingOptions(subreddit="datascience", sort="top", timeframe="day", limit=1000, min_score=10)

        params = self.strategy.build_params(options, now=1_000_000.0)

        self.assertEqual(params, {
            "subreddit": "datascience",
            "size": 500,
            "sort": "desc",
            "sort_type": "score",
            "after": 1_000_000 - 86400,
            "score": ">10",
        })

    def test_build_params_all_time(self):
        options = ScrapingOptions(subreddit="datascience", timeframe="all")
        params = self.strategy.build_params(options, now=1_000_000.0)
        self.assertNotIn("after", params)
        self.assertEqual(params["sort_type"], "created_utc")

    @patch("time.time", return_value=1_000_000.0)
    def test_fetch(self, mock_time):
        http = FakeHttpClient([json_response({"data": [
            {"id": "h1", "author": "alice", "title": "old post", "score": 4, "created_utc": 900_000},
            {"id": "h2", "author": "[deleted]", "title": "gone", "score": 1, "created_utc": 900_001},
        ]})])
        strategy = PushshiftStrategy(http, fast_limiter("pushshift"))

        posts = asyncio.run(strategy.fetch(ScrapingOptions(subreddit="datascience", max_retries=1)))

        self.assertEqual([post.id for post in posts], ["h1"])
        self.assertTrue(posts[0].archived)
        self.assertEqual(http.calls[0]["url"], PUSHSHIFT_API)

    def test_malformed_payload(self):
        http = FakeHttpClient([HttpResponse(status=200, text="not json")])
        strategy = PushshiftStrategy(http, fast_limiter("pushshift"))

        with self.assertRaises(UpstreamError):
            asyncio.run(strategy.fetch(ScrapingOptions(subreddit="datascience", max_retries=1)))


if __name__ == "__main__":
    unittest.main()
