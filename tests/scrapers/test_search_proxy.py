"""Tests for the search-engine-proxy strategy."""

import asyncio
import unittest

from creator_scout.errors import AuthenticationError, UpstreamRateLimited
from creator_scout.collector.http_client import HttpResponse
from creator_scout.models.options import ScrapingOptions
from creator_scout.scrapers.search_proxy import (
    SERPAPI_URL,
    SearchProxyStrategy,
    extract_engagement,
    extract_username,
    is_valid_username,
    parse_result_date,
)
from tests.fakes import FakeHttpClient, fast_limiter, json_response

EMPTY_RESULTS = json_response({"organic_results": []})


class TestUsernameExtraction(unittest.TestCase):
    """Test cases for the snippet extractors."""

    def test_profile_url_wins(self):
        text = "Great thread by someone https://www.reddit.com/user/deep_learner/ u/other_person"
        self.assertEqual(extract_username(text, "MachineLearning"), "deep_learner")

    def test_u_prefix(self):
        text = "Discussion started by u/gradient_descent about transformers"
        self.assertEqual(extract_username(text, "MachineLearning"), "gradient_descent")

    def test_posted_by(self):
        self.assertEqual(extract_username("Posted by tensor_wrangler 3 days ago", "MachineLearning"),
                         "tensor_wrangler")

    def test_rejects_subreddit_and_stop_words(self):
        self.assertIsNone(extract_username("Posts by MachineLearning", "MachineLearning"))
        self.assertIsNone(extract_username("Written by the community", "MachineLearning"))
        self.assertIsNone(extract_username("posted by [deleted]", "MachineLearning"))

    def test_over_long_names_are_rejected_not_truncated(self):
        self.assertIsNone(extract_username("submitted by thisisawaytoolongusername_abc", "MachineLearning"))
        self.assertIsNone(extract_username("see reddit.com/user/" + "a" * 21, "MachineLearning"))
        self.assertEqual(extract_username("u/" + "b" * 20, "MachineLearning"), "b" * 20)

    def test_falls_through_to_later_candidates(self):
        text = "posted by reddit, cross-posted by real_author"
        self.assertEqual(extract_username(text, "MachineLearning"), "real_author")

    def test_is_valid_username(self):
        self.assertTrue(is_valid_username("alice_ml", "datascience"))
        self.assertFalse(is_valid_username("ab", "datascience"))
        self.assertFalse(is_valid_username("x" * 21, "datascience"))
        self.assertFalse(is_valid_username("AutoModerator", "datascience"))
        self.assertFalse(is_valid_username("DataScience", "datascience"))

    def test_extract_engagement(self):
        self.assertEqual(extract_engagement("1,234 upvotes and 56 comments"), (1234, 56))
        self.assertEqual(extract_engagement("321 points"), (321, 0))
        self.assertEqual(extract_engagement("no numbers"), (0, 0))

    def test_parse_result_date(self):
        self.assertGreater(parse_result_date("Nov 14, 2023", 0.0), 0)
        self.assertEqual(parse_result_date(None, 5.0), 5.0)
        self.assertEqual(parse_result_date("unknown", 5.0), 5.0)


class TestSearchProxyStrategy(unittest.TestCase):
    """Test cases for SearchProxyStrategy."""

    def setUp(self):
        self.options = ScrapingOptions(subreddit="MachineLearning", max_retries=1)

    def strategy(self, http, api_key="key"):
        return SearchProxyStrategy(http, api_key, fast_limiter("search_proxy"))

    def test_missing_key_raises(self):
        http = FakeHttpClient()
        with self.assertRaises(AuthenticationError):
            asyncio.run(self.strategy(http, api_key="").fetch(self.options))
        self.assertEqual(http.calls, [])

    def test_build_queries(self):
        strategy = self.strategy(FakeHttpClient())
        options = ScrapingOptions(subreddit="ChatGPT", query="prompting")

        queries = strategy.build_queries(options)

        self.assertIn('"prompting"', queries[0])
        self.assertIn('"ChatGPT" users posts', queries[1])
        self.assertTrue(any("r/ChatGPT" in query for query in queries[4:]))

    def test_extracts_one_post_per_creator(self):
        http = FakeHttpClient([json_response({"organic_results": [
            {"title": "Fine-tuning tips", "snippet": "Posted by u/lora_fan - 120 upvotes, 14 comments",
             "link": "https://www.reddit.com/r/MachineLearning/comments/abc/fine_tuning/"},
            {"title": "Another by u/lora_fan", "snippet": "", "link": "https://www.reddit.com/r/x"},
            {"title": "Benchmarks", "snippet": "submitted by bench_master", "link": "https://example.com"},
            {"title": "Nothing here", "snippet": "", "link": ""},
        ]})], default=EMPTY_RESULTS)

        posts = asyncio.run(self.strategy(http).fetch(self.options))

        self.assertEqual([post.author for post in posts], ["lora_fan", "bench_master"])
        first = posts[0]
        self.assertEqual(first.upvotes, 120)
        self.assertEqual(first.num_comments, 14)
        self.assertEqual(first.source, "search_proxy")
        self.assertTrue(first.id.startswith("sp_"))
        self.assertTrue(first.permalink.endswith("/comments/abc/fine_tuning/"))
        self.assertEqual(http.calls[0]["url"], SERPAPI_URL)
        self.assertEqual(http.calls[0]["params"]["api_key"], "key")

    def test_broad_query_when_nothing_found(self):
        http = FakeHttpClient(default=EMPTY_RESULTS)
        strategy = self.strategy(http)

        posts = asyncio.run(strategy.fetch(self.options))

        self.assertEqual(posts, [])
        self.assertEqual(len(http.calls), len(strategy.build_queries(self.options)) + 1)
        self.assertEqual(http.calls[-1]["params"]["q"], strategy.broad_query(self.options))

    def test_rate_limited_with_no_results_raises(self):
        http = FakeHttpClient(default=HttpResponse(status=429, text="", headers={"retry-after": "30"}))

        with self.assertRaises(UpstreamRateLimited):
            asyncio.run(self.strategy(http).fetch(self.options))

    def test_forbidden_key_aborts(self):
        http = FakeHttpClient([HttpResponse(status=401, text="bad key")], default=EMPTY_RESULTS)

        with self.assertRaises(Exception) as ctx:
            asyncio.run(self.strategy(http).fetch(self.options))

        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(len(http.calls), 1)


if __name__ == "__main__":
    unittest.main()
