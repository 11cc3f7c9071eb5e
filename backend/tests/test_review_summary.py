import threading
import unittest
from unittest.mock import MagicMock, patch

import requests

from config import Configuration
from models import CategorySummary, Review
from services.local_summary import create_local_summary
from services.review_summary import (
    HttpSummarizer,
    SummaryUnavailable,
    build_remote,
    generate_review_summary,
    parse_summary_payload,
    summarize_review,
)
from services.summarizer import LLMSummarizer


REVIEWS = [
    Review(author="a", rating=5, text="The food was fresh and the atmosphere was cozy."),
    Review(author="b", rating=4, text="Friendly staff"),
]
REMOTE_RESULT = CategorySummary(summary="Remote", cuisine="Ramen", atmosphere="Lively", service="Quick")


class TestReviewSummary(unittest.TestCase):
    def test_remote_result_is_used_when_available(self):
        remote = MagicMock()
        remote.summarize.return_value = REMOTE_RESULT
        self.assertEqual(generate_review_summary(REVIEWS, "en", remote), REMOTE_RESULT)
        remote.summarize.assert_called_once_with(REVIEWS, "en")

    def test_remote_failure_falls_back_to_local_without_retry(self):
        remote = MagicMock()
        remote.summarize.side_effect = SummaryUnavailable("summary endpoint 500: boom")
        summary = generate_review_summary(REVIEWS, "en", remote)
        self.assertEqual(remote.summarize.call_count, 1)
        self.assertTrue(summary.summary.startswith("Food quality is"))

    def test_malformed_remote_payload_falls_back(self):
        remote = MagicMock()
        remote.summarize.side_effect = KeyError("choices")
        summary = generate_review_summary(REVIEWS[:1], "en", remote)
        self.assertIn("atmosphere was cozy", summary.atmosphere)

    def test_empty_reviews_skip_remote(self):
        remote = MagicMock()
        summary = generate_review_summary([], "ja", remote)
        self.assertEqual(summary.summary, "レビューはありません。")
        remote.summarize.assert_not_called()

    def test_summarize_review_keeps_japanese_text_for_japanese_ui(self):
        remote = MagicMock()
        review = Review(author="c", rating=4, text="雰囲気が良くて料理も美味しい")
        self.assertEqual(summarize_review(review, "ja", remote), review.text)
        remote.summarize.assert_not_called()

    def test_summarize_review_summarizes_other_text(self):
        remote = MagicMock()
        remote.summarize.return_value = REMOTE_RESULT
        review = Review(author="c", rating=4, text="Great noodles")
        self.assertEqual(summarize_review(review, "ja", remote), "Remote")
        remote.summarize.assert_called_once_with([review], "ja")

    def test_parse_summary_payload(self):
        payload = {"summary": "s", "cuisine": "c", "atmosphere": "a", "service": "v"}
        self.assertEqual(parse_summary_payload(payload).as_dict(), payload)
        with self.assertRaises(SummaryUnavailable):
            parse_summary_payload({"error": "OPENAI_API_KEY is required"})
        with self.assertRaises(SummaryUnavailable):
            parse_summary_payload({"summary": "s"})
        with self.assertRaises(SummaryUnavailable):
            parse_summary_payload(["not", "a", "dict"])

    def test_build_remote_prefers_http_endpoint(self):
        cfg = Configuration(summary_endpoint_url="https://example.test/summarize", llm_provider="ollama")
        self.assertIsInstance(build_remote(cfg), HttpSummarizer)
        self.assertIsInstance(build_remote(Configuration(llm_provider="ollama")), LLMSummarizer)
        self.assertIsNone(build_remote(Configuration()))


class SlowLLM(LLMSummarizer):
    def __init__(self, cfg):
        super().__init__(cfg)
        self.release = threading.Event()

    def complete(self, system_prompt, prompt):
        self.release.wait(5)
        return "Too late.\nCuisine: Ramen"


class TestLLMTimeout(unittest.TestCase):
    def test_hung_llm_times_out(self):
        llm = SlowLLM(Configuration(summary_timeout=0.05))
        try:
            with self.assertRaises(TimeoutError):
                llm.summarize(REVIEWS, "en")
        finally:
            llm.release.set()

    def test_hung_llm_degrades_to_local_summary(self):
        llm = SlowLLM(Configuration(summary_timeout=0.05))
        try:
            summary = generate_review_summary(REVIEWS, "en", llm)
        finally:
            llm.release.set()
        self.assertEqual(summary, create_local_summary(REVIEWS, "en"))


class TestHttpSummarizer(unittest.TestCase):
    def setUp(self):
        cfg = Configuration(summary_endpoint_url="https://example.test/summarize", summary_api_key="anon", summary_timeout=7)
        self.summarizer = HttpSummarizer(cfg)

    @patch("services.review_summary.requests.Session.post")
    def test_posts_reviews_with_timeout(self, mock_post):
        resp = MagicMock(ok=True, status_code=200)
        resp.json.return_value = REMOTE_RESULT.as_dict()
        mock_post.return_value = resp

        summary = self.summarizer.summarize(REVIEWS, "ja")

        self.assertEqual(summary, REMOTE_RESULT)
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://example.test/summarize")
        self.assertEqual(kwargs["timeout"], 7)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer anon")
        body = kwargs["json"]
        self.assertEqual(body["language"], "ja")
        self.assertEqual(body["reviews"][0]["author_name"], "a")
        self.assertFalse(body["reviews"][0]["preserveOriginal"])

    @patch("services.review_summary.requests.Session.post")
    def test_non_ok_status_raises(self, mock_post):
        mock_post.return_value = MagicMock(ok=False, status_code=500, text="boom")
        with self.assertRaises(SummaryUnavailable):
            self.summarizer.summarize(REVIEWS, "en")

    @patch("services.review_summary.requests.Session.post")
    def test_timeout_raises_summary_unavailable(self, mock_post):
        mock_post.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(SummaryUnavailable):
            self.summarizer.summarize(REVIEWS, "en")

    @patch("services.review_summary.requests.Session.post")
    def test_timeout_degrades_to_local_summary(self, mock_post):
        mock_post.side_effect = requests.Timeout("read timed out")
        summary = generate_review_summary(REVIEWS, "en", self.summarizer)
        self.assertIn("average rating of 4.5/5", summary.summary)


if __name__ == "__main__":
    unittest.main()
