from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

import requests
from loguru import logger

from config import Configuration
from models import CategorySummary, Review
from services.local_summary import create_local_summary, empty_summary
from services.summarizer import LLMSummarizer
from utils import is_japanese_text


class SummaryUnavailable(RuntimeError):
    pass


class RemoteSummarizer(Protocol):
    def summarize(self, reviews: Sequence[Review], language: str) -> CategorySummary: ...


def parse_summary_payload(payload: Any) -> CategorySummary:
    if not isinstance(payload, dict):
        raise SummaryUnavailable("unexpected response shape")
    if payload.get("error"):
        raise SummaryUnavailable(str(payload["error"]))
    fields = {}
    for name in ("summary", "cuisine", "atmosphere", "service"):
        value = payload.get(name)
        if not isinstance(value, str):
            raise SummaryUnavailable(f"missing field: {name}")
        fields[name] = value
    return CategorySummary(**fields)


class HttpSummarizer:
    """Client for a remote summarize-reviews endpoint."""

    def __init__(self, cfg: Configuration) -> None:
        if not cfg.summary_endpoint_url:
            raise ValueError("SUMMARY_ENDPOINT_URL is required")
        self.url = cfg.summary_endpoint_url
        self.api_key = cfg.summary_api_key
        self.timeout = cfg.summary_timeout
        self.session = requests.Session()

    def summarize(self, reviews: Sequence[Review], language: str) -> CategorySummary:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "reviews": [
                {
                    "author_name": r.author,
                    "rating": r.rating,
                    "text": r.text,
                    "time": r.timestamp_seconds,
                    "relative_time_description": r.relative_time_label,
                    "preserveOriginal": is_japanese_text(r.text),
                }
                for r in reviews
            ],
            "language": language,
            "preserveJapanese": True,
        }
        try:
            resp = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SummaryUnavailable(f"request error: {exc}")
        if not resp.ok:
            raise SummaryUnavailable(f"summary endpoint {resp.status_code}: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError:
            raise SummaryUnavailable("invalid json response")
        return parse_summary_payload(payload)


def build_remote(cfg: Configuration) -> Optional[RemoteSummarizer]:
    """Pick the remote stage: HTTP endpoint first, then the in-process LLM, else none."""
    if cfg.summary_endpoint_url:
        return HttpSummarizer(cfg)
    if cfg.llm_enabled():
        return LLMSummarizer(cfg)
    return None


def generate_review_summary(
    reviews: Sequence[Review],
    language: str = "en",
    remote: Optional[RemoteSummarizer] = None,
) -> CategorySummary:
    """Summarize with the remote stage once, falling back to the local heuristic."""
    if not reviews:
        return empty_summary(language)
    if remote is not None:
        try:
            return remote.summarize(reviews, language)
        except Exception as exc:
            logger.warning("remote summary failed, using local summary: {}", exc)
    return create_local_summary(reviews, language)


def summarize_review(review: Review, language: str = "en", remote: Optional[RemoteSummarizer] = None) -> str:
    """One-line summary for a single review; Japanese text is kept as written for ja."""
    if language == "ja" and is_japanese_text(review.text):
        return review.text
    return generate_review_summary([review], language, remote).summary
