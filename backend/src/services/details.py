from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import quote, urlencode

from loguru import logger

from config import Configuration
from models import REVIEW_SORTS, CategorySummary, RestaurantRecord, Review
from services.classifier import DEFAULT_KEYWORDS, KeywordSets, classify
from services.places import PlacesClient, PlacesError
from services.review_summary import RemoteSummarizer, generate_review_summary, summarize_review
from services.reviews import sort_reviews

PLACEHOLDER_PHOTO = "https://via.placeholder.com/800x600/F4D35E/2D3047?text={name}"


@dataclass
class DetailView:
    record: RestaurantRecord
    photos: List[str]
    reviews: List[Review]
    review_sort: str
    language: str
    summary: CategorySummary
    review_summaries: List[str] = field(default_factory=list)
    stale: bool = False


def photo_urls(cfg: Configuration, record: RestaurantRecord) -> List[str]:
    """Up to ``max_photos`` photo URLs, or a single placeholder naming the place."""
    if not record.photo_refs:
        return [PLACEHOLDER_PHOTO.format(name=quote(record.name, safe=""))]
    urls = []
    for ref in record.photo_refs[: cfg.max_photos]:
        params = {"maxwidth": cfg.photo_max_width, "photoreference": ref}
        if cfg.maps_api_key:
            params["key"] = cfg.maps_api_key
        urls.append(f"{cfg.photo_base_url}?{urlencode(params)}")
    return urls


def _summary_key(place_id: str, review_sort: str, language: str) -> str:
    return f"{language}|{place_id}|{review_sort}"


def build_detail_view(
    cfg: Configuration,
    client: PlacesClient,
    place_id: str,
    *,
    review_sort: str = "recent",
    language: str = "en",
    keywords: KeywordSets = DEFAULT_KEYWORDS,
    remote: Optional[RemoteSummarizer] = None,
    summary_cache: Optional[Dict[str, CategorySummary]] = None,
    with_review_summaries: bool = False,
) -> Optional[DetailView]:
    """Fetch one place and assemble everything its detail page shows.

    Returns None when the place cannot be loaded. Summaries already present in
    ``summary_cache`` for the same place, sort and language are reused.
    """
    if review_sort not in REVIEW_SORTS:
        raise ValueError(f"unknown review sort: {review_sort}")
    try:
        record = client.get_details(place_id, review_sort)
    except PlacesError as exc:
        logger.warning("details fetch failed for {}: {}", place_id, exc)
        return None
    if record is None:
        logger.info("no details for {}", place_id)
        return None

    record = classify(record, keywords)
    reviews = sort_reviews(record.reviews, review_sort)

    key = _summary_key(place_id, review_sort, language)
    summary = summary_cache.get(key) if summary_cache is not None else None
    if summary is None:
        summary = generate_review_summary(reviews, language, remote)
        if summary_cache is not None:
            summary_cache[key] = summary
    else:
        logger.debug("summary cache hit {}", key)

    per_review: List[str] = []
    if with_review_summaries:
        per_review = [summarize_review(r, language, remote) if r.text else "" for r in reviews]

    return DetailView(
        record=record,
        photos=photo_urls(cfg, record),
        reviews=reviews,
        review_sort=review_sort,
        language=language,
        summary=summary,
        review_summaries=per_review,
    )
