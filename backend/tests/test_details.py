from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from config import Configuration
from models import CategorySummary, RestaurantRecord, Review
from services.details import build_detail_view, photo_urls
from services.places import PlacesError
from services.location import resolve_location
from utils import format_distance, format_duration, is_japanese_text


def _record(**kw) -> RestaurantRecord:
    base = {"id": "pid", "place_id": "pid", "name": "Green Leaf & Co", "types": ("restaurant",)}
    base.update(kw)
    return RestaurantRecord(**base)


def test_photo_urls_capped_and_keyed() -> None:
    cfg = Configuration(maps_api_key="maps-key")
    urls = photo_urls(cfg, _record(photo_refs=tuple(f"ref{i}" for i in range(7))))
    assert len(urls) == 5
    assert urls[0] == "https://maps.googleapis.com/maps/api/place/photo?maxwidth=800&photoreference=ref0&key=maps-key"


def test_photo_placeholder_carries_name() -> None:
    urls = photo_urls(Configuration(), _record())
    assert urls == ["https://via.placeholder.com/800x600/F4D35E/2D3047?text=Green%20Leaf%20%26%20Co"]


def test_detail_view_classifies_and_summarizes() -> None:
    client = MagicMock()
    client.get_details.return_value = _record(
        reviews=(Review(author="a", rating=5, text="Fully vegan menu", timestamp_seconds=5),)
    )
    remote = MagicMock()
    remote.summarize.return_value = CategorySummary("Remote", "c", "a", "s")

    view = build_detail_view(Configuration(), client, "pid", review_sort="helpful", language="en", remote=remote)

    assert view is not None
    client.get_details.assert_called_once_with("pid", "helpful")
    assert view.record.derived.dietary_match.vegan
    assert view.summary.summary == "Remote"
    assert view.review_summaries == []


def test_detail_view_review_summaries_keep_japanese() -> None:
    client = MagicMock()
    client.get_details.return_value = _record(
        reviews=(
            Review(author="a", rating=4, text="落ち着いた雰囲気", timestamp_seconds=2),
            Review(author="b", rating=4, text="", timestamp_seconds=1),
        )
    )
    view = build_detail_view(Configuration(), client, "pid", language="ja", with_review_summaries=True)
    assert view.review_summaries == ["落ち着いた雰囲気", ""]
    assert view.summary.summary.startswith("料理の質は")


def test_detail_view_upstream_failure_returns_none() -> None:
    client = MagicMock()
    client.get_details.side_effect = PlacesError("timeout")
    assert build_detail_view(Configuration(), client, "pid") is None


def test_detail_view_rejects_unknown_sort() -> None:
    with pytest.raises(ValueError):
        build_detail_view(Configuration(), MagicMock(), "pid", review_sort="oldest")


def test_resolve_location_fallback() -> None:
    cfg = Configuration()
    loc, fallback = resolve_location(cfg, None, 139.0)
    assert fallback is True
    assert (loc.lat, loc.lng) == (35.9506, 139.6917)
    loc, fallback = resolve_location(cfg, 91.0, 0.0)
    assert fallback is True
    loc, fallback = resolve_location(cfg, 35.0, 139.0)
    assert fallback is False and loc.lat == 35.0


def test_text_helpers() -> None:
    assert is_japanese_text("ラーメン")
    assert not is_japanese_text("ramen")
    assert not is_japanese_text("")
    assert format_distance(450) == "450 m"
    assert format_distance(1530) == "1.5 km"
    assert format_duration(600) == "10 min"
    assert format_duration(None) == "Unknown time"
