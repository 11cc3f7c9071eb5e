from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import Location, RestaurantRecord, Review, SearchPage
from utils import haversine_km


# average walking pace used when the distance matrix is unavailable
WALKING_METERS_PER_SECOND = 80.0 / 60.0
DETAIL_FIELDS = "reviews,opening_hours,photos,price_level,rating,user_ratings_total,types,geometry,vicinity,name"


class PlacesError(RuntimeError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_review(raw: Dict[str, Any]) -> Review:
    return Review(
        author=str(raw.get("author_name") or ""),
        rating=_to_float(raw.get("rating")) or 0.0,
        text=str(raw.get("text") or ""),
        timestamp_seconds=int(raw.get("time") or 0),
        relative_time_label=str(raw.get("relative_time_description") or ""),
    )


def parse_place(raw: Dict[str, Any]) -> Optional[RestaurantRecord]:
    """Turn one upstream place payload into a record, or None if it has no identity."""
    place_id = raw.get("place_id")
    ident = raw.get("id") or place_id
    if not ident:
        return None

    geometry = (raw.get("geometry") or {}).get("location") or {}
    location = None
    lat, lng = _to_float(geometry.get("lat")), _to_float(geometry.get("lng"))
    if lat is not None and lng is not None:
        location = Location(lat=lat, lng=lng)

    opening = raw.get("opening_hours") or {}
    open_now = opening.get("open_now") if isinstance(opening.get("open_now"), bool) else None

    price = raw.get("price_level")
    price_level = int(price) if isinstance(price, (int, float)) and not isinstance(price, bool) else None

    reviews = tuple(parse_review(r) for r in (raw.get("reviews") or []) if isinstance(r, dict))
    photos = tuple(
        str(p["photo_reference"]) for p in (raw.get("photos") or []) if isinstance(p, dict) and p.get("photo_reference")
    )

    return RestaurantRecord(
        id=str(ident),
        place_id=(str(place_id) if place_id else None),
        name=str(raw.get("name") or "Restaurant"),
        vicinity=str(raw.get("vicinity") or raw.get("formatted_address") or ""),
        rating=_to_float(raw.get("rating")),
        user_ratings_total=int(raw.get("user_ratings_total") or 0),
        price_level=price_level,
        types=tuple(str(t) for t in (raw.get("types") or [])),
        open_now=open_now,
        distance_meters=_to_float(raw.get("distance")),
        duration_seconds=_to_float(raw.get("duration")),
        reviews=reviews,
        location=location,
        photo_refs=photos,
    )


def estimate_distances(origin: Location, records: List[RestaurantRecord]) -> List[RestaurantRecord]:
    """Straight-line distance and walking time for records the matrix did not cover."""
    out: list[RestaurantRecord] = []
    for rec in records:
        if rec.distance_meters is not None or rec.location is None:
            out.append(rec)
            continue
        meters = haversine_km(origin.lat, origin.lng, rec.location.lat, rec.location.lng) * 1000.0
        out.append(replace(rec, distance_meters=round(meters, 1), duration_seconds=round(meters / WALKING_METERS_PER_SECOND)))
    return out


class PlacesClient:
    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.url = (cfg.places_proxy_url or "").rstrip("/")
        self.session = requests.Session()
        self._cache_ttl = 60 * 10  # 10 minutes
        self._cache_max = 128
        self._details_cache: OrderedDict[str, Tuple[float, RestaurantRecord]] = OrderedDict()

    def _cache_get(self, cache: OrderedDict[str, Tuple[float, Any]], key: str):  # type: ignore[valid-type]
        entry = cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            cache.pop(key, None)
            return None
        cache.move_to_end(key)
        return value

    def _cache_set(self, cache: OrderedDict[str, Tuple[float, Any]], key: str, value):  # type: ignore[valid-type]
        if len(cache) >= self._cache_max:
            cache.popitem(last=False)
        cache[key] = (time.time(), value)

    def _post(self, body: dict, *, timeout: Optional[float] = None) -> dict:
        if not self.url:
            raise PlacesError("places proxy url is not configured")
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.cfg.places_api_key:
            headers["Authorization"] = f"Bearer {self.cfg.places_api_key}"
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.post(self.url, json=body, headers=headers, timeout=timeout or self.cfg.places_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise PlacesError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise PlacesError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise PlacesError(f"upstream {resp.status_code}: {resp.text[:300]}")

            try:
                payload = resp.json()
            except ValueError:
                raise PlacesError("invalid json response")
            if not isinstance(payload, dict):
                raise PlacesError("unexpected response shape")
            if payload.get("error"):
                raise PlacesError(str(payload["error"]))
            return payload

    def search_nearby(self, location: Location, page_token: Optional[str] = None) -> SearchPage:
        body = {
            "action": "searchNearby",
            "location": {"lat": location.lat, "lng": location.lng},
            "radius": self.cfg.search_radius_m,
            "type": self.cfg.search_category,
            "pageToken": page_token,
        }
        logger.debug("searchNearby lat={} lng={} page_token={}", location.lat, location.lng, bool(page_token))
        payload = self._post(body)
        results = [r for r in (parse_place(raw) for raw in (payload.get("results") or []) if isinstance(raw, dict)) if r]
        return SearchPage(results=results, next_page_token=payload.get("next_page_token") or None)

    def get_details(self, place_id: str, review_sort: str = "recent") -> Optional[RestaurantRecord]:
        key = f"details:{place_id}:{review_sort}"
        cached = self._cache_get(self._details_cache, key)
        if cached is not None:
            return cached
        body = {
            "action": "getDetails",
            "placeId": place_id,
            "fields": DETAIL_FIELDS,
            "reviewSort": review_sort,
        }
        payload = self._post(body, timeout=self.cfg.details_timeout)
        raw = payload.get("result")
        if not isinstance(raw, dict):
            return None
        raw.setdefault("place_id", place_id)
        record = parse_place(raw)
        if record is not None:
            self._cache_set(self._details_cache, key, record)
        return record

    def calculate_distances(self, origin: Location, records: List[RestaurantRecord]) -> List[RestaurantRecord]:
        """Attach walking distance/duration; never raises, degrades to estimates."""
        targets = [r for r in records if r.location is not None]
        if not targets:
            return records
        body = {
            "action": "calculateDistances",
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": [f"{r.location.lat},{r.location.lng}" for r in targets],  # type: ignore[union-attr]
            "mode": self.cfg.distance_mode,
        }
        try:
            payload = self._post(body)
            elements = ((payload.get("rows") or [{}])[0] or {}).get("elements") or []
        except (PlacesError, AttributeError, IndexError) as exc:
            logger.warning("distance matrix unavailable, using estimates: {}", exc)
            return estimate_distances(origin, records)

        by_id: dict[str, RestaurantRecord] = {}
        for rec, element in zip(targets, elements):
            if isinstance(element, dict) and element.get("status") == "OK":
                by_id[rec.id] = replace(
                    rec,
                    distance_meters=_to_float((element.get("distance") or {}).get("value")),
                    duration_seconds=_to_float((element.get("duration") or {}).get("value")),
                )
        merged = [by_id.get(r.id, r) for r in records]
        return estimate_distances(origin, merged)
