from __future__ import annotations

import threading
from dataclasses import astuple, dataclass, field
from typing import Hashable, List, Optional

from loguru import logger

from config import Configuration
from models import DiningPreferences, FilterCriteria, Location, RestaurantRecord
from services.classifier import DEFAULT_KEYWORDS, KeywordSets, classify_all
from services.matching import filter_restaurants
from services.places import PlacesClient, PlacesError
from services.preferences import apply_preferences, update_criteria


class AutoPaginator:
    """Decides when a scarce drinking view should pull one more upstream page.

    A decision is remembered by (list version, criteria) so evaluating the same
    inputs twice never fires twice; only a new page or a filter change re-arms it.
    """

    def __init__(self, threshold: int = 5) -> None:
        self.threshold = threshold
        self._last_fired: Optional[Hashable] = None

    def should_fetch(
        self,
        *,
        meal_type: str,
        filtered_count: int,
        has_more: bool,
        is_loading: bool,
        list_version: int,
        criteria_key: Hashable,
    ) -> bool:
        if meal_type != "drinking":
            return False
        if filtered_count >= self.threshold or not has_more or is_loading:
            return False
        key = (list_version, criteria_key)
        if key == self._last_fired:
            return False
        self._last_fired = key
        return True

    def reset(self) -> None:
        self._last_fired = None


@dataclass
class FeedView:
    restaurants: List[RestaurantRecord]
    total_fetched: int
    has_more: bool
    loading: bool
    notice: Optional[str] = None
    auto_loaded_pages: int = 0


@dataclass
class RestaurantFeed:
    """Per-session restaurant list: fetched pages, filters and auto-pagination."""

    cfg: Configuration
    client: PlacesClient
    keywords: KeywordSets = DEFAULT_KEYWORDS
    location: Optional[Location] = None
    restaurants: List[RestaurantRecord] = field(default_factory=list)
    next_page_token: Optional[str] = None
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    notice: Optional[str] = None
    version: int = 0
    preferences_loaded: bool = False

    def __post_init__(self) -> None:
        if self.criteria.max_walk_minutes is None:
            self.criteria.max_walk_minutes = self.cfg.default_walk_minutes
        self.paginator = AutoPaginator(self.cfg.min_drinking_results)
        self._fetch_lock = threading.Lock()
        self._state_lock = threading.Lock()

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token)

    @property
    def loading(self) -> bool:
        return self._fetch_lock.locked()

    def _bump(self) -> None:
        with self._state_lock:
            self.version += 1

    def set_location(self, location: Location) -> bool:
        """Drop everything fetched so far and load the first page for ``location``.

        The version moves before waiting on an in-flight fetch, so that fetch
        discards its page instead of appending it to the new location's list.
        """
        with self._state_lock:
            self.location = location
            self.version += 1
        with self._fetch_lock:
            if self.location is not location:
                # a newer location is queued behind us and will do the fetch
                return False
            self.restaurants = []
            self.next_page_token = None
            self.notice = None
            self.paginator.reset()
            return self._fetch_locked(None)

    def load_more(self) -> bool:
        if not self._fetch_lock.acquire(blocking=False):
            return False
        try:
            if not self.has_more:
                return False
            return self._fetch_locked(self.next_page_token)
        finally:
            self._fetch_lock.release()

    def _fetch_locked(self, page_token: Optional[str]) -> bool:
        """Fetch one page; the caller holds ``_fetch_lock``."""
        location, started = self.location, self.version
        if location is None:
            logger.info("cannot fetch restaurants: no location set")
            return False
        try:
            page = self.client.search_nearby(location, page_token)
            records = self.client.calculate_distances(location, page.results)
            records = classify_all(records, self.keywords)
        except PlacesError as exc:
            logger.warning("restaurant fetch failed (page_token={}): {}", bool(page_token), exc)
            if self.version == started:
                self.notice = f"Failed to fetch restaurants: {exc}"
            return False

        if self.version != started:
            logger.info("discarding page fetched for a superseded location")
            return False
        self.restaurants = self.restaurants + records if page_token else records
        self.next_page_token = page.next_page_token
        self.notice = None
        self._bump()
        logger.info(
            "fetched {} restaurants (total={} more={})",
            len(records),
            len(self.restaurants),
            self.has_more,
        )
        return True

    def hydrate(self, prefs: Optional[DiningPreferences]) -> bool:
        """Apply persisted preferences once per session."""
        if self.preferences_loaded or prefs is None:
            return False
        self.criteria = apply_preferences(self.criteria, prefs)
        self.preferences_loaded = True
        return True

    def update_filters(self, changes: dict) -> FilterCriteria:
        self.criteria = update_criteria(self.criteria, changes)
        return self.criteria

    def view(self) -> FeedView:
        filtered = filter_restaurants(self.restaurants, self.criteria)
        attempts = 0
        loaded = 0
        while attempts < self.cfg.max_auto_pages and self.paginator.should_fetch(
            meal_type=self.criteria.meal_type,
            filtered_count=len(filtered),
            has_more=self.has_more,
            is_loading=self.loading,
            list_version=self.version,
            criteria_key=astuple(self.criteria),
        ):
            logger.info(
                "filter requires more drinking results ({}/{}), loading another page",
                len(filtered),
                self.paginator.threshold,
            )
            attempts += 1
            if not self.load_more():
                break
            loaded += 1
            filtered = filter_restaurants(self.restaurants, self.criteria)

        return FeedView(
            restaurants=filtered,
            total_fetched=len(self.restaurants),
            has_more=self.has_more,
            loading=self.loading,
            notice=self.notice,
            auto_loaded_pages=loaded,
        )
