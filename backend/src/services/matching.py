from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional

from models import DietaryMatch, FilterCriteria, RestaurantRecord


MAIN_FOOD_TYPES = frozenset({"restaurant", "food", "meal", "dinner", "lunch"})

# Type tags the upstream source uses for each single-select restriction.
RESTRICTION_TYPE_TAGS: Dict[str, frozenset[str]] = {
    "vegetarian": frozenset({"vegetarian", "vegetarian_restaurant"}),
    "vegan": frozenset({"vegan", "vegan_restaurant"}),
    "glutenFree": frozenset({"gluten_free", "gluten-free"}),
    "halal": frozenset({"halal", "halal_restaurant"}),
}

RESTRICTION_FLAGS: Dict[str, str] = {
    "vegetarian": "vegetarian",
    "vegan": "vegan",
    "glutenFree": "gluten_free",
    "halal": "halal",
}


def _dietary(record: RestaurantRecord) -> DietaryMatch:
    return record.derived.dietary_match if record.derived else DietaryMatch()


def _price_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    # zero or missing price level means "unknown", never excluded
    if not record.price_level:
        return True
    return record.price_level in criteria.price_levels


def _open_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    if not criteria.open_now_only:
        return True
    return record.open_now is not False


def _rating_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    return (record.rating or 0.0) >= criteria.min_rating


def _meal_type_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    if criteria.meal_type == "drinking":
        return record.is_drinking
    if record.is_drinking:
        return any(t in MAIN_FOOD_TYPES for t in record.types)
    return True


def _restriction_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    restriction = criteria.dietary_restriction
    if not restriction or restriction == "none":
        return True
    tags = RESTRICTION_TYPE_TAGS.get(restriction, frozenset())
    if any(t.lower() in tags for t in record.types):
        return True
    flag = RESTRICTION_FLAGS.get(restriction)
    return bool(flag and getattr(_dietary(record), flag))


def _preferences_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    wanted = [flag for flag, on in vars(criteria.dietary_preferences).items() if on]
    if not wanted:
        return True
    match = _dietary(record)
    # every selected preference must be satisfied
    return all(getattr(match, flag) for flag in wanted)


def _walk_time_ok(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    if criteria.max_walk_minutes is None or record.duration_seconds is None:
        return True
    return record.duration_seconds <= criteria.max_walk_minutes * 60


_RULES: List[Callable[[RestaurantRecord, FilterCriteria], bool]] = [
    _price_ok,
    _open_ok,
    _rating_ok,
    _meal_type_ok,
    _restriction_ok,
    _preferences_ok,
    _walk_time_ok,
]


def matches(record: RestaurantRecord, criteria: FilterCriteria) -> bool:
    return all(rule(record, criteria) for rule in _RULES)


def _sort_key(sort_key: str) -> Callable[[RestaurantRecord], float]:
    if sort_key == "rating":
        return lambda r: -(r.rating or 0.0)
    if sort_key == "priceAsc":
        return lambda r: float(r.price_level or 5)
    if sort_key == "priceDesc":
        return lambda r: -float(r.price_level or 0)
    return lambda r: r.distance_meters if r.distance_meters is not None else math.inf


def sort_restaurants(records: Iterable[RestaurantRecord], sort_key: str) -> List[RestaurantRecord]:
    """Stable sort; ties keep their upstream order."""
    return sorted(records, key=_sort_key(sort_key))


def filter_restaurants(
    records: Iterable[RestaurantRecord],
    criteria: FilterCriteria,
    *,
    limit: Optional[int] = None,
) -> List[RestaurantRecord]:
    kept = [r for r in records if matches(r, criteria)]
    ordered = sort_restaurants(kept, criteria.sort_key)
    if limit is not None:
        return ordered[: max(0, limit)]
    return ordered
