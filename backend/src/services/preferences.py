from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Optional, Union

from loguru import logger

from models import (
    ALL_PRICE_LEVELS,
    DIETARY_RESTRICTIONS,
    LANGUAGES,
    MEAL_TYPES,
    SORT_KEYS,
    DietaryPreference,
    DiningPreferences,
    FilterCriteria,
)

PREFERENCES_STORAGE_KEY = "diningPreferences"
LANGUAGE_STORAGE_KEY = "preferredLanguage"

DIETARY_FLAG_NAMES = {
    "vegan": "vegan",
    "vegetarian": "vegetarian",
    "glutenFree": "gluten_free",
    "gluten_free": "gluten_free",
    "lowCarb": "low_carb",
    "low_carb": "low_carb",
    "noSeafood": "no_seafood",
    "no_seafood": "no_seafood",
    "noRawFood": "no_raw_food",
    "no_raw_food": "no_raw_food",
    "halal": "halal",
}


def parse_language(raw: Any) -> str:
    value = str(raw).strip().lower() if raw else ""
    return value if value in LANGUAGES else "en"


def price_range(low: int, high: int) -> frozenset[int]:
    if low > high:
        low, high = high, low
    low, high = max(1, low), min(4, high)
    if low > high:
        raise ValueError("price range must overlap 1-4")
    return frozenset(range(low, high + 1))


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_budget(value: Any) -> Optional[tuple[int, int]]:
    if not isinstance(value, list) or len(value) != 2:
        return None
    low, high = _as_int(value[0]), _as_int(value[1])
    if low is None or high is None:
        return None
    try:
        levels = price_range(low, high)
    except ValueError:
        return None
    return (min(levels), max(levels))


def _parse_minutes(value: Any) -> Optional[int]:
    if isinstance(value, list):
        value = value[0] if value else None
    minutes = _as_int(value) if value is not None else None
    if minutes is None or minutes <= 0:
        return None
    return minutes


def parse_dietary(value: Any) -> DietaryPreference:
    if not isinstance(value, dict):
        return DietaryPreference()
    flags = {}
    for key, on in value.items():
        name = DIETARY_FLAG_NAMES.get(str(key))
        if name:
            flags[name] = bool(on)
    return DietaryPreference(**flags)


def parse_dining_preferences(raw: Union[str, bytes, dict, None]) -> Optional[DiningPreferences]:
    """Best-effort read of the persisted preference blob; malformed input yields None."""
    if raw is None or raw == "" or raw == b"":
        return None
    data: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Error parsing saved preferences: {}", exc)
            return None
    if not isinstance(data, dict):
        logger.warning("Saved preferences are not an object: {}", type(data).__name__)
        return None

    meal_type = data.get("mealType")
    return DiningPreferences(
        budget=_parse_budget(data.get("budget")),
        max_walk_minutes=_parse_minutes(data.get("maxDistance")),
        meal_type=(meal_type if meal_type in MEAL_TYPES else None),
        dietary=parse_dietary(data.get("dietary")),
    )


def apply_preferences(criteria: FilterCriteria, prefs: DiningPreferences) -> FilterCriteria:
    changes: dict[str, Any] = {"dietary_preferences": prefs.dietary}
    if prefs.meal_type:
        changes["meal_type"] = prefs.meal_type
    if prefs.budget:
        changes["price_levels"] = price_range(*prefs.budget)
    if prefs.max_walk_minutes:
        changes["max_walk_minutes"] = prefs.max_walk_minutes
    return replace(criteria, **changes)


def update_criteria(criteria: FilterCriteria, changes: dict[str, Any]) -> FilterCriteria:
    """Merge a partial filter update, rejecting unknown values with ValueError."""
    updates: dict[str, Any] = {}

    if changes.get("meal_type") is not None:
        if changes["meal_type"] not in MEAL_TYPES:
            raise ValueError(f"unknown meal type: {changes['meal_type']}")
        updates["meal_type"] = changes["meal_type"]

    if changes.get("dietary_restriction") is not None:
        if changes["dietary_restriction"] not in DIETARY_RESTRICTIONS:
            raise ValueError(f"unknown dietary restriction: {changes['dietary_restriction']}")
        updates["dietary_restriction"] = changes["dietary_restriction"]

    if changes.get("dietary_preferences") is not None:
        updates["dietary_preferences"] = parse_dietary(changes["dietary_preferences"])

    if changes.get("sort_key") is not None:
        if changes["sort_key"] not in SORT_KEYS:
            raise ValueError(f"unknown sort key: {changes['sort_key']}")
        updates["sort_key"] = changes["sort_key"]

    if changes.get("price_levels") is not None:
        levels = frozenset(int(x) for x in changes["price_levels"])
        if not levels or not levels <= ALL_PRICE_LEVELS:
            raise ValueError("price levels must be a non-empty subset of 1-4")
        updates["price_levels"] = levels
    elif changes.get("price_min") is not None or changes.get("price_max") is not None:
        current = criteria.price_levels or ALL_PRICE_LEVELS
        low = changes.get("price_min") if changes.get("price_min") is not None else min(current)
        high = changes.get("price_max") if changes.get("price_max") is not None else max(current)
        updates["price_levels"] = price_range(int(low), int(high))

    if changes.get("min_rating") is not None:
        rating = float(changes["min_rating"])
        if not 0.0 <= rating <= 5.0:
            raise ValueError("min rating must be between 0 and 5")
        updates["min_rating"] = round(rating * 2) / 2

    if changes.get("open_now_only") is not None:
        updates["open_now_only"] = bool(changes["open_now_only"])

    if changes.get("max_walk_minutes") is not None:
        minutes = _parse_minutes(changes["max_walk_minutes"])
        if minutes is None:
            raise ValueError("max walk minutes must be positive")
        updates["max_walk_minutes"] = minutes

    return replace(criteria, **updates)
