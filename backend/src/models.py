"""Data models for the restaurant finder backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

MEAL_TYPES = ("main", "drinking")
DIETARY_RESTRICTIONS = ("none", "vegetarian", "vegan", "glutenFree", "halal")
SORT_KEYS = ("distance", "rating", "priceAsc", "priceDesc")
REVIEW_SORTS = ("recent", "helpful")
LANGUAGES = ("en", "ja")
ALL_PRICE_LEVELS: FrozenSet[int] = frozenset({1, 2, 3, 4})


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float


@dataclass(frozen=True)
class Review:
    author: str
    rating: float
    text: str
    timestamp_seconds: int = 0
    relative_time_label: str = ""


@dataclass(frozen=True)
class DietaryMatch:
    vegan: bool = False
    vegetarian: bool = False
    gluten_free: bool = False
    low_carb: bool = False
    no_seafood: bool = False
    no_raw_food: bool = False
    halal: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {
            "vegan": self.vegan,
            "vegetarian": self.vegetarian,
            "glutenFree": self.gluten_free,
            "lowCarb": self.low_carb,
            "noSeafood": self.no_seafood,
            "noRawFood": self.no_raw_food,
            "halal": self.halal,
        }


# Preference form flags share the same shape as the derived match flags.
DietaryPreference = DietaryMatch


@dataclass(frozen=True)
class DerivedAttributes:
    is_drinking_establishment: bool = False
    dietary_match: DietaryMatch = field(default_factory=DietaryMatch)


@dataclass(frozen=True)
class RestaurantRecord:
    id: str
    name: str
    vicinity: str = ""
    place_id: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: int = 0
    price_level: Optional[int] = None
    types: tuple[str, ...] = ()
    open_now: Optional[bool] = None
    distance_meters: Optional[float] = None
    duration_seconds: Optional[float] = None
    reviews: tuple[Review, ...] = ()
    location: Optional[Location] = None
    photo_refs: tuple[str, ...] = ()
    derived: Optional[DerivedAttributes] = None

    @property
    def is_drinking(self) -> bool:
        return bool(self.derived and self.derived.is_drinking_establishment)


@dataclass
class FilterCriteria:
    meal_type: str = "main"
    dietary_restriction: str = "none"
    dietary_preferences: DietaryPreference = field(default_factory=DietaryPreference)
    price_levels: FrozenSet[int] = ALL_PRICE_LEVELS
    min_rating: float = 0.0
    open_now_only: bool = False
    sort_key: str = "distance"
    max_walk_minutes: Optional[int] = None


@dataclass
class DiningPreferences:
    budget: Optional[tuple[int, int]] = None
    max_walk_minutes: Optional[int] = None
    meal_type: Optional[str] = None
    dietary: DietaryPreference = field(default_factory=DietaryPreference)


@dataclass
class CategorySummary:
    summary: str
    cuisine: str
    atmosphere: str
    service: str

    def as_dict(self) -> dict[str, str]:
        return {
            "summary": self.summary,
            "cuisine": self.cuisine,
            "atmosphere": self.atmosphere,
            "service": self.service,
        }


@dataclass
class SearchPage:
    results: list[RestaurantRecord]
    next_page_token: Optional[str] = None
