from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from loguru import logger

from models import DerivedAttributes, DietaryMatch, RestaurantRecord


DRINKING_KEYWORDS = [
    "bar", "pub", "izakaya", "night_club", "snack_bar", "liquor_store", "karaoke",
    "lounge", "tavern", "gastropub", "great drinks", "cocktails", "wide sake selection",
    "beer menu", "happy hour", "all-you-can-drink", "nomihodai", "whiskey bar",
    "drinking with coworkers", "after work spot", "chill vibe", "good for groups",
    "open late", "second party", "2次会", "private room", "karaoke after dinner",
    "great for drinking", "not for food", "beer", "bottles", "drink menus",
    "dim lighting", "neon lights", "bar counter", "drinks toast", "snack food",
    "二次会にぴったり", "飲み放題", "雰囲気がいい", "落ち着いたバー", "深夜まで営業",
    "会社帰りに", "友達と飲みに行った", "居酒屋", "yakitori",
]

DIETARY_KEYWORDS: Dict[str, list[str]] = {
    "vegan": ["vegan", "plant-based", "plant based", "ビーガン", "ヴィーガン"],
    "vegetarian": ["vegetarian", "veggie", "meatless", "ベジタリアン", "菜食", "精進料理"],
    "gluten_free": ["gluten-free", "gluten free", "gluten_free", "celiac", "coeliac", "グルテンフリー"],
    "low_carb": ["low-carb", "low carb", "keto", "低糖質", "糖質制限"],
    "no_seafood": ["no seafood", "seafood-free", "steakhouse", "steak_house", "yakiniku", "焼肉"],
    "no_raw_food": ["no raw", "fully cooked", "grill", "barbecue", "bbq", "yakitori", "焼き鳥"],
    "halal": ["halal", "muslim-friendly", "muslim friendly", "ハラール", "ハラル"],
}


def _normalize(keywords: Iterable[str]) -> FrozenSet[str]:
    return frozenset(k.strip().lower() for k in keywords if k and k.strip())


@dataclass(frozen=True)
class KeywordSets:
    """Lowercase keyword sets driving the heuristic classification."""

    drinking: FrozenSet[str] = field(default_factory=lambda: _normalize(DRINKING_KEYWORDS))
    dietary: Mapping[str, FrozenSet[str]] = field(
        default_factory=lambda: {flag: _normalize(kws) for flag, kws in DIETARY_KEYWORDS.items()}
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "KeywordSets":
        """Build keyword sets from a mapping; missing categories keep the defaults."""
        base = cls()
        drinking = base.drinking
        raw_drinking = data.get("drinking")
        if isinstance(raw_drinking, list):
            drinking = _normalize(str(x) for x in raw_drinking)

        dietary = dict(base.dietary)
        raw_dietary = data.get("dietary")
        if isinstance(raw_dietary, dict):
            for flag, kws in raw_dietary.items():
                if flag in dietary and isinstance(kws, list):
                    dietary[flag] = _normalize(str(x) for x in kws)
        return cls(drinking=drinking, dietary=dietary)


DEFAULT_KEYWORDS = KeywordSets()


def load_keywords(path: Optional[str]) -> KeywordSets:
    """Load keyword overrides from a JSON file, falling back to the defaults."""
    if not path:
        return DEFAULT_KEYWORDS
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("keyword file {} unusable, using defaults: {}", path, exc)
        return DEFAULT_KEYWORDS
    if not isinstance(data, dict):
        logger.warning("keyword file {} is not a JSON object, using defaults", path)
        return DEFAULT_KEYWORDS
    return KeywordSets.from_mapping(data)


def build_haystack(record: RestaurantRecord) -> str:
    parts: list[str] = list(record.types)
    parts.extend([record.name or "", record.vicinity or ""])
    parts.extend(review.text for review in record.reviews if review.text)
    return " ".join(p for p in parts if p).lower()


def _contains_any(haystack: str, keywords: Iterable[str]) -> bool:
    return any(kw in haystack for kw in keywords)


def classify(record: RestaurantRecord, keywords: KeywordSets = DEFAULT_KEYWORDS) -> RestaurantRecord:
    """Return a copy of ``record`` with derived attributes attached.

    Matching is a loose substring test over types, name, vicinity and review
    texts, so "bar" also hits "barbecue". Recall is preferred over precision.
    """
    haystack = build_haystack(record)
    if not haystack:
        return replace(record, derived=DerivedAttributes())

    flags = {flag: _contains_any(haystack, kws) for flag, kws in keywords.dietary.items()}
    if flags.get("vegan"):
        flags["vegetarian"] = True

    derived = DerivedAttributes(
        is_drinking_establishment=_contains_any(haystack, keywords.drinking),
        dietary_match=DietaryMatch(**{k: v for k, v in flags.items() if k in DietaryMatch.__dataclass_fields__}),
    )
    return replace(record, derived=derived)


def classify_all(records: Iterable[RestaurantRecord], keywords: KeywordSets = DEFAULT_KEYWORDS) -> list[RestaurantRecord]:
    return [classify(r, keywords) for r in records]
