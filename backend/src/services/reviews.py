from __future__ import annotations

import threading
from typing import Dict, Hashable, Iterable, List

from models import REVIEW_SORTS, Review


def sort_reviews(reviews: Iterable[Review], option: str = "recent") -> List[Review]:
    """Order reviews for display.

    ``recent`` is newest first; ``helpful`` ranks by rating, then recency.
    """
    if option not in REVIEW_SORTS:
        raise ValueError(f"unknown review sort: {option}")
    if option == "helpful":
        return sorted(reviews, key=lambda r: (r.rating, r.timestamp_seconds), reverse=True)
    return sorted(reviews, key=lambda r: r.timestamp_seconds, reverse=True)


class LatestRequestGuard:
    """Tracks the newest request per slot so older results can be discarded."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: Dict[Hashable, int] = {}

    def begin(self, slot: Hashable) -> int:
        with self._lock:
            token = self._latest.get(slot, 0) + 1
            self._latest[slot] = token
            return token

    def is_current(self, slot: Hashable, token: int) -> bool:
        with self._lock:
            return self._latest.get(slot) == token
