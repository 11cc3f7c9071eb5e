from __future__ import annotations

from typing import Optional, Tuple

from loguru import logger

from config import Configuration
from models import Location


def resolve_location(cfg: Configuration, lat: Optional[float], lng: Optional[float]) -> Tuple[Location, bool]:
    """Return the user's coordinates, or the configured fallback when unusable.

    The second element is True when the fallback was used.
    """
    if lat is None or lng is None or not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
        logger.info("location unavailable, using fallback {}", cfg.fallback_label)
        return Location(lat=cfg.fallback_lat, lng=cfg.fallback_lng), True
    return Location(lat=lat, lng=lng), False
