"""Utility helpers for the restaurant finder backend."""

from __future__ import annotations

import math
import re
from typing import Optional


_JAPANESE_PATTERN = re.compile(r"[\u3000-\u303F\u3040-\u309F\u30A0-\u30FF\uFF00-\uFFEF\u4E00-\u9FAF]")


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def strip_thinking_tokens(text: str) -> str:
    """Remove <think>...</think> blocks if present."""
    if not text:
        return text
    while True:
        start = text.find("<think>")
        if start == -1:
            break
        end = text.find("</think>", start)
        if end == -1:
            break
        text = text[:start] + text[end + len("</think>") :]
    return text


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers."""
    R = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


def is_japanese_text(text: str) -> bool:
    """True if the text contains hiragana, katakana, kanji or full-width forms."""
    return bool(text) and _JAPANESE_PATTERN.search(text) is not None


def format_distance(meters: Optional[float]) -> str:
    if meters is None:
        return "Unknown distance"
    if meters < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "Unknown time"
    return f"{round(seconds / 60)} min"
