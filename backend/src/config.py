from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # Places proxy (backend function in front of the places API)
    places_proxy_url: Optional[str] = Field(default=None)
    places_api_key: Optional[str] = Field(default=None)
    places_timeout: int = Field(default=15)
    details_timeout: float = Field(default=8.0)
    search_radius_m: int = Field(default=1500)
    search_category: str = Field(default="restaurant")
    distance_mode: str = Field(default="walking")

    # Photos
    maps_api_key: Optional[str] = Field(default=None)
    photo_base_url: str = Field(default="https://maps.googleapis.com/maps/api/place/photo")
    photo_max_width: int = Field(default=800)
    max_photos: int = Field(default=5)

    # Defaults
    lang_default: str = Field(default="en")
    fallback_lat: float = Field(default=35.9506)
    fallback_lng: float = Field(default=139.6917)
    fallback_label: str = Field(default="Iwatsuki, Saitama City")
    default_walk_minutes: int = Field(default=15)

    # Feed
    min_drinking_results: int = Field(default=5)
    max_auto_pages: int = Field(default=3)
    session_ttl_sec: int = Field(default=3600)
    keywords_file: Optional[str] = Field(default=None)

    # Summaries
    summary_endpoint_url: Optional[str] = Field(default=None)
    summary_api_key: Optional[str] = Field(default=None)
    summary_timeout: float = Field(default=8.0)

    # LLM (used by the summarize endpoint)
    local_llm: Optional[str] = Field(default=None)
    llm_provider: Optional[str] = Field(default=None)
    llm_api_key: Optional[str] = Field(default=None)
    llm_base_url: Optional[str] = Field(default=None)
    llm_model_id: Optional[str] = Field(default=None)
    # native ollama base (without /v1)
    ollama_base_url: str = Field(default="http://localhost:11434")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "places_proxy_url": os.getenv("PLACES_PROXY_URL"),
            "places_api_key": os.getenv("PLACES_API_KEY"),
            "places_timeout": os.getenv("PLACES_TIMEOUT"),
            "details_timeout": os.getenv("DETAILS_TIMEOUT"),
            "search_radius_m": os.getenv("SEARCH_RADIUS_M"),
            "search_category": os.getenv("SEARCH_CATEGORY"),
            "distance_mode": os.getenv("DISTANCE_MODE"),
            "maps_api_key": os.getenv("MAPS_API_KEY"),
            "photo_base_url": os.getenv("PHOTO_BASE_URL"),
            "photo_max_width": os.getenv("PHOTO_MAX_WIDTH"),
            "max_photos": os.getenv("MAX_PHOTOS"),
            "lang_default": os.getenv("LANG_DEFAULT"),
            "fallback_lat": os.getenv("FALLBACK_LAT"),
            "fallback_lng": os.getenv("FALLBACK_LNG"),
            "fallback_label": os.getenv("FALLBACK_LABEL"),
            "default_walk_minutes": os.getenv("DEFAULT_WALK_MINUTES"),
            "min_drinking_results": os.getenv("MIN_DRINKING_RESULTS"),
            "max_auto_pages": os.getenv("MAX_AUTO_PAGES"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
            "keywords_file": os.getenv("KEYWORDS_FILE"),
            "summary_endpoint_url": os.getenv("SUMMARY_ENDPOINT_URL"),
            "summary_api_key": os.getenv("SUMMARY_API_KEY"),
            "summary_timeout": os.getenv("SUMMARY_TIMEOUT"),
            # LLM
            "local_llm": os.getenv("LOCAL_LLM"),
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "llm_api_key": os.getenv("LLM_API_KEY"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
            "llm_model_id": os.getenv("LLM_MODEL_ID"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_places(self) -> None:
        if not self.places_proxy_url:
            raise ValueError("PLACES_PROXY_URL is required")

    def llm_enabled(self) -> bool:
        return bool(self.llm_provider or self.llm_base_url or self.local_llm)

    def log_summary(self) -> str:
        return (
            "places=%s proxy=%s timeout=%s radius_m=%s lang_default=%s summary_endpoint=%s llm=%s api_key=%s"
            % (
                bool(self.places_proxy_url),
                self.places_proxy_url,
                self.places_timeout,
                self.search_radius_m,
                self.lang_default,
                bool(self.summary_endpoint_url),
                self.llm_provider or ("local" if self.local_llm else "unset"),
                mask_secret(self.places_api_key),
            )
        )

    def sanitized_ollama_url(self) -> str:
        base = (self.ollama_base_url or "http://localhost:11434").rstrip("/")
        if not base.endswith("/v1"):
            base = f"{base}/v1"
        return base
