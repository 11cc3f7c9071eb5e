from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from loguru import logger

from config import Configuration
from models import CategorySummary
from services.classifier import KeywordSets
from services.details import DetailView, build_detail_view
from services.feed import RestaurantFeed
from services.language import LanguageState
from services.places import PlacesClient
from services.review_summary import RemoteSummarizer
from services.reviews import LatestRequestGuard


@dataclass
class BrowseSession:
    """Everything one browser session owns: the feed, its language and cached summaries."""

    feed: RestaurantFeed
    language: LanguageState = field(default_factory=LanguageState)
    review_guard: LatestRequestGuard = field(default_factory=LatestRequestGuard)
    summaries: Dict[str, CategorySummary] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._unsubscribe = self.language.subscribe(self._on_language_change)

    def _on_language_change(self, language: str) -> None:
        logger.debug("clearing {} cached summaries for language {}", len(self.summaries), language)
        self.summaries.clear()

    def open_detail(
        self,
        cfg: Configuration,
        client: PlacesClient,
        place_id: str,
        *,
        review_sort: str = "recent",
        keywords: KeywordSets,
        remote: Optional[RemoteSummarizer] = None,
        with_review_summaries: bool = False,
    ) -> Optional[DetailView]:
        """Build a detail view; a result overtaken by a newer request for the same place is marked stale."""
        token = self.review_guard.begin(place_id)
        language = self.language.value
        scratch = dict(self.summaries)
        view = build_detail_view(
            cfg,
            client,
            place_id,
            review_sort=review_sort,
            language=language,
            keywords=keywords,
            remote=remote,
            summary_cache=scratch,
            with_review_summaries=with_review_summaries,
        )
        if view is None:
            return None
        if not self.review_guard.is_current(place_id, token) or language != self.language.value:
            logger.debug("discarding stale detail result for {}", place_id)
            view.stale = True
            return view
        self.summaries.update(scratch)
        return view


class SessionManager:
    """Simple in-memory session manager."""

    def __init__(self, ttl_sec: int = 3600) -> None:
        self._sessions: Dict[str, BrowseSession] = {}
        self._last_access: Dict[str, float] = {}
        self._lock = threading.Lock()
        self.ttl_sec = ttl_sec

    def get(self, session_id: str) -> Optional[BrowseSession]:
        self._cleanup()
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_access[session_id] = time.time()
            return session

    def get_or_create(self, session_id: str, factory: Callable[[], BrowseSession]) -> BrowseSession:
        if not session_id:
            raise ValueError("session id is required")
        self._cleanup()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = factory()
                self._sessions[session_id] = session
                logger.debug("created session {}", session_id)
            self._last_access[session_id] = time.time()
            return session

    def reset(self, session_id: str) -> bool:
        """Drop a session's state."""
        if not session_id:
            return False
        with self._lock:
            self._last_access.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        with self._lock:
            expired = [
                sid for sid, last in self._last_access.items()
                if now - last > self.ttl_sec
            ]
            for sid in expired:
                del self._sessions[sid]
                del self._last_access[sid]
        if expired:
            logger.debug("expired {} sessions", len(expired))
