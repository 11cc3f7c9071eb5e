from __future__ import annotations

from typing import Optional

from config import Configuration
from services.classifier import KeywordSets
from services.feed import RestaurantFeed
from services.language import LanguageState
from services.places import PlacesClient
from services.session import BrowseSession, SessionManager


def open_session(
    manager: SessionManager,
    session_id: str,
    cfg: Configuration,
    client: PlacesClient,
    keywords: KeywordSets,
) -> BrowseSession:
    """Return the session for ``session_id``, creating a fresh one with default filters."""

    def factory() -> BrowseSession:
        feed = RestaurantFeed(cfg=cfg, client=client, keywords=keywords)
        return BrowseSession(feed=feed, language=LanguageState(cfg.lang_default))

    return manager.get_or_create(session_id, factory)


def session_language(manager: SessionManager, session_id: Optional[str], default: str = "en") -> str:
    """Active language for a session id, or ``default`` if there is no such session."""
    if not session_id:
        return default
    session = manager.get(session_id)
    return session.language.value if session else default


def reset_session(manager: SessionManager, session_id: Optional[str]) -> bool:
    """Clear state for a session id."""
    if not session_id:
        return False
    return manager.reset(session_id)
