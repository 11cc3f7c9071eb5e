from __future__ import annotations

from typing import Callable, List

from loguru import logger

from services.preferences import parse_language


Listener = Callable[[str], None]


class LanguageState:
    """Holds the session's active language and notifies listeners on change."""

    def __init__(self, initial: str = "en") -> None:
        self._value = parse_language(initial)
        self._listeners: List[Listener] = []

    @property
    def value(self) -> str:
        return self._value

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, language: str) -> str:
        new = parse_language(language)
        if new == self._value:
            return new
        logger.debug("language changed {} -> {}", self._value, new)
        self._value = new
        for listener in list(self._listeners):
            listener(new)
        return new
