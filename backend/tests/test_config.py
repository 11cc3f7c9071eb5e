from __future__ import annotations

import pytest

from config import Configuration
from utils import mask_secret, strip_thinking_tokens


def test_from_env_reads_and_coerces(monkeypatch) -> None:
    monkeypatch.setenv("PLACES_PROXY_URL", "https://proxy.test/places")
    monkeypatch.setenv("MIN_DRINKING_RESULTS", "7")
    monkeypatch.setenv("FALLBACK_LAT", "35.5")
    cfg = Configuration.from_env({"lang_default": "ja", "max_auto_pages": None})
    assert cfg.places_proxy_url == "https://proxy.test/places"
    assert cfg.min_drinking_results == 7
    assert cfg.fallback_lat == 35.5
    assert cfg.lang_default == "ja"
    assert cfg.max_auto_pages == 3


def test_require_places(monkeypatch) -> None:
    monkeypatch.delenv("PLACES_PROXY_URL", raising=False)
    with pytest.raises(ValueError):
        Configuration.from_env().require_places()


def test_log_summary_masks_key() -> None:
    cfg = Configuration(places_proxy_url="https://proxy.test", places_api_key="abcdefghijklmnop")
    summary = cfg.log_summary()
    assert "abcd...mnop" in summary
    assert "abcdefghijklmnop" not in summary
    assert mask_secret(None) == "unset"


def test_llm_settings() -> None:
    assert not Configuration().llm_enabled()
    assert Configuration(local_llm="qwen2.5").llm_enabled()
    assert Configuration(ollama_base_url="http://ollama:11434/").sanitized_ollama_url() == "http://ollama:11434/v1"


def test_strip_thinking_tokens() -> None:
    assert strip_thinking_tokens("<think>plan</think>Answer") == "Answer"
    assert strip_thinking_tokens("no tags") == "no tags"
