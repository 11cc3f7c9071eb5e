from __future__ import annotations

import os
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, List, Sequence, Union

from google import genai
from hello_agents import HelloAgentsLLM, ToolAwareSimpleAgent
from loguru import logger

from config import Configuration
from models import CategorySummary, Review
from utils import strip_thinking_tokens


SYSTEM_PROMPTS = {
    "en": (
        "You are a helpful assistant that analyzes restaurant reviews and provides concise summaries."
        " Extract key information about food quality, atmosphere, and service quality."
    ),
    "ja": (
        "あなたはレストランのレビューを分析し、簡潔な要約を提供する役立つアシスタントです。"
        "食品の質、雰囲気、およびサービスの質に関する重要な情報を抽出します。"
    ),
}

USER_PROMPTS = {
    "en": (
        "Analyze these restaurant reviews and provide:\n"
        "1. A concise overall summary in 1-2 sentences focusing primarily on food quality and atmosphere.\n"
        "2. Three specific categorized phrases:\n"
        '   - Cuisine: A phrase describing the type and quality of food (e.g., "Authentic Italian pasta", "Flavorful Thai curries")\n'
        '   - Atmosphere: A phrase describing the ambiance/vibe (e.g., "Cozy cafe setting", "Upscale modern decor")\n'
        '   - Service: A phrase describing staff and service quality (e.g., "Attentive friendly staff", "Prompt professional service")\n'
        "\nReviews:\n{reviews}"
    ),
    "ja": (
        "以下のレストランレビューを分析し、次の情報を提供してください：\n"
        "1. 主に食品の質と雰囲気に焦点を当てた、1〜2文の簡潔な全体的な要約。\n"
        "2. 以下の3つの特定のカテゴリーに分類されたフレーズ：\n"
        "   - 料理：食品の種類と質を説明するフレーズ（例：「本格的なイタリアンパスタ」、「風味豊かなタイカレー」）\n"
        "   - 雰囲気：雰囲気を説明するフレーズ（例：「居心地の良いカフェ」、「高級な現代的な装飾」）\n"
        "   - サービス：スタッフとサービスの質を説明するフレーズ（例：「気配りのある親切なスタッフ」、「迅速で専門的なサービス」）\n"
        "\nレビュー：\n{reviews}"
    ),
}

LABELS = {
    "en": {"cuisine": "Cuisine:", "atmosphere": "Atmosphere:", "service": "Service:"},
    "ja": {"cuisine": "料理：", "atmosphere": "雰囲気：", "service": "サービス："},
}
MISSING = {"en": "Not mentioned", "ja": "情報なし"}

_NUMBERED = re.compile(r"^[0-9]+\.\s*")

# model calls run here so a hung provider cannot hold the request thread
_LLM_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="summarizer")


def _lang(language: str) -> str:
    return "ja" if language == "ja" else "en"


def format_reviews(reviews: Sequence[Review]) -> str:
    return "\n\n".join(f'"{r.text}" (Rating: {r.rating:g}/5)' for r in reviews)


def build_prompts(reviews: Sequence[Review], language: str) -> tuple[str, str]:
    lang = _lang(language)
    return SYSTEM_PROMPTS[lang], USER_PROMPTS[lang].format(reviews=format_reviews(reviews))


def parse_summary_response(text: str, language: str) -> CategorySummary:
    """Pull the overall line and the three labelled phrases out of a model reply.

    The first non-empty line is the summary; labelled lines may appear anywhere,
    optionally behind list markers. Missing categories get the fallback label.
    """
    lang = _lang(language)
    labels = LABELS[lang]
    lines = [ln.strip() for ln in (text or "").splitlines() if ln.strip()]
    fields: Dict[str, str] = {}
    for line in lines:
        for name, label in labels.items():
            if name not in fields and label in line:
                fields[name] = line.split(label, 1)[1].strip().strip('"「」*').strip()
                break

    summary = ""
    if lines:
        summary = _NUMBERED.sub("", lines[0].lstrip("*- ")).strip()
    if not summary:
        summary = "レビューの要約を生成できませんでした。" if lang == "ja" else "Could not parse review summary."

    return CategorySummary(
        summary=summary,
        cuisine=fields.get("cuisine") or MISSING[lang],
        atmosphere=fields.get("atmosphere") or MISSING[lang],
        service=fields.get("service") or MISSING[lang],
    )


def _init_llm(cfg: Configuration) -> tuple[Union[genai.Client, HelloAgentsLLM], str]:
    """Initialize LLM with Gemini primary and Ollama fallback."""
    provider = (cfg.llm_provider or "").lower()

    if provider == "google" and cfg.llm_api_key:
        try:
            os.environ["GEMINI_API_KEY"] = cfg.llm_api_key
            client = genai.Client()
            logger.debug("Summarizer using Gemini model: {}", cfg.llm_model_id or "gemini-2.0-flash-exp")
            return client, "gemini"
        except Exception as e:
            logger.warning("Gemini initialization failed in summarizer: {}, falling back to Ollama", e)

    kw: Dict[str, Any] = {"temperature": 0.7}
    if cfg.llm_model_id or cfg.local_llm:
        kw["model"] = cfg.llm_model_id or cfg.local_llm
    if cfg.llm_provider:
        kw["provider"] = cfg.llm_provider
    if cfg.llm_base_url:
        kw["base_url"] = cfg.llm_base_url
    elif provider == "ollama":
        kw["base_url"] = cfg.sanitized_ollama_url()
    if cfg.llm_api_key:
        kw["api_key"] = cfg.llm_api_key
    return HelloAgentsLLM(**kw), "ollama"


class LLMSummarizer:
    """Summarizes reviews with the configured LLM. Raises on any failure."""

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self._client = None
        self._kind = ""

    def _ensure_client(self) -> None:
        if self._client is None:
            self._client, self._kind = _init_llm(self.cfg)

    def complete(self, system_prompt: str, prompt: str) -> str:
        self._ensure_client()
        if self._kind == "gemini":
            model_id = self.cfg.llm_model_id or "gemini-2.0-flash-exp"
            response = self._client.models.generate_content(  # type: ignore[union-attr]
                model=model_id,
                contents=f"{system_prompt}\n\n{prompt}",
            )
            raw = response.text
        else:
            agent = ToolAwareSimpleAgent(
                name="ReviewSummarizer",
                llm=self._client,
                system_prompt=system_prompt,
                enable_tool_calling=False,
            )
            raw = agent.run(prompt)
            agent.clear_history()
        return strip_thinking_tokens(raw or "")

    def summarize(self, reviews: Sequence[Review], language: str) -> CategorySummary:
        system_prompt, prompt = build_prompts(reviews, language)
        future = _LLM_POOL.submit(self.complete, system_prompt, prompt)
        try:
            text = future.result(timeout=self.cfg.summary_timeout)
        except FutureTimeout:
            future.cancel()
            raise TimeoutError(f"LLM summary timed out after {self.cfg.summary_timeout:g}s")
        if not text.strip():
            raise ValueError("empty response from LLM")
        return parse_summary_response(text, language)


def summarize_reviews_endpoint(
    cfg: Configuration,
    reviews: List[Review],
    language: str = "en",
    summarizer: LLMSummarizer | None = None,
) -> CategorySummary:
    """Server-side summarization; ValueError carries the message returned to the caller."""
    if not reviews:
        raise ValueError("Reviews array is required")
    if summarizer is None:
        if not cfg.llm_enabled():
            raise ValueError("LLM_PROVIDER or LOCAL_LLM is required")
        summarizer = LLMSummarizer(cfg)
    logger.info("Generating summary for {} reviews in {}", len(reviews), _lang(language))
    return summarizer.summarize(reviews, language)
