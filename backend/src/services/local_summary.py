"""Deterministic review summaries used when the remote summarizer is unavailable.

Everything here is keyword matching over the review text: no randomness and no
network, so the same reviews always produce the same summary.
"""

from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple

from models import CategorySummary, Review
from utils import is_japanese_text


FOOD_KEYWORDS = [
    "food", "dish", "taste", "flavor", "delicious", "portion", "meal", "cuisine",
    "menu", "appetizer", "dessert", "entree", "drink", "chef",
]
ATMOSPHERE_KEYWORDS = [
    "atmosphere", "ambiance", "decor", "interior", "vibe", "music", "noise", "setting",
    "environment", "mood", "quiet", "loud", "casual", "formal", "elegant", "cozy",
]
SERVICE_KEYWORDS = [
    "service", "staff", "server", "waiter", "waitress", "host", "hostess", "friendly",
    "attentive", "prompt", "helpful", "rude", "slow", "fast", "efficient",
]

CUISINE_TYPES = [
    "italian", "japanese", "chinese", "mexican", "thai", "indian", "french",
    "greek", "american", "korean", "vietnamese", "mediterranean", "spanish",
    "turkish", "middle eastern", "brazilian", "peruvian", "ethiopian", "fusion",
    "sushi", "pizza", "burger", "steak", "seafood", "vegetarian", "vegan",
    "gluten-free", "healthy", "fast food", "fine dining", "café", "bakery",
    "brunch", "breakfast", "lunch", "dinner", "dessert", "ice cream",
]
ATMOSPHERE_TYPES = [
    "casual", "elegant", "upscale", "fancy", "cozy", "intimate", "romantic",
    "family-friendly", "loud", "quiet", "vibrant", "lively", "relaxed", "trendy",
    "hip", "modern", "traditional", "rustic", "chic", "vintage", "fine dining",
    "fast casual", "outdoor", "rooftop", "waterfront", "view", "hidden gem",
]

CUISINE_INFERENCE: List[Tuple[str, List[str]]] = [
    ("Italian", ["pasta", "pizza", "italian", "lasagna", "risotto", "gelato"]),
    ("Japanese", ["sushi", "ramen", "japanese", "tempura", "sashimi", "teriyaki"]),
    ("Mexican", ["taco", "burrito", "mexican", "enchilada", "quesadilla", "salsa"]),
    ("Indian", ["curry", "indian", "naan", "tikka", "masala", "samosa"]),
    ("Chinese", ["stir-fry", "chinese", "dimsum", "dumpling", "wonton", "spring roll"]),
    ("American", ["burger", "fries", "american", "sandwich", "steak", "bbq"]),
    ("Mediterranean", ["hummus", "falafel", "mediterranean", "kebab", "shawarma", "pita"]),
]
ATMOSPHERE_INFERENCE: List[Tuple[str, List[str]]] = [
    ("Elegant", ["fancy", "elegant", "upscale", "classy", "sophisticated", "luxury"]),
    ("Casual", ["casual", "relaxed", "laid-back", "chill", "informal"]),
    ("Cozy", ["cozy", "intimate", "warm", "comfortable", "homey"]),
    ("Lively", ["noisy", "loud", "busy", "crowded", "energetic", "vibrant"]),
    ("Quiet", ["quiet", "peaceful", "calm", "tranquil", "serene"]),
    ("Modern", ["modern", "trendy", "hip", "stylish", "chic"]),
    ("Traditional", ["traditional", "authentic", "classic", "old-school"]),
    ("Family-friendly", ["family", "kid", "child"]),
]
SERVICE_INFERENCE: List[Tuple[str, List[str]]] = [
    ("Friendly", ["friendly", "welcoming", "kind", "nice", "pleasant"]),
    ("Attentive", ["attentive", "helpful", "responsive", "efficient"]),
    ("Slow", ["slow", "waited", "long time", "forever"]),
    ("Quick", ["fast", "quick", "speedy", "prompt", "rapid"]),
    ("Unfriendly", ["rude", "unfriendly", "impolite", "disrespectful"]),
    ("Professional", ["professional", "polished", "courteous"]),
]

JA_LABELS: Dict[str, str] = {
    "Italian": "イタリアン",
    "Japanese": "和食",
    "Mexican": "メキシカン",
    "Indian": "インド料理",
    "Chinese": "中華料理",
    "American": "アメリカン",
    "Mediterranean": "地中海料理",
    "Local cuisine": "地元料理",
    "General cuisine": "一般的な料理",
    "Elegant": "エレガント",
    "Casual": "カジュアル",
    "Cozy": "居心地の良い",
    "Lively": "賑やか",
    "Quiet": "静か",
    "Modern": "モダン",
    "Traditional": "伝統的",
    "Family-friendly": "家族向け",
    "Friendly": "親切",
    "Attentive": "丁寧",
    "Slow": "遅い",
    "Quick": "迅速",
    "Unfriendly": "不親切",
    "Professional": "プロフェッショナル",
    "Standard": "標準的",
    "Upscale": "高級",
    "Fancy": "華やか",
    "Intimate": "こぢんまりとした",
    "Romantic": "ロマンチック",
    "Loud": "騒がしい",
    "Vibrant": "活気のある",
    "Relaxed": "くつろげる",
    "Trendy": "流行の",
    "Hip": "おしゃれ",
    "Rustic": "素朴",
    "Chic": "シック",
    "Vintage": "レトロ",
    "Fine dining": "高級レストラン",
    "Fast casual": "気軽",
    "Outdoor": "開放的",
    "Rooftop": "ルーフトップ",
    "Waterfront": "水辺の",
    "View": "眺めの良い",
    "Hidden gem": "隠れ家的",
    "French": "フレンチ",
    "Greek": "ギリシャ料理",
    "Korean": "韓国料理",
    "Vietnamese": "ベトナム料理",
    "Thai": "タイ料理",
    "Spanish": "スペイン料理",
    "Turkish": "トルコ料理",
    "Middle eastern": "中東料理",
    "Brazilian": "ブラジル料理",
    "Peruvian": "ペルー料理",
    "Ethiopian": "エチオピア料理",
    "Fusion": "創作料理",
    "Sushi": "寿司",
    "Pizza": "ピザ",
    "Burger": "ハンバーガー",
    "Steak": "ステーキ",
    "Seafood": "シーフード",
    "Vegetarian": "ベジタリアン料理",
    "Vegan": "ヴィーガン料理",
    "Gluten-free": "グルテンフリー料理",
    "Healthy": "ヘルシー料理",
    "Fast food": "ファストフード",
    "Café": "カフェ",
    "Bakery": "ベーカリー",
    "Brunch": "ブランチ",
    "Breakfast": "朝食",
    "Lunch": "ランチ",
    "Dinner": "ディナー",
    "Dessert": "デザート",
    "Ice cream": "アイスクリーム",
}

EMPTY_TEXT = {
    "en": {"summary": "No reviews available.", "field": "Not mentioned"},
    "ja": {"summary": "レビューはありません。", "field": "情報なし"},
}

# (>= 4, >= 3, below) rating bands
SENTIMENTS: Dict[str, Dict[str, Tuple[str, str, str]]] = {
    "en": {
        "food": ("praised", "decent", "criticized"),
        "atmosphere": ("inviting", "acceptable", "disappointing"),
        "service": ("friendly and attentive", "adequate", "slow or inattentive"),
    },
    "ja": {
        "food": ("絶賛されている", "満足できる", "批判されている"),
        "atmosphere": ("魅力的", "普通", "残念"),
        "service": ("親切な", "普通の", "遅い"),
    },
}
NOT_MENTIONED = {"en": "not specifically mentioned", "ja": "特に言及なし"}
CUISINE_PREFIX = {
    "en": ("Excellent ", "Good ", "Mediocre "),
    "ja": ("絶品の", "美味しい", "改善の余地がある"),
}

_SENTENCE_SPLIT = re.compile(r"[.!?。！？]+")
_CLAUSE_SPLIT = re.compile(r"[,;、]|\s+(?:and|but)\s+")


def empty_summary(language: str) -> CategorySummary:
    text = EMPTY_TEXT["ja" if language == "ja" else "en"]
    return CategorySummary(
        summary=text["summary"],
        cuisine=text["field"],
        atmosphere=text["field"],
        service=text["field"],
    )


def _lang(language: str) -> str:
    return "ja" if language == "ja" else "en"


def _label(label: str, language: str, default: str = "") -> str:
    """Localize an inferred label; unknown or empty labels fall back to ``default``."""
    label = label or default
    if language == "ja":
        return JA_LABELS.get(label) or JA_LABELS.get(default, label)
    return label


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text or "") if s.strip()]


def _with_keywords(sentences: Sequence[str], keywords: Sequence[str]) -> List[str]:
    return [s for s in sentences if any(k in s.lower() for k in keywords)]


def _terminate(sentence: str) -> str:
    return sentence + ("。" if is_japanese_text(sentence) else ".")


def extract_phrase(sentences: Sequence[str], keywords: Sequence[str], max_words: int = 5) -> str:
    """Short phrase from the first sentence, narrowed to the clause naming a keyword."""
    if not sentences:
        return ""
    sentence = sentences[0]
    clauses = [c.strip() for c in _CLAUSE_SPLIT.split(sentence) if c.strip()]
    clause = next((c for c in clauses if any(k in c.lower() for k in keywords)), sentence)
    words = clause.split()
    phrase = " ".join(words[:max_words])
    if len(words) > max_words:
        phrase += "..."
    return phrase[:1].upper() + phrase[1:]


def _infer(text: str, patterns: List[Tuple[str, List[str]]], default: str) -> str:
    lower = text.lower()
    for label, keywords in patterns:
        if any(k in lower for k in keywords):
            return label
    return default


def infer_cuisine(text: str) -> str:
    return _infer(text, CUISINE_INFERENCE, "Local cuisine")


def infer_atmosphere(text: str) -> str:
    return _infer(text, ATMOSPHERE_INFERENCE, "Casual")


def infer_service(text: str) -> str:
    return _infer(text, SERVICE_INFERENCE, "Standard")


def count_keyword_mentions(reviews: Sequence[Review], keywords: Sequence[str]) -> int:
    count = 0
    for review in reviews:
        text = (review.text or "").lower()
        count += sum(1 for k in keywords if k in text)
    return count


def most_mentioned(reviews: Sequence[Review], candidates: Sequence[str]) -> str:
    counts: Dict[str, int] = {}
    for review in reviews:
        text = (review.text or "").lower()
        for candidate in candidates:
            if candidate in text:
                counts[candidate] = counts.get(candidate, 0) + 1
    best, best_count = "", 0
    # first candidate wins ties
    for candidate in candidates:
        if counts.get(candidate, 0) > best_count:
            best, best_count = candidate, counts[candidate]
    return best[:1].upper() + best[1:] if best else ""


def _band(avg_rating: float) -> int:
    if avg_rating >= 4:
        return 0
    if avg_rating >= 3:
        return 1
    return 2


def _single_review_summary(text: str, language: str) -> CategorySummary:
    sentences = split_sentences(text)
    food = _with_keywords(sentences, FOOD_KEYWORDS)
    atmosphere = _with_keywords(sentences, ATMOSPHERE_KEYWORDS)
    service = _with_keywords(sentences, SERVICE_KEYWORDS)

    picked: list[str] = []
    for group in (food, atmosphere, service):
        if group and group[0] not in picked:
            picked.append(group[0])
    if not picked and sentences:
        picked.append(sentences[0])

    if picked:
        summary = " ".join(_terminate(s) for s in picked)
    else:
        summary = "レビューの要約" if language == "ja" else "Review summary"

    return CategorySummary(
        summary=summary,
        cuisine=extract_phrase(food, FOOD_KEYWORDS) or _label(infer_cuisine(text), language),
        atmosphere=extract_phrase(atmosphere, ATMOSPHERE_KEYWORDS) or _label(infer_atmosphere(text), language),
        service=extract_phrase(service, SERVICE_KEYWORDS) or _label(infer_service(text), language),
    )


def _multi_review_summary(reviews: Sequence[Review], language: str) -> CategorySummary:
    avg = sum(r.rating for r in reviews) / len(reviews)
    band = _band(avg)
    words = SENTIMENTS[language]

    def sentiment(category: str, keywords: Sequence[str]) -> Tuple[str, bool]:
        if count_keyword_mentions(reviews, keywords) > 0:
            return words[category][band], True
        return NOT_MENTIONED[language], False

    food_word, food_mentioned = sentiment("food", FOOD_KEYWORDS)
    atmosphere_word, _ = sentiment("atmosphere", ATMOSPHERE_KEYWORDS)
    service_word, _ = sentiment("service", SERVICE_KEYWORDS)

    cuisine_type = _label(most_mentioned(reviews, CUISINE_TYPES), language, "General cuisine")
    atmosphere_type = _label(most_mentioned(reviews, ATMOSPHERE_TYPES), language, "Casual")

    cuisine = cuisine_type
    if food_mentioned:
        cuisine = CUISINE_PREFIX[language][band] + cuisine_type

    if language == "ja":
        return CategorySummary(
            summary=f"料理の質は{food_word}で、雰囲気は{atmosphere_word}です。平均評価は{avg:.1f}/5です。",
            cuisine=cuisine,
            atmosphere=f"{atmosphere_type}な雰囲気",
            service=f"{service_word}サービス",
        )
    service_text = f"{service_word} service"
    return CategorySummary(
        summary=f"Food quality is {food_word} and atmosphere is {atmosphere_word} with an average rating of {avg:.1f}/5.",
        cuisine=cuisine,
        atmosphere=f"{atmosphere_type} atmosphere",
        service=service_text[:1].upper() + service_text[1:],
    )


def create_local_summary(reviews: Sequence[Review], language: str = "en") -> CategorySummary:
    language = _lang(language)
    if not reviews:
        return empty_summary(language)
    if len(reviews) == 1 and reviews[0].text:
        return _single_review_summary(reviews[0].text, language)
    return _multi_review_summary(reviews, language)
