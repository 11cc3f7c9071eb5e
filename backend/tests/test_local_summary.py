from __future__ import annotations

from models import Review
from services.local_summary import (
    create_local_summary,
    empty_summary,
    extract_phrase,
    infer_atmosphere,
    infer_cuisine,
    infer_service,
    most_mentioned,
    split_sentences,
)


def _review(text: str, rating: float = 5) -> Review:
    return Review(author="guest", rating=rating, text=text)


def test_empty_reviews_return_fixed_strings() -> None:
    en = create_local_summary([], "en")
    assert en.as_dict() == {
        "summary": "No reviews available.",
        "cuisine": "Not mentioned",
        "atmosphere": "Not mentioned",
        "service": "Not mentioned",
    }
    ja = create_local_summary([], "ja")
    assert ja.summary == "レビューはありません。"
    assert ja.cuisine == ja.atmosphere == ja.service == "情報なし"


def test_unknown_language_falls_back_to_english() -> None:
    assert empty_summary("fr").summary == "No reviews available."


def test_single_review_draws_from_keyword_sentences() -> None:
    summary = create_local_summary([_review("The food was fresh and the atmosphere was cozy.")], "en")
    assert "food was fresh" in summary.cuisine or "food was fresh" in summary.summary
    assert "atmosphere was cozy" in summary.atmosphere
    assert summary.summary == "The food was fresh and the atmosphere was cozy."
    assert summary.service == "Standard"


def test_single_review_joins_category_sentences() -> None:
    text = "Loved the ramen broth. Staff were friendly! Quiet setting overall."
    summary = create_local_summary([_review(text)], "en")
    assert summary.summary == "Quiet setting overall. Staff were friendly."
    assert summary.service == "Staff were friendly"
    assert summary.atmosphere == "Quiet setting overall"
    # no food keyword sentence, so cuisine is inferred from dish names
    assert summary.cuisine == "Japanese"


def test_single_review_without_keywords_uses_first_sentence_and_inference() -> None:
    summary = create_local_summary([_review("Came here twice. Would return.")], "ja")
    assert summary.summary == "Came here twice."
    assert summary.cuisine == "地元料理"
    assert summary.atmosphere == "カジュアル"
    assert summary.service == "標準的"


def test_japanese_single_review_keeps_japanese_terminator() -> None:
    summary = create_local_summary([_review("とても美味しかった。また来ます")], "ja")
    assert summary.summary == "とても美味しかった。"


def test_multiple_reviews_use_rating_bands_in_english() -> None:
    reviews = [
        _review("Amazing sushi and great food", 5),
        _review("Cozy place, friendly staff, sushi was fresh", 4),
    ]
    summary = create_local_summary(reviews, "en")
    assert summary.summary == (
        "Food quality is praised and atmosphere is inviting with an average rating of 4.5/5."
    )
    assert summary.cuisine == "Excellent Sushi"
    assert summary.atmosphere == "Cozy atmosphere"
    assert summary.service == "Friendly and attentive service"


def test_multiple_reviews_low_ratings_in_japanese() -> None:
    reviews = [_review("The food was cold", 2), _review("Slow service", 1)]
    summary = create_local_summary(reviews, "ja")
    assert summary.summary == "料理の質は批判されているで、雰囲気は特に言及なしです。平均評価は1.5/5です。"
    assert summary.cuisine == "改善の余地がある一般的な料理"
    assert summary.service == "遅いサービス"


def test_multiple_reviews_localize_types_in_japanese() -> None:
    reviews = [
        _review("Romantic rooftop dinner, the food was delicious", 5),
        _review("Romantic mood and great sushi", 4),
    ]
    summary = create_local_summary(reviews, "ja")
    assert summary.atmosphere == "ロマンチックな雰囲気"
    assert summary.cuisine == "絶品の寿司"


def test_local_summary_is_deterministic() -> None:
    reviews = [_review("Great pizza, lively vibe", 4), _review("Good pasta", 3)]
    assert create_local_summary(reviews, "en") == create_local_summary(reviews, "en")


def test_helpers() -> None:
    assert split_sentences("One. Two! Three?") == ["One", "Two", "Three"]
    assert extract_phrase(["the menu was very long with many choices"], ["menu"]) == "The menu was very long..."
    assert extract_phrase([], ["menu"]) == ""
    assert infer_cuisine("best tacos in town") == "Mexican"
    assert infer_atmosphere("so peaceful") == "Quiet"
    assert infer_service("they were rude") == "Unfriendly"
    assert most_mentioned([_review("thai curry"), _review("thai noodles and pizza")], ["pizza", "thai"]) == "Thai"
