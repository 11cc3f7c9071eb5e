from __future__ import annotations

import json

from models import RestaurantRecord, Review
from services.classifier import DEFAULT_KEYWORDS, KeywordSets, build_haystack, classify, classify_all, load_keywords


def _record(**kw) -> RestaurantRecord:
    base = {"id": "r1", "name": "Sakura Dining", "types": ("restaurant",)}
    base.update(kw)
    return RestaurantRecord(**base)


def test_review_keywords_set_dietary_flags_and_vegan_implies_vegetarian() -> None:
    rec = _record(reviews=(Review(author="a", rating=5, text="Great vegan menu, everything is gluten-free too"),))
    derived = classify(rec).derived
    assert derived is not None
    assert derived.dietary_match.vegan
    assert derived.dietary_match.gluten_free
    assert derived.dietary_match.vegetarian


def test_vegan_forces_vegetarian_even_without_vegetarian_keyword() -> None:
    keywords = KeywordSets.from_mapping({"dietary": {"vegan": ["tofu"], "vegetarian": ["nothing-matches"]}})
    rec = classify(_record(name="Tofu House"), keywords)
    assert rec.derived.dietary_match.vegan
    assert rec.derived.dietary_match.vegetarian


def test_drinking_detected_from_types_and_name() -> None:
    assert classify(_record(types=("bar", "point_of_interest"))).is_drinking
    assert classify(_record(name="Torikizoku Izakaya")).is_drinking
    assert classify(_record(name="とりあえず居酒屋")).is_drinking


def test_cafe_is_not_drinking() -> None:
    rec = classify(_record(name="Morning Cup", types=("cafe",)))
    assert rec.is_drinking is False


def test_empty_record_gets_all_flags_false() -> None:
    rec = classify(RestaurantRecord(id="x", name=""))
    assert rec.derived is not None
    assert rec.derived.is_drinking_establishment is False
    assert not any(rec.derived.dietary_match.as_dict().values())


def test_classify_returns_new_value() -> None:
    rec = _record()
    out = classify(rec)
    assert rec.derived is None
    assert out.derived is not None
    assert out.id == rec.id


def test_haystack_is_lowercase_join() -> None:
    rec = _record(vicinity="1-2 Ginza", reviews=(Review(author="a", rating=4, text="NICE"),))
    assert build_haystack(rec) == "restaurant sakura dining 1-2 ginza nice"


def test_injected_keywords_replace_defaults() -> None:
    keywords = KeywordSets.from_mapping({"drinking": ["sake"]})
    assert classify(_record(name="Sake Corner"), keywords).is_drinking
    assert not classify(_record(types=("bar",)), keywords).is_drinking
    # categories not in the mapping keep defaults
    assert keywords.dietary == DEFAULT_KEYWORDS.dietary


def test_classify_all_keeps_order() -> None:
    out = classify_all([_record(id="a"), _record(id="b")])
    assert [r.id for r in out] == ["a", "b"]


def test_load_keywords_from_file(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    path.write_text(json.dumps({"drinking": ["Wine"], "dietary": {"halal": ["zabiha"]}}), encoding="utf-8")
    keywords = load_keywords(str(path))
    assert keywords.drinking == frozenset({"wine"})
    assert keywords.dietary["halal"] == frozenset({"zabiha"})


def test_load_keywords_bad_file_uses_defaults(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_keywords(str(path)) is DEFAULT_KEYWORDS
    assert load_keywords(str(tmp_path / "missing.json")) is DEFAULT_KEYWORDS
    assert load_keywords(None) is DEFAULT_KEYWORDS
