# tests/test_normalizer.py
import json
import math

import pytest

from listing_pipeline.domain import Category, Condition
from listing_pipeline.normalizer import (
    DEFAULT_CONFIDENCE, DEFAULT_PRICE, MAX_KEYWORDS, MAX_TITLE_LENGTH, PLACEHOLDER_TITLE,
    build_fallback_listing, coerce_price, extract_and_normalize, is_usable, lookup,
    merge_keywords, parse_json_loose, truncate_title,
)


def test_lookup_follows_dotted_paths():
    payload = {"recommended_category": {"categoryName": "Boots"}}
    assert lookup(payload, "recommended_category.categoryName") == "Boots"
    assert lookup(payload, "recommended_category.missing") is None
    assert lookup({"a": "flat"}, "a.b") is None


def test_first_variant_wins():
    listing = extract_and_normalize({
        "item_name": "Second choice",
        "title": "First choice",
        "brand_name": "Levi's",
        "colour": "Blue",
    })
    assert listing.title == "First choice"
    assert listing.brand == "Levi's"
    assert listing.color == "Blue"
    assert listing.analysis_metadata["detected_fields"]["title"] == "title"
    assert listing.analysis_metadata["title_source"] == "variant"


def test_recommended_category_beats_flat_category():
    listing = extract_and_normalize({
        "title": "Boots",
        "category": "electronics",
        "recommended_category": {"categoryName": "Women's Boots", "categoryId": "53557",
                                 "categoryPath": "Clothing > Women > Boots"},
    })
    assert listing.category == Category.SHOES
    assert listing.category_id == "53557"
    assert listing.category_path == "Clothing > Women > Boots"


@pytest.mark.parametrize("raw,expected", [
    (12, 12.0),
    ("$1,299.00", 1299.0),
    ("19,99", 19.99),
    ("  45 USD", 45.0),
    ({"value": "30"}, 30.0),
    ("free", None),
    (-5, None),
    (float("nan"), None),
    (float("inf"), None),
    (True, None),
    (None, None),
])
def test_coerce_price(raw, expected):
    assert coerce_price(raw) == expected


def test_market_research_price_takes_precedence():
    listing = extract_and_normalize(
        {"title": "Lamp", "price": 10},
        market_research={"averagePrice": "42.50"},
    )
    assert listing.price == 42.5
    assert listing.analysis_metadata["price_source"] == "market_research.averagePrice"
    assert listing.analysis_metadata["market_research"] == {"averagePrice": "42.50"}


def test_embedded_market_research_is_used():
    listing = extract_and_normalize({"title": "Lamp", "market_research": {"suggested_price": 18}})
    assert listing.price == 18.0


def test_price_defaults_when_missing_or_invalid():
    listing = extract_and_normalize({"title": "Lamp", "price": "call me"})
    assert listing.price == DEFAULT_PRICE
    assert listing.analysis_metadata["price_source"] == "default"


def test_keywords_are_merged_deduplicated_and_capped():
    payload = {
        "title": "Record",
        "keywords": ["Vinyl", "jazz", " vinyl "],
        "tags": "jazz, blue note, 1960s",
        "key_features": [f"feature {i}" for i in range(20)] + [None, 5],
    }
    listing = extract_and_normalize(payload)
    assert listing.keywords[:4] == ["Vinyl", "jazz", "feature 0", "feature 1"]
    assert len(listing.keywords) == MAX_KEYWORDS
    assert len({k.lower() for k in listing.keywords}) == len(listing.keywords)


def test_merge_keywords_accepts_mixed_sources():
    assert merge_keywords(None, "a, b,,", ["B", "c"], {"x": 1}) == ["a", "b", "c"]


def test_title_synthesized_from_descriptors():
    listing = extract_and_normalize({"brand": "Patagonia", "item_type": "Fleece Jacket",
                                     "size": "M", "condition": "used", "price": 40})
    assert listing.title == "Patagonia Fleece Jacket Size M - used"
    assert listing.analysis_metadata["title_source"] == "synthesized"
    assert listing.category == Category.CLOTHING
    assert listing.condition == Condition.GOOD


def test_unknown_markers_are_ignored():
    listing = extract_and_normalize({"title": "Mug", "brand": "Unknown Brand", "color": "N/A"})
    assert listing.brand is None
    assert listing.color is None
    assert "Brand" not in listing.item_specifics


def test_long_titles_are_truncated_on_a_word_boundary():
    title = "Vintage " + "very " * 30 + "nice lamp"
    listing = extract_and_normalize({"title": title})
    assert len(listing.title) <= MAX_TITLE_LENGTH
    assert not listing.title.endswith(" ")
    assert truncate_title("x" * 200) == "x" * MAX_TITLE_LENGTH


@pytest.mark.parametrize("raw", [None, {}, [], "not json", "[1, 2]", 17, {"unrelated": {"deep": True}}])
def test_extraction_is_total(raw):
    listing = extract_and_normalize(raw)
    assert listing.title == PLACEHOLDER_TITLE
    assert listing.price == DEFAULT_PRICE
    assert math.isfinite(listing.price)
    assert listing.category == Category.OTHER
    assert listing.condition == Condition.GOOD
    assert listing.confidence == DEFAULT_CONFIDENCE
    assert listing.description


def test_json_text_payload_is_parsed():
    listing = extract_and_normalize('{"name": "Desk Lamp", "estimated_price": 22}')
    assert listing.title == "Desk Lamp"
    assert listing.price == 22.0


def test_confidence_percentages_are_scaled():
    assert extract_and_normalize({"title": "A", "confidence": 85}).confidence == 0.85
    assert extract_and_normalize({"title": "A", "confidence": 0.4}).confidence == 0.4


def test_description_is_built_when_missing():
    listing = extract_and_normalize({"title": "Canon AE-1", "brand": "Canon",
                                     "model": "AE-1", "keywords": ["film camera"]})
    assert listing.description.startswith("Canon AE-1")
    assert "Model: AE-1" in listing.description
    assert "Keywords: film camera" in listing.description


def test_is_usable():
    assert is_usable({"title": "Lamp"}, extract_and_normalize({"title": "Lamp"}))
    assert is_usable({"brand": "Ikea", "price": 10}, extract_and_normalize({"brand": "Ikea", "price": 10}))
    assert not is_usable({}, extract_and_normalize({}))
    assert not is_usable({"foo": 1}, extract_and_normalize({"foo": 1}))
    # synthesized title with only the default price is not enough
    assert not is_usable({"brand": "Ikea"}, extract_and_normalize({"brand": "Ikea"}))


def test_fallback_listing():
    listing = build_fallback_listing("SKU-7", "AI analysis failed: boom")
    assert listing.title == "Item SKU-7 - Manual Review Required"
    assert listing.price == 0.0
    assert listing.category == Category.OTHER
    assert listing.condition == Condition.GOOD
    assert listing.confidence == 0.1
    assert "boom" in listing.description
    assert listing.analysis_metadata["source"] == "fallback"


def test_huge_integers_fall_back_to_defaults():
    huge = json.loads('{"title": "Lamp", "price": 1' + "0" * 400 + ', "confidence": 1' + "0" * 400 + "}")
    listing = extract_and_normalize(huge)
    assert listing.title == "Lamp"
    assert listing.price == DEFAULT_PRICE
    assert listing.analysis_metadata["price_source"] == "default"
    assert listing.confidence == DEFAULT_CONFIDENCE
    assert coerce_price(10 ** 400) is None


def test_integer_too_long_to_print_is_not_a_title():
    listing = extract_and_normalize({"title": 10 ** 5000, "brand": "Ikea"})
    assert listing.title == "Ikea"
    assert listing.analysis_metadata["title_source"] == "synthesized"


@pytest.mark.parametrize("text", [
    'Here you go:\n```json\n{"title": "Desk Lamp", "price": 22}\n```',
    '```\n{"title": "Desk Lamp", "price": 22}\n```',
    'Sure! {"title": "Desk Lamp", "price": 22} Let me know if you need more.',
    '{"title": "Desk Lamp", "price": 22}',
])
def test_model_output_wrapped_in_prose_or_fences(text):
    listing = extract_and_normalize(text)
    assert listing.title == "Desk Lamp"
    assert listing.price == 22.0
    assert is_usable(text, listing)


def test_parse_json_loose_gives_up_on_garbage():
    assert parse_json_loose("no json here") is None
    assert parse_json_loose("} backwards {") is None
    assert parse_json_loose("```json\n{broken```") is None
