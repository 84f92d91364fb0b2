# listing_pipeline/normalizer.py
"""Turn schema-free AI analysis output into a canonical listing record.

The analysis service has used many spellings for the same concept over time.
Each field has an ordered tuple of variant paths; the first present, non-empty
value wins. Paths may be dotted to reach into nested objects
(``recommended_category.categoryName``). When nothing usable is found a
deterministic fallback is derived so the result is always a complete record.
"""
from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

from .domain import CanonicalListing, Category, Condition
from .vocabulary import category_id, category_path, normalize_category, normalize_condition

MAX_KEYWORDS = 10
MAX_TITLE_LENGTH = 80
DEFAULT_PRICE = 25.0
DEFAULT_CONFIDENCE = 0.5
FALLBACK_CONFIDENCE = 0.1
PLACEHOLDER_TITLE = "Item - Manual Review Required"

FIELD_VARIANTS: dict[str, tuple[str, ...]] = {
    "title": (
        "title", "suggested_title", "name", "itemName", "item_name",
        "product_name", "listing_title",
    ),
    "price": (
        "suggested_price", "price", "estimated_price", "estimatedPrice",
        "suggestedPrice", "market_price", "listing_price",
    ),
    "brand": ("brand", "brand_name", "brandName", "detected_brand", "manufacturer"),
    "size": ("size", "item_size", "detected_size", "size_label"),
    "condition": ("condition", "item_condition", "detected_condition", "condition_grade"),
    "category": (
        "recommended_category.categoryName", "category", "item_type",
        "detected_category", "product_type", "category_name",
    ),
    "color": ("color", "colour", "primary_color", "detected_color"),
    "model_number": ("model_number", "modelNumber", "model", "mpn"),
    "description": ("description", "suggested_description", "listing_description", "item_description"),
    "confidence": ("confidence", "ai_confidence", "market_confidence", "confidence_score"),
}

KEYWORD_SOURCES = ("keywords", "ai_suggested_keywords", "key_features", "ebay_keywords", "tags")
MARKET_PRICE_VARIANTS = ("suggestedPrice", "suggested_price", "averagePrice", "average_price")
MARKET_RESEARCH_KEYS = ("marketResearch", "market_research")

# descriptor values the analysis service emits when it could not tell
UNKNOWN_MARKERS = {
    "", "unknown", "unknown brand", "n/a", "na", "none", "null", "undefined",
    "not visible", "not specified", "various", "multi-color", "mixed materials",
}

_PRICE_CHARS = re.compile(r"[^\d,.\-]")
_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def lookup(payload: Any, path: str) -> Any:
    """Return value at dotted `path`, or None if any segment is missing."""
    node = payload
    for part in path.split("."):
        if isinstance(node, Mapping) and part in node:
            node = node[part]
        else:
            return None
    return node


def _as_text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        return str(value) if math.isfinite(value) else None
    if isinstance(value, int):
        try:
            return str(value)
        except ValueError:
            # beyond the interpreter's int-to-str digit limit
            return None
    if isinstance(value, str):
        text = " ".join(value.split())
        return text or None
    return None


def _as_descriptor(value: Any) -> str | None:
    text = _as_text(value)
    if text is None or text.lower() in UNKNOWN_MARKERS:
        return None
    return text


def first_present(payload: Any, field: str, coerce=_as_text) -> tuple[str | None, Any]:
    """Try each variant of `field` in order; return (variant, coerced value)."""
    for variant in FIELD_VARIANTS[field]:
        value = coerce(lookup(payload, variant))
        if value is not None:
            return variant, value
    return None, None


def coerce_price(value: Any) -> float | None:
    """Return a finite non-negative float or None. Accepts strings like "$1,299.00"."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Mapping):
        return coerce_price(value.get("value", value.get("amount")))
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        cleaned = _PRICE_CHARS.sub("", value.strip())
        # both separators present: comma is the thousands separator
        if "," in cleaned and "." in cleaned:
            cleaned = cleaned.replace(",", "")
        elif re.search(r",\d{1,2}$", cleaned):
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return round(number, 2)


def _coerce_confidence(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    if number > 1:
        # some responses report a percentage
        number = number / 100 if number <= 100 else 1.0
    return round(number, 3)


def _iter_keyword_source(source: Any) -> Iterable[str]:
    if isinstance(source, str):
        yield from source.split(",")
    elif isinstance(source, Iterable) and not isinstance(source, (bytes, Mapping)):
        for item in source:
            if isinstance(item, str):
                yield item


def merge_keywords(*sources: Any, limit: int = MAX_KEYWORDS) -> list[str]:
    """Merge keyword lists, dropping blanks and case-insensitive duplicates."""
    seen: set[str] = set()
    merged: list[str] = []
    for source in sources:
        for raw in _iter_keyword_source(source):
            keyword = " ".join(raw.split())
            if not keyword or keyword.lower() in seen:
                continue
            seen.add(keyword.lower())
            merged.append(keyword)
            if len(merged) >= limit:
                return merged
    return merged


def truncate_title(title: str, limit: int = MAX_TITLE_LENGTH) -> str:
    title = " ".join(title.split())
    if len(title) <= limit:
        return title
    head = title[:limit + 1]
    cut = head.rsplit(" ", 1)[0] if " " in head else title[:limit]
    return cut.rstrip(" -,")


def condition_label(condition: Condition) -> str:
    return condition.value.replace("_", " ").title()


def category_label(category: Category) -> str:
    return category.value.replace("_", " & ").title()


def synthesize_title(brand, category_text, size, condition_text) -> str | None:
    """Build a title from descriptive fields; None when there is no noun to build on."""
    if not brand and not category_text:
        return None
    title = " ".join(part for part in (brand, category_text) if part)
    if size:
        title += f" Size {size}"
    if condition_text:
        title += f" - {condition_text}"
    return truncate_title(title)


def build_description(title, brand, size, condition, color, model_number, keywords) -> str:
    features = []
    if brand:
        features.append(f"Brand: {brand}")
    if model_number:
        features.append(f"Model: {model_number}")
    if size:
        features.append(f"Size: {size}")
    features.append(f"Condition: {condition_label(condition)}")
    if color:
        features.append(f"Color: {color}")
    text = f"{title}\n\n{' | '.join(features)}"
    if keywords:
        text += f"\n\nKeywords: {', '.join(keywords)}"
    return text + "\n\nThis item is carefully inspected and ready to ship."


def _market_research_sources(payload: Mapping, market_research: Any) -> list[Mapping]:
    sources = [market_research] + [payload.get(key) for key in MARKET_RESEARCH_KEYS]
    return [s for s in sources if isinstance(s, Mapping)]


def resolve_price(payload: Mapping, market_research: Any = None) -> tuple[float, str]:
    """Market-research price, then the AI's own estimate, then DEFAULT_PRICE."""
    for source in _market_research_sources(payload, market_research):
        for variant in MARKET_PRICE_VARIANTS:
            price = coerce_price(source.get(variant))
            if price is not None:
                return price, f"market_research.{variant}"
    variant, price = first_present(payload, "price", coerce_price)
    if variant is not None:
        return price, variant
    return DEFAULT_PRICE, "default"


def _category_suggestions(payload: Mapping, category_analysis: Any) -> list:
    if isinstance(category_analysis, Mapping):
        suggestions = category_analysis.get("suggestions")
        if isinstance(suggestions, list):
            return suggestions
    options = payload.get("category_options")
    return options if isinstance(options, list) else []


def _recommended_category(payload: Mapping, category_analysis: Any) -> Mapping:
    if isinstance(category_analysis, Mapping) and isinstance(category_analysis.get("recommended"), Mapping):
        return category_analysis["recommended"]
    recommended = payload.get("recommended_category")
    return recommended if isinstance(recommended, Mapping) else {}


def _specifics_from_payload(payload: Mapping) -> dict[str, str]:
    for key in ("ebay_item_specifics", "item_specifics"):
        raw = payload.get(key)
        if isinstance(raw, Mapping):
            return {str(k): v for k, v in raw.items() if isinstance(v, str) and v.strip()}
    return {}


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def parse_json_loose(text: str) -> Any:
    """Parse model output that may wrap its JSON in prose or a ```json fence."""
    parsed = _loads(text)
    if parsed is not None:
        return parsed
    fenced = _JSON_FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads(text[start:end + 1])


def _coerce_payload(raw_payload: Any) -> Mapping:
    if isinstance(raw_payload, str):
        raw_payload = parse_json_loose(raw_payload)
    return raw_payload if isinstance(raw_payload, Mapping) else {}


def extract_and_normalize(raw_payload: Any, market_research: Any = None,
                          category_analysis: Any = None) -> CanonicalListing:
    """Extract every listing field from `raw_payload` and coerce it to canonical form.

    Accepts anything, including None, JSON text, and payloads that use none of
    the known field names. The result always has a non-empty title and a
    finite non-negative price.
    """
    payload = _coerce_payload(raw_payload)
    detected: dict[str, str] = {}

    def pick(field, coerce=_as_descriptor):
        variant, value = first_present(payload, field, coerce)
        if variant is not None:
            detected[field] = variant
        return value

    brand = pick("brand")
    size = pick("size")
    color = pick("color")
    model_number = pick("model_number")
    condition_text = pick("condition")
    recommended = _recommended_category(payload, category_analysis)
    category_text = _as_descriptor(recommended.get("categoryName"))
    if category_text is not None:
        detected["category"] = "recommended_category.categoryName"
    else:
        category_text = pick("category")

    category = normalize_category(category_text)
    condition = normalize_condition(condition_text)

    title = pick("title", _as_text)
    if title is not None:
        title, title_source = truncate_title(title), "variant"
    else:
        title = synthesize_title(brand, category_text, size, condition_text)
        title_source = "synthesized"
        if not title:
            title, title_source = PLACEHOLDER_TITLE, "placeholder"

    price, price_source = resolve_price(payload, market_research)
    if price_source != "default":
        detected["price"] = price_source

    keywords = merge_keywords(*(payload.get(source) for source in KEYWORD_SOURCES))
    confidence = pick("confidence", _coerce_confidence)
    description = pick("description", _as_text) or build_description(
        title, brand, size, condition, color, model_number, keywords
    )

    item_specifics = _specifics_from_payload(payload)
    item_specifics.update({
        key: value for key, value in (
            ("Brand", brand), ("Size", size), ("Color", color), ("Model", model_number),
        ) if value
    })
    item_specifics["Condition"] = condition_label(condition)
    item_specifics["Category"] = category_label(category)

    market = next(iter(_market_research_sources(payload, market_research)), None)
    metadata = {
        "source": _as_text(payload.get("source")) or "ai_analysis",
        "detected_fields": detected,
        "title_source": title_source,
        "price_source": price_source,
        "market_research": dict(market) if market is not None else None,
        "category_suggestions": _category_suggestions(payload, category_analysis),
    }

    return CanonicalListing(
        title=title,
        description=description,
        price=price,
        category=category,
        condition=condition,
        brand=brand,
        size=size,
        color=color,
        model_number=model_number,
        keywords=keywords,
        confidence=confidence if confidence is not None else DEFAULT_CONFIDENCE,
        category_path=_as_text(recommended.get("categoryPath")) or category_path(category),
        category_id=_as_text(recommended.get("categoryId")) or category_id(category),
        item_specifics=item_specifics,
        analysis_metadata=metadata,
    )


def is_usable(raw_payload: Any, listing: CanonicalListing) -> bool:
    """True when the payload carried real listing data rather than only defaults."""
    payload = _coerce_payload(raw_payload)
    if not payload or not listing.title.strip():
        return False
    meta = listing.analysis_metadata
    if meta.get("title_source") == "placeholder":
        return False
    return meta.get("title_source") == "variant" or meta.get("price_source") != "default"


def build_fallback_listing(identifier: str, cause: str | None = None) -> CanonicalListing:
    """Low-confidence record used when the analysis is unusable."""
    description = (
        f"Listing for SKU {identifier} could not be generated automatically. "
        "Review the photos and fill in the title, price, category and condition by hand."
    )
    if cause:
        description += f"\n\nReason: {cause}"
    return CanonicalListing(
        title=f"Item {identifier} - Manual Review Required",
        description=description,
        price=0.0,
        category=Category.OTHER,
        condition=Condition.GOOD,
        keywords=[],
        confidence=FALLBACK_CONFIDENCE,
        category_path=category_path(Category.OTHER),
        category_id=category_id(Category.OTHER),
        item_specifics={"Condition": condition_label(Condition.GOOD)},
        analysis_metadata={"source": "fallback", "error": cause, "detected_fields": {}},
    )
