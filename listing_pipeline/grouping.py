# listing_pipeline/grouping.py
"""Group uploaded photos by SKU and reconcile groups with generated listings."""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from .domain import GeneratedItem, GenerationStatus, PhotoRecord, SKUGroup, placeholder_id
from .errors import InvalidIdentifier
from .normalizer import coerce_price, merge_keywords
from .utils import logger, utcnow
from .vocabulary import normalize_category, normalize_condition

_ENDS_WITH_DIGIT = re.compile(r"\d$")


def validate_identifier(raw: str | None) -> str:
    """Return the trimmed SKU, or raise if it is empty or doesn't end with a digit."""
    sku = (raw or "").strip()
    if not sku:
        raise InvalidIdentifier("SKU must not be empty")
    if not _ENDS_WITH_DIGIT.search(sku):
        raise InvalidIdentifier(f"SKU must end with digits (e.g., ABC-123): {sku!r}")
    return sku


def group_photos(photos: Iterable[PhotoRecord]) -> list[SKUGroup]:
    """Partition photos with an assigned identifier into per-identifier groups.

    Photos within a group are ordered by upload order regardless of the order
    they are passed in. Groups are ordered by the upload order of their first photo.
    """
    buckets: dict[str, list[PhotoRecord]] = {}
    for photo in photos:
        if photo.assigned_identifier is None:
            continue
        buckets.setdefault(photo.assigned_identifier, []).append(photo)

    groups = [
        SKUGroup(identifier=sku, photos=sorted(members, key=lambda p: (p.upload_order, p.id)))
        for sku, members in buckets.items()
    ]
    groups.sort(key=lambda g: (g.primary.upload_order, g.identifier))
    return groups


def _linked_item(group: SKUGroup, durable_items: Mapping[str, Any]):
    for photo in group.photos:
        if photo.assigned_item_id and photo.assigned_item_id in durable_items:
            return durable_items[photo.assigned_item_id]
    return None


def _text(value):
    return value if isinstance(value, str) and value.strip() else None


def candidate_from_listing(group: SKUGroup, listing: Any) -> GeneratedItem:
    """Seed a `complete` candidate with the current values of a durable listing."""
    price = coerce_price(getattr(listing, "price", None))
    return GeneratedItem(
        id=str(listing.id),
        identifier=group.identifier,
        photos=group.image_refs,
        primary_photo=group.primary.image_ref,
        title=getattr(listing, "title", None) or "",
        description=getattr(listing, "description", None) or "",
        price=price if price is not None else 0.0,
        category=normalize_category(getattr(listing, "category", None)),
        condition=normalize_condition(getattr(listing, "condition", None)),
        brand=_text(getattr(listing, "brand", None)),
        size=_text(getattr(listing, "size", None)),
        color=_text(getattr(listing, "color", None)),
        model_number=_text(getattr(listing, "model_number", None)),
        keywords=merge_keywords(getattr(listing, "keywords", None) or []),
        confidence=float(getattr(listing, "ai_confidence", None) or 0.0),
        category_path=getattr(listing, "category_path", None) or "",
        category_id=getattr(listing, "category_id", None) or "",
        item_specifics=dict(getattr(listing, "item_specifics", None) or {}),
        analysis_metadata=dict(getattr(listing, "analysis_metadata", None) or {}),
        status=GenerationStatus.COMPLETE,
        last_updated=getattr(listing, "updated_at", None) or utcnow(),
    )


def new_candidate(group: SKUGroup) -> GeneratedItem:
    return GeneratedItem(
        id=placeholder_id(group.identifier),
        identifier=group.identifier,
        photos=group.image_refs,
        primary_photo=group.primary.image_ref,
        status=GenerationStatus.NOT_STARTED,
        last_updated=utcnow(),
    )


def reconcile(groups: Iterable[SKUGroup], durable_items: Mapping[str, Any]) -> list[GeneratedItem]:
    """Turn groups into candidates, marking those with a known durable listing complete.

    `durable_items` maps listing id to listing. A photo pointing at a listing
    that no longer exists leaves its group `not_started`.
    """
    candidates = []
    for group in groups:
        listing = _linked_item(group, durable_items)
        if listing is None:
            stale = [p.assigned_item_id for p in group.photos if p.assigned_item_id]
            if stale:
                logger.warning("SKU %s references missing listing(s) %s; treating as not started",
                               group.identifier, stale)
            candidates.append(new_candidate(group))
        else:
            candidates.append(candidate_from_listing(group, listing))
    return candidates
