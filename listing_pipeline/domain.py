# listing_pipeline/domain.py
"""Domain records for photo grouping and listing generation.

These are plain dataclasses so they can be threaded through the pipeline
stages explicitly and copied with `dataclasses.replace`.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

PLACEHOLDER_PREFIX = "temp_"


class PhotoStatus(str, Enum):
    UPLOADED = "uploaded"
    ASSIGNED = "assigned"
    PROCESSED = "processed"


class GenerationStatus(str, Enum):
    NOT_STARTED = "not_started"
    ANALYZING = "analyzing"
    READY = "ready"
    NEEDS_ATTENTION = "needs_attention"
    COMPLETE = "complete"


class Category(str, Enum):
    CLOTHING = "clothing"
    SHOES = "shoes"
    ACCESSORIES = "accessories"
    ELECTRONICS = "electronics"
    HOME_GARDEN = "home_garden"
    TOYS_GAMES = "toys_games"
    SPORTS_OUTDOORS = "sports_outdoors"
    BOOKS_MEDIA = "books_media"
    JEWELRY = "jewelry"
    COLLECTIBLES = "collectibles"
    OTHER = "other"


class Condition(str, Enum):
    LIKE_NEW = "like_new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass
class PhotoRecord:
    """An uploaded image, possibly grouped under a SKU and linked to a listing."""

    id: str
    image_ref: str
    filename: str
    upload_order: int
    assigned_identifier: str | None = None
    assigned_item_id: str | None = None
    status: PhotoStatus = PhotoStatus.UPLOADED
    user_id: str | None = None


@dataclass
class SKUGroup:
    """Photos sharing one identifier, in upload order. `photos[0]` is the primary."""

    identifier: str
    photos: list[PhotoRecord] = field(default_factory=list)

    @property
    def primary(self) -> PhotoRecord:
        return self.photos[0]

    @property
    def image_refs(self) -> list[str]:
        return [p.image_ref for p in self.photos]


@dataclass
class CanonicalListing:
    """Listing fields after normalization; only closed-vocabulary values."""

    title: str
    description: str
    price: float
    category: Category
    condition: Condition
    brand: str | None = None
    size: str | None = None
    color: str | None = None
    model_number: str | None = None
    keywords: list[str] = field(default_factory=list)
    confidence: float = 0.5
    category_path: str = ""
    category_id: str = ""
    item_specifics: dict[str, str] = field(default_factory=dict)
    analysis_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GeneratedItem:
    """A listing candidate for one SKU group."""

    id: str
    identifier: str
    photos: list[str]
    primary_photo: str
    title: str = ""
    description: str = ""
    price: float = 0.0
    category: Category = Category.OTHER
    condition: Condition = Condition.GOOD
    brand: str | None = None
    size: str | None = None
    color: str | None = None
    model_number: str | None = None
    keywords: list[str] = field(default_factory=list)
    confidence: float = 0.0
    category_path: str = ""
    category_id: str = ""
    item_specifics: dict[str, str] = field(default_factory=dict)
    analysis_metadata: dict[str, Any] = field(default_factory=dict)
    status: GenerationStatus = GenerationStatus.NOT_STARTED
    generation_error: str | None = None
    last_updated: datetime | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith(PLACEHOLDER_PREFIX)


def placeholder_id(identifier: str) -> str:
    return f"{PLACEHOLDER_PREFIX}{identifier}"


class CandidateBoard:
    """Ordered collection of candidates keyed by identifier.

    Pipeline stages look candidates up by identifier and store back the
    updated copy, so every stage sees the latest state of each candidate.
    """

    def __init__(self, candidates: Iterable[GeneratedItem] = ()):
        self._items: dict[str, GeneratedItem] = {}
        for candidate in candidates:
            self.put(candidate)

    def __iter__(self) -> Iterator[GeneratedItem]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._items

    def get(self, identifier: str) -> GeneratedItem:
        return self._items[identifier]

    def put(self, candidate: GeneratedItem) -> None:
        self._items[candidate.identifier] = candidate

    def remove(self, identifier: str) -> GeneratedItem | None:
        return self._items.pop(identifier, None)

    def with_status(self, *statuses: GenerationStatus) -> list[GeneratedItem]:
        return [c for c in self._items.values() if c.status in statuses]

    def replace_all(self, candidates: Iterable[GeneratedItem]) -> None:
        self._items = {c.identifier: c for c in candidates}
