# tests/conftest.py
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from listing_pipeline.db import Base
from listing_pipeline.domain import PhotoRecord, PhotoStatus
from listing_pipeline.errors import StoreError
import listing_pipeline.models  # noqa: F401 ensure models are imported so tables are known

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

GOOD_RESPONSE = {
    "success": True,
    "data": {
        "title": "Nike Air Max 90 Running Shoes",
        "brand": "Nike",
        "size": "10",
        "condition": "Excellent",
        "category": "Sneakers",
        "suggested_price": "$85.00",
        "keywords": ["nike", "air max", "Nike"],
    },
}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


def make_photo(photo_id, sku=None, order=0, item_id=None, url=None):
    return PhotoRecord(
        id=photo_id,
        image_ref=url or f"https://img.example/{photo_id}.jpg",
        filename=f"{photo_id}.jpg",
        upload_order=order,
        assigned_identifier=sku,
        assigned_item_id=item_id,
        status=PhotoStatus.PROCESSED if item_id else (PhotoStatus.ASSIGNED if sku else PhotoStatus.UPLOADED),
    )


class FakeAnalyzer:
    """Answers per SKU from `responses`; an Exception value is raised instead."""

    def __init__(self, responses=None, default=GOOD_RESPONSE):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []

    async def analyze(self, photo_refs, context):
        self.calls.append((context["identifier"], list(photo_refs), context))
        result = self.responses.get(context["identifier"], self.default)
        if isinstance(result, Exception):
            raise result
        return result


class MemoryPhotoStore:
    def __init__(self, photos=(), fail_links=0):
        self.photos = {p.id: p for p in photos}
        self.fail_links = fail_links
        self.link_calls = 0

    async def list_grouped(self):
        return [p for p in self.photos.values() if p.assigned_identifier]

    async def link(self, identifier, item_id):
        self.link_calls += 1
        if self.fail_links:
            self.fail_links -= 1
            raise StoreError("photo store unavailable")
        count = 0
        for p in self.photos.values():
            if p.assigned_identifier == identifier:
                p.assigned_item_id = item_id
                p.status = PhotoStatus.PROCESSED
                count += 1
        return count

    async def reset(self, identifier):
        count = 0
        for p in self.photos.values():
            if p.assigned_identifier == identifier:
                p.assigned_identifier = None
                p.assigned_item_id = None
                p.status = PhotoStatus.UPLOADED
                count += 1
        return count


class MemoryListingStore:
    def __init__(self, fail_writes=False):
        self.items = {}
        self.fail_writes = fail_writes

    async def create(self, data):
        if self.fail_writes:
            raise StoreError("listing store unavailable")
        item_id = f"item-{len(self.items) + 1}"
        self.items[item_id] = dict(data)
        return item_id

    async def update(self, item_id, data):
        if self.fail_writes:
            raise StoreError("listing store unavailable")
        if item_id not in self.items:
            raise StoreError(f"listing {item_id} not found")
        self.items[item_id].update(data)
        return item_id

    async def delete(self, item_id):
        return self.items.pop(item_id, None) is not None

    async def get_many(self, ids):
        return {i: SimpleNamespace(id=i, **self.items[i]) for i in ids if i in self.items}
