# listing_pipeline/stores.py
"""Async photo and listing store collaborators backed by the SQL `crud` helpers.

Each store is bound to one session and one owner. The blocking `crud` calls
run in the threadpool so a slow database does not stall the event loop. Database failures surface
as `StoreError` so the generation protocol can tell them apart from AI failures.
"""
from __future__ import annotations

from typing import Any, Protocol

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .domain import PhotoRecord, PhotoStatus
from .errors import StoreError
from .models import UploadedPhoto


class PhotoStore(Protocol):
    async def list_grouped(self) -> list[PhotoRecord]: ...
    async def link(self, identifier: str, item_id: str) -> int: ...
    async def reset(self, identifier: str) -> int: ...


class ListingStore(Protocol):
    async def create(self, data: dict[str, Any]) -> str: ...
    async def update(self, item_id: str, data: dict[str, Any]) -> str: ...
    async def delete(self, item_id: str) -> bool: ...
    async def get_many(self, ids: list[str]) -> dict[str, Any]: ...


def to_photo_record(row: UploadedPhoto) -> PhotoRecord:
    return PhotoRecord(
        id=row.id,
        image_ref=row.image_url,
        filename=row.filename,
        upload_order=row.upload_order or 0,
        assigned_identifier=row.assigned_sku,
        assigned_item_id=row.assigned_item_id,
        status=PhotoStatus(row.status or PhotoStatus.UPLOADED.value),
        user_id=row.user_id,
    )


class SqlPhotoStore:
    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    async def list_grouped(self) -> list[PhotoRecord]:
        try:
            rows = await run_in_threadpool(crud.list_grouped_photos, self.db, self.user_id)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to load photos: {e}") from e
        return [to_photo_record(row) for row in rows]

    async def link(self, identifier: str, item_id: str) -> int:
        try:
            return await run_in_threadpool(crud.link_photos, self.db, self.user_id, identifier, item_id)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to link photos for {identifier}: {e}") from e

    async def reset(self, identifier: str) -> int:
        try:
            return await run_in_threadpool(crud.reset_photos, self.db, self.user_id, identifier)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to reset photos for {identifier}: {e}") from e


class SqlListingStore:
    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    async def create(self, data: dict[str, Any]) -> str:
        try:
            obj = await run_in_threadpool(crud.create_listing, self.db, self.user_id, data)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to create listing for {data.get('sku')}: {e}") from e
        return obj.id

    async def update(self, item_id: str, data: dict[str, Any]) -> str:
        try:
            obj = await run_in_threadpool(crud.update_listing, self.db, self.user_id, item_id, data)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to update listing {item_id}: {e}") from e
        if obj is None:
            raise StoreError(f"listing {item_id} not found")
        return obj.id

    async def delete(self, item_id: str) -> bool:
        try:
            return await run_in_threadpool(crud.delete_listing, self.db, self.user_id, item_id)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to delete listing {item_id}: {e}") from e

    async def get_many(self, ids: list[str]) -> dict[str, Any]:
        try:
            return await run_in_threadpool(crud.get_listings_by_ids, self.db, self.user_id, ids)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to load listings: {e}") from e
