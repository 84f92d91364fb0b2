# listing_pipeline/crud.py
"""CRUD operations for `UploadedPhoto` and `Listing` rows.

Every helper takes the owning `user_id` and filters on it; nothing here
touches another user's rows. Write helpers commit on success and roll the
session back before re-raising on failure, so a caller never observes a
half-applied change.
"""
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional

from .models import Listing, UploadedPhoto

LISTING_FIELDS = (
    "sku", "title", "description", "price", "category", "condition", "brand", "size",
    "color", "model_number", "keywords", "images", "ai_confidence", "analysis_metadata",
    "category_path", "category_id", "item_specifics", "status",
)


@contextmanager
def _writing(db: Session):
    """Commit on success; roll back on any database error, including the statement itself."""
    try:
        yield
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def create_photo(db: Session, user_id: str, image_url: str, filename: str,
                 upload_order: Optional[int] = None) -> UploadedPhoto:
    with _writing(db):
        if upload_order is None:
            current = db.query(func.max(UploadedPhoto.upload_order)).filter(
                UploadedPhoto.user_id == user_id).scalar()
            upload_order = (current or 0) + 1
        photo = UploadedPhoto(user_id=user_id, image_url=image_url, filename=filename,
                              upload_order=upload_order, status="uploaded")
        db.add(photo)
    db.refresh(photo)
    return photo


def list_photos(db: Session, user_id: str, status: Optional[str] = None) -> List[UploadedPhoto]:
    q = db.query(UploadedPhoto).filter(UploadedPhoto.user_id == user_id)
    if status:
        q = q.filter(UploadedPhoto.status == status)
    return q.order_by(UploadedPhoto.upload_order).all()


def list_grouped_photos(db: Session, user_id: str) -> List[UploadedPhoto]:
    return (
        db.query(UploadedPhoto)
        .filter(UploadedPhoto.user_id == user_id, UploadedPhoto.assigned_sku.isnot(None))
        .order_by(UploadedPhoto.assigned_sku, UploadedPhoto.upload_order)
        .all()
    )


def assign_sku(db: Session, user_id: str, photo_ids: Iterable[str], sku: str) -> int:
    ids = list(photo_ids)
    with _writing(db):
        count = (
            db.query(UploadedPhoto)
            .filter(UploadedPhoto.user_id == user_id, UploadedPhoto.id.in_(ids),
                    UploadedPhoto.assigned_item_id.is_(None))
            .update({"assigned_sku": sku, "status": "assigned"}, synchronize_session=False)
        )
    return count


def link_photos(db: Session, user_id: str, sku: str, item_id: str) -> int:
    with _writing(db):
        count = (
            db.query(UploadedPhoto)
            .filter(UploadedPhoto.user_id == user_id, UploadedPhoto.assigned_sku == sku)
            .update({"assigned_item_id": item_id, "status": "processed"}, synchronize_session=False)
        )
    return count


def reset_photos(db: Session, user_id: str, sku: str) -> int:
    with _writing(db):
        count = (
            db.query(UploadedPhoto)
            .filter(UploadedPhoto.user_id == user_id, UploadedPhoto.assigned_sku == sku)
            .update({"assigned_item_id": None, "assigned_sku": None, "status": "uploaded"},
                    synchronize_session=False)
        )
    return count


def get_listing(db: Session, user_id: str, listing_id: str) -> Optional[Listing]:
    return db.query(Listing).filter(Listing.user_id == user_id, Listing.id == listing_id).first()


def get_listings_by_ids(db: Session, user_id: str, ids: Iterable[str]) -> Dict[str, Listing]:
    ids = [i for i in set(ids) if i]
    if not ids:
        return {}
    rows = db.query(Listing).filter(Listing.user_id == user_id, Listing.id.in_(ids)).all()
    return {row.id: row for row in rows}


def create_listing(db: Session, user_id: str, data: Dict[str, Any]) -> Listing:
    obj = Listing(user_id=user_id, **{k: v for k, v in data.items() if k in LISTING_FIELDS})
    with _writing(db):
        db.add(obj)
    db.refresh(obj)
    return obj


def update_listing(db: Session, user_id: str, listing_id: str, updates: Dict[str, Any]) -> Optional[Listing]:
    with _writing(db):
        obj = get_listing(db, user_id, listing_id)
        if not obj:
            return None
        for k, v in updates.items():
            if k in LISTING_FIELDS:
                setattr(obj, k, v)
    db.refresh(obj)
    return obj


def delete_listing(db: Session, user_id: str, listing_id: str) -> bool:
    with _writing(db):
        obj = get_listing(db, user_id, listing_id)
        if not obj:
            return False
        db.delete(obj)
    return True
