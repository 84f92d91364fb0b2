# listing_pipeline/models.py
"""SQLAlchemy ORM models for persisted entities.

`UploadedPhoto` stages photos until they are grouped under a SKU and linked
to a generated `Listing`.
"""
import uuid

from sqlalchemy import JSON, Column, Float, ForeignKey, Index, Integer, Numeric, Text, TIMESTAMP, func
from sqlalchemy.dialects.postgresql import JSONB
from .db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_id():
    return str(uuid.uuid4())


class Listing(Base):
    __tablename__ = "listings"
    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    sku = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    price = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    category = Column(Text, nullable=False, default="other")
    condition = Column(Text, nullable=False, default="good")
    brand = Column(Text)
    size = Column(Text)
    color = Column(Text)
    model_number = Column(Text)
    keywords = Column(JSONType)
    images = Column(JSONType)
    ai_confidence = Column(Float)
    analysis_metadata = Column(JSONType)
    category_path = Column(Text)
    category_id = Column(Text)
    item_specifics = Column(JSONType)
    status = Column(Text, nullable=False, default="draft")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class UploadedPhoto(Base):
    __tablename__ = "uploaded_photos"
    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    filename = Column(Text, nullable=False)
    upload_order = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default="uploaded")  # uploaded, assigned, processed
    assigned_sku = Column(Text)
    assigned_item_id = Column(Text, ForeignKey("listings.id", ondelete="SET NULL"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

Index("idx_listings_user_sku", Listing.user_id, Listing.sku)
Index("idx_uploaded_photos_status", UploadedPhoto.status)
Index("idx_uploaded_photos_assigned_sku", UploadedPhoto.assigned_sku)
