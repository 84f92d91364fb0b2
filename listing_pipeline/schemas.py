# listing_pipeline/schemas.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

class PhotoCreate(BaseModel):
    image_url: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)
    upload_order: Optional[int] = None

class PhotoOut(BaseModel):
    id: str
    image_url: str
    filename: str
    upload_order: int
    status: str
    assigned_sku: Optional[str] = None
    assigned_item_id: Optional[str] = None
    class Config:
        from_attributes = True

class AssignSkuRequest(BaseModel):
    photo_ids: List[str] = Field(..., min_length=1)
    sku: str

class AssignSkuResponse(BaseModel):
    sku: str
    assigned: int

class CandidateOut(BaseModel):
    id: str
    identifier: str
    photos: List[str]
    primary_photo: str
    title: str
    description: str
    price: float
    category: str
    condition: str
    brand: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    model_number: Optional[str] = None
    keywords: List[str]
    confidence: float
    category_path: str
    category_id: str
    item_specifics: Dict[str, Any]
    analysis_metadata: Dict[str, Any]
    status: str
    generation_error: Optional[str] = None
    last_updated: Optional[datetime] = None
    class Config:
        from_attributes = True

class CandidateUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    model_number: Optional[str] = None
    keywords: Optional[List[str]] = None

class BatchStatus(BaseModel):
    running: bool
    selected: List[str] = []
    ready: List[str] = []
    needs_attention: List[str] = []
    skipped: List[str] = []
    cancelled: bool = False
