# listing_pipeline/api/routes.py
from dataclasses import asdict
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas, services
from ..ai_client import build_analyzer, build_keyword_enricher
from ..db import get_db
from ..domain import GeneratedItem
from ..errors import IdentifierInUse, InvalidIdentifier, InvalidTransition, StoreError
from ..generation import generate_candidate
from ..linker import PhotoLinker
from ..stores import SqlListingStore, SqlPhotoStore
from ..utils import logger

router = APIRouter()


def get_user_id(x_user_id: str = Header(...)) -> str:
    # authentication happens upstream; the gateway forwards the owner id
    return x_user_id


def get_analyzer():
    try:
        return build_analyzer()
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))


def get_keyword_enricher():
    return build_keyword_enricher()


def to_out(candidate: GeneratedItem) -> schemas.CandidateOut:
    data = asdict(candidate)
    data.update(category=candidate.category.value, condition=candidate.condition.value,
                status=candidate.status.value)
    return schemas.CandidateOut(**data)


def _candidate_or_404(board, sku: str):
    if sku not in board:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return board.get(sku)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/photos", response_model=schemas.PhotoOut)
def upload_photo(payload: schemas.PhotoCreate, user_id: str = Depends(get_user_id),
                 db: Session = Depends(get_db)):
    return crud.create_photo(db, user_id, payload.image_url, payload.filename, payload.upload_order)


@router.get("/photos", response_model=List[schemas.PhotoOut])
def list_photos(status: str | None = None, user_id: str = Depends(get_user_id),
                db: Session = Depends(get_db)):
    return crud.list_photos(db, user_id, status=status)


@router.post("/skus", response_model=schemas.AssignSkuResponse)
def assign_sku(payload: schemas.AssignSkuRequest, user_id: str = Depends(get_user_id),
               db: Session = Depends(get_db)):
    try:
        count = services.assign_identifier(db, user_id, payload.photo_ids, payload.sku)
    except InvalidIdentifier as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"sku": payload.sku.strip(), "assigned": count}


@router.delete("/skus/{sku}")
async def unassign_sku(sku: str, user_id: str = Depends(get_user_id), db: Session = Depends(get_db)):
    try:
        count = await services.unassign_identifier(SqlPhotoStore(db, user_id), sku)
    except IdentifierInUse as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"sku": sku, "reset": count}


@router.get("/candidates", response_model=List[schemas.CandidateOut])
async def list_candidates(user_id: str = Depends(get_user_id), db: Session = Depends(get_db)):
    board = await services.refresh_board(services.registry.board(user_id),
                                         SqlPhotoStore(db, user_id), SqlListingStore(db, user_id))
    return [to_out(c) for c in board]


@router.get("/candidates/stats")
def candidate_stats(user_id: str = Depends(get_user_id)):
    return services.board_stats(services.registry.board(user_id))


@router.post("/candidates/generate-all", response_model=schemas.BatchStatus, status_code=202)
async def generate_all(user_id: str = Depends(get_user_id), analyzer=Depends(get_analyzer),
                       enricher=Depends(get_keyword_enricher)):
    try:
        services.registry.start_batch(user_id, analyzer, enricher)
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"running": True}


@router.get("/candidates/batch", response_model=schemas.BatchStatus)
def batch_status(user_id: str = Depends(get_user_id)):
    report = services.registry.last_reports.get(user_id)
    status = {"running": services.registry.is_running(user_id)}
    if report is not None:
        status.update(asdict(report))
    return status


@router.post("/candidates/cancel")
def cancel_batch(user_id: str = Depends(get_user_id)):
    return {"cancelled": services.registry.cancel(user_id)}


@router.post("/candidates/{sku}/generate", response_model=schemas.CandidateOut)
async def generate_one(sku: str, user_id: str = Depends(get_user_id), db: Session = Depends(get_db),
                       analyzer=Depends(get_analyzer), enricher=Depends(get_keyword_enricher)):
    if services.registry.is_running(user_id):
        raise HTTPException(status_code=409, detail="A bulk run is in progress")
    photos, listings = SqlPhotoStore(db, user_id), SqlListingStore(db, user_id)
    board = await services.refresh_board(services.registry.board(user_id), photos, listings)
    _candidate_or_404(board, sku)
    try:
        candidate = await generate_candidate(board, sku, analyzer=analyzer, listings=listings,
                                             linker=PhotoLinker(photos), enricher=enricher)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        logger.exception("Saving generated listing for %s failed: %s", sku, e)
        raise HTTPException(status_code=502, detail=f"Listing could not be saved: {e}")
    return to_out(candidate)


@router.patch("/candidates/{sku}", response_model=schemas.CandidateOut)
async def update_candidate(sku: str, payload: schemas.CandidateUpdate,
                           user_id: str = Depends(get_user_id), db: Session = Depends(get_db)):
    board = services.registry.board(user_id)
    _candidate_or_404(board, sku)
    try:
        candidate = await services.save_edit(board, sku, payload.model_dump(exclude_unset=True),
                                             SqlListingStore(db, user_id))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return to_out(candidate)


@router.delete("/candidates/{sku}")
async def delete_candidate(sku: str, user_id: str = Depends(get_user_id), db: Session = Depends(get_db)):
    board = services.registry.board(user_id)
    _candidate_or_404(board, sku)
    try:
        await services.delete_candidate(board, sku, SqlListingStore(db, user_id), SqlPhotoStore(db, user_id))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "deleted"}
