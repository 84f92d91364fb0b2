# listing_pipeline/services.py
"""Operations behind the API: SKU assignment, board refresh, edits, deletion and bulk runs."""
import asyncio
from dataclasses import dataclass, replace
from datetime import timedelta
from functools import partial
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from . import crud
from .ai_client import Analyzer, KeywordEnricher
from .bulk import BatchReport, generate_all
from .config import GENERATION_DELAY_SECONDS
from .db import SessionLocal
from .domain import CandidateBoard, GeneratedItem, GenerationStatus
from .errors import IdentifierInUse, InvalidTransition
from .generation import demote_stale, generate_candidate, listing_record
from .grouping import group_photos, reconcile, validate_identifier
from .linker import PhotoLinker
from .normalizer import coerce_price, merge_keywords, truncate_title
from .stores import ListingStore, PhotoStore, SqlListingStore, SqlPhotoStore
from .utils import logger, utcnow
from .vocabulary import category_id, category_path, normalize_category, normalize_condition

# states worth keeping across a refresh when storage has no listing for the SKU yet
CARRIED_STATES = (GenerationStatus.ANALYZING, GenerationStatus.NEEDS_ATTENTION)


def assign_identifier(db: Session, user_id: str, photo_ids: Iterable[str], raw_sku: str) -> int:
    sku = validate_identifier(raw_sku)
    count = crud.assign_sku(db, user_id, photo_ids, sku)
    logger.info("Assigned SKU %s to %d photo(s) for user %s", sku, count, user_id)
    return count


async def unassign_identifier(photos: PhotoStore, sku: str) -> int:
    """Clear a SKU from its photos; refused once a listing has been linked."""
    linked = [p for p in await photos.list_grouped()
              if p.assigned_identifier == sku and p.assigned_item_id]
    if linked:
        raise IdentifierInUse(f"SKU {sku} has a generated listing; delete the listing instead")
    return await PhotoLinker(photos).reset_photos(sku)


def _merge(fresh: GeneratedItem, previous: Optional[GeneratedItem]) -> GeneratedItem:
    if previous is None or fresh.status != GenerationStatus.NOT_STARTED:
        return fresh
    if previous.status not in CARRIED_STATES:
        return fresh
    return replace(previous, photos=fresh.photos, primary_photo=fresh.primary_photo)


async def refresh_board(board: CandidateBoard, photos: PhotoStore, listings: ListingStore) -> CandidateBoard:
    """Rebuild `board` from storage, keeping in-flight and failed attempts visible."""
    records = await photos.list_grouped()
    durable = await listings.get_many([p.assigned_item_id for p in records if p.assigned_item_id])
    fresh = reconcile(group_photos(records), durable)
    board.replace_all(
        _merge(candidate, board.get(candidate.identifier) if candidate.identifier in board else None)
        for candidate in fresh
    )
    return board


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def apply_edit(candidate: GeneratedItem, updates: Dict[str, Any]) -> GeneratedItem:
    """Apply user edits, normalizing them the same way AI output is normalized."""
    changes: Dict[str, Any] = {}
    if "title" in updates:
        title = _clean_text(updates["title"])
        if not title:
            raise ValueError("title must not be empty")
        changes["title"] = truncate_title(title)
    if "description" in updates:
        changes["description"] = updates["description"] or ""
    if "price" in updates:
        price = coerce_price(updates["price"])
        if price is None:
            raise ValueError(f"invalid price: {updates['price']!r}")
        changes["price"] = price
    if "category" in updates:
        category = normalize_category(updates["category"])
        changes.update(category=category, category_path=category_path(category),
                       category_id=category_id(category))
    if "condition" in updates:
        changes["condition"] = normalize_condition(updates["condition"])
    for key in ("brand", "size", "color", "model_number"):
        if key in updates:
            changes[key] = _clean_text(updates[key])
    if "keywords" in updates:
        changes["keywords"] = merge_keywords(updates["keywords"] or [])
    return replace(candidate, last_updated=utcnow(), **changes)


async def save_edit(board: CandidateBoard, identifier: str, updates: Dict[str, Any],
                    listings: ListingStore) -> GeneratedItem:
    candidate = board.get(identifier)
    if candidate.is_placeholder:
        raise InvalidTransition(identifier, candidate.status.value, "edited")
    if candidate.status == GenerationStatus.ANALYZING:
        raise InvalidTransition(identifier, candidate.status.value, "edited")
    updated = apply_edit(candidate, updates)
    await listings.update(updated.id, listing_record(updated))
    board.put(updated)
    logger.info("Saved edit for %s", identifier)
    return updated


async def delete_candidate(board: CandidateBoard, identifier: str, listings: ListingStore,
                           photos: PhotoStore) -> GeneratedItem:
    """Delete the candidate's listing and return its photos to `uploaded`."""
    candidate = board.get(identifier)
    if candidate.status == GenerationStatus.ANALYZING:
        raise InvalidTransition(identifier, candidate.status.value, "deleted")
    if not candidate.is_placeholder:
        await listings.delete(candidate.id)
    await PhotoLinker(photos).reset_photos(identifier)
    board.remove(identifier)
    logger.info("Deleted candidate %s (%s)", identifier, candidate.id)
    return candidate


def board_stats(board: CandidateBoard) -> Dict[str, int]:
    stats = {status.value: 0 for status in GenerationStatus}
    for candidate in board:
        stats[candidate.status.value] += 1
    stats["total"] = len(board)
    return stats


@dataclass
class BatchRun:
    task: asyncio.Task
    cancel_event: asyncio.Event


class BoardRegistry:
    """In-memory boards and detached bulk runs, one per user."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory
        self.boards: Dict[str, CandidateBoard] = {}
        self.batches: Dict[str, BatchRun] = {}
        self.last_reports: Dict[str, BatchReport] = {}

    def board(self, user_id: str) -> CandidateBoard:
        return self.boards.setdefault(user_id, CandidateBoard())

    def is_running(self, user_id: str) -> bool:
        run = self.batches.get(user_id)
        return run is not None and not run.task.done()

    def start_batch(self, user_id: str, analyzer: Analyzer,
                    enricher: Optional[KeywordEnricher] = None,
                    delay: float = GENERATION_DELAY_SECONDS) -> asyncio.Task:
        if self.is_running(user_id):
            raise RuntimeError(f"a bulk run is already in progress for user {user_id}")
        cancel_event = asyncio.Event()
        task = asyncio.create_task(self._run_batch(user_id, analyzer, enricher, delay, cancel_event))
        self.batches[user_id] = BatchRun(task=task, cancel_event=cancel_event)
        return task

    async def _run_batch(self, user_id, analyzer, enricher, delay, cancel_event) -> BatchReport:
        db = self.session_factory()
        try:
            photos = SqlPhotoStore(db, user_id)
            listings = SqlListingStore(db, user_id)
            board = await refresh_board(self.board(user_id), photos, listings)
            run_one = partial(generate_candidate, analyzer=analyzer, listings=listings,
                              linker=PhotoLinker(photos), enricher=enricher)
            report = await generate_all(board, run_one, delay=delay, cancel_event=cancel_event)
            self.last_reports[user_id] = report
            return report
        finally:
            db.close()

    def cancel(self, user_id: str) -> bool:
        """Stop scheduling further candidates; the one in flight finishes."""
        if not self.is_running(user_id):
            return False
        self.batches[user_id].cancel_event.set()
        logger.info("Cancellation requested for bulk run of user %s", user_id)
        return True

    def sweep(self, older_than: timedelta) -> Dict[str, list]:
        demoted = {}
        for user_id, board in self.boards.items():
            stale = demote_stale(board, older_than)
            if stale:
                logger.warning("Demoted stale candidates for user %s: %s", user_id, stale)
                demoted[user_id] = stale
        return demoted


registry = BoardRegistry()
