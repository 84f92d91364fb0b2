# listing_pipeline/generation.py
"""Lifecycle of a single listing candidate.

    not_started -> analyzing -> ready | needs_attention
    needs_attention -> analyzing          (retry)
    ready -> complete                     (listing persisted and reloaded)

A generation attempt may only start from `not_started` or `needs_attention`.
AI failures end the attempt in `needs_attention` with a fallback record.
Store failures propagate and leave the candidate in `analyzing`; the stale
sweep (`demote_stale`) picks those up later.
"""
from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Optional

from .ai_client import Analyzer, KeywordEnricher
from .config import AI_CALL_TIMEOUT_SECONDS
from .domain import CandidateBoard, CanonicalListing, GeneratedItem, GenerationStatus
from .errors import AnalysisError, InvalidTransition, MappingError
from .linker import PhotoLinker
from .normalizer import build_fallback_listing, extract_and_normalize, is_usable, merge_keywords
from .stores import ListingStore
from .utils import logger, utcnow

Status = GenerationStatus

ALLOWED_TRANSITIONS = {
    Status.NOT_STARTED: {Status.ANALYZING},
    Status.ANALYZING: {Status.READY, Status.NEEDS_ATTENTION},
    Status.NEEDS_ATTENTION: {Status.ANALYZING},
    Status.READY: {Status.COMPLETE},
    Status.COMPLETE: set(),
}
LAUNCHABLE = frozenset({Status.NOT_STARTED, Status.NEEDS_ATTENTION})

INVALID_STRUCTURE = "AI returned an invalid data structure"


def transition(candidate: GeneratedItem, target: GenerationStatus, **changes) -> GeneratedItem:
    """Return a copy of `candidate` moved to `target`, or raise `InvalidTransition`."""
    if target not in ALLOWED_TRANSITIONS[candidate.status]:
        raise InvalidTransition(candidate.identifier, candidate.status.value, target.value)
    logger.info("%s: %s -> %s", candidate.identifier, candidate.status.value, target.value)
    return replace(candidate, status=target, last_updated=utcnow(), **changes)


def listing_fields(listing: CanonicalListing) -> dict[str, Any]:
    return {
        "title": listing.title,
        "description": listing.description,
        "price": listing.price,
        "category": listing.category,
        "condition": listing.condition,
        "brand": listing.brand,
        "size": listing.size,
        "color": listing.color,
        "model_number": listing.model_number,
        "keywords": list(listing.keywords),
        "confidence": listing.confidence,
        "category_path": listing.category_path,
        "category_id": listing.category_id,
        "item_specifics": dict(listing.item_specifics),
        "analysis_metadata": dict(listing.analysis_metadata),
    }


def listing_record(candidate: GeneratedItem) -> dict[str, Any]:
    """Column values for the durable listing of `candidate`."""
    return {
        "sku": candidate.identifier,
        "title": candidate.title,
        "description": candidate.description,
        "price": candidate.price,
        "category": candidate.category.value,
        "condition": candidate.condition.value,
        "brand": candidate.brand,
        "size": candidate.size,
        "color": candidate.color,
        "model_number": candidate.model_number,
        "keywords": list(candidate.keywords),
        "images": list(candidate.photos),
        "ai_confidence": candidate.confidence,
        "analysis_metadata": candidate.analysis_metadata,
        "category_path": candidate.category_path,
        "category_id": candidate.category_id,
        "item_specifics": candidate.item_specifics,
        "status": "draft",
    }


def analysis_context(candidate: GeneratedItem) -> dict[str, Any]:
    return {
        "identifier": candidate.identifier,
        "photos": list(candidate.photos),
        "primary_photo": candidate.primary_photo,
        "includeMarketResearch": True,
        "includeCategoryAnalysis": True,
    }


def force_attention(candidate: GeneratedItem, cause: str) -> GeneratedItem:
    """Put `candidate` in `needs_attention` from whatever state an escaped error left it in.

    Fields from a finished analysis are kept; an empty candidate gets the fallback record.
    """
    changes: dict[str, Any] = {}
    if not candidate.title:
        changes = listing_fields(build_fallback_listing(candidate.identifier, cause))
    logger.warning("%s: %s -> needs_attention (%s)", candidate.identifier, candidate.status.value, cause)
    return replace(candidate, status=Status.NEEDS_ATTENTION, generation_error=cause,
                   last_updated=utcnow(), **changes)


def _recover(board: CandidateBoard, candidate: GeneratedItem, cause: str) -> GeneratedItem:
    logger.warning("%s: %s", candidate.identifier, cause)
    fallback = build_fallback_listing(candidate.identifier, cause)
    candidate = transition(candidate, Status.NEEDS_ATTENTION, generation_error=cause,
                           **listing_fields(fallback))
    board.put(candidate)
    return candidate


async def _analyze(analyzer: Analyzer, candidate: GeneratedItem, timeout) -> Mapping:
    try:
        result = await asyncio.wait_for(
            analyzer.analyze(list(candidate.photos), analysis_context(candidate)), timeout)
    except asyncio.TimeoutError as e:
        raise AnalysisError(f"AI analysis failed: no response after {timeout}s") from e
    except Exception as e:
        raise AnalysisError(f"AI analysis failed: {e}") from e

    if not isinstance(result, Mapping) or not result.get("success"):
        error = result.get("error") if isinstance(result, Mapping) else None
        raise AnalysisError(f"AI analysis failed: {error or 'analysis returned an unsuccessful result'}")
    return result


def _map_result(result: Mapping) -> CanonicalListing:
    data = result.get("data")
    try:
        listing = extract_and_normalize(data, result.get("marketResearch"), result.get("categoryAnalysis"))
    except Exception as e:
        raise MappingError(f"AI data mapping failed: {e}") from e
    if not is_usable(data, listing):
        raise MappingError(INVALID_STRUCTURE)
    return listing


async def _enrich_keywords(listing: CanonicalListing, candidate: GeneratedItem,
                           enricher: Optional[KeywordEnricher], timeout) -> CanonicalListing:
    if enricher is None:
        return listing
    try:
        extra = await asyncio.wait_for(
            enricher.suggest(candidate.primary_photo, listing.brand, listing.category.value), timeout)
    except Exception as e:
        logger.warning("%s: keyword enrichment failed, keeping extracted keywords: %s",
                       candidate.identifier, e)
        return listing
    return replace(listing, keywords=merge_keywords(listing.keywords, extra))


async def generate_candidate(
    board: CandidateBoard,
    identifier: str,
    *,
    analyzer: Analyzer,
    listings: ListingStore,
    linker: PhotoLinker,
    enricher: Optional[KeywordEnricher] = None,
    timeout: Optional[float] = AI_CALL_TIMEOUT_SECONDS,
) -> GeneratedItem:
    """Run one generation attempt for the candidate with `identifier`.

    Returns the candidate in `ready` or `needs_attention`. Raises
    `InvalidTransition` if the candidate is not launchable and lets
    `StoreError` propagate from the create/update and linking steps.
    """
    candidate = board.get(identifier)
    if candidate.status not in LAUNCHABLE:
        raise InvalidTransition(identifier, candidate.status.value, Status.ANALYZING.value)
    candidate = transition(candidate, Status.ANALYZING, generation_error=None)
    board.put(candidate)

    try:
        listing = _map_result(await _analyze(analyzer, candidate, timeout))
    except (AnalysisError, MappingError) as e:
        return _recover(board, candidate, str(e))

    listing = await _enrich_keywords(listing, candidate, enricher, timeout)
    candidate = replace(candidate, **listing_fields(listing))
    board.put(candidate)

    record = listing_record(candidate)
    if candidate.is_placeholder:
        item_id = await listings.create(record)
        # recorded before linking; a retry after a link failure updates this listing
        candidate = replace(candidate, id=item_id)
        board.put(candidate)
    else:
        await listings.update(candidate.id, record)

    await linker.link_photos(identifier, candidate.id)

    candidate = transition(candidate, Status.READY, generation_error=None)
    board.put(candidate)
    return candidate


def demote_stale(board: CandidateBoard, older_than: timedelta,
                 now: Optional[datetime] = None) -> list[str]:
    """Move candidates stuck in `analyzing` longer than `older_than` to `needs_attention`."""
    now = now or utcnow()
    demoted = []
    for candidate in board.with_status(Status.ANALYZING):
        if candidate.last_updated is not None and now - candidate.last_updated < older_than:
            continue
        minutes = int(older_than.total_seconds() // 60)
        board.put(force_attention(
            candidate, f"Generation interrupted: no result after {minutes} min; retry to regenerate"))
        demoted.append(candidate.identifier)
    return demoted
