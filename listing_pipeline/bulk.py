# listing_pipeline/bulk.py
"""Sequential bulk generation over a candidate board."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Optional

from .config import GENERATION_DELAY_SECONDS
from .domain import CandidateBoard, GeneratedItem, GenerationStatus
from .generation import LAUNCHABLE, force_attention
from .utils import logger

RunOne = Callable[[CandidateBoard, str], Awaitable[GeneratedItem]]


@dataclass
class BatchReport:
    """Outcome of one bulk pass."""

    selected: list[str] = field(default_factory=list)
    ready: list[str] = field(default_factory=list)
    needs_attention: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False


def select_pending(board: CandidateBoard) -> list[str]:
    return [c.identifier for c in board if c.status in LAUNCHABLE]


async def generate_all(
    board: CandidateBoard,
    run_one: RunOne,
    *,
    delay: float = GENERATION_DELAY_SECONDS,
    cancel_event: Optional[asyncio.Event] = None,
) -> BatchReport:
    """Run `run_one` over every launchable candidate, one at a time.

    A failure in one candidate, including an exception escaping `run_one`,
    marks that candidate `needs_attention` and the pass moves on. When
    `cancel_event` is set no further candidates are started; the one in
    flight is allowed to finish.
    """
    report = BatchReport(selected=select_pending(board))
    logger.info("Starting bulk generation for %d item(s)", len(report.selected))

    for index, identifier in enumerate(report.selected):
        if index:
            await asyncio.sleep(delay)
        if cancel_event is not None and cancel_event.is_set():
            report.cancelled = True
            report.skipped.extend(report.selected[index:])
            logger.info("Bulk generation cancelled; %d item(s) not started", len(report.skipped))
            break
        if identifier not in board:
            # deleted while the batch was running
            report.skipped.append(identifier)
            continue

        try:
            candidate = await run_one(board, identifier)
        except Exception as e:
            logger.exception("Bulk generation failed for %s: %s", identifier, e)
            if identifier not in board:
                report.skipped.append(identifier)
                continue
            candidate = force_attention(board.get(identifier), str(e) or type(e).__name__)
            board.put(candidate)

        if candidate.status == GenerationStatus.READY:
            report.ready.append(identifier)
        else:
            report.needs_attention.append(identifier)

    logger.info("Bulk generation complete: %d ready, %d need attention, %d skipped",
                len(report.ready), len(report.needs_attention), len(report.skipped))
    return report
