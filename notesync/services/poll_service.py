"""Poll driver: enumerate Keep notes and reconcile each one toward Notion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from notesync.exceptions import AuthError
from notesync.services.datetime_service import now_utc
from notesync.services.reconciler import ChangeEvent, Outcome

if TYPE_CHECKING:
    from collections.abc import Iterable

    from notesync.clients.base import NoteStore
    from notesync.services.mapping_store import MappingStore
    from notesync.services.reconciler import Reconciler, ReconcileResult

logger = logging.getLogger(__name__)


@dataclass
class BatchError:
    id: str
    message: str


@dataclass
class BatchSummary:
    """Per-outcome counts for one batch of change events.

    ``processed`` counts items reconciled without error, applied or skipped.
    """

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[BatchError] = field(default_factory=list)

    def record(self, document_id: str, result: ReconcileResult) -> None:
        if result.outcome is Outcome.FAILED:
            self.errors.append(BatchError(document_id, result.error or "Sync failed"))
            return
        self.processed += 1
        if result.outcome is Outcome.APPLIED_CREATED:
            self.created += 1
        elif result.outcome is Outcome.APPLIED_UPDATED:
            self.updated += 1
        else:
            self.skipped += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [{"id": err.id, "message": err.message} for err in self.errors],
        }


async def reconcile_batch(
    events: Iterable[ChangeEvent],
    reconciler: Reconciler,
    *,
    concurrency: int = 1,
    ignore_cooldown: bool = False,
) -> BatchSummary:
    """Reconcile events with bounded parallelism, isolating per-item failures.

    A failure of one item is recorded in the summary and never stops its
    siblings. ``AuthError`` is re-raised once every item has finished, since
    no later invocation can succeed without fixing the credentials.
    """
    semaphore = asyncio.Semaphore(max(concurrency, 1))
    event_list = list(events)

    async def run_one(event: ChangeEvent) -> ReconcileResult | Exception:
        async with semaphore:
            try:
                return await reconciler.reconcile(event, ignore_cooldown=ignore_cooldown)
            except AuthError:
                raise
            except Exception as exc:
                logger.error(
                    "Error processing %s %s: %s",
                    event.origin,
                    event.document_id,
                    exc,
                    exc_info=exc,
                )
                return exc

    outcomes = await asyncio.gather(
        *(run_one(event) for event in event_list), return_exceptions=True
    )

    summary = BatchSummary()
    auth_error: AuthError | None = None
    for event, outcome in zip(event_list, outcomes, strict=True):
        if isinstance(outcome, AuthError):
            auth_error = auth_error or outcome
            summary.errors.append(BatchError(event.document_id, str(outcome)))
        elif isinstance(outcome, BaseException):
            summary.errors.append(BatchError(event.document_id, str(outcome) or type(outcome).__name__))
        else:
            summary.record(event.document_id, outcome)

    if auth_error is not None:
        raise auth_error
    return summary


async def poll_keep(
    keep: NoteStore,
    reconciler: Reconciler,
    store: MappingStore,
    *,
    concurrency: int = 1,
    ignore_cooldown: bool = False,
) -> BatchSummary:
    """Run one poll cycle over the full Keep note set."""
    logger.info("Starting Keep polling job...")
    notes = await keep.list_notes()
    logger.info("Found %d Keep notes", len(notes))

    events = [ChangeEvent.from_note(note) for note in notes if not note.trashed and note.name]
    summary = await reconcile_batch(
        events, reconciler, concurrency=concurrency, ignore_cooldown=ignore_cooldown
    )
    await store.record_last_polled(now_utc())

    logger.info(
        "Keep polling complete: %d processed, %d created, %d updated, %d skipped, %d errors",
        summary.processed,
        summary.created,
        summary.updated,
        summary.skipped,
        len(summary.errors),
    )
    return summary
