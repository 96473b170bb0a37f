"""Operator actions: sync status, mapping listing, forced sync, and mapping repair."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from notesync.services.datetime_service import format_iso
from notesync.services.poll_service import reconcile_batch
from notesync.services.reconciler import ChangeEvent

if TYPE_CHECKING:
    from notesync.clients.base import DocumentStore, NoteStore
    from notesync.services.mapping_store import MappingStore, SyncMapping
    from notesync.services.poll_service import BatchSummary
    from notesync.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

NOTION_TO_KEEP = "notion-to-keep"
KEEP_TO_NOTION = "keep-to-notion"
BOTH = "both"
DIRECTIONS = (NOTION_TO_KEEP, KEEP_TO_NOTION, BOTH)


@dataclass(frozen=True)
class SyncStatusReport:
    mappings: int
    keep_notes: int
    notion_pages: int
    unmapped_keep: int
    unmapped_notion: int
    last_polled_at: datetime | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "mappings": self.mappings,
            "keep_notes": self.keep_notes,
            "notion_pages": self.notion_pages,
            "unmapped_keep": self.unmapped_keep,
            "unmapped_notion": self.unmapped_notion,
            "last_polled_at": format_iso(self.last_polled_at) if self.last_polled_at else None,
        }


async def get_sync_status(
    store: MappingStore,
    notion: DocumentStore,
    keep: NoteStore,
    *,
    notion_database_id: str,
) -> SyncStatusReport:
    """Count mappings and live documents on both sides."""
    mappings = await store.list_all()
    notes = [note for note in await keep.list_notes() if not note.trashed and note.name]
    pages = [page for page in await notion.query_database(notion_database_id) if not page.archived]

    mapped_right = {mapping.right_id for mapping in mappings}
    mapped_left = {mapping.left_id for mapping in mappings}
    return SyncStatusReport(
        mappings=len(mappings),
        keep_notes=len(notes),
        notion_pages=len(pages),
        unmapped_keep=sum(1 for note in notes if note.name not in mapped_right),
        unmapped_notion=sum(1 for page in pages if page.id not in mapped_left),
        last_polled_at=await store.get_last_polled(),
    )


async def list_mappings(store: MappingStore) -> list[SyncMapping]:
    """List every mapping, ordered by Notion page id."""
    return sorted(await store.list_all(), key=lambda mapping: mapping.left_id)


async def force_sync(
    direction: str,
    reconciler: Reconciler,
    notion: DocumentStore,
    keep: NoteStore,
    *,
    notion_database_id: str,
    concurrency: int = 1,
) -> dict[str, BatchSummary]:
    """Reconcile every live document in the given direction, bypassing the cooldown.

    Staleness still applies, so documents already synced at their current
    version are reported as skipped. Returns one summary per direction run.
    """
    if direction not in DIRECTIONS:
        msg = f"Invalid direction {direction!r}; expected one of {', '.join(DIRECTIONS)}"
        raise ValueError(msg)

    results: dict[str, BatchSummary] = {}
    if direction in (NOTION_TO_KEEP, BOTH):
        pages = await notion.query_database(notion_database_id)
        events = [ChangeEvent.from_page(page) for page in pages if not page.archived]
        logger.info("Force sync %s: %d pages", NOTION_TO_KEEP, len(events))
        results[NOTION_TO_KEEP] = await reconcile_batch(
            events, reconciler, concurrency=concurrency, ignore_cooldown=True
        )
    if direction in (KEEP_TO_NOTION, BOTH):
        notes = await keep.list_notes()
        events = [ChangeEvent.from_note(note) for note in notes if not note.trashed and note.name]
        logger.info("Force sync %s: %d notes", KEEP_TO_NOTION, len(events))
        results[KEEP_TO_NOTION] = await reconcile_batch(
            events, reconciler, concurrency=concurrency, ignore_cooldown=True
        )
    return results


async def delete_mapping(store: MappingStore, left_id: str) -> bool:
    """Forget a pairing so the next change on either side starts fresh."""
    deleted = await store.delete(left_id)
    if not deleted:
        logger.info("No mapping to delete for %s", left_id)
    return deleted
