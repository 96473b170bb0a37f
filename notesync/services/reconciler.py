"""Reconciler: decide, apply, and record one inbound change.

Both directions run the same procedure, parameterized by the event's origin:

1. resolve the mapping by the origin-side id;
2. skip if the version marker is not strictly newer than the one recorded at
   the last sync (late or duplicate delivery, or the echo of our own write);
3. skip if the cooldown guard suppresses a same-origin change;
4. translate the document to the other side's shape;
5. update the other side's mapped note/page, or create one;
6. record both ids, both version markers, the origin and the write time.

A failed translation or write leaves the mapping untouched so the next poll
or webhook delivery retries from the same state. Nothing is retried inline.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from notesync.exceptions import TransientIOError, TranslationError
from notesync.services.cooldown import DEFAULT_COOLDOWN, should_suppress
from notesync.services.datetime_service import now_utc, parse_datetime
from notesync.services.mapping_store import Origin, SyncMapping

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from notesync.clients.base import DocumentStore, KeepNote, NoteStore, NotionPage
    from notesync.services.mapping_store import MappingStore
    from notesync.services.translator import ChangeTranslator

logger = logging.getLogger(__name__)


class Outcome(StrEnum):
    """Result of reconciling one change event."""

    APPLIED_CREATED = "applied-created"
    APPLIED_UPDATED = "applied-updated"
    SKIPPED_COOLDOWN = "skipped-cooldown"
    SKIPPED_UNCHANGED = "skipped-unchanged"
    FAILED = "failed"

    @property
    def applied(self) -> bool:
        return self in (Outcome.APPLIED_CREATED, Outcome.APPLIED_UPDATED)

    @property
    def skipped(self) -> bool:
        return self in (Outcome.SKIPPED_COOLDOWN, Outcome.SKIPPED_UNCHANGED)


@dataclass(frozen=True)
class ChangeEvent:
    """One observed change: a Notion page (left) or a Keep note (right)."""

    origin: Origin
    document_id: str
    version_marker: str
    raw_document: Any

    @classmethod
    def from_page(cls, page: NotionPage) -> ChangeEvent:
        return cls(Origin.LEFT, page.id, page.last_edited_time, page)

    @classmethod
    def from_note(cls, note: KeepNote) -> ChangeEvent:
        return cls(Origin.RIGHT, note.name, note.update_time, note)


@dataclass(frozen=True)
class ReconcileResult:
    outcome: Outcome
    applied_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class _WriteResult:
    document_id: str
    version_marker: str


def is_newer_version(current: str, recorded: str) -> bool:
    """Return True if ``current`` is strictly newer than ``recorded``.

    Markers are compared as instants when both parse as timestamps, and as
    plain strings otherwise.
    """
    try:
        return parse_datetime(current) > parse_datetime(recorded)
    except ValueError:
        return current > recorded


class _KeyedLocks:
    """Per-key asyncio locks, dropped once no task holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class Reconciler:
    """Mirror changes between a Notion database and Google Keep."""

    def __init__(
        self,
        store: MappingStore,
        notion: DocumentStore,
        keep: NoteStore,
        translator: ChangeTranslator,
        *,
        notion_database_id: str,
        cooldown: timedelta = DEFAULT_COOLDOWN,
    ) -> None:
        self.store = store
        self.notion = notion
        self.keep = keep
        self.translator = translator
        self.notion_database_id = notion_database_id
        self.cooldown = cooldown
        self._locks = _KeyedLocks()
        self._lookups: dict[Origin, Callable[[str], Awaitable[SyncMapping | None]]] = {
            Origin.LEFT: store.get,
            Origin.RIGHT: store.get_by_right_id,
        }
        self._writers: dict[Origin, Callable[[Any, str | None], Awaitable[_WriteResult]]] = {
            Origin.LEFT: self._write_to_keep,
            Origin.RIGHT: self._write_to_notion,
        }

    async def _write_to_keep(self, page: NotionPage, note_name: str | None) -> _WriteResult:
        fields = self.translator.to_right(page)
        if note_name is not None:
            note = await self.keep.update_note(note_name, fields)
            if not note.update_time:
                # PATCH responses may omit output-only fields
                note = await self.keep.get_note(note_name)
            return _WriteResult(note.name or note_name, note.update_time)
        note = await self.keep.create_note(fields)
        if not note.name:
            raise TransientIOError("Keep did not return a name for the created note")
        return _WriteResult(note.name, note.update_time)

    async def _write_to_notion(self, note: KeepNote, page_id: str | None) -> _WriteResult:
        fields = self.translator.to_left(note)
        if page_id is not None:
            page = await self.notion.update_document(page_id, fields)
        else:
            page = await self.notion.create_document(self.notion_database_id, fields)
        return _WriteResult(page.id, page.last_edited_time)

    async def _resolve(self, event: ChangeEvent) -> SyncMapping | None:
        return await self._lookups[event.origin](event.document_id)

    async def reconcile(
        self, event: ChangeEvent, *, ignore_cooldown: bool = False
    ) -> ReconcileResult:
        """Reconcile one change event.

        ``AuthError`` and ``StorageError`` propagate. Translation and remote
        write failures yield ``Outcome.FAILED``, as does a write whose result
        would re-point an existing mapping.
        """
        mapping = await self._resolve(event)
        if mapping is not None:
            lock_key = mapping.left_id
        elif event.origin is Origin.LEFT:
            lock_key = event.document_id
        else:
            lock_key = f"right:{event.document_id}"
        async with self._locks.hold(lock_key):
            # Re-read under the lock: a concurrent event may have just written it.
            mapping = await self._resolve(event)
            return await self._reconcile_locked(event, mapping, ignore_cooldown=ignore_cooldown)

    async def _reconcile_locked(
        self, event: ChangeEvent, mapping: SyncMapping | None, *, ignore_cooldown: bool
    ) -> ReconcileResult:
        origin = event.origin
        target = origin.other

        if mapping is not None and not is_newer_version(
            event.version_marker, mapping.version_for(origin)
        ):
            logger.debug(
                "Skipping %s %s: version %s already synced",
                origin,
                event.document_id,
                event.version_marker,
            )
            return ReconcileResult(Outcome.SKIPPED_UNCHANGED, mapping.id_for(target))

        if not ignore_cooldown and should_suppress(mapping, origin, self.cooldown):
            logger.info("Skipping %s %s due to cooldown", origin, event.document_id)
            return ReconcileResult(
                Outcome.SKIPPED_COOLDOWN, mapping.id_for(target) if mapping else None
            )

        existing_target_id = mapping.id_for(target) if mapping is not None else None
        try:
            written = await self._writers[origin](event.raw_document, existing_target_id)
        except (TranslationError, TransientIOError) as exc:
            logger.warning("Failed to sync %s %s to %s: %s", origin, event.document_id, target, exc)
            return ReconcileResult(Outcome.FAILED, existing_target_id, error=str(exc))

        now = now_utc()
        if mapping is not None and mapping.last_write_timestamp > now:
            now = mapping.last_write_timestamp

        versions = {origin: event.version_marker, target: written.version_marker}
        ids = {origin: event.document_id, target: written.document_id}
        try:
            await self.store.upsert(
                SyncMapping(
                    left_id=ids[Origin.LEFT],
                    right_id=ids[Origin.RIGHT],
                    last_synced_left_version=versions[Origin.LEFT],
                    last_synced_right_version=versions[Origin.RIGHT],
                    last_write_origin=origin,
                    last_write_timestamp=now,
                )
            )
        except ValueError as exc:
            # The remote write already happened; its result is left unmapped.
            logger.error(
                "Orphaned write: %s %s was written to %s %s but not recorded: %s",
                origin,
                event.document_id,
                target,
                written.document_id,
                exc,
            )
            return ReconcileResult(Outcome.FAILED, existing_target_id, error=str(exc))

        outcome = Outcome.APPLIED_UPDATED if mapping is not None else Outcome.APPLIED_CREATED
        logger.info(
            "%s %s %s -> %s %s", outcome, origin, event.document_id, target, written.document_id
        )
        return ReconcileResult(outcome, written.document_id)
