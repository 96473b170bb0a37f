"""Mapping store: durable page <-> note correspondences and poll bookkeeping.

Pure data access. The primary table is keyed by Notion page id; the reverse
index keyed by Keep note name is written in the same transaction so that
lookups by either key never scan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from notesync.exceptions import StorageError
from notesync.models.mapping import MappingRightIndex, SyncMappingRecord, SyncStateEntry
from notesync.services.datetime_service import format_datetime, format_iso, parse_stored

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

LAST_POLLED_KEY = "last_polled_at"


class Origin(StrEnum):
    """Side of the sync that produced a change."""

    LEFT = "left"
    RIGHT = "right"

    @property
    def other(self) -> Origin:
        return Origin.RIGHT if self is Origin.LEFT else Origin.LEFT


@dataclass(frozen=True)
class SyncMapping:
    """Correspondence between a Notion page (left) and a Keep note (right)."""

    left_id: str
    right_id: str
    last_synced_left_version: str
    last_synced_right_version: str
    last_write_origin: Origin
    last_write_timestamp: datetime

    def id_for(self, origin: Origin) -> str:
        return self.left_id if origin is Origin.LEFT else self.right_id

    def version_for(self, origin: Origin) -> str:
        if origin is Origin.LEFT:
            return self.last_synced_left_version
        return self.last_synced_right_version

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "left_id": self.left_id,
            "right_id": self.right_id,
            "last_synced_left_version": self.last_synced_left_version,
            "last_synced_right_version": self.last_synced_right_version,
            "last_write_origin": str(self.last_write_origin),
            "last_write_timestamp": format_iso(self.last_write_timestamp),
        }


def _to_mapping(record: SyncMappingRecord) -> SyncMapping:
    return SyncMapping(
        left_id=record.left_id,
        right_id=record.right_id,
        last_synced_left_version=record.last_synced_left_version,
        last_synced_right_version=record.last_synced_right_version,
        last_write_origin=Origin(record.last_write_origin),
        last_write_timestamp=parse_stored(record.last_write_at),
    )


class MappingStore:
    """Async mapping store backed by SQLAlchemy.

    Every SQLAlchemy failure surfaces as ``StorageError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, left_id: str) -> SyncMapping | None:
        """Get a mapping by Notion page id."""
        try:
            async with self._session_factory() as session:
                record = await session.get(SyncMappingRecord, left_id)
                return _to_mapping(record) if record is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read mapping for {left_id}: {exc}") from exc

    async def get_by_right_id(self, right_id: str) -> SyncMapping | None:
        """Get a mapping by Keep note name through the reverse index."""
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(SyncMappingRecord)
                    .join(MappingRightIndex, MappingRightIndex.left_id == SyncMappingRecord.left_id)
                    .where(MappingRightIndex.right_id == right_id)
                )
                result = await session.execute(stmt)
                record = result.scalar_one_or_none()
                return _to_mapping(record) if record is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read mapping for {right_id}: {exc}") from exc

    async def list_all(self) -> list[SyncMapping]:
        """List every mapping. Order is unspecified."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(SyncMappingRecord))
                return [_to_mapping(record) for record in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list mappings: {exc}") from exc

    async def upsert(self, mapping: SyncMapping) -> None:
        """Insert or fully replace a mapping and its reverse index entry.

        Raises ValueError when the write would re-point an existing identity:
        a mapping's right id never changes, and a right id belongs to one
        mapping only.
        """
        try:
            async with self._session_factory() as session, session.begin():
                record = await session.get(SyncMappingRecord, mapping.left_id)
                if record is not None and record.right_id != mapping.right_id:
                    msg = (
                        f"Mapping for {mapping.left_id} already points to {record.right_id}, "
                        f"refusing to re-point it to {mapping.right_id}"
                    )
                    raise ValueError(msg)

                index = await session.get(MappingRightIndex, mapping.right_id)
                if index is not None and index.left_id != mapping.left_id:
                    msg = f"{mapping.right_id} is already mapped to {index.left_id}"
                    raise ValueError(msg)

                if record is None:
                    record = SyncMappingRecord(left_id=mapping.left_id)
                    session.add(record)
                record.right_id = mapping.right_id
                record.last_synced_left_version = mapping.last_synced_left_version
                record.last_synced_right_version = mapping.last_synced_right_version
                record.last_write_origin = str(mapping.last_write_origin)
                record.last_write_at = format_datetime(mapping.last_write_timestamp)

                if index is None:
                    session.add(MappingRightIndex(right_id=mapping.right_id, left_id=mapping.left_id))
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to write mapping for {mapping.left_id}: {exc}") from exc

    async def delete(self, left_id: str) -> bool:
        """Delete a mapping and its index entry. Returns True if it existed."""
        try:
            async with self._session_factory() as session, session.begin():
                record = await session.get(SyncMappingRecord, left_id)
                if record is None:
                    return False
                await session.execute(
                    delete(MappingRightIndex).where(MappingRightIndex.left_id == left_id)
                )
                await session.delete(record)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete mapping for {left_id}: {exc}") from exc
        logger.info("Deleted mapping for %s", left_id)
        return True

    async def record_last_polled(self, timestamp: datetime) -> None:
        """Store the time of the most recent completed poll."""
        try:
            async with self._session_factory() as session, session.begin():
                entry = await session.get(SyncStateEntry, LAST_POLLED_KEY)
                if entry is None:
                    session.add(SyncStateEntry(key=LAST_POLLED_KEY, value=format_datetime(timestamp)))
                else:
                    entry.value = format_datetime(timestamp)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to record poll time: {exc}") from exc

    async def get_last_polled(self) -> datetime | None:
        """Return the time of the most recent completed poll, or None if never polled."""
        try:
            async with self._session_factory() as session:
                entry = await session.get(SyncStateEntry, LAST_POLLED_KEY)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read poll time: {exc}") from exc
        return parse_stored(entry.value) if entry is not None else None
