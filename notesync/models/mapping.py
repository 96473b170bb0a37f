"""Sync mapping models: primary records, right-side index, and scalar state."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notesync.models.base import Base


class SyncMappingRecord(Base):
    """Correspondence between one Notion page and one Keep note, keyed by page id."""

    __tablename__ = "sync_mappings"

    left_id: Mapped[str] = mapped_column(String, primary_key=True)
    right_id: Mapped[str] = mapped_column(String, nullable=False)
    last_synced_left_version: Mapped[str] = mapped_column(Text, nullable=False)
    last_synced_right_version: Mapped[str] = mapped_column(Text, nullable=False)
    last_write_origin: Mapped[str] = mapped_column(String, nullable=False)
    last_write_at: Mapped[str] = mapped_column(Text, nullable=False)


class MappingRightIndex(Base):
    """Reverse lookup from Keep note name to Notion page id.

    Written in the same transaction as every ``SyncMappingRecord`` change.
    """

    __tablename__ = "sync_mapping_right_index"

    right_id: Mapped[str] = mapped_column(String, primary_key=True)
    left_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)


class SyncStateEntry(Base):
    """Process-wide scalar state such as the last poll time."""

    __tablename__ = "sync_state"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
