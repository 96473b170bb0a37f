"""SQLAlchemy ORM models for Notesync."""

from notesync.models.base import Base
from notesync.models.mapping import MappingRightIndex, SyncMappingRecord, SyncStateEntry

__all__ = [
    "Base",
    "MappingRightIndex",
    "SyncMappingRecord",
    "SyncStateEntry",
]
