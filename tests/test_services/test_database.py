"""Tests for database engine and schema creation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, text

from notesync.database import create_engine
from notesync.models.base import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notesync.config import Settings


class TestDatabase:
    async def test_engine_connects(self, test_settings: Settings) -> None:
        engine, _ = create_engine(test_settings)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                assert result.scalar() == 1
        finally:
            await engine.dispose()

    async def test_session_works(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        async with session_factory() as session:
            result = await session.execute(text("SELECT 42"))
            assert result.scalar() == 42

    async def test_schema_has_mapping_tables(self, test_settings: Settings) -> None:
        engine, _ = create_engine(test_settings)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        finally:
            await engine.dispose()
        assert {"sync_mappings", "sync_mapping_right_index", "sync_state"} <= set(tables)
