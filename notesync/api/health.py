"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from notesync import __version__
from notesync.api.deps import get_session, get_store
from notesync.services.datetime_service import format_iso
from notesync.services.mapping_store import MappingStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    last_polled_at: str | None = None


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[MappingStore, Depends(get_store)],
) -> HealthResponse:
    """Health check endpoint for monitoring and cron schedulers."""
    db_status = "ok"
    last_polled: str | None = None
    try:
        await session.execute(text("SELECT 1"))
        polled_at = await store.get_last_polled()
        last_polled = format_iso(polled_at) if polled_at is not None else None
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "error"

    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        version=__version__,
        database=db_status,
        last_polled_at=last_polled,
    )
