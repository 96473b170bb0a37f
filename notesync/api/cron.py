"""Cron endpoint: poll-driven Keep -> Notion sync."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from notesync.api.deps import (
    get_keep_client,
    get_reconciler,
    get_settings,
    get_store,
    require_cron_secret,
)
from notesync.clients.keep import KeepClient
from notesync.config import Settings
from notesync.schemas.sync import PollResponse, summary_response
from notesync.services.mapping_store import MappingStore
from notesync.services.poll_service import poll_keep
from notesync.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.get(
    "/poll-keep",
    response_model=PollResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def poll_keep_endpoint(
    settings: Annotated[Settings, Depends(get_settings)],
    keep: Annotated[KeepClient, Depends(get_keep_client)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
    store: Annotated[MappingStore, Depends(get_store)],
) -> PollResponse:
    """Run one poll cycle over every Keep note."""
    summary = await poll_keep(
        keep,
        reconciler,
        store,
        concurrency=settings.poll_concurrency,
    )
    return PollResponse(details=summary_response(summary))
