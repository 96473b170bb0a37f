"""Internal operator endpoints: status, mapping listing, forced sync, repair."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from notesync.api.deps import (
    get_keep_client,
    get_notion_client,
    get_reconciler,
    get_settings,
    get_store,
    require_internal_key,
)
from notesync.clients.keep import KeepClient
from notesync.clients.notion import NotionClient
from notesync.config import Settings
from notesync.schemas.sync import (
    DeleteMappingResponse,
    InternalSyncRequest,
    InternalSyncResponse,
    MappingResponse,
    SyncStatus,
    summary_response,
)
from notesync.services.admin_service import (
    delete_mapping,
    force_sync,
    get_sync_status,
    list_mappings,
)
from notesync.services.datetime_service import format_iso
from notesync.services.mapping_store import MappingStore, SyncMapping
from notesync.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/internal",
    tags=["internal"],
    dependencies=[Depends(require_internal_key)],
)


def _mapping_response(mapping: SyncMapping) -> MappingResponse:
    return MappingResponse(
        notion_page_id=mapping.left_id,
        keep_note_name=mapping.right_id,
        last_synced_notion_time=mapping.last_synced_left_version,
        last_synced_keep_time=mapping.last_synced_right_version,
        last_write_origin=str(mapping.last_write_origin),
        last_write_timestamp=format_iso(mapping.last_write_timestamp),
    )


@router.post("/sync", response_model=InternalSyncResponse, response_model_exclude_none=True)
async def internal_sync(
    body: InternalSyncRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[MappingStore, Depends(get_store)],
    notion: Annotated[NotionClient, Depends(get_notion_client)],
    keep: Annotated[KeepClient, Depends(get_keep_client)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> InternalSyncResponse:
    """Run one operator action."""
    if body.action == "status":
        report = await get_sync_status(
            store, notion, keep, notion_database_id=settings.notion_database_id
        )
        return InternalSyncResponse(status=SyncStatus.model_validate(report.to_dict()))

    if body.action == "list-mappings":
        mappings = await list_mappings(store)
        return InternalSyncResponse(mappings=[_mapping_response(m) for m in mappings])

    if body.direction is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="force-sync requires a direction",
        )
    logger.info("Force sync requested: %s", body.direction)
    results = await force_sync(
        body.direction,
        reconciler,
        notion,
        keep,
        notion_database_id=settings.notion_database_id,
        concurrency=settings.poll_concurrency,
    )
    return InternalSyncResponse(
        message=f"Force sync complete: {body.direction}",
        results={name: summary_response(summary) for name, summary in results.items()},
    )


@router.delete("/mappings/{left_id}", response_model=DeleteMappingResponse)
async def delete_mapping_endpoint(
    left_id: str,
    store: Annotated[MappingStore, Depends(get_store)],
) -> DeleteMappingResponse:
    """Forget the pairing for a Notion page."""
    if not await delete_mapping(store, left_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mapping not found")
    return DeleteMappingResponse(notion_page_id=left_id)
