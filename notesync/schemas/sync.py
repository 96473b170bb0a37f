"""Sync API schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from notesync.services.poll_service import BatchSummary

SyncDirection = Literal["notion-to-keep", "keep-to-notion", "both"]
InternalAction = Literal["status", "list-mappings", "force-sync"]


class WebhookEntity(BaseModel):
    """Entity reference carried by Notion's event-style webhook deliveries."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: str | None = None


class NotionWebhookPayload(BaseModel):
    """A Notion webhook delivery.

    Accepts the flat ``{"object": "page", "id": ..., "type": ...}`` shape and
    the event shape ``{"type": "page.content_updated", "entity": {...}}``.
    A delivery that carries only ``verification_token`` is the subscription
    handshake.
    """

    model_config = ConfigDict(extra="ignore")

    object: str | None = None
    id: str | None = None
    type: str | None = None
    entity: WebhookEntity | None = None
    verification_token: str | None = None

    @property
    def is_verification(self) -> bool:
        return self.verification_token is not None and self.type is None

    @property
    def object_type(self) -> str | None:
        if self.entity is not None and self.entity.type:
            return self.entity.type
        return self.object

    @property
    def page_id(self) -> str | None:
        if self.entity is not None and self.entity.id:
            return self.entity.id
        return self.id

    @property
    def event_type(self) -> str | None:
        return self.type


class WebhookResponse(BaseModel):
    """Response for one webhook delivery."""

    success: bool = True
    message: str
    outcome: str | None = None
    applied_id: str | None = None


class BatchErrorResponse(BaseModel):
    id: str
    message: str


class BatchSummaryResponse(BaseModel):
    """Per-outcome counts for one batch of reconciled events."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[BatchErrorResponse] = Field(default_factory=list)


class PollResponse(BaseModel):
    """Response from one poll cycle."""

    success: bool = True
    message: str = "Keep polling complete"
    details: BatchSummaryResponse


class MappingResponse(BaseModel):
    """One stored Notion page <-> Keep note pairing."""

    notion_page_id: str
    keep_note_name: str
    last_synced_notion_time: str
    last_synced_keep_time: str
    last_write_origin: str
    last_write_timestamp: str


class SyncStatus(BaseModel):
    mappings: int
    keep_notes: int
    notion_pages: int
    unmapped_keep: int
    unmapped_notion: int
    last_polled_at: str | None = None


class InternalSyncRequest(BaseModel):
    """Request body for the internal operator endpoint."""

    action: InternalAction
    direction: SyncDirection | None = None


class InternalSyncResponse(BaseModel):
    """Response from the internal operator endpoint.

    Exactly one of ``status``, ``mappings`` or ``results`` is set, matching
    the requested action.
    """

    success: bool = True
    message: str | None = None
    status: SyncStatus | None = None
    mappings: list[MappingResponse] | None = None
    results: dict[str, BatchSummaryResponse] | None = None


class DeleteMappingResponse(BaseModel):
    success: bool = True
    notion_page_id: str


def summary_response(summary: BatchSummary) -> BatchSummaryResponse:
    """Build the response model from a ``BatchSummary``."""
    return BatchSummaryResponse.model_validate(summary.to_dict())
