"""Notion webhook endpoint: push-driven Notion -> Keep sync."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from notesync.api.deps import get_notion_client, get_reconciler, get_settings
from notesync.clients.notion import NotionClient
from notesync.config import Settings
from notesync.schemas.sync import NotionWebhookPayload, WebhookResponse
from notesync.services.reconciler import Outcome, Reconciler
from notesync.services.webhook_service import handle_notion_event, verify_notion_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notion", tags=["webhook"])

SIGNATURE_HEADER = "Notion-Signature"


@router.post("/webhook", response_model=WebhookResponse)
async def notion_webhook(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    notion: Annotated[NotionClient, Depends(get_notion_client)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> WebhookResponse | JSONResponse:
    """Verify and reconcile one Notion webhook delivery.

    The signature covers the raw request body, so the payload is parsed only
    after it has been read in full. The subscription handshake carries no
    signature and has no side effects beyond being logged.
    """
    body = await request.body()
    try:
        payload = NotionWebhookPayload.model_validate_json(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid webhook payload",
        ) from exc

    if payload.is_verification:
        logger.info("Received Notion webhook verification token")
        return WebhookResponse(message="Verification token received")

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")
    if not verify_notion_signature(body, signature, settings.notion_webhook_secret):
        logger.warning("Notion webhook signature verification failed")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    pushed = await handle_notion_event(payload, notion, reconciler)
    result = pushed.result
    response = WebhookResponse(
        success=result is None or result.outcome is not Outcome.FAILED,
        message=pushed.message,
        outcome=str(result.outcome) if result is not None else None,
        applied_id=result.applied_id if result is not None else None,
    )
    if not response.success:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=response.model_dump(),
        )
    return response
