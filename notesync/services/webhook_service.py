"""Push driver: turn verified Notion webhook deliveries into left-origin changes."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notesync.services.reconciler import ChangeEvent

if TYPE_CHECKING:
    from notesync.clients.base import DocumentStore
    from notesync.schemas.sync import NotionWebhookPayload
    from notesync.services.reconciler import Reconciler, ReconcileResult

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="
DELETION_EVENTS = frozenset({"page_deleted", "page.deleted"})


def compute_signature(body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``body`` keyed by ``secret``."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_notion_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a webhook signature in constant time.

    Accepts both the bare hex digest and the ``sha256=<hex>`` form.
    """
    if not signature or not secret:
        return False
    candidate = signature.strip()
    if candidate.startswith(SIGNATURE_PREFIX):
        candidate = candidate.removeprefix(SIGNATURE_PREFIX)
    return secrets.compare_digest(candidate.lower(), compute_signature(body, secret))


def same_notion_id(first: str, second: str) -> bool:
    """Compare Notion ids, which appear both dashed and undashed."""
    return first.replace("-", "").lower() == second.replace("-", "").lower()


@dataclass(frozen=True)
class PushResult:
    """What happened to one webhook delivery.

    ``result`` is None when the delivery was acknowledged without reconciling.
    """

    message: str
    result: ReconcileResult | None = None


async def handle_notion_event(
    payload: NotionWebhookPayload,
    notion: DocumentStore,
    reconciler: Reconciler,
) -> PushResult:
    """Reconcile one Notion webhook event.

    Deletions, archived pages and pages outside the synced database are
    acknowledged but not propagated. Every other page event is resolved to
    the page's current state before reconciling, since the delivery carries
    only an identifier.
    """
    if payload.object_type != "page":
        return PushResult("Not a page event, skipping")

    page_id = payload.page_id
    if not page_id:
        return PushResult("Page event without id, skipping")

    logger.info("Notion webhook: %s for page %s", payload.event_type, page_id)

    if payload.event_type in DELETION_EVENTS:
        return PushResult("Page deleted, skipping")

    page = await notion.fetch_document(page_id)
    if page.archived:
        return PushResult("Page archived, skipping")
    database_id = reconciler.notion_database_id
    if database_id and not same_notion_id(page.database_id, database_id):
        logger.info("Ignoring page %s outside database %s", page.id, database_id)
        return PushResult("Page outside the synced database, skipping")
    result = await reconciler.reconcile(ChangeEvent.from_page(page))
    return PushResult(f"Notion page {result.outcome}", result)
