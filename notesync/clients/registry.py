"""Construct the remote API clients from application settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notesync.clients.keep import KeepClient
from notesync.clients.notion import NotionClient

if TYPE_CHECKING:
    from notesync.config import Settings


def build_notion_client(settings: Settings) -> NotionClient:
    """Create the Notion client. Missing credentials surface as AuthError on first use."""
    return NotionClient(
        settings.notion_api_key,
        notion_version=settings.notion_version,
        timeout=settings.http_timeout_seconds,
    )


def build_keep_client(settings: Settings) -> KeepClient:
    """Create the Keep client. Missing credentials surface as AuthError on first use."""
    return KeepClient(
        settings.google_client_id,
        settings.google_client_secret,
        settings.google_refresh_token,
        page_size=settings.keep_page_size,
        timeout=settings.http_timeout_seconds,
    )
