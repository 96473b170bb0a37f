"""Notion API client (left side) using the Notion HTTP API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from notesync.clients.base import NotionPage, send_request
from notesync.exceptions import AuthError

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
SERVICE = "Notion"


class NotionClient:
    """Client for Notion pages and databases.

    A fresh ``httpx.AsyncClient`` is opened per call so the client holds no
    connection state between serverless-style invocations. ``transport`` is
    injectable for tests.
    """

    def __init__(
        self,
        api_key: str,
        *,
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        base_url: str = NOTION_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._notion_version = notion_version
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self._api_key:
            msg = "Notion API key is not configured"
            raise AuthError(msg)
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Notion-Version": self._notion_version,
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        async with self._client() as client:
            return await send_request(SERVICE, client, method, path, **kwargs)

    async def fetch_document(self, document_id: str) -> NotionPage:
        """Get a Notion page by id."""
        data = await self._request("GET", f"/pages/{document_id}")
        return NotionPage.from_api(data)

    async def create_document(self, parent_id: str, fields: dict[str, Any]) -> NotionPage:
        """Create a page in the database ``parent_id``."""
        data = await self._request(
            "POST",
            "/pages",
            json={"parent": {"database_id": parent_id}, "properties": fields},
        )
        page = NotionPage.from_api(data)
        logger.debug("Created Notion page %s", page.id)
        return page

    async def update_document(self, document_id: str, fields: dict[str, Any]) -> NotionPage:
        """Update the properties of an existing page."""
        data = await self._request("PATCH", f"/pages/{document_id}", json={"properties": fields})
        return NotionPage.from_api(data)

    async def query_database(self, database_id: str, page_size: int = 100) -> list[NotionPage]:
        """Query all pages of a database, following pagination cursors."""
        pages: list[NotionPage] = []
        start_cursor: str | None = None
        async with self._client() as client:
            while True:
                body: dict[str, Any] = {"page_size": page_size}
                if start_cursor:
                    body["start_cursor"] = start_cursor
                data = await send_request(
                    SERVICE, client, "POST", f"/databases/{database_id}/query", json=body
                )
                pages.extend(NotionPage.from_api(item) for item in data.get("results", []))
                if not data.get("has_more"):
                    break
                start_cursor = data.get("next_cursor")
                if not start_cursor:
                    break
        return pages
