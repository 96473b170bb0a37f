"""Shared data classes, protocols, and HTTP error mapping for remote API clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from notesync.exceptions import AuthError, RemoteAPIError, TransientIOError, TranslationError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({408, 425, 429})


@dataclass
class NotionPage:
    """A Notion database page as returned by the pages API."""

    id: str
    last_edited_time: str
    properties: dict[str, Any] = field(default_factory=dict)
    archived: bool = False
    database_id: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> NotionPage:
        """Build from a Notion API page object."""
        page_id = data.get("id")
        if not isinstance(page_id, str) or not page_id:
            msg = "Notion page is missing an id"
            raise TranslationError(msg)
        properties = data.get("properties", {})
        if not isinstance(properties, dict):
            msg = f"Notion page {page_id} has malformed properties"
            raise TranslationError(msg)
        parent = data.get("parent")
        if not isinstance(parent, dict):
            parent = {}
        return cls(
            id=page_id,
            last_edited_time=str(data.get("last_edited_time", "")),
            properties=properties,
            archived=bool(data.get("archived", False) or data.get("in_trash", False)),
            database_id=str(parent.get("database_id") or ""),
        )


@dataclass
class KeepNote:
    """A Google Keep note. ``name`` is the resource name ``notes/{id}``."""

    name: str
    title: str = ""
    body: dict[str, Any] = field(default_factory=dict)
    update_time: str = ""
    create_time: str = ""
    trashed: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> KeepNote:
        """Build from a Keep API note object. A missing name yields ``""``."""
        body = data.get("body") or {}
        if not isinstance(body, dict):
            msg = f"Keep note {data.get('name', '?')} has malformed body"
            raise TranslationError(msg)
        return cls(
            name=str(data.get("name") or ""),
            title=str(data.get("title") or ""),
            body=body,
            update_time=str(data.get("updateTime") or ""),
            create_time=str(data.get("createTime") or ""),
            trashed=bool(data.get("trashed", False)),
        )

    @property
    def text(self) -> str:
        """Plain-text body, or an empty string for list notes."""
        text = self.body.get("text")
        if isinstance(text, dict):
            return str(text.get("text") or "")
        return ""

    @property
    def list_items(self) -> list[dict[str, Any]]:
        """Checklist items, or an empty list for text notes."""
        list_body = self.body.get("list")
        if isinstance(list_body, dict):
            items = list_body.get("listItems")
            if isinstance(items, list):
                return [item for item in items if isinstance(item, dict)]
        return []


@runtime_checkable
class DocumentStore(Protocol):
    """Left side: event-sourced document store."""

    async def fetch_document(self, document_id: str) -> NotionPage:
        """Fetch the full current state of a document."""
        ...

    async def create_document(self, parent_id: str, fields: dict[str, Any]) -> NotionPage:
        """Create a document under ``parent_id``."""
        ...

    async def update_document(self, document_id: str, fields: dict[str, Any]) -> NotionPage:
        """Replace the given fields of an existing document."""
        ...

    async def query_database(self, database_id: str) -> list[NotionPage]:
        """List every document in a database."""
        ...


@runtime_checkable
class NoteStore(Protocol):
    """Right side: poll-only note store."""

    async def list_notes(self) -> list[KeepNote]:
        """List every note."""
        ...

    async def get_note(self, name: str) -> KeepNote:
        """Fetch one note by resource name."""
        ...

    async def create_note(self, fields: dict[str, Any]) -> KeepNote:
        """Create a note."""
        ...

    async def update_note(self, name: str, fields: dict[str, Any]) -> KeepNote:
        """Replace the given fields of an existing note."""
        ...


def raise_for_api_error(service: str, response: httpx.Response) -> None:
    """Translate an unsuccessful response into the sync error taxonomy."""
    status = response.status_code
    if status < 400:
        return
    detail = response.text[:500]
    if status in (401, 403):
        msg = f"{service} rejected credentials: {status} {detail}"
        raise AuthError(msg)
    if status >= 500 or status in _RETRYABLE_STATUS:
        msg = f"{service} unavailable: {status} {detail}"
        raise TransientIOError(msg)
    raise RemoteAPIError(service, status, detail)


async def send_request(
    service: str,
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Send a request and return the decoded JSON object.

    Network failures and timeouts become ``TransientIOError``; error
    statuses are mapped by ``raise_for_api_error``.
    """
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        logger.warning("%s %s %s timed out", service, method, url)
        raise TransientIOError(f"{service} request timed out: {exc}") from exc
    except httpx.HTTPError as exc:
        logger.warning("%s %s %s failed: %s", service, method, url, exc)
        raise TransientIOError(f"{service} request failed: {exc}") from exc

    raise_for_api_error(service, resp)
    if not resp.content:
        return {}
    try:
        data = resp.json()
    except ValueError as exc:
        raise TransientIOError(f"{service} returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise TransientIOError(f"{service} returned unexpected payload type")
    return data
