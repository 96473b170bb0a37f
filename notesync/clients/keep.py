"""Google Keep API client (right side) with OAuth refresh-token handling."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from notesync.clients.base import KeepNote, send_request
from notesync.exceptions import AuthError, TransientIOError

logger = logging.getLogger(__name__)

KEEP_API_URL = "https://keep.googleapis.com/v1"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
SERVICE = "Keep"

# Refresh a little before Google's stated expiry.
_TOKEN_EXPIRY_MARGIN_SECONDS = 60


class KeepClient:
    """Client for Google Keep notes.

    Access tokens are obtained from the stored refresh token and cached until
    shortly before they expire.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        page_size: int = 100,
        timeout: float = 30.0,
        base_url: str = KEEP_API_URL,
        token_url: str = GOOGLE_TOKEN_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._page_size = page_size
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._token_url = token_url
        self._transport = transport
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    def _cached_token(self) -> str | None:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        return None

    async def _get_access_token(self) -> str:
        """Return a valid access token, refreshing it when needed.

        Concurrent callers share one refresh: the cache is checked again
        once the lock is held.
        """
        token = self._cached_token()
        if token is not None:
            return token
        async with self._token_lock:
            token = self._cached_token()
            if token is not None:
                return token
            return await self._refresh_access_token()

    async def _refresh_access_token(self) -> str:
        if not (self._client_id and self._client_secret and self._refresh_token):
            msg = "Google OAuth credentials are not configured"
            raise AuthError(msg)

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    self._token_url,
                    data={
                        "grant_type": "refresh_token",
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "refresh_token": self._refresh_token,
                    },
                )
            except httpx.HTTPError as exc:
                raise TransientIOError(f"Google token refresh failed: {exc}") from exc

        if resp.status_code >= 500:
            raise TransientIOError(f"Google token endpoint unavailable: {resp.status_code}")
        if resp.status_code != 200:
            logger.warning("Google token refresh rejected: %s %s", resp.status_code, resp.text)
            raise AuthError(f"Failed to get access token: {resp.status_code}")

        try:
            token_data = resp.json()
        except ValueError as exc:
            msg = "Google token endpoint returned invalid JSON"
            raise TransientIOError(msg) from exc
        if not isinstance(token_data, dict):
            msg = "Google token endpoint returned an unexpected payload"
            raise AuthError(msg)
        access_token = token_data.get("access_token")
        if not access_token:
            msg = "Token response missing access_token"
            raise AuthError(msg)

        expires_in = float(token_data.get("expires_in", 3600))
        self._access_token = access_token
        self._token_expires_at = (
            time.monotonic() + max(expires_in - _TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        )
        logger.debug("Refreshed Google access token")
        return access_token

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        access_token = await self._get_access_token()
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                return await send_request(SERVICE, client, method, path, **kwargs)
            except AuthError:
                # Force a refresh on the next call; the token may have been revoked.
                self._access_token = None
                raise

    async def list_notes(self) -> list[KeepNote]:
        """List all notes, following page tokens."""
        notes: list[KeepNote] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": self._page_size}
            if page_token:
                params["pageToken"] = page_token
            data = await self._request("GET", "/notes", params=params)
            notes.extend(KeepNote.from_api(item) for item in data.get("notes", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        return notes

    async def get_note(self, name: str) -> KeepNote:
        """Get a note by resource name."""
        data = await self._request("GET", f"/{name}")
        return KeepNote.from_api(data)

    async def create_note(self, fields: dict[str, Any]) -> KeepNote:
        """Create a note."""
        data = await self._request("POST", "/notes", json=fields)
        note = KeepNote.from_api(data)
        logger.debug("Created Keep note %s", note.name)
        return note

    async def update_note(self, name: str, fields: dict[str, Any]) -> KeepNote:
        """Update the given top-level fields of a note."""
        update_mask = ",".join(fields)
        data = await self._request(
            "PATCH", f"/{name}", params={"updateMask": update_mask}, json=fields
        )
        return KeepNote.from_api(data)
