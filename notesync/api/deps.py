"""Shared API dependencies: DB session, remote clients, reconciler, endpoint auth."""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.clients.keep import KeepClient
from notesync.clients.notion import NotionClient
from notesync.config import Settings
from notesync.exceptions import InternalServerError
from notesync.services.mapping_store import MappingStore
from notesync.services.reconciler import Reconciler

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


def _from_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise InternalServerError(f"Application state {name!r} is not initialized")
    return value


def get_store(request: Request) -> MappingStore:
    store: MappingStore = _from_state(request, "mapping_store")
    return store


def get_notion_client(request: Request) -> NotionClient:
    client: NotionClient = _from_state(request, "notion_client")
    return client


def get_keep_client(request: Request) -> KeepClient:
    client: KeepClient = _from_state(request, "keep_client")
    return client


def get_reconciler(request: Request) -> Reconciler:
    reconciler: Reconciler = _from_state(request, "reconciler")
    return reconciler


def _unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def require_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require ``Authorization: Bearer <cron_secret>`` when a cron secret is configured."""
    if not settings.cron_secret:
        return
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.cron_secret
    ):
        raise _unauthorized()


async def require_internal_key(
    settings: Annotated[Settings, Depends(get_settings)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Require a matching ``X-API-Key`` header. Always fails when no key is configured."""
    if not settings.internal_api_key or x_api_key is None:
        raise _unauthorized()
    if not secrets.compare_digest(x_api_key, settings.internal_api_key):
        raise _unauthorized()
