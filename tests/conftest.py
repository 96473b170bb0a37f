"""Shared test fixtures for notesync."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from notesync.clients.base import KeepNote, NotionPage
from notesync.config import Settings
from notesync.database import create_engine
from notesync.exceptions import RemoteAPIError
from notesync.main import create_app
from notesync.models.base import Base
from notesync.services.mapping_store import MappingStore
from notesync.services.reconciler import Reconciler
from notesync.services.translator import ChangeTranslator

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

TEST_DATABASE_ID = "db-test"
TEST_WEBHOOK_SECRET = "test-webhook-secret-value"
TEST_CRON_SECRET = "test-cron-secret-value"
TEST_INTERNAL_KEY = "test-internal-api-key"

_VERSION_EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


def version_at(seconds: int) -> str:
    """Return an RFC 3339 version marker ``seconds`` after a fixed epoch."""
    return (_VERSION_EPOCH + timedelta(seconds=seconds)).isoformat().replace("+00:00", "Z")


def notion_page(
    page_id: str,
    version: str,
    *,
    title: str = "Groceries",
    properties: dict[str, Any] | None = None,
    database_id: str = TEST_DATABASE_ID,
) -> NotionPage:
    """Build a Notion page as the pages API returns it."""
    props: dict[str, Any] = {
        "Name": {"type": "title", "title": [{"plain_text": title}]},
    }
    props.update(properties or {})
    return NotionPage(
        id=page_id, last_edited_time=version, properties=props, database_id=database_id
    )


def keep_note(name: str, version: str, *, title: str = "Groceries", text: str = "") -> KeepNote:
    return KeepNote(name=name, title=title, body={"text": {"text": text}}, update_time=version)


def _typed_properties(fields: dict[str, Any]) -> dict[str, Any]:
    typed: dict[str, Any] = {}
    for key, value in fields.items():
        kind = next(iter(value))
        typed[key] = {"type": kind, **value}
    return typed


class FakeNotion:
    """In-memory Notion database. Every write advances the page's version."""

    def __init__(self) -> None:
        self.pages: dict[str, NotionPage] = {}
        self.writes: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self._clock = 1000
        self._next_id = 1

    def _tick(self) -> str:
        self._clock += 60
        return version_at(self._clock)

    def _check(self, key: str) -> None:
        if key in self.failures:
            raise self.failures[key]

    def add(self, page: NotionPage) -> NotionPage:
        self.pages[page.id] = page
        return page

    async def fetch_document(self, document_id: str) -> NotionPage:
        self._check(f"fetch:{document_id}")
        if document_id not in self.pages:
            raise RemoteAPIError("Notion", 404, "object_not_found")
        return self.pages[document_id]

    async def create_document(self, parent_id: str, fields: dict[str, Any]) -> NotionPage:
        self._check("create")
        page_id = f"page-{self._next_id}"
        self._next_id += 1
        page = NotionPage(
            id=page_id,
            last_edited_time=self._tick(),
            properties=_typed_properties(fields),
            database_id=parent_id,
        )
        self.pages[page_id] = page
        self.writes.append(("create", page_id))
        return page

    async def update_document(self, document_id: str, fields: dict[str, Any]) -> NotionPage:
        self._check(f"update:{document_id}")
        if document_id not in self.pages:
            raise RemoteAPIError("Notion", 404, "object_not_found")
        page = NotionPage(
            id=document_id,
            last_edited_time=self._tick(),
            properties=_typed_properties(fields),
            database_id=self.pages[document_id].database_id,
        )
        self.pages[document_id] = page
        self.writes.append(("update", document_id))
        return page

    async def query_database(self, database_id: str, page_size: int = 100) -> list[NotionPage]:
        return list(self.pages.values())


class FakeKeep:
    """In-memory Keep account. Every write advances the note's version.

    With ``sparse_updates`` set, update responses carry no output-only
    fields, as a PATCH may return.
    """

    def __init__(self) -> None:
        self.notes: dict[str, KeepNote] = {}
        self.writes: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self._clock = 5000
        self._next_id = 1
        self.sparse_updates = False

    def _tick(self) -> str:
        self._clock += 1
        return version_at(self._clock)

    def _check(self, key: str) -> None:
        if key in self.failures:
            raise self.failures[key]

    def add(self, note: KeepNote) -> KeepNote:
        self.notes[note.name] = note
        return note

    async def list_notes(self) -> list[KeepNote]:
        self._check("list")
        return list(self.notes.values())

    async def get_note(self, name: str) -> KeepNote:
        self._check(f"get:{name}")
        if name not in self.notes:
            raise RemoteAPIError("Keep", 404, "Requested entity was not found.")
        return self.notes[name]

    async def create_note(self, fields: dict[str, Any]) -> KeepNote:
        self._check("create")
        name = f"notes/{self._next_id}"
        self._next_id += 1
        note = KeepNote(
            name=name, title=fields.get("title", ""), body=fields.get("body", {}), update_time=self._tick()
        )
        self.notes[name] = note
        self.writes.append(("create", name))
        return note

    async def update_note(self, name: str, fields: dict[str, Any]) -> KeepNote:
        self._check(f"update:{name}")
        if name not in self.notes:
            raise RemoteAPIError("Keep", 404, "Requested entity was not found.")
        note = KeepNote(
            name=name, title=fields.get("title", ""), body=fields.get("body", {}), update_time=self._tick()
        )
        self.notes[name] = note
        self.writes.append(("update", name))
        if self.sparse_updates:
            return KeepNote(name="", title=note.title, body=note.body)
        return note


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database."""
    db_path = tmp_path / "test.db"
    return Settings(
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        notion_api_key="secret_test",
        notion_database_id=TEST_DATABASE_ID,
        notion_webhook_secret=TEST_WEBHOOK_SECRET,
        google_client_id="client-id",
        google_client_secret="client-secret",
        google_refresh_token="refresh-token",
        cron_secret=TEST_CRON_SECRET,
        internal_api_key=TEST_INTERNAL_KEY,
    )


@pytest.fixture
async def session_factory(
    test_settings: Settings,
) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Create a migrated test database and yield its session factory."""
    engine, factory = create_engine(test_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> MappingStore:
    return MappingStore(session_factory)


@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def fake_keep() -> FakeKeep:
    return FakeKeep()


@pytest.fixture
def reconciler(store: MappingStore, fake_notion: FakeNotion, fake_keep: FakeKeep) -> Reconciler:
    return Reconciler(
        store,
        fake_notion,
        fake_keep,
        ChangeTranslator(),
        notion_database_id=TEST_DATABASE_ID,
    )


@asynccontextmanager
async def create_test_client(
    settings: Settings,
    notion: FakeNotion | None = None,
    keep: FakeKeep | None = None,
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan because
    ASGITransport does not trigger it, wiring in-memory remotes in place of
    the HTTP clients.
    """
    app = create_app(settings)
    settings.validate_runtime_security()

    engine, factory = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    notion = notion if notion is not None else FakeNotion()
    keep = keep if keep is not None else FakeKeep()
    mapping_store = MappingStore(factory)
    app.state.engine = engine
    app.state.session_factory = factory
    app.state.mapping_store = mapping_store
    app.state.notion_client = notion
    app.state.keep_client = keep
    app.state.reconciler = Reconciler(
        mapping_store,
        notion,
        keep,
        ChangeTranslator(),
        notion_database_id=settings.notion_database_id,
        cooldown=settings.sync_cooldown,
    )

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()
