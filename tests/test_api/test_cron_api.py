"""Tests for the Keep poll cron endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notesync.clients.base import KeepNote
from tests.conftest import (
    TEST_CRON_SECRET,
    FakeKeep,
    FakeNotion,
    create_test_client,
    keep_note,
    version_at,
)

if TYPE_CHECKING:
    from notesync.config import Settings

AUTH = {"Authorization": f"Bearer {TEST_CRON_SECRET}"}


class TestPollKeepEndpoint:
    async def test_requires_cron_secret(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.get("/api/cron/poll-keep")
            assert resp.status_code == 401

    async def test_rejects_wrong_secret(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.get(
                "/api/cron/poll-keep", headers={"Authorization": "Bearer wrong"}
            )
            assert resp.status_code == 401

    async def test_open_when_no_secret_configured(self, test_settings: Settings) -> None:
        test_settings.cron_secret = ""
        async with create_test_client(test_settings) as client:
            resp = await client.get("/api/cron/poll-keep")
            assert resp.status_code == 200

    async def test_poll_returns_summary(self, test_settings: Settings) -> None:
        notion = FakeNotion()
        keep = FakeKeep()
        keep.add(keep_note("notes/1", version_at(5000), text="Status: open"))
        keep.add(keep_note("notes/2", version_at(5001)))

        async with create_test_client(test_settings, notion, keep) as client:
            resp = await client.get("/api/cron/poll-keep", headers=AUTH)
            health = await client.get("/api/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["details"] == {
            "processed": 2,
            "created": 2,
            "updated": 0,
            "skipped": 0,
            "errors": [],
        }
        assert len(notion.pages) == 2
        assert health.json()["last_polled_at"] is not None

    async def test_per_item_error_is_reported(self, test_settings: Settings) -> None:
        keep = FakeKeep()
        keep.add(keep_note("notes/1", version_at(5000)))
        keep.add(
            KeepNote(
                name="notes/2",
                body={"list": {"listItems": [{"checked": True}]}},
                update_time=version_at(5001),
            )
        )

        async with create_test_client(test_settings, keep=keep) as client:
            resp = await client.get("/api/cron/poll-keep", headers=AUTH)

        details = resp.json()["details"]
        assert resp.status_code == 200
        assert details["processed"] == 1
        assert details["errors"][0]["id"] == "notes/2"
