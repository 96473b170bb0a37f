"""Tests for the Notion webhook endpoint."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from notesync.exceptions import AuthError, TransientIOError
from notesync.services.webhook_service import compute_signature
from tests.conftest import (
    TEST_WEBHOOK_SECRET,
    FakeKeep,
    FakeNotion,
    create_test_client,
    notion_page,
    version_at,
)

if TYPE_CHECKING:
    from notesync.config import Settings


def _signed(payload: dict[str, object]) -> tuple[bytes, dict[str, str]]:
    body = json.dumps(payload).encode()
    signature = compute_signature(body, TEST_WEBHOOK_SECRET)
    return body, {"Notion-Signature": f"sha256={signature}", "Content-Type": "application/json"}


PAGE_EVENT = {"object": "page", "id": "page-1", "type": "page_updated"}


class TestWebhookAuth:
    async def test_missing_signature_is_401(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/notion/webhook", json=PAGE_EVENT)
            assert resp.status_code == 401
            assert resp.json()["detail"] == "Missing signature"

    async def test_invalid_signature_is_401(self, test_settings: Settings) -> None:
        body, _ = _signed(PAGE_EVENT)
        async with create_test_client(test_settings) as client:
            resp = await client.post(
                "/api/notion/webhook",
                content=body,
                headers={"Notion-Signature": "sha256=" + "0" * 64},
            )
            assert resp.status_code == 401
            assert resp.json()["detail"] == "Invalid signature"

    async def test_verification_handshake_needs_no_signature(
        self, test_settings: Settings
    ) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post(
                "/api/notion/webhook", json={"verification_token": "secret_handshake"}
            )
            assert resp.status_code == 200
            assert resp.json()["message"] == "Verification token received"

    async def test_malformed_body_is_422(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/notion/webhook", content=b"not json")
            assert resp.status_code == 422


class TestWebhookSync:
    async def test_page_event_creates_keep_note(self, test_settings: Settings) -> None:
        notion = FakeNotion()
        keep = FakeKeep()
        notion.add(notion_page("page-1", version_at(100), title="From Notion"))
        body, headers = _signed(PAGE_EVENT)

        async with create_test_client(test_settings, notion, keep) as client:
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["outcome"] == "applied-created"
        assert data["applied_id"] == "notes/1"
        assert keep.notes["notes/1"].title == "From Notion"

    async def test_redelivery_is_unchanged(self, test_settings: Settings) -> None:
        notion = FakeNotion()
        keep = FakeKeep()
        notion.add(notion_page("page-1", version_at(100)))
        body, headers = _signed(PAGE_EVENT)

        async with create_test_client(test_settings, notion, keep) as client:
            await client.post("/api/notion/webhook", content=body, headers=headers)
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["outcome"] == "skipped-unchanged"
        assert len(keep.writes) == 1

    async def test_deletion_is_acknowledged(self, test_settings: Settings) -> None:
        keep = FakeKeep()
        body, headers = _signed({"object": "page", "id": "page-1", "type": "page_deleted"})
        async with create_test_client(test_settings, keep=keep) as client:
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["message"] == "Page deleted, skipping"
        assert keep.writes == []

    async def test_entity_shaped_event(self, test_settings: Settings) -> None:
        notion = FakeNotion()
        notion.add(notion_page("page-9", version_at(100)))
        body, headers = _signed(
            {"id": "evt-1", "type": "page.content_updated", "entity": {"id": "page-9", "type": "page"}}
        )
        async with create_test_client(test_settings, notion) as client:
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["outcome"] == "applied-created"

    async def test_failed_write_is_502(self, test_settings: Settings) -> None:
        notion = FakeNotion()
        keep = FakeKeep()
        notion.add(notion_page("page-1", version_at(100)))
        keep.failures["create"] = TransientIOError("Keep unavailable: 503")
        body, headers = _signed(PAGE_EVENT)

        async with create_test_client(test_settings, notion, keep) as client:
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 502
        assert resp.json()["success"] is False
        assert resp.json()["outcome"] == "failed"

    async def test_unknown_page_is_502(self, test_settings: Settings) -> None:
        body, headers = _signed(PAGE_EVENT)
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 502
        assert resp.json()["detail"] == "Upstream service unavailable"

    async def test_auth_error_is_502_without_details(self, test_settings: Settings) -> None:
        notion = FakeNotion()
        notion.failures["fetch:page-1"] = AuthError("Notion rejected credentials: 401 secret")
        body, headers = _signed(PAGE_EVENT)

        async with create_test_client(test_settings, notion) as client:
            resp = await client.post("/api/notion/webhook", content=body, headers=headers)

        assert resp.status_code == 502
        assert resp.json() == {"detail": "Upstream authentication failed"}
