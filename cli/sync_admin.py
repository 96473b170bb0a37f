"""Operator CLI for a running notesync server."""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any
from urllib.parse import urlparse

import httpx

DEFAULT_SERVER = "http://localhost:8000"
DIRECTIONS = ("notion-to-keep", "keep-to-notion", "both")
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    if parsed.scheme == "http" and not allow_insecure_http and parsed.hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )
    return normalized


class AdminClient:
    """Client for the notesync internal and cron endpoints."""

    def __init__(
        self,
        server_url: str,
        api_key: str,
        *,
        cron_secret: str | None = None,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.cron_secret = cron_secret
        self.client = httpx.Client(
            base_url=self.server_url,
            headers={"X-API-Key": api_key},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> AdminClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _internal(self, payload: dict[str, Any]) -> dict[str, Any]:
        resp = self.client.post("/api/internal/sync", json=payload)
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result

    def status(self) -> dict[str, Any]:
        return self._internal({"action": "status"})

    def mappings(self) -> dict[str, Any]:
        return self._internal({"action": "list-mappings"})

    def force_sync(self, direction: str) -> dict[str, Any]:
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction}")
        return self._internal({"action": "force-sync", "direction": direction})

    def poll(self) -> dict[str, Any]:
        """Trigger one Keep poll cycle, as the scheduler would."""
        headers = {"Authorization": f"Bearer {self.cron_secret}"} if self.cron_secret else {}
        resp = self.client.get("/api/cron/poll-keep", headers=headers)
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result

    def delete_mapping(self, left_id: str) -> dict[str, Any]:
        resp = self.client.delete(f"/api/internal/mappings/{left_id}")
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notesync-admin",
        description="Inspect and repair a running notesync server",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("NOTESYNC_SERVER", DEFAULT_SERVER),
        help="Server URL (default: $NOTESYNC_SERVER or %(default)s)",
    )
    parser.add_argument(
        "--api-key",
        default=os.environ.get("NOTESYNC_API_KEY"),
        help="Internal API key (default: $NOTESYNC_API_KEY)",
    )
    parser.add_argument(
        "--cron-secret",
        default=os.environ.get("NOTESYNC_CRON_SECRET"),
        help="Cron secret for 'poll' (default: $NOTESYNC_CRON_SECRET)",
    )
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("status", help="Show mapping and document counts")
    subparsers.add_parser("mappings", help="List stored mappings")
    force = subparsers.add_parser("force-sync", help="Reconcile everything, ignoring cooldown")
    force.add_argument("--direction", choices=DIRECTIONS, default="both")
    subparsers.add_parser("poll", help="Run one Keep poll cycle")
    delete = subparsers.add_parser("delete-mapping", help="Forget one Notion page's mapping")
    delete.add_argument("left_id", metavar="LEFT_ID", help="Notion page id")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return
    if not args.api_key:
        print("Error: --api-key or NOTESYNC_API_KEY required")
        sys.exit(1)
    try:
        server_url = validate_server_url(args.server, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    with AdminClient(server_url, args.api_key, cron_secret=args.cron_secret) as client:
        try:
            if args.command == "status":
                result = client.status()
            elif args.command == "mappings":
                result = client.mappings()
            elif args.command == "force-sync":
                result = client.force_sync(args.direction)
            elif args.command == "poll":
                result = client.poll()
            else:
                result = client.delete_mapping(args.left_id)
        except httpx.HTTPStatusError as exc:
            print(f"Error: server returned {exc.response.status_code}: {exc.response.text}")
            sys.exit(1)
        except httpx.HTTPError as exc:
            print(f"Error: {exc}")
            sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
