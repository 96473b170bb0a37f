"""Application configuration loaded from environment variables."""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_MIN_SECRET_LENGTH = 16


class Settings(BaseSettings):
    """Notesync application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/notesync.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # Notion (left side)
    notion_api_key: str = ""
    notion_version: str = "2022-06-28"
    notion_database_id: str = ""
    notion_webhook_secret: str = ""

    # Google Keep (right side)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_refresh_token: str = ""
    keep_page_size: int = Field(default=100, ge=1, le=1000)

    # Endpoint protection
    cron_secret: str = ""
    internal_api_key: str = ""

    # Sync behaviour
    sync_cooldown_seconds: float = Field(default=30.0, ge=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    poll_concurrency: int = Field(default=4, ge=1, le=64)

    @property
    def sync_cooldown(self) -> timedelta:
        """Cooldown window as a timedelta."""
        return timedelta(seconds=self.sync_cooldown_seconds)

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if not self.notion_webhook_secret:
            violations.append("NOTION_WEBHOOK_SECRET must be configured in production")
        if len(self.cron_secret) < _MIN_SECRET_LENGTH:
            violations.append(
                f"CRON_SECRET must be set to a high-entropy value (>={_MIN_SECRET_LENGTH} chars)"
            )
        if len(self.internal_api_key) < _MIN_SECRET_LENGTH:
            violations.append(
                "INTERNAL_API_KEY must be set to a high-entropy value "
                f"(>={_MIN_SECRET_LENGTH} chars)"
            )

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
