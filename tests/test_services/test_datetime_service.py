"""Tests for datetime parsing and formatting."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from notesync.services.datetime_service import (
    format_datetime,
    format_iso,
    parse_datetime,
    parse_stored,
)


class TestParseDatetime:
    def test_rfc3339_with_zulu(self) -> None:
        parsed = parse_datetime("2026-02-02T22:21:29.975Z")
        assert parsed == datetime(2026, 2, 2, 22, 21, 29, 975000, tzinfo=UTC)

    def test_offset_is_respected(self) -> None:
        parsed = parse_datetime("2026-02-02T23:00:00+01:00")
        assert parsed == datetime(2026, 2, 2, 22, 0, tzinfo=UTC)

    def test_date_only_defaults_to_midnight(self) -> None:
        assert parse_datetime("2026-02-02") == datetime(2026, 2, 2, tzinfo=UTC)

    def test_naive_datetime_gets_default_tz(self) -> None:
        parsed = parse_datetime(datetime(2026, 2, 2, 12, 0))
        assert parsed.tzinfo is not None

    def test_empty_string_raises(self) -> None:
        with pytest.raises(ValueError, match="Empty"):
            parse_datetime("   ")

    def test_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_datetime("not a date")


class TestStorageFormat:
    def test_format_then_parse_preserves_instant(self) -> None:
        dt = datetime(2026, 5, 17, 9, 30, 15, 42, tzinfo=UTC)
        stored = format_datetime(dt)
        assert stored == "2026-05-17 09:30:15.000042+0000"
        assert parse_stored(stored) == dt

    def test_naive_is_treated_as_utc(self) -> None:
        assert format_datetime(datetime(2026, 1, 1)).endswith("+0000")

    def test_format_iso(self) -> None:
        assert format_iso(datetime(2026, 1, 1, tzinfo=UTC)) == "2026-01-01T00:00:00+00:00"
