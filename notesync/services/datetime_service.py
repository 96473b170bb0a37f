"""Datetime parsing: lax input -> strict output."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum

# Strict storage format: YYYY-MM-DD HH:MM:SS.ffffff±HHMM
STRICT_FORMAT = "%Y-%m-%d %H:%M:%S.%f%z"


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a lax datetime string into a timezone-aware datetime.

    Accepts the RFC 3339 timestamps both remote APIs emit, including
    nanosecond fractions (``2026-02-02T22:21:29.975359123Z``), as well as
    looser forms such as ``2026-02-02 22:21`` or ``2026-02-02``.

    Missing timezone defaults to default_tz. Raises ValueError when the
    string cannot be parsed.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    value_str = value.strip()
    if not value_str:
        msg = "Empty datetime string"
        raise ValueError(msg)

    parsed = pendulum.parse(value_str, tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        if not isinstance(parsed, pendulum.Date):
            msg = f"Not a datetime: {value_str!r}"
            raise ValueError(msg)
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(parsed.year, parsed.month, parsed.day, tz=default_tz)
    return parsed


def format_datetime(dt: datetime) -> str:
    """Format a datetime to the strict storage format."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.strftime(STRICT_FORMAT)


def parse_stored(value: str) -> datetime:
    """Parse a value previously produced by ``format_datetime``."""
    return datetime.strptime(value, STRICT_FORMAT)


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
