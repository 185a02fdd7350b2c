"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

__all__ = [
    "display_datetime",
    "ensure_utc",
    "parse_datetime",
    "serialize_datetime",
    "utc_now",
]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC, treating naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to a sortable ISO 8601 string in UTC."""
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="seconds")


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string into an aware UTC ``datetime``."""
    if not value:
        return None
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(normalized))


def display_datetime(value: datetime | None, timezone: str = "UTC") -> str:
    """Return a user-friendly representation of ``value`` in ``timezone``."""
    if value is None:
        return "-"
    try:
        zone = ZoneInfo(timezone)
    except ZoneInfoNotFoundError:
        zone = ZoneInfo("UTC")
    return ensure_utc(value).astimezone(zone).strftime("%b %d, %Y %I:%M %p")
