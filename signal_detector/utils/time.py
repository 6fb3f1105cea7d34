"""Time helpers with timezone-aware UTC defaults."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(UTC)


def as_naive_utc(value: datetime) -> datetime:
    """Convert to the naive UTC form the record store persists."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)
