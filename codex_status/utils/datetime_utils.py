"""Shared datetime utilities."""

from __future__ import annotations

from datetime import datetime, timezone


def parse_iso(value: object) -> datetime | None:
    """Parse an ISO 8601 datetime string, returning None on invalid input.

    Handles common variations:
    - With timezone Z suffix: 2025-10-01T10:30:00.123Z
    - With timezone offset: 2025-10-01T10:30:00+00:00
    - Without timezone: 2025-10-01T10:30:00 (read as UTC)

    Returns an aware datetime so values compare cleanly with file
    modification times.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def from_epoch(value: float) -> datetime | None:
    """Convert an epoch value in seconds or milliseconds to a local datetime."""
    # Anything past the year 5138 in seconds is really milliseconds
    if abs(value) >= 1e11:
        value = value / 1000
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc).astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def now_local() -> datetime:
    """Return the current time as an aware local datetime."""
    return datetime.now().astimezone()
