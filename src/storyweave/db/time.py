# src/storyweave/db/time.py
"""Time utilities for models and engine clocks."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Return ``value`` as UTC-aware; naive values are assumed to be UTC.

    SQLite drops tzinfo on round trips, so values read back from the
    database may be naive.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
