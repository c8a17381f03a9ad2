"""
Datetime helpers for provider timestamps and cache ages.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp (``2024-01-02T03:04:05Z`` style) as UTC.

    Missing or malformed values yield None so a single bad field never
    fails a whole metadata fetch.
    """
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value is not None else None


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, truncated toward zero."""
    elapsed = ensure_utc(later) - ensure_utc(earlier)
    return int(elapsed.total_seconds() / SECONDS_PER_DAY)
