"""Instant and calendar-day helpers.

Day keys are always derived in the user's configured timezone, never the
runtime's local one.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the ZoneInfo for *name*, falling back to UTC."""
    if not name:
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return UTC


def day_key(instant: datetime, tz: ZoneInfo) -> str:
    """Map an instant to its YYYY-MM-DD key in *tz*."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date().isoformat()


def today_key(now: datetime, tz: ZoneInfo) -> str:
    return day_key(now, tz)


def yesterday_key(now: datetime, tz: ZoneInfo) -> str:
    return previous_day_key(day_key(now, tz))


def previous_day_key(key: str) -> str:
    return (date.fromisoformat(key) - timedelta(days=1)).isoformat()


def parse_instant(value: Any) -> datetime | None:
    """Parse a stored instant.

    Accepts ISO-8601 strings (a trailing ``Z`` included), epoch milliseconds
    as written by older caches, and datetimes. Naive values are read as UTC.
    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        if value <= 0:
            return None
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_instant(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
