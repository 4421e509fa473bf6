"""Time zone helpers for UTC storage and business-local rules."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import settings


def get_business_timezone() -> ZoneInfo:
    """Return the configured business timezone."""
    timezone_name = settings.business.timezone
    try:
        return ZoneInfo(timezone_name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Invalid timezone: {timezone_name}") from exc


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC.

    SQLite drops tzinfo on round-trip, so values read back from storage are
    normalized here before any comparison.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert a datetime to the business timezone (naive values are UTC)."""
    return ensure_utc(value).astimezone(tz or get_business_timezone())


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)
