"""
Timezone utilities for converting between UTC and local times.

All database timestamps are stored as naive UTC. Earnings windows ("today",
"this week") are computed in the server's configured local timezone and
converted back to naive UTC for querying.
"""

from datetime import datetime, timedelta
from typing import Optional

import pytz

from app.config import get_settings

UTC_TZ = pytz.UTC


def local_tz(timezone: Optional[str] = None):
    """Configured local timezone (Africa/Lagos by default)."""
    return pytz.timezone(timezone or get_settings().timezone)


def utc_now() -> datetime:
    """Get current time in UTC (timezone-aware)."""
    return datetime.now(UTC_TZ)


def to_utc(local_dt: datetime, timezone: Optional[str] = None) -> datetime:
    """
    Convert a local datetime to UTC.

    Args:
        local_dt: Datetime in local timezone (can be naive or aware)
        timezone: Timezone name (default: configured server timezone)

    Returns:
        Timezone-naive datetime in UTC (for database storage)
    """
    tz = local_tz(timezone)

    if local_dt.tzinfo is None:
        # Naive datetime - assume it's in the specified timezone
        local_dt = tz.localize(local_dt)

    # Convert to UTC and remove timezone info for database storage
    utc_dt = local_dt.astimezone(UTC_TZ)
    return utc_dt.replace(tzinfo=None)


def from_utc(utc_dt: datetime, timezone: Optional[str] = None) -> datetime:
    """
    Convert a UTC datetime to local timezone.

    Args:
        utc_dt: Datetime in UTC (can be naive or aware)
        timezone: Target timezone name (default: configured server timezone)

    Returns:
        Timezone-aware datetime in local timezone
    """
    tz = local_tz(timezone)

    if utc_dt.tzinfo is None:
        # Naive datetime - assume it's UTC
        utc_dt = UTC_TZ.localize(utc_dt)

    return utc_dt.astimezone(tz)


def start_of_today(now: Optional[datetime] = None, timezone: Optional[str] = None) -> datetime:
    """
    Local midnight of the current day, as naive UTC.

    Args:
        now: Reference moment in UTC (naive or aware); defaults to now
    """
    local_now = from_utc(now or utc_now(), timezone)
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    return to_utc(midnight, timezone)


def start_of_week(now: Optional[datetime] = None, timezone: Optional[str] = None) -> datetime:
    """Local midnight of the most recent Monday, as naive UTC."""
    local_now = from_utc(now or utc_now(), timezone)
    monday = local_now.date() - timedelta(days=local_now.weekday())  # Monday=0
    return to_utc(datetime.combine(monday, datetime.min.time()), timezone)


def time_ago(then: datetime, now: Optional[datetime] = None) -> str:
    """Short relative time: 'just now', '5m ago', '3h ago', '2d ago'."""
    now = now or datetime.utcnow()
    minutes = int((now - then).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
