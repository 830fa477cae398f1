"""
shipyard.engine.weeks — Week Keys & UTC Helpers
================================================

A *week key* is the Monday (local calendar date) of the ISO week an
instant falls in, evaluated in the community's configured timezone.
All stored timestamps are UTC.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/London"


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(moment: datetime) -> datetime:
    """Normalise *moment* to an aware UTC datetime.

    Naive values are taken to already be UTC (that is how SQLite hands
    back ``DateTime(timezone=True)`` columns).
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the :class:`ZoneInfo` for *name*, falling back to the default."""
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; falling back to %s", name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


def local_date(moment: datetime, tz: ZoneInfo) -> date:
    return as_utc(moment).astimezone(tz).date()


def week_key_for(moment: datetime, tz: ZoneInfo) -> date:
    """Monday of the week containing *moment* in *tz*."""
    day = local_date(moment, tz)
    return day - timedelta(days=day.weekday())


def week_end(week_key: date) -> date:
    """Sunday closing the week that starts on *week_key*."""
    return week_key + timedelta(days=6)


def previous_week_key(moment: datetime, tz: ZoneInfo) -> date:
    """Week key of the last *completed* week relative to *moment*."""
    return week_key_for(moment, tz) - timedelta(days=7)


def day_bounds(moment: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of the local calendar day containing *moment*."""
    day = local_date(moment, tz)
    start = datetime.combine(day, datetime.min.time(), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), datetime.min.time(), tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)
