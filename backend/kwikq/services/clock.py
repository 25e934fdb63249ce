"""
Time source and local-day helpers.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Protocol, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import get_settings

logger = logging.getLogger(__name__)


class TimeSource(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def resolve_zone(name: Optional[str]) -> ZoneInfo:
    """Zone for a business; falls back to DEFAULT_TIMEZONE, then UTC."""
    for candidate in (name, get_settings().DEFAULT_TIMEZONE):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone, falling back", extra={"timezone": candidate})
    return ZoneInfo("UTC")


def as_utc(instant: datetime) -> datetime:
    # Naive datetimes coming back from storage are UTC
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def local_date(instant: datetime, zone: ZoneInfo) -> date:
    return as_utc(instant).astimezone(zone).date()


def day_key(instant: datetime, zone: ZoneInfo) -> str:
    """Calendar day of ``instant`` in ``zone`` as YYYY-MM-DD."""
    return local_date(instant, zone).isoformat()


def day_bounds(day: date, zone: ZoneInfo) -> Tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def weekday_index(day: date) -> int:
    """Sunday=0 .. Saturday=6."""
    return (day.weekday() + 1) % 7
