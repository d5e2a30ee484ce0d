"""Clock and civil-date helpers.

All instants handled by the workflow engine are UTC-aware datetimes. Civil
dates ("today", "tomorrow", birthdays, SMO dates) are always taken in the
organisation's timezone (``settings.timezone``) through ``zoneinfo``, never
by formatting to a locale string and parsing it back.
"""

from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

from .config import settings

_MS_PER_DAY = 86_400_000
_MS_PER_HOUR = 3_600_000


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_zone() -> ZoneInfo:
    return _zone(settings.timezone)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite hands back naive
    datetimes for timezone-aware columns).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def local_now(now: datetime | None = None) -> datetime:
    return as_utc(now or utcnow()).astimezone(local_zone())


def local_date(now: datetime | None = None) -> date:
    """Civil date of ``now`` in the organisation timezone."""
    return local_now(now).date()


def at_local_time(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant of ``hour:minute`` local wall time on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=local_zone()).astimezone(UTC)


def parse_hhmm(value: str) -> tuple[int, int]:
    hour, _, minute = value.partition(":")
    return int(hour), int(minute or 0)


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC [start, end) of a civil day, DST transitions included."""
    return at_local_time(day, 0), at_local_time(day + timedelta(days=1), 0)


def _delta_ms(anchor: datetime, now: datetime) -> float:
    return (as_utc(anchor) - as_utc(now)).total_seconds() * 1000


def days_until(anchor: datetime, now: datetime) -> float:
    """Fractional days from ``now`` to ``anchor`` (negative once passed)."""
    return _delta_ms(anchor, now) / _MS_PER_DAY


def hours_until(anchor: datetime, now: datetime) -> float:
    return _delta_ms(anchor, now) / _MS_PER_HOUR


def third_saturday(year: int, month: int) -> date:
    first = date(year, month, 1)
    # Monday=0 ... Saturday=5
    offset = (5 - first.weekday()) % 7
    return first + timedelta(days=offset + 14)
