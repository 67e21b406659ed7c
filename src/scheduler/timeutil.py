"""
Wall-clock helpers for the scheduler.

All scheduling follows the system clock and the configured timezone, so
clock changes and DST transitions are reflected in the computed delays.
Execution has whole-second precision: sub-second parts are floored away
before any delay is computed.
"""

import os
from datetime import datetime, time, timedelta, timezone
from enum import Enum, IntEnum
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil import tz as dateutil_tz
from dateutil.relativedelta import relativedelta


# IANA zone name, e.g. "America/Montreal". Empty = system local zone.
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "")


class TimeUnit(str, Enum):
    """Interval units, declared from finest to coarsest."""

    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"

    @property
    def rank(self) -> int:
        return _UNIT_ORDER.index(self)

    @property
    def fixed_seconds(self) -> Optional[int]:
        """Nominal length in seconds, None for calendar units of variable length."""
        return _FIXED_SECONDS.get(self)


_UNIT_ORDER = list(TimeUnit)

_FIXED_SECONDS = {
    TimeUnit.SECONDS: 1,
    TimeUnit.MINUTES: 60,
    TimeUnit.HOURS: 3600,
    TimeUnit.DAYS: 86400,
    TimeUnit.WEEKS: 604800,
}

# Added on the absolute timeline; coarser units are added on the wall clock.
_TIME_BASED = (TimeUnit.SECONDS, TimeUnit.MINUTES, TimeUnit.HOURS)


class Weekday(IntEnum):
    """Day of week, numbered like datetime.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: str) -> "Weekday":
        """Parse 'mon', 'Monday', 'MONDAY' or '0'."""
        value = value.strip()
        if value.isdigit():
            return cls(int(value))
        for day in cls:
            if day.name.startswith(value.upper()) and len(value) >= 3:
                return day
        raise ValueError(f"Unknown weekday: {value!r}")


def get_timezone():
    """
    Return the scheduler timezone.

    The configured IANA zone, otherwise the system local zone. Either
    one follows DST transitions.
    """
    if SCHEDULER_TIMEZONE:
        return ZoneInfo(SCHEDULER_TIMEZONE)
    return dateutil_tz.tzlocal()


def now() -> datetime:
    """Current timezone-aware wall-clock time."""
    return datetime.now(get_timezone())


def floor_datetime(value: datetime, precision: TimeUnit = TimeUnit.SECONDS) -> datetime:
    """
    Floor a datetime, keeping components down to a given unit.

    The finest precision kept is a second: microseconds are always zeroed.
    Flooring to DAYS (or coarser) zeroes the whole time of day; the date
    itself is never touched.

    Args:
        value: The datetime to floor
        precision: The most granular unit of time to preserve

    Returns:
        The floored datetime
    """
    rank = precision.rank
    hour = value.hour if rank <= TimeUnit.HOURS.rank else 0
    minute = value.minute if rank <= TimeUnit.MINUTES.rank else 0
    second = value.second if rank <= TimeUnit.SECONDS.rank else 0
    return value.replace(hour=hour, minute=minute, second=second, microsecond=0)


def add_interval(value: datetime, amount: int, unit: TimeUnit) -> datetime:
    """
    Add `amount` units to a datetime.

    Seconds, minutes and hours move along the absolute timeline, so an
    hourly step across a DST change is still one real hour. Days and weeks
    keep the local time of day. Months and years are calendar additions,
    clamped to the end of shorter months.
    """
    if unit in _TIME_BASED:
        delta = timedelta(seconds=amount * _FIXED_SECONDS[unit])
        if value.tzinfo is None:
            return value + delta
        return (value.astimezone(timezone.utc) + delta).astimezone(value.tzinfo)
    if unit == TimeUnit.DAYS:
        return value + timedelta(days=amount)
    if unit == TimeUnit.WEEKS:
        return value + timedelta(weeks=amount)
    if unit == TimeUnit.MONTHS:
        return value + relativedelta(months=amount)
    return value + relativedelta(years=amount)


def elapsed_seconds(start: datetime, end: datetime) -> float:
    """Seconds from `start` to `end` on the absolute timeline."""
    if start.tzinfo is not None and end.tzinfo is not None:
        start = start.astimezone(timezone.utc)
        end = end.astimezone(timezone.utc)
    return (end - start).total_seconds()


def delay_seconds(current: datetime, target: datetime) -> int:
    """
    Whole seconds from `current` until `target`.

    Truncated toward zero and never negative: a target in the past is due
    immediately.
    """
    return max(0, int(elapsed_seconds(current, target)))


def at_time_of_day(day: datetime, time_of_day: time) -> datetime:
    """Same date and timezone as `day`, at `time_of_day`."""
    return datetime.combine(day.date(), time_of_day.replace(tzinfo=None), tzinfo=day.tzinfo)
