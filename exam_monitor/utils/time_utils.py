"""
Date/time helpers shared by the catalog, resolver and ledger.

Exam dates and times are wall-clock values in one fixed reference timezone.
Stored event timestamps (actual start, attendance start/end) are naive UTC,
matching the rest of the schema.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

TimeZoneLike = Union[str, ZoneInfo]


def utcnow() -> datetime:
    """Naive UTC timestamp for DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_zone(tz: TimeZoneLike) -> ZoneInfo:
    if isinstance(tz, ZoneInfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz}") from e


def parse_date(value: Union[str, date]) -> date:
    """Parse YYYY-MM-DD"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), DATE_FORMAT).date()


def parse_time(value: Union[str, time]) -> time:
    """Parse HH:MM (seconds are accepted and dropped)"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    text = str(value).strip()
    for fmt in (TIME_FORMAT, "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time().replace(second=0)
        except ValueError:
            continue
    raise ValueError(f"Invalid time: {value}")


def format_date(value: Optional[date]) -> Optional[str]:
    return value.strftime(DATE_FORMAT) if value else None


def format_time(value: Optional[time]) -> Optional[str]:
    return value.strftime(TIME_FORMAT) if value else None


def minutes_between(start: time, end: time) -> int:
    """Minutes from start to end on the same civil day"""
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def local_instant(day: date, wall_time: time, tz: TimeZoneLike) -> datetime:
    """
    Build an aware instant from a civil date and wall-clock time interpreted
    in the reference timezone (never host local time, never naive UTC).
    """
    return datetime.combine(day, wall_time).replace(tzinfo=get_zone(tz))


def civil_date(now: datetime, tz: TimeZoneLike) -> date:
    """Calendar date of `now` in the reference timezone. Naive input is UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(get_zone(tz)).date()


def within_window(instant: datetime, now: datetime, minutes: int) -> bool:
    """True when `instant` lies within +/- `minutes` of `now` (inclusive)"""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return abs(instant - now) <= timedelta(minutes=minutes)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
