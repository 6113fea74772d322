from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes; everything we store is UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_day(dt: Optional[datetime] = None) -> date:
    """Calendar day of `dt` (default: now) in the business timezone."""
    dt = as_utc(dt) if dt is not None else utcnow()
    return dt.astimezone(business_tz()).date()


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=business_tz()).astimezone(timezone.utc)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max, tzinfo=business_tz()).astimezone(timezone.utc)


def day_window(from_day: date, to_day: Optional[date] = None) -> tuple[datetime, datetime]:
    """Inclusive UTC bounds covering local days `from_day`..`to_day`."""
    to_day = to_day or from_day
    if to_day < from_day:
        from_day, to_day = to_day, from_day
    return start_of_day(from_day), end_of_day(to_day)


def last_n_days_window(days: int = 30, today: Optional[date] = None) -> tuple[datetime, datetime]:
    today = today or local_day()
    return day_window(today - timedelta(days=days), today)
