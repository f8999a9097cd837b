"""
slot_utils.py
-------------
Helpers to turn a 'YYYY-MM-DD' date into venue-local, timezone-aware datetimes
and to build the 30-minute slot grid inside business hours.

Business hours come from settings.CATCAFE_BOOKING (OPEN_HOUR / CLOSE_HOUR) and
can be overridden with configmgr.SystemSetting rows BUSINESS_OPEN / BUSINESS_CLOSE.
"""

import logging
from datetime import date, datetime, time, timedelta

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

logger = logging.getLogger(__name__)


def booking_setting(key: str):
    return settings.CATCAFE_BOOKING[key]


def _parse_hhmm(value: str) -> time:
    h, m = value.strip().split(":")
    return time(int(h), int(m))


def format_hhmm(value) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def get_business_hours():
    """
    Return (open_time, close_time) as time objects.
    Defaults to OPEN_HOUR:00–CLOSE_HOUR:00 from settings.
    """
    default_open = time(booking_setting("OPEN_HOUR"), 0)
    default_close = time(booking_setting("CLOSE_HOUR"), 0)

    from configmgr.models import SystemSetting

    try:
        open_raw = SystemSetting.get_value("BUSINESS_OPEN")
        close_raw = SystemSetting.get_value("BUSINESS_CLOSE")
    except DatabaseError:
        logger.warning("Could not read business hours overrides; using defaults")
        return default_open, default_close

    if not (open_raw and close_raw):
        return default_open, default_close
    try:
        open_time, close_time = _parse_hhmm(open_raw), _parse_hhmm(close_raw)
    except ValueError:
        logger.warning("Ignoring malformed business hours %r-%r", open_raw, close_raw)
        return default_open, default_close
    if open_time >= close_time:
        logger.warning("Ignoring business hours %s-%s: opening is not before closing", open_raw, close_raw)
        return default_open, default_close
    return open_time, close_time


def venue_tz():
    return timezone.get_default_timezone()


def local_now(now: datetime | None = None) -> datetime:
    return timezone.localtime(now or timezone.now(), venue_tz())


def parse_day(value) -> date:
    """Accept a date, a datetime, or 'YYYY-MM-DD' (time part is trimmed)."""
    if isinstance(value, datetime):
        return timezone.localtime(value, venue_tz()).date() if timezone.is_aware(value) else value.date()
    if isinstance(value, date):
        return value
    raw = (value or "").strip()
    if "T" in raw:
        raw = raw.split("T", 1)[0]
    elif " " in raw:
        raw = raw.split(" ", 1)[0]
    y, m, d = map(int, raw.split("-"))
    return date(y, m, d)


def parse_time(value) -> time:
    if isinstance(value, time):
        return value
    return _parse_hhmm(value or "")


def combine(day: date, at: time) -> datetime:
    """Venue-local aware datetime for the given day and wall-clock time."""
    return timezone.make_aware(datetime.combine(day, at), venue_tz())


def date_to_range(day) -> tuple:
    """
    Convert a day into a timezone-aware day window [start, end).
    """
    day = parse_day(day)
    day_start = combine(day, time(0, 0))
    day_end = combine(day + timedelta(days=1), time(0, 0))
    return day_start, day_end


def month_to_range(year: int, month: int) -> tuple:
    """Venue-local calendar month as [start, end)."""
    start = combine(date(year, month, 1), time(0, 0))
    if month == 12:
        end = combine(date(year + 1, 1, 1), time(0, 0))
    else:
        end = combine(date(year, month + 1, 1), time(0, 0))
    return start, end


def generate_slots_for_day(
    day,
    open_time: time | None = None,
    close_time: time | None = None,
    step_minutes: int | None = None,
):
    """
    Every grid point from opening up to (not including) closing.
    Returned datetimes are timezone-aware, venue-local.
    """
    if open_time is None or close_time is None:
        open_time, close_time = get_business_hours()
    step = timedelta(minutes=step_minutes or booking_setting("SLOT_MINUTES"))

    day = parse_day(day)
    day_open = combine(day, open_time)
    day_close = combine(day, close_time)

    slots = []
    current = day_open
    while current < day_close:
        slots.append(current)
        current += step
    return slots
