# attendance_monitor/services/datetime_normalizer.py
from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Optional, Tuple

from attendance_monitor.core.logging import get_logger
from attendance_monitor.schemas.attendance import Period

logger = get_logger("services.datetime_normalizer")

AFTERNOON_START_HOUR = 13


def parse_export_timestamp(
    value: Optional[str],
    *,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Parse an export timestamp like "19/09/2025 01:58:39 PM".

    Rules
    -----
    - The third date component is always the year.
    - Day/month order is auto-detected:
        - first > 12 and second <= 12  -> day/month (no swap)
        - second > 12 and first <= 12  -> month/day (swapped)
        - both <= 12 (ambiguous)       -> day/month is assumed
      The ambiguous default is a policy, not a detection: callers with
      month-first data where both parts are <= 12 must convert beforehand.
    - 12-hour clock: 12 AM -> 0, 12 PM -> 12, other PM hours + 12.
      Without an AM/PM marker the hour is read as 24-hour.

    Never raises. Empty or malformed input returns the current wall-clock
    time (or `now` when given) and logs a warning, so one bad row does not
    lose a whole course.
    """
    fallback = now if now is not None else datetime.now()

    if not value or not value.strip():
        return fallback

    cleaned = value.replace('"', "").strip()
    try:
        parts = cleaned.split()
        date_part = parts[0]
        time_part = parts[1] if len(parts) > 1 else "00:00:00"
        meridiem = parts[2].upper() if len(parts) > 2 else ""

        day, month, year = _parse_date_part(date_part)
        hour, minute, second = _parse_time_part(time_part, meridiem)

        return datetime(year, month, day, hour, minute, second)
    except (ValueError, IndexError) as exc:
        logger.warning("Could not parse export timestamp %r (%s); using now", value, exc)
        return fallback


def _parse_date_part(date_part: str) -> Tuple[int, int, int]:
    p1, p2, p3 = (int(v) for v in date_part.split("/"))
    day, month, year = p1, p2, p3

    if p1 > 12 and p2 <= 12:
        pass
    elif p2 > 12 and p1 <= 12:
        day, month = p2, p1

    return day, month, year


def _parse_time_part(time_part: str, meridiem: str) -> Tuple[int, int, int]:
    pieces = time_part.split(":")
    hour = int(pieces[0])
    minute = int(pieces[1]) if len(pieces) > 1 and pieces[1] else 0
    second = int(pieces[2]) if len(pieces) > 2 and pieces[2] else 0

    if meridiem == "PM" and hour != 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0

    return hour, minute, second


def day_key(value: datetime) -> date_type:
    """
    Calendar day (no time) of a parsed timestamp.
    """
    return value.date()


def period_of(value: datetime) -> Period:
    """
    Half-day period of a timestamp: morning before 13:00, afternoon from 13:00.
    """
    return Period.MORNING if value.hour < AFTERNOON_START_HOUR else Period.AFTERNOON
