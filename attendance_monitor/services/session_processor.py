# attendance_monitor/services/session_processor.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from attendance_monitor.schemas.attendance import (
    LessonShape,
    Period,
    ProcessedAttendance,
    SessionInterval,
)
from attendance_monitor.services.datetime_normalizer import period_of

# Gaps up to this many minutes are connectivity blips, not absence.
GAP_IGNORE_MINUTES = 1.5

# Cumulative absence (minutes) still counted as present: "at most 15 minutes
# missed" is enforced with a strict <= 14 boundary.
ABSENCE_TOLERANCE_MINUTES = 14

# Absence assigned to someone with no session at all on a lesson day.
ABSENT_SENTINEL_MINUTES = 999

MORNING_WINDOW: Tuple[int, int] = (9, 13)
AFTERNOON_WINDOW: Tuple[int, int] = (14, 18)


def split_by_period(
    intervals: Iterable[SessionInterval],
) -> Tuple[List[SessionInterval], List[SessionInterval]]:
    """
    Split intervals into (morning, afternoon) by the hour of their join time.
    """
    morning: List[SessionInterval] = []
    afternoon: List[SessionInterval] = []

    for interval in intervals:
        if period_of(interval.join_time) is Period.MORNING:
            morning.append(interval)
        else:
            afternoon.append(interval)

    return morning, afternoon


def _sorted_by_join(intervals: Iterable[SessionInterval]) -> List[SessionInterval]:
    return sorted(intervals, key=lambda i: (i.join_time, i.leave_time))


def gap_absence_minutes(intervals: Sequence[SessionInterval]) -> float:
    """
    Sum of the gaps between consecutive sessions of one period.

    Sessions are sorted by join time first. A gap of exactly
    GAP_IGNORE_MINUTES is still ignored; anything longer counts in full.
    The result is not rounded.
    """
    ordered = _sorted_by_join(intervals)
    total = 0.0

    for current, following in zip(ordered, ordered[1:]):
        gap = (following.join_time - current.leave_time).total_seconds() / 60.0
        if gap > GAP_IGNORE_MINUTES:
            total += gap

    return total


def _bounds(intervals: Sequence[SessionInterval]) -> Tuple[Optional[datetime], Optional[datetime]]:
    if not intervals:
        return None, None
    ordered = _sorted_by_join(intervals)
    return ordered[0].join_time, ordered[-1].leave_time


def compute_attendance(
    name: str,
    intervals: Iterable[SessionInterval],
    *,
    email: str = "",
    is_organizer: bool = False,
) -> ProcessedAttendance:
    """
    Decide whether one participant counts as present on one day.

    Rules
    -----
    1) Sessions are split into morning/afternoon by join hour (< 13 = morning).
    2) Within each period, gaps longer than 1.5 minutes add to the absence.
    3) No session in any period              => absence = 999, explicit absence.
       Sessions in one period only           => the other period adds nothing.
    4) absence <= 14                         => present.
    """
    morning, afternoon = split_by_period(intervals)
    morning = _sorted_by_join(morning)
    afternoon = _sorted_by_join(afternoon)

    if not morning and not afternoon:
        total_absence = float(ABSENT_SENTINEL_MINUTES)
        is_absent = True
    else:
        total_absence = gap_absence_minutes(morning) + gap_absence_minutes(afternoon)
        is_absent = False

    morning_first, morning_last = _bounds(morning)
    afternoon_first, afternoon_last = _bounds(afternoon)

    return ProcessedAttendance(
        name=name,
        email=email,
        is_organizer=is_organizer,
        total_absence_minutes=total_absence,
        is_present=total_absence <= ABSENCE_TOLERANCE_MINUTES,
        is_absent=is_absent,
        morning_first_join=morning_first,
        morning_last_leave=morning_last,
        afternoon_first_join=afternoon_first,
        afternoon_last_leave=afternoon_last,
        morning_intervals=[SessionInterval(join_time=i.join_time, leave_time=i.leave_time) for i in morning],
        afternoon_intervals=[SessionInterval(join_time=i.join_time, leave_time=i.leave_time) for i in afternoon],
    )


def determine_lesson_shape(morning_count: int, afternoon_count: int) -> LessonShape:
    if morning_count > 0 and afternoon_count > 0:
        return LessonShape.BOTH
    if morning_count > 0:
        return LessonShape.MORNING
    if afternoon_count > 0:
        return LessonShape.AFTERNOON
    return LessonShape.UNRESTRICTED


def _clipped_hours(interval: SessionInterval, window: Tuple[int, int]) -> range:
    start = max(window[0], interval.join_time.hour)
    end = min(window[1], interval.leave_time.hour)
    return range(start, end + 1)


def compute_lesson_hours(
    attendances: Iterable[ProcessedAttendance],
    organizer: Optional[ProcessedAttendance] = None,
    shape: LessonShape = LessonShape.UNRESTRICTED,
) -> List[int]:
    """
    Whole clock hours actually covered by any observed session.

    Each session span is clipped to its lesson window (morning 9-13,
    afternoon 14-18) and every whole hour in [start, end] is collected.
    MORNING/AFTERNOON/BOTH only look at the sessions of the matching
    period(s); UNRESTRICTED clips every session against both windows.
    """
    everyone = list(attendances)
    if organizer is not None:
        everyone.append(organizer)

    hours: set[int] = set()

    for attendance in everyone:
        if shape is LessonShape.UNRESTRICTED:
            for interval in attendance.morning_intervals + attendance.afternoon_intervals:
                hours.update(_clipped_hours(interval, MORNING_WINDOW))
                hours.update(_clipped_hours(interval, AFTERNOON_WINDOW))
            continue

        if shape in (LessonShape.MORNING, LessonShape.BOTH):
            for interval in attendance.morning_intervals:
                hours.update(_clipped_hours(interval, MORNING_WINDOW))

        if shape in (LessonShape.AFTERNOON, LessonShape.BOTH):
            for interval in attendance.afternoon_intervals:
                hours.update(_clipped_hours(interval, AFTERNOON_WINDOW))

    return sorted(hours)
