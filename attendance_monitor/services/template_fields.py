# attendance_monitor/services/template_fields.py
from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Protocol

from attendance_monitor.core.logging import get_logger
from attendance_monitor.schemas.attendance import DayAttendance, ProcessedAttendance, SessionInterval
from attendance_monitor.schemas.course import ParsedCourse
from attendance_monitor.services.session_processor import AFTERNOON_WINDOW, MORNING_WINDOW

if TYPE_CHECKING:
    from attendance_monitor.services.course_processor import CourseProcessor

logger = get_logger("services.template_fields")

MAX_TEMPLATE_PARTICIPANTS = 5
MAX_FILENAME_LENGTH = 50

# Leaves later than this many minutes past the hour round the lesson end up.
END_ROUND_UP_MINUTES = 30

ABSENT_MARK = "X"
TIME_SEPARATOR = " - "

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")


class DocumentRenderer(Protocol):
    """
    Anything that can fill a document template with a flat field map.
    """

    def render(self, fields: Dict[str, str], template: bytes) -> bytes:
        ...


def _hh(hour: int) -> str:
    return f"{hour:02d}"


def _clock(value: datetime) -> str:
    return value.strftime("%H:%M:%S")


def _joined(intervals: Iterable[SessionInterval], attr: str) -> str:
    return TIME_SEPARATOR.join(_clock(getattr(i, attr)) for i in intervals)


def _period_end_hour(attendances: List[ProcessedAttendance], morning: bool, fallback: int) -> int:
    leaves = [
        a.morning_last_leave if morning else a.afternoon_last_leave
        for a in attendances
    ]
    leaves = [leave for leave in leaves if leave is not None]
    if not leaves:
        return fallback

    latest = max(leaves)
    return latest.hour + 1 if latest.minute > END_ROUND_UP_MINUTES else latest.hour


def schedule_text(day: DayAttendance) -> str:
    """
    Human-readable lesson schedule, e.g. "09:00 - 13:00 / 14:00 - 18:00".

    Each period starts at its first lesson hour and ends at the latest
    observed leave of that period (rounded up past half hour), or at the
    window end when nobody left during that period.
    """
    hours = sorted(day.lesson_hours)
    morning_hours = [h for h in hours if MORNING_WINDOW[0] <= h <= MORNING_WINDOW[1]]
    afternoon_hours = [h for h in hours if AFTERNOON_WINDOW[0] <= h <= AFTERNOON_WINDOW[1]]

    everyone = list(day.participants)
    if day.organizer is not None:
        everyone.append(day.organizer)

    spans: List[str] = []
    if morning_hours:
        end = _period_end_hour(everyone, morning=True, fallback=MORNING_WINDOW[1])
        spans.append(f"{_hh(morning_hours[0])}:00 - {_hh(end)}:00")
    if afternoon_hours:
        end = _period_end_hour(everyone, morning=False, fallback=AFTERNOON_WINDOW[1])
        spans.append(f"{_hh(afternoon_hours[0])}:00 - {_hh(end)}:00")

    return " / ".join(spans)


def build_template_fields(day: DayAttendance, subject: Optional[str] = None) -> Dict[str, str]:
    """
    Flat placeholder map for one day's attendance document.

    Returns
    -------
    dict[str, str]
        `day`, `month`, `year`, `orariolezione`, `argomento` and, for slots
        1..5, `nome{i}`, `MattOraIn{i}`, `MattOraOut{i}`, `PomeOraIn{i}`,
        `PomeOraOut{i}`, `presenza{i}`. Slots follow master order, never hold
        the organizer, and are empty strings when unused.
    """
    fields: Dict[str, str] = {
        "day": f"{day.date.day:02d}",
        "month": f"{day.date.month:02d}",
        "year": f"{day.date.year:04d}",
        "orariolezione": schedule_text(day),
        "argomento": subject if subject is not None else day.course_name,
    }

    slots = [p for p in day.participants if not p.is_organizer][:MAX_TEMPLATE_PARTICIPANTS]

    for index in range(1, MAX_TEMPLATE_PARTICIPANTS + 1):
        if index > len(slots):
            for key in ("nome", "MattOraIn", "MattOraOut", "PomeOraIn", "PomeOraOut", "presenza"):
                fields[f"{key}{index}"] = ""
            continue

        participant = slots[index - 1]
        fields[f"nome{index}"] = participant.name
        fields[f"MattOraIn{index}"] = _joined(participant.morning_intervals, "join_time")
        fields[f"MattOraOut{index}"] = _joined(participant.morning_intervals, "leave_time")
        fields[f"PomeOraIn{index}"] = _joined(participant.afternoon_intervals, "join_time")
        fields[f"PomeOraOut{index}"] = _joined(participant.afternoon_intervals, "leave_time")
        fields[f"presenza{index}"] = "" if participant.is_present else ABSENT_MARK

    return fields


def document_filename(course_name: str, day: DayAttendance) -> str:
    safe = _UNSAFE_FILENAME_CHARS.sub("", course_name)
    safe = _WHITESPACE.sub("_", safe)[:MAX_FILENAME_LENGTH]
    return f"{safe}_{day.date.isoformat()}.docx"


def render_course_documents(
    course: ParsedCourse,
    processor: "CourseProcessor",
    renderer: DocumentRenderer,
    template: bytes,
    subject: Optional[str] = None,
) -> Dict[str, bytes]:
    """
    Render one document per lesson day.

    A day whose attendance or rendering fails is logged and left out; the
    other days are still produced.
    """
    documents: Dict[str, bytes] = {}

    for record in course.days:
        try:
            attendance = processor.compute_day_attendance(course, record.date)
            fields = build_template_fields(attendance, subject)
            documents[document_filename(course.course_name, attendance)] = renderer.render(
                fields, template
            )
        except Exception as exc:
            logger.error(
                "Skipping document for %s on %s: %s",
                course.course_name,
                record.date.isoformat(),
                exc,
            )

    logger.info("Rendered %d/%d document(s)", len(documents), len(course.days))
    return documents
