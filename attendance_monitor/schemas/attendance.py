# attendance_monitor/schemas/attendance.py
from datetime import date as date_type, datetime
from enum import Enum

from pydantic import BaseModel, Field


class Period(str, Enum):
    """
    Half-day period a session belongs to, decided by its join hour.
    """

    MORNING = "morning"
    AFTERNOON = "afternoon"


class LessonShape(str, Enum):
    """
    Which half-day periods a lesson day covers.

    `UNRESTRICTED` is used when the shape cannot be derived from the data
    (no sessions at all) and unions both lesson windows.
    """

    MORNING = "morning"
    AFTERNOON = "afternoon"
    BOTH = "both"
    UNRESTRICTED = "unrestricted"


class RawEventRow(BaseModel):
    """
    One parsed export line (one join/leave event of one connection).

    Timestamps are kept as the raw export text; they are normalized by the
    course processor when rows are grouped into days.
    """

    course_name: str = Field("", description="Course/topic name of the meeting.")
    meeting_id: str = Field("", description="Meeting identifier from the export.")
    organizer_name: str = Field("", description="Declared organizer display name.")
    organizer_email: str = Field("", description="Declared organizer email.")
    meeting_start: str = Field(
        "",
        description="Meeting start time text; its calendar day decides the lesson day.",
        examples=["19/09/2025 09:00:00 AM"],
    )
    meeting_end: str = Field("", description="Meeting end time text.")
    participant_name: str = Field(
        ...,
        description="Raw participant display name as exported.",
        examples=["Giorgio Santambrogio"],
    )
    participant_email: str = Field("", description="Participant email, may be empty.")
    join_time: str = Field(..., description="Join timestamp text.")
    leave_time: str = Field(..., description="Leave timestamp text.")
    duration_minutes: int = Field(0, description="Exported connection duration in minutes.")
    is_guest: bool = Field(False, description="True when the export guest flag is 'Sì'.")
    in_waiting_room: bool = Field(
        False,
        description="True when the export waiting-room flag is 'Sì'.",
    )


class SessionInterval(BaseModel):
    """
    One join-to-leave span for a participant within one day.
    """

    join_time: datetime
    leave_time: datetime


class SessionRecord(SessionInterval):
    """
    A session interval together with the row attributes it came from.
    """

    participant_name: str = Field(..., description="Cleaned participant display name.")
    email: str = Field("", description="Email reported on this row.")
    duration_minutes: int = Field(0, description="Exported connection duration.")
    is_guest: bool = False
    in_waiting_room: bool = False


class ProcessedAttendance(BaseModel):
    """
    Attendance of one participant on one day, derived from its intervals.

    Never persisted: it is recomputed whenever the underlying sessions or the
    roster change.
    """

    name: str = Field(..., description="Primary name of the participant identity.")
    email: str = Field("", description="Best-known email of the participant.")
    is_organizer: bool = False
    total_absence_minutes: float = Field(
        ...,
        description=(
            "Sum of reconnect gaps longer than the ignore threshold. "
            "999 when the participant has no session at all that day."
        ),
        examples=[0.0],
    )
    is_present: bool = Field(
        ...,
        description="True when total_absence_minutes is within the tolerance (<= 14).",
    )
    is_absent: bool = Field(
        False,
        description="True when the participant has no session at all that day.",
    )
    morning_first_join: datetime | None = None
    morning_last_leave: datetime | None = None
    afternoon_first_join: datetime | None = None
    afternoon_last_leave: datetime | None = None
    morning_intervals: list[SessionInterval] = Field(default_factory=list)
    afternoon_intervals: list[SessionInterval] = Field(default_factory=list)


class DayAttendance(BaseModel):
    """
    Computed attendance for one lesson day of a course.
    """

    date: date_type
    course_name: str
    lesson_shape: LessonShape
    lesson_hours: list[int] = Field(
        ...,
        description="Whole clock hours covered by observed sessions, ascending.",
        examples=[[9, 10, 11, 12, 13]],
    )
    participants: list[ProcessedAttendance] = Field(
        ...,
        description="Non-organizer participants in master order, explicit absents included.",
    )
    organizer: ProcessedAttendance | None = None
