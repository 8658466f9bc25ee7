# attendance_monitor/schemas/course.py
from datetime import date as date_type, datetime
from enum import Enum

from pydantic import BaseModel, Field

from attendance_monitor.schemas.attendance import SessionRecord


class MergeOrigin(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class DayRecord(BaseModel):
    """
    One calendar day of a course, built from the export rows of that day.
    """

    date: date_type
    course_name: str
    meeting_id: str = ""
    start_time: datetime = Field(..., description="Earliest observed join of the day.")
    end_time: datetime = Field(..., description="Latest observed leave of the day.")
    participant_names: list[str] = Field(
        default_factory=list,
        description="Distinct cleaned participant names seen on this day, sorted.",
    )
    sessions: list[SessionRecord] = Field(default_factory=list)


class ParticipantIdentity(BaseModel):
    """
    A resolved person of the master roster.
    """

    id: str = Field(..., examples=["participant_giorgio_santambrogio"])
    primary_name: str = Field(..., examples=["Giorgio Santambrogio"])
    aliases: list[str] = Field(
        ...,
        min_length=1,
        description="Known display names for this person; always includes primary_name.",
    )
    email: str = ""
    is_organizer: bool = False
    master_order: int = Field(
        ...,
        ge=0,
        description="Stable display/template rank; 0 is reserved for the organizer.",
    )
    days_present: list[date_type] = Field(default_factory=list)


class AliasSuggestion(BaseModel):
    """
    Proposed merge of candidate names into a target identity.
    """

    participant_id: str = Field(..., description="Id of the target identity.")
    main_name: str
    suggested_aliases: list[str]
    similarity_scores: list[float] = Field(
        ...,
        description="Per-candidate scores, parallel to suggested_aliases, descending.",
    )
    auto_merge: bool = Field(
        ...,
        description="True when the highest candidate score meets the auto-merge threshold.",
    )
    confidence: float = Field(..., description="Highest candidate score.")


class AliasMapping(BaseModel):
    """
    Audit record of one completed merge.
    """

    participant_id: str
    primary_name: str
    merged_names: list[str]
    merged_by: MergeOrigin
    confidence: float


class OrganizerInfo(BaseModel):
    name: str = ""
    email: str = ""


class DateRange(BaseModel):
    start: date_type
    end: date_type


class CourseStatistics(BaseModel):
    total_days: int = 0
    total_participants: int = 0
    total_sessions: int = 0


class ParsedCourse(BaseModel):
    """
    Full result of processing one course export.
    """

    course_name: str
    meeting_id: str = ""
    organizer: OrganizerInfo = Field(default_factory=OrganizerInfo)
    days: list[DayRecord] = Field(default_factory=list)
    participants: list[ParticipantIdentity] = Field(
        default_factory=list,
        description="Master roster sorted by master_order (organizer first).",
    )
    alias_suggestions: list[AliasSuggestion] = Field(default_factory=list)
    alias_mappings: list[AliasMapping] = Field(default_factory=list)
    date_range: DateRange | None = None
    statistics: CourseStatistics = Field(default_factory=CourseStatistics)


class ValidationReport(BaseModel):
    """
    Result of the non-blocking validation pass.

    Hard problems land in `errors`, soft findings in `warnings`.
    """

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ProcessingSummary(BaseModel):
    course_name: str
    date_range: str = Field(..., examples=["2025-09-19 - 2025-09-21"])
    total_days: int
    total_participants: int
    total_sessions: int
    organizer_name: str
    participant_names: list[str]
    auto_merged_count: int


class DayDetails(BaseModel):
    date: date_type
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    participant_count: int
    participants: list[str]
    session_count: int


class ParticipantStats(BaseModel):
    name: str
    aliases: list[str]
    email: str
    total_days: int
    days_present: int
    days_absent: int
    attendance_rate: int = Field(..., description="Rounded percentage of days present.")
    present_dates: list[date_type]


class ProcessExportRequest(BaseModel):
    export_text: str = Field(
        ...,
        description="Full text of the course export (CSV).",
        examples=[
            "Argomento,ID,Nome organizzatore,E-mail organizzatore,Ora di inizio,Ora di fine,"
            "Nome (nome originale),E-mail,Ora di ingresso,Ora di uscita,Durata (minuti),"
            "Guest,In sala d'attesa\n..."
        ],
    )


class TemplateFieldsRequest(BaseModel):
    course: ParsedCourse
    subject: str | None = Field(
        None,
        description="Lesson subject for the document; defaults to the course name.",
    )


class ManualMergeRequest(BaseModel):
    course: ParsedCourse
    target_id: str = Field(..., examples=["participant_giorgio_santambrogio"])
    source_ids: list[str] = Field(..., min_length=1, examples=[["participant_g_santambrogio"]])
