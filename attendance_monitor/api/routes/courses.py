# attendance_monitor/api/routes/courses.py
from datetime import date as date_type
from functools import lru_cache
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path

from attendance_monitor.core.errors import AttendanceProcessingError
from attendance_monitor.schemas.attendance import DayAttendance
from attendance_monitor.schemas.course import (
    ManualMergeRequest,
    ParsedCourse,
    ProcessExportRequest,
    ProcessingSummary,
    TemplateFieldsRequest,
    ValidationReport,
)
from attendance_monitor.services.course_processor import CourseProcessor
from attendance_monitor.services.template_fields import build_template_fields

router = APIRouter(prefix="/courses", tags=["Courses"])


@lru_cache()
def get_course_processor() -> CourseProcessor:
    """
    Shared processor instance; CourseProcessor keeps no per-call state.
    """
    return CourseProcessor()


def _day_attendance_or_404(
    processor: CourseProcessor,
    course: ParsedCourse,
    day: date_type,
) -> DayAttendance:
    try:
        return processor.compute_day_attendance(course, day)
    except LookupError:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"No lesson on {day.isoformat()} in course '{course.course_name}'.",
        )


@router.post(
    "/process",
    response_model=ParsedCourse,
    status_code=HTTPStatus.OK,
    summary="Process a full-course export",
    description=(
        "Parse a multi-day course export, build the deduplicated participant "
        "roster and auto-merge near-duplicate names.\n\n"
        "Pipeline:\n"
        "- Parsing: rows grouped per lesson day, roster with organizer first\n"
        "- Alias detection: fuzzy name similarity, shared email boost\n"
        "- Alias merging: suggestions with confidence >= 0.80 are applied\n"
        "- Finalizing: statistics recomputed\n\n"
        "The returned course is the input of every other `/courses` endpoint."
    ),
    responses={
        422: {
            "description": "The export cannot be processed (empty, no participant section, no participants).",
            "content": {
                "application/json": {
                    "example": {"detail": "Invalid export format: participant section not found"}
                }
            },
        },
    },
)
async def process_course_export(
    payload: ProcessExportRequest,
    processor: CourseProcessor = Depends(get_course_processor),
) -> ParsedCourse:
    """
    Run the full processing pipeline on the submitted export text.
    """
    try:
        return processor.process_export(payload.export_text)
    except AttendanceProcessingError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )


@router.post(
    "/validate",
    response_model=ValidationReport,
    summary="Validate a processed course",
    description=(
        "Non-blocking sanity check of a processed course.\n\n"
        "Errors: missing course name, no days, no participants.\n"
        "Warnings: organizer not identified, participants without email, days "
        "with fewer than 3 participants."
    ),
    responses={
        200: {
            "description": "Validation report.",
            "content": {
                "application/json": {
                    "example": {
                        "is_valid": True,
                        "errors": [],
                        "warnings": ["2 participant(s) without email"],
                    }
                }
            },
        }
    },
)
async def validate_course(
    course: ParsedCourse,
    processor: CourseProcessor = Depends(get_course_processor),
) -> ValidationReport:
    return processor.validate(course)


@router.post(
    "/summary",
    response_model=ProcessingSummary,
    summary="Summarize a processed course",
    description="Course name, date range, counts, organizer and participant names.",
)
async def summarize_course(
    course: ParsedCourse,
    processor: CourseProcessor = Depends(get_course_processor),
) -> ProcessingSummary:
    return processor.get_processing_summary(course)


@router.post(
    "/days/{day}",
    response_model=DayAttendance,
    summary="Compute attendance for one lesson day",
    description=(
        "Compute per-participant attendance for a lesson day of the course.\n\n"
        "A participant is present when the reconnect gaps longer than 1.5 "
        "minutes add up to at most 14 minutes. Roster members without any "
        "connection that day are listed as absent (absence 999)."
    ),
    responses={
        404: {
            "description": "The course has no lesson on that day.",
            "content": {
                "application/json": {
                    "example": {"detail": "No lesson on 2025-09-22 in course 'Python Base'."}
                }
            },
        },
    },
)
async def compute_day(
    course: ParsedCourse,
    day: date_type = Path(
        ...,
        description="Lesson day in ISO format (YYYY-MM-DD).",
        examples=["2025-09-19"],
    ),
    processor: CourseProcessor = Depends(get_course_processor),
) -> DayAttendance:
    return _day_attendance_or_404(processor, course, day)


@router.post(
    "/days/{day}/template-fields",
    response_model=dict[str, str],
    summary="Build document placeholder values for one lesson day",
    description=(
        "Flat placeholder map for the attendance document of a day: date parts, "
        "lesson schedule, subject and up to 5 participant slots "
        "(`nome{i}`, `MattOraIn{i}`, `MattOraOut{i}`, `PomeOraIn{i}`, "
        "`PomeOraOut{i}`, `presenza{i}`)."
    ),
    responses={
        404: {"description": "The course has no lesson on that day."},
    },
)
async def day_template_fields(
    payload: TemplateFieldsRequest,
    day: date_type = Path(
        ...,
        description="Lesson day in ISO format (YYYY-MM-DD).",
        examples=["2025-09-19"],
    ),
    processor: CourseProcessor = Depends(get_course_processor),
) -> dict[str, str]:
    attendance = _day_attendance_or_404(processor, payload.course, day)
    return build_template_fields(attendance, payload.subject)


@router.post(
    "/merge",
    response_model=ParsedCourse,
    summary="Manually merge participants",
    description=(
        "Fold the identities listed in `source_ids` into `target_id`. Days "
        "present are unioned, names become aliases of the target and the "
        "merge is recorded as a manual alias mapping."
    ),
    responses={
        400: {
            "description": "The organizer cannot be merged, or the request is inconsistent.",
            "content": {
                "application/json": {
                    "example": {"detail": "The organizer cannot be merged with other participants"}
                }
            },
        },
        404: {
            "description": "One of the ids is not in the roster.",
            "content": {
                "application/json": {
                    "example": {"detail": "Unknown participant id(s): participant_nobody"}
                }
            },
        },
    },
)
async def merge_participants(
    payload: ManualMergeRequest,
    processor: CourseProcessor = Depends(get_course_processor),
) -> ParsedCourse:
    try:
        return processor.apply_manual_merge(payload.course, payload.target_id, payload.source_ids)
    except LookupError as exc:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=str(exc),
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=str(exc),
        )
