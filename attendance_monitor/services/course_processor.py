# attendance_monitor/services/course_processor.py
from __future__ import annotations

import math
import re
from datetime import date as date_type
from typing import Dict, List, Optional, Sequence

from attendance_monitor.core.config import get_settings
from attendance_monitor.core.errors import EmptyExportError, NoParticipantsError
from attendance_monitor.core.logging import get_logger
from attendance_monitor.schemas.attendance import (
    DayAttendance,
    Period,
    RawEventRow,
    SessionRecord,
)
from attendance_monitor.schemas.course import (
    AliasSuggestion,
    CourseStatistics,
    DateRange,
    DayDetails,
    DayRecord,
    OrganizerInfo,
    ParsedCourse,
    ParticipantIdentity,
    ParticipantStats,
    ProcessingSummary,
    ValidationReport,
)
from attendance_monitor.services.alias_merge import (
    MergeResult,
    apply_alias_mappings,
    detect_aliases,
    merge_identities,
)
from attendance_monitor.services.datetime_normalizer import (
    day_key,
    parse_export_timestamp,
    period_of,
)
from attendance_monitor.services.export_reader import clean_participant_name, read_export_rows
from attendance_monitor.services.name_similarity import normalize_name
from attendance_monitor.services.session_processor import (
    compute_attendance,
    compute_lesson_hours,
    determine_lesson_shape,
)

logger = get_logger("services.course_processor")

ORGANIZER_ORDER = 0
MIN_PARTICIPANTS_PER_DAY = 3

_SLUG_SEPARATOR = re.compile(r"\s+")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CourseProcessor:
    """
    Turns the rows of a multi-day course export into a ParsedCourse and
    answers per-day and per-participant questions about it.

    Stateless: every method works only on its arguments, so one instance can
    be shared freely.

    Pipeline
    --------
    Parsing -> AliasDetection -> AliasMerging -> Finalizing
    """

    def __init__(self, default_course_name: Optional[str] = None) -> None:
        self.default_course_name = default_course_name or get_settings().DEFAULT_COURSE_NAME

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_rows(self, rows: Sequence[RawEventRow]) -> ParsedCourse:
        """
        Group export rows into days and build the master roster.

        Rules
        -----
        - Course metadata (name, meeting id, organizer) comes from the first row.
        - A row belongs to the calendar day of its meeting start time; rows
          without a start time are skipped.
        - Rows whose cleaned participant name is empty are skipped.
        - Roster: organizer first (order 0), then every other distinct name in
          sorted order from 1. Names equal to an earlier one ignoring case are
          folded into it as an alias.
        """
        if not rows:
            raise EmptyExportError("Export contains no data rows")

        first = rows[0]
        course_name = first.course_name.strip() or self.default_course_name
        meeting_id = first.meeting_id.strip()
        organizer = OrganizerInfo(
            name=clean_participant_name(first.organizer_name),
            email=first.organizer_email.strip(),
        )

        days = self._build_days(rows, course_name, meeting_id)
        participants = self._build_roster(days, organizer)

        course = ParsedCourse(
            course_name=course_name,
            meeting_id=meeting_id,
            organizer=organizer,
            days=days,
            participants=participants,
            date_range=DateRange(start=days[0].date, end=days[-1].date) if days else None,
            statistics=CourseStatistics(
                total_days=len(days),
                total_participants=len(participants),
                total_sessions=sum(len(day.sessions) for day in days),
            ),
        )
        logger.info(
            "Parsing: %d row(s) -> %d day(s), %d identities",
            len(rows),
            len(days),
            len(participants),
        )
        return course

    def _build_days(
        self,
        rows: Sequence[RawEventRow],
        course_name: str,
        meeting_id: str,
    ) -> List[DayRecord]:
        grouped: Dict[date_type, List[SessionRecord]] = {}

        for row in rows:
            if not row.meeting_start.strip():
                continue

            name = clean_participant_name(row.participant_name)
            if not name:
                continue

            day = day_key(parse_export_timestamp(row.meeting_start))
            grouped.setdefault(day, []).append(
                SessionRecord(
                    participant_name=name,
                    email=row.participant_email.strip(),
                    join_time=parse_export_timestamp(row.join_time),
                    leave_time=parse_export_timestamp(row.leave_time),
                    duration_minutes=row.duration_minutes,
                    is_guest=row.is_guest,
                    in_waiting_room=row.in_waiting_room,
                )
            )

        days: List[DayRecord] = []
        for day in sorted(grouped):
            sessions = grouped[day]
            days.append(
                DayRecord(
                    date=day,
                    course_name=course_name,
                    meeting_id=meeting_id,
                    start_time=min(s.join_time for s in sessions),
                    end_time=max(s.leave_time for s in sessions),
                    participant_names=sorted({s.participant_name for s in sessions}),
                    sessions=sessions,
                )
            )
        return days

    def _build_roster(
        self,
        days: Sequence[DayRecord],
        organizer: OrganizerInfo,
    ) -> List[ParticipantIdentity]:
        by_key: Dict[str, ParticipantIdentity] = {}
        used_ids: set[str] = set()
        roster: List[ParticipantIdentity] = []

        if organizer.name:
            identity = ParticipantIdentity(
                id=self._identity_id(organizer.name, used_ids),
                primary_name=organizer.name,
                aliases=[organizer.name],
                email=organizer.email,
                is_organizer=True,
                master_order=ORGANIZER_ORDER,
            )
            by_key[organizer.name.lower()] = identity
            roster.append(identity)

        all_names = sorted({name for day in days for name in day.participant_names})

        order = ORGANIZER_ORDER + 1
        for name in all_names:
            existing = by_key.get(name.lower())
            if existing is not None:
                if name not in existing.aliases:
                    existing.aliases.append(name)
                continue

            identity = ParticipantIdentity(
                id=self._identity_id(name, used_ids),
                primary_name=name,
                aliases=[name],
                master_order=order,
            )
            order += 1
            by_key[name.lower()] = identity
            roster.append(identity)

        for identity in roster:
            names = set(identity.aliases)
            identity.days_present = [day.date for day in days if names & set(day.participant_names)]
            if not identity.email:
                identity.email = self._first_email(days, identity.aliases)

        return roster

    @staticmethod
    def _identity_id(name: str, used_ids: set[str]) -> str:
        slug = _SLUG_SEPARATOR.sub("_", normalize_name(name)) or "unnamed"
        candidate = f"participant_{slug}"
        counter = 2
        while candidate in used_ids:
            candidate = f"participant_{slug}_{counter}"
            counter += 1
        used_ids.add(candidate)
        return candidate

    @staticmethod
    def _first_email(days: Sequence[DayRecord], names: Sequence[str]) -> str:
        keys = {name.lower() for name in names}
        for day in days:
            for session in day.sessions:
                if session.email and session.participant_name.lower() in keys:
                    return session.email
        return ""

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------

    def process_export(self, text: str) -> ParsedCourse:
        """
        Read, parse, detect aliases, auto-merge and finalize one export.

        Raises
        ------
        EmptyExportError, MissingParticipantSectionError
            The export text cannot be read.
        NoParticipantsError
            After merging only the organizer (or nobody) is left.
        """
        rows = read_export_rows(text)
        course = self.parse_rows(rows)

        suggestions = detect_aliases(course.participants)
        for suggestion in suggestions:
            if suggestion.auto_merge:
                logger.info(
                    "Auto-merging %s <- [%s] (confidence %.1f%%)",
                    suggestion.main_name,
                    ", ".join(suggestion.suggested_aliases),
                    suggestion.confidence * 100,
                )

        result = apply_alias_mappings(course.participants, suggestions)
        course = self._finalize(course, result, alias_suggestions=suggestions)

        if not any(not p.is_organizer for p in course.participants):
            raise NoParticipantsError("No participants found in export")

        logger.info(
            "Finalized course %r: %d day(s), %d identities",
            course.course_name,
            course.statistics.total_days,
            course.statistics.total_participants,
        )
        return course

    def apply_manual_merge(
        self,
        course: ParsedCourse,
        target_id: str,
        source_ids: Sequence[str],
    ) -> ParsedCourse:
        """
        Merge explicit identities chosen by a user.

        Raises LookupError for unknown ids and ValueError when the organizer
        is involved.
        """
        result = merge_identities(course.participants, target_id, source_ids)
        logger.info("Manual merge into %s of %s", target_id, ", ".join(source_ids))
        return self._finalize(course, result)

    @staticmethod
    def _finalize(
        course: ParsedCourse,
        result: MergeResult,
        alias_suggestions: Optional[List[AliasSuggestion]] = None,
    ) -> ParsedCourse:
        update = {
            "participants": result.participants,
            "alias_mappings": [*course.alias_mappings, *result.mappings],
            "statistics": course.statistics.model_copy(
                update={"total_participants": len(result.participants)}
            ),
        }
        if alias_suggestions is not None:
            update["alias_suggestions"] = alias_suggestions
        return course.model_copy(update=update)

    # ------------------------------------------------------------------
    # Day attendance
    # ------------------------------------------------------------------

    @staticmethod
    def _find_day(course: ParsedCourse, day: date_type) -> Optional[DayRecord]:
        return next((d for d in course.days if d.date == day), None)

    def compute_day_attendance(self, course: ParsedCourse, day: date_type) -> DayAttendance:
        """
        Attendance of every roster identity on one lesson day.

        Sessions are attributed to the identity owning the session name
        (primary name or any alias, ignoring case). Identities without any
        session that day are listed as explicitly absent. Participants come
        in master order; the organizer is reported separately.

        Raises LookupError when the course has no such day.
        """
        record = self._find_day(course, day)
        if record is None:
            raise LookupError(f"No lesson on {day.isoformat()}")

        owners: Dict[str, ParticipantIdentity] = {}
        for identity in course.participants:
            for name in identity.aliases:
                owners.setdefault(name.lower(), identity)

        grouped: Dict[str, List[SessionRecord]] = {}
        for session in record.sessions:
            owner = owners.get(session.participant_name.lower())
            if owner is None:
                logger.warning(
                    "Session of %r on %s has no roster identity; ignored",
                    session.participant_name,
                    day.isoformat(),
                )
                continue
            grouped.setdefault(owner.id, []).append(session)

        organizer = None
        participants = []
        for identity in sorted(course.participants, key=lambda p: p.master_order):
            sessions = grouped.get(identity.id, [])
            if identity.is_organizer:
                if sessions:
                    organizer = compute_attendance(
                        identity.primary_name,
                        sessions,
                        email=identity.email,
                        is_organizer=True,
                    )
                continue
            participants.append(
                compute_attendance(identity.primary_name, sessions, email=identity.email)
            )

        owned = [s for sessions in grouped.values() for s in sessions]
        morning_count = sum(1 for s in owned if period_of(s.join_time) is Period.MORNING)
        shape = determine_lesson_shape(morning_count, len(owned) - morning_count)

        return DayAttendance(
            date=record.date,
            course_name=record.course_name,
            lesson_shape=shape,
            lesson_hours=compute_lesson_hours(participants, organizer, shape),
            participants=participants,
            organizer=organizer,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def get_processing_summary(course: ParsedCourse) -> ProcessingSummary:
        date_range = (
            f"{course.date_range.start.isoformat()} - {course.date_range.end.isoformat()}"
            if course.date_range
            else ""
        )
        return ProcessingSummary(
            course_name=course.course_name,
            date_range=date_range,
            total_days=course.statistics.total_days,
            total_participants=course.statistics.total_participants,
            total_sessions=course.statistics.total_sessions,
            organizer_name=course.organizer.name,
            participant_names=[p.primary_name for p in course.participants if not p.is_organizer],
            auto_merged_count=sum(1 for s in course.alias_suggestions if s.auto_merge),
        )

    def get_day_details(self, course: ParsedCourse, day: date_type) -> Optional[DayDetails]:
        record = self._find_day(course, day)
        if record is None:
            return None

        duration = (record.end_time - record.start_time).total_seconds() / 60.0
        return DayDetails(
            date=record.date,
            start_time=record.start_time,
            end_time=record.end_time,
            duration_minutes=_round_half_up(duration),
            participant_count=len(record.participant_names),
            participants=sorted(record.participant_names),
            session_count=len(record.sessions),
        )

    @staticmethod
    def get_participant_stats(course: ParsedCourse, participant_id: str) -> Optional[ParticipantStats]:
        identity = next((p for p in course.participants if p.id == participant_id), None)
        if identity is None:
            return None

        total_days = course.statistics.total_days
        days_present = len(identity.days_present)
        rate = _round_half_up(days_present / total_days * 100) if total_days else 0

        return ParticipantStats(
            name=identity.primary_name,
            aliases=list(identity.aliases),
            email=identity.email,
            total_days=total_days,
            days_present=days_present,
            days_absent=total_days - days_present,
            attendance_rate=rate,
            present_dates=list(identity.days_present),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate(course: ParsedCourse) -> ValidationReport:
        """
        Non-blocking sanity pass over a parsed course.

        Errors
        ------
        - missing course name
        - no days
        - no participants

        Warnings
        --------
        - organizer not identified
        - non-organizer participants without email
        - days with fewer than 3 distinct participants
        """
        errors: List[str] = []
        warnings: List[str] = []

        if not course.course_name.strip():
            errors.append("Missing course name")
        if not course.days:
            errors.append("No days found in export")
        if not course.participants:
            errors.append("No participants found")

        if not any(p.is_organizer for p in course.participants):
            warnings.append("Organizer not identified")

        without_email = sum(1 for p in course.participants if not p.is_organizer and not p.email)
        if without_email:
            warnings.append(f"{without_email} participant(s) without email")

        sparse = sum(1 for d in course.days if len(d.participant_names) < MIN_PARTICIPANTS_PER_DAY)
        if sparse:
            warnings.append(
                f"{sparse} day(s) with fewer than {MIN_PARTICIPANTS_PER_DAY} participants"
            )

        return ValidationReport(is_valid=not errors, errors=errors, warnings=warnings)
