# tests/test_course_processor.py
from datetime import date, datetime

import pytest

from conftest import build_export, export_line
from attendance_monitor.core.errors import EmptyExportError, NoParticipantsError
from attendance_monitor.schemas.attendance import LessonShape, RawEventRow
from attendance_monitor.schemas.course import MergeOrigin
from attendance_monitor.services.course_processor import CourseProcessor

D1, D2, D3 = date(2025, 9, 19), date(2025, 9, 20), date(2025, 9, 22)


@pytest.fixture
def processor() -> CourseProcessor:
    return CourseProcessor(default_course_name="Corso senza nome")


@pytest.fixture
def course(processor, course_export_text):
    return processor.process_export(course_export_text)


def row(name: str, start: str = "19/09/2025 09:00:00 AM", **extra) -> RawEventRow:
    values = dict(
        course_name="Python Base",
        organizer_name="Mario Rossi",
        meeting_start=start,
        participant_name=name,
        join_time="19/09/2025 09:00:00 AM",
        leave_time="19/09/2025 01:00:00 PM",
    )
    values.update(extra)
    return RawEventRow(**values)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_parse_groups_rows_by_day_and_builds_roster(processor, course_export_text):
    from attendance_monitor.services.export_reader import read_export_rows

    parsed = processor.parse_rows(read_export_rows(course_export_text))

    assert [d.date for d in parsed.days] == [D1, D2, D3]
    assert parsed.days[0].start_time == datetime(2025, 9, 19, 9, 0)
    assert parsed.days[0].end_time == datetime(2025, 9, 19, 18, 0)
    assert parsed.days[0].participant_names == [
        "Giorgio Santambrogio",
        "Luca Bianchi",
        "Maria Verdi",
        "Mario Rossi",
    ]

    assert [(p.primary_name, p.master_order) for p in parsed.participants] == [
        ("Mario Rossi", 0),
        ("G. Santambrogio", 1),
        ("Giorgio Santambrogio", 2),
        ("Luca Bianchi", 3),
        ("Maria V.", 4),
        ("Maria Verdi", 5),
        ("giorgio s.", 6),
    ]

    organizer = parsed.participants[0]
    assert organizer.is_organizer is True
    assert organizer.id == "participant_mario_rossi"
    assert organizer.email == "mario.rossi@test.it"
    assert organizer.days_present == [D1, D2, D3]

    luca = next(p for p in parsed.participants if p.primary_name == "Luca Bianchi")
    assert luca.email == ""
    assert luca.days_present == [D1, D2]

    assert parsed.statistics.total_days == 3
    assert parsed.statistics.total_sessions == 18
    assert parsed.date_range.start == D1
    assert parsed.date_range.end == D3


def test_parse_rejects_empty_rows(processor):
    with pytest.raises(EmptyExportError):
        processor.parse_rows([])


def test_parse_defaults_course_name(processor):
    parsed = processor.parse_rows([row("Anna Neri", course_name="")])
    assert parsed.course_name == "Corso senza nome"


def test_parse_skips_rows_without_start_time_or_name(processor):
    parsed = processor.parse_rows(
        [
            row("Anna Neri"),
            row("Luca Bianchi", start=""),
            row("(Ospite)"),
        ]
    )

    assert [p.primary_name for p in parsed.participants] == ["Mario Rossi", "Anna Neri"]
    assert parsed.statistics.total_sessions == 1


def test_parse_folds_case_variants_into_one_identity(processor):
    parsed = processor.parse_rows(
        [
            row("Anna Neri", participant_email="anna@test.it"),
            row("anna neri", start="20/09/2025 09:00:00 AM"),
            row("mario rossi"),
        ]
    )

    names = [p.primary_name for p in parsed.participants]
    assert names == ["Mario Rossi", "Anna Neri"]

    anna = parsed.participants[1]
    assert anna.aliases == ["Anna Neri", "anna neri"]
    assert anna.days_present == [D1, D2]
    assert anna.email == "anna@test.it"


def test_identity_ids_are_unique(processor):
    parsed = processor.parse_rows([row("Anna Neri"), row("Anna  Neri")])

    ids = [p.id for p in parsed.participants]
    assert len(ids) == len(set(ids))
    assert "participant_anna_neri" in ids
    assert "participant_anna_neri_2" in ids


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------

def test_process_export_auto_merges_aliases(course):
    assert [p.primary_name for p in course.participants] == [
        "Mario Rossi",
        "G. Santambrogio",
        "Luca Bianchi",
        "Maria V.",
    ]

    giorgio = course.participants[1]
    assert sorted(giorgio.aliases) == sorted(["G. Santambrogio", "Giorgio Santambrogio", "giorgio s."])
    assert giorgio.days_present == [D1, D2, D3]
    assert giorgio.email == "giorgio.s@test.it"

    assert len(course.alias_suggestions) == 2
    assert all(s.auto_merge for s in course.alias_suggestions)
    assert [m.primary_name for m in course.alias_mappings] == ["G. Santambrogio", "Maria V."]
    assert all(m.merged_by is MergeOrigin.AUTO for m in course.alias_mappings)
    assert course.statistics.total_participants == 4


def test_process_export_with_only_organizer_fails(processor):
    text = build_export(
        [export_line("19/09/2025", "Mario Rossi (Organizzatore)", "", "09:00:00 AM", "01:00:00 PM")]
    )
    with pytest.raises(NoParticipantsError):
        processor.process_export(text)


def test_manual_merge(processor, course):
    merged = processor.apply_manual_merge(course, "participant_maria_v", ["participant_luca_bianchi"])

    assert [p.primary_name for p in merged.participants] == ["Mario Rossi", "G. Santambrogio", "Maria V."]
    assert merged.alias_mappings[-1].merged_by is MergeOrigin.MANUAL
    assert merged.statistics.total_participants == 3
    # the input course is untouched
    assert len(course.participants) == 4


def test_manual_merge_errors(processor, course):
    with pytest.raises(LookupError):
        processor.apply_manual_merge(course, "participant_maria_v", ["participant_nobody"])
    with pytest.raises(ValueError):
        processor.apply_manual_merge(course, "participant_mario_rossi", ["participant_maria_v"])


# ---------------------------------------------------------------------------
# Day attendance
# ---------------------------------------------------------------------------

def test_full_day_attendance(processor, course):
    day = processor.compute_day_attendance(course, D1)

    assert day.lesson_shape is LessonShape.BOTH
    assert day.lesson_hours == list(range(9, 19))
    assert day.organizer is not None and day.organizer.name == "Mario Rossi"
    assert [p.name for p in day.participants] == ["G. Santambrogio", "Luca Bianchi", "Maria V."]

    giorgio, luca, maria = day.participants
    assert giorgio.total_absence_minutes == pytest.approx(10)
    assert giorgio.is_present is True
    assert luca.total_absence_minutes == pytest.approx(30)
    assert luca.is_present is False
    assert luca.is_absent is False
    assert maria.is_present is True


def test_morning_only_day(processor, course):
    day = processor.compute_day_attendance(course, D2)

    assert day.lesson_shape is LessonShape.MORNING
    assert day.lesson_hours == [9, 10, 11, 12, 13]
    # the one-minute reconnect is ignored
    assert day.participants[0].total_absence_minutes == 0
    assert all(p.is_present for p in day.participants)


def test_missing_participant_is_explicitly_absent(processor, course):
    day = processor.compute_day_attendance(course, D3)

    assert day.lesson_shape is LessonShape.AFTERNOON
    assert day.lesson_hours == [14, 15, 16, 17, 18]

    luca = next(p for p in day.participants if p.name == "Luca Bianchi")
    assert luca.is_absent is True
    assert luca.is_present is False
    assert luca.total_absence_minutes == 999


def test_unknown_day(processor, course):
    with pytest.raises(LookupError):
        processor.compute_day_attendance(course, date(2025, 9, 21))


# ---------------------------------------------------------------------------
# Queries and validation
# ---------------------------------------------------------------------------

def test_processing_summary(processor, course):
    summary = processor.get_processing_summary(course)

    assert summary.course_name == "Python Base"
    assert summary.date_range == "2025-09-19 - 2025-09-22"
    assert summary.total_days == 3
    assert summary.total_participants == 4
    assert summary.total_sessions == 18
    assert summary.organizer_name == "Mario Rossi"
    assert summary.participant_names == ["G. Santambrogio", "Luca Bianchi", "Maria V."]
    assert summary.auto_merged_count == 2


def test_day_details(processor, course):
    details = processor.get_day_details(course, D1)

    assert details.duration_minutes == 540
    assert details.participant_count == 4
    assert details.participants == sorted(details.participants)
    assert details.session_count == 10
    assert processor.get_day_details(course, date(2025, 1, 1)) is None


def test_participant_stats(processor, course):
    stats = processor.get_participant_stats(course, "participant_luca_bianchi")

    assert stats.total_days == 3
    assert stats.days_present == 2
    assert stats.days_absent == 1
    assert stats.attendance_rate == 67
    assert stats.present_dates == [D1, D2]
    assert processor.get_participant_stats(course, "participant_nobody") is None


def test_validate_reports_soft_warnings(processor, course):
    report = processor.validate(course)

    assert report.is_valid is True
    assert report.errors == []
    assert report.warnings == ["1 participant(s) without email"]


def test_validate_reports_hard_errors_and_sparse_days(processor):
    parsed = processor.parse_rows([row("Anna Neri", organizer_name="")])
    parsed = parsed.model_copy(update={"course_name": " "})

    report = processor.validate(parsed)

    assert report.is_valid is False
    assert report.errors == ["Missing course name"]
    assert "Organizer not identified" in report.warnings
    assert "1 participant(s) without email" in report.warnings
    assert "1 day(s) with fewer than 3 participants" in report.warnings


def test_validate_empty_course(processor):
    parsed = processor.parse_rows([row("Anna Neri", start="", organizer_name="")])

    report = processor.validate(parsed)

    assert "No days found in export" in report.errors
    assert "No participants found" in report.errors
