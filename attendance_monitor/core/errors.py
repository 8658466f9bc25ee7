# attendance_monitor/core/errors.py


class AttendanceProcessingError(ValueError):
    """
    Base class for hard failures that abort the course processing pipeline.

    Soft findings (missing organizer, participants without email, sparse
    days) are never raised; they are reported through ValidationReport.
    """


class EmptyExportError(AttendanceProcessingError):
    """
    Raised when an export contains no data rows at all.
    """


class NoParticipantsError(AttendanceProcessingError):
    """
    Raised when, after alias merging, the roster holds only the organizer.
    """


class MissingParticipantSectionError(AttendanceProcessingError):
    """
    Raised when the export text has neither the flat full-course header nor a
    participant section introduced by the participant-name column.
    """


class MalformedExportError(AttendanceProcessingError):
    """
    Raised when the export text cannot be tokenized as CSV, or when no meeting
    start time can be found for the participant rows.
    """
