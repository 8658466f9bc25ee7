# attendance_monitor/models/export_blob.py
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
    func,
)

from attendance_monitor.db.base import Base


class ExportBlob(Base):
    """
    Raw bytes of one uploaded export, keyed by course, lesson date and
    session label (e.g. "morning", "afternoon" or "full").

    The store never interprets the payload; parsing always happens on the
    text handed to the course processor.
    """

    __tablename__ = "export_blobs"

    id = Column(Integer, primary_key=True, index=True)

    course_key = Column(String(255), nullable=False, index=True)
    lesson_date = Column(Date, nullable=False, index=True)
    session = Column(String(64), nullable=False)

    content = Column(LargeBinary, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "course_key",
            "lesson_date",
            "session",
            name="uq_export_blobs_course_date_session",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ExportBlob id={self.id} course_key={self.course_key} "
            f"date={self.lesson_date} session={self.session} size={self.size_bytes}>"
        )
