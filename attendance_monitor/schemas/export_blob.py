# attendance_monitor/schemas/export_blob.py
from datetime import date as date_type, datetime

from pydantic import BaseModel, ConfigDict, Field


class ExportBlobRead(BaseModel):
    """
    Metadata of a stored raw export (the bytes themselves are served by the
    download endpoint).
    """

    model_config = ConfigDict(from_attributes=True)

    course_key: str = Field(
        ...,
        description="Caller-chosen key of the course the export belongs to.",
        examples=["python-base-2025"],
    )
    lesson_date: date_type = Field(
        ...,
        description="Lesson day the export refers to.",
        examples=["2025-09-19"],
    )
    session: str = Field(
        ...,
        description="Session label within the day.",
        examples=["morning"],
    )
    size_bytes: int = Field(..., description="Size of the stored payload.", examples=[2048])
    updated_at: datetime | None = Field(
        None,
        description="Last time the payload was written.",
    )
