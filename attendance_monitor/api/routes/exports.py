# attendance_monitor/api/routes/exports.py
from datetime import date as date_type
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_monitor.db.session import get_db
from attendance_monitor.schemas.export_blob import ExportBlobRead
from attendance_monitor.services.export_store import (
    delete_export,
    get_export,
    list_exports,
    put_export,
)

router = APIRouter(prefix="/exports", tags=["Exports"])

EXPORT_MEDIA_TYPE = "text/csv"


@router.put(
    "/{course_key}/{lesson_date}/{session}",
    response_model=ExportBlobRead,
    status_code=HTTPStatus.OK,
    summary="Store a raw export",
    description=(
        "Store the raw bytes of an export for a course, lesson day and session "
        "label. The request body is stored as-is.\n\n"
        "Writing the same key again replaces the previous payload."
    ),
    responses={
        200: {
            "description": "Export stored.",
            "content": {
                "application/json": {
                    "example": {
                        "course_key": "python-base-2025",
                        "lesson_date": "2025-09-19",
                        "session": "full",
                        "size_bytes": 2048,
                        "updated_at": "2025-09-19T18:05:00Z",
                    }
                }
            },
        },
        400: {"description": "Empty request body."},
    },
)
async def store_export(
    request: Request,
    course_key: str = Path(..., description="Course key.", examples=["python-base-2025"]),
    lesson_date: date_type = Path(..., description="Lesson day (YYYY-MM-DD).", examples=["2025-09-19"]),
    session: str = Path(..., description="Session label.", examples=["full"]),
    db: AsyncSession = Depends(get_db),
) -> ExportBlobRead:
    content = await request.body()
    if not content:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Request body is empty.",
        )

    blob = await put_export(db, course_key, lesson_date, session, content)
    return ExportBlobRead.model_validate(blob)


@router.get(
    "/{course_key}",
    response_model=list[ExportBlobRead],
    summary="List stored exports of a course",
    description="Metadata of every export stored for the course, by lesson day then session.",
)
async def list_course_exports(
    course_key: str = Path(..., description="Course key.", examples=["python-base-2025"]),
    db: AsyncSession = Depends(get_db),
) -> list[ExportBlobRead]:
    blobs = await list_exports(db, course_key)
    return [ExportBlobRead.model_validate(blob) for blob in blobs]


@router.get(
    "/{course_key}/{lesson_date}/{session}",
    response_class=Response,
    summary="Download a raw export",
    description="Return the stored bytes exactly as they were uploaded.",
    responses={
        200: {"content": {EXPORT_MEDIA_TYPE: {}}, "description": "Stored export bytes."},
        404: {"description": "Nothing stored under this key."},
    },
)
async def download_export(
    course_key: str = Path(..., description="Course key."),
    lesson_date: date_type = Path(..., description="Lesson day (YYYY-MM-DD)."),
    session: str = Path(..., description="Session label."),
    db: AsyncSession = Depends(get_db),
) -> Response:
    blob = await get_export(db, course_key, lesson_date, session)
    if blob is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"No export stored for {course_key}/{lesson_date.isoformat()}/{session}.",
        )
    return Response(content=blob.content, media_type=EXPORT_MEDIA_TYPE)


@router.delete(
    "/{course_key}/{lesson_date}/{session}",
    status_code=HTTPStatus.NO_CONTENT,
    response_class=Response,
    summary="Delete a stored export",
    responses={404: {"description": "Nothing stored under this key."}},
)
async def remove_export(
    course_key: str = Path(..., description="Course key."),
    lesson_date: date_type = Path(..., description="Lesson day (YYYY-MM-DD)."),
    session: str = Path(..., description="Session label."),
    db: AsyncSession = Depends(get_db),
) -> Response:
    deleted = await delete_export(db, course_key, lesson_date, session)
    if not deleted:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"No export stored for {course_key}/{lesson_date.isoformat()}/{session}.",
        )
    return Response(status_code=HTTPStatus.NO_CONTENT)
