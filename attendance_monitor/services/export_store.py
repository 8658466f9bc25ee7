# attendance_monitor/services/export_store.py
from __future__ import annotations

from datetime import date as date_type
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_monitor.core.logging import get_logger
from attendance_monitor.models.export_blob import ExportBlob

logger = get_logger("services.export_store")


async def get_export(
    db: AsyncSession,
    course_key: str,
    lesson_date: date_type,
    session: str,
) -> Optional[ExportBlob]:
    stmt = select(ExportBlob).where(
        ExportBlob.course_key == course_key,
        ExportBlob.lesson_date == lesson_date,
        ExportBlob.session == session,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def put_export(
    db: AsyncSession,
    course_key: str,
    lesson_date: date_type,
    session: str,
    content: bytes,
) -> ExportBlob:
    """
    Store (or replace) the raw bytes of one export.

    Idempotent per (course_key, lesson_date, session): writing the same key
    twice keeps a single row holding the latest payload.
    """
    blob = await get_export(db, course_key, lesson_date, session)

    if blob is None:
        blob = ExportBlob(
            course_key=course_key,
            lesson_date=lesson_date,
            session=session,
        )
        db.add(blob)

    blob.content = content
    blob.size_bytes = len(content)

    await db.flush()
    await db.commit()
    await db.refresh(blob)

    logger.info(
        "Stored export %s/%s/%s (%d bytes)",
        course_key,
        lesson_date.isoformat(),
        session,
        len(content),
    )
    return blob


async def list_exports(db: AsyncSession, course_key: str) -> List[ExportBlob]:
    """
    All exports stored for a course, by lesson date then session label.
    """
    stmt = (
        select(ExportBlob)
        .where(ExportBlob.course_key == course_key)
        .order_by(ExportBlob.lesson_date.asc(), ExportBlob.session.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def delete_export(
    db: AsyncSession,
    course_key: str,
    lesson_date: date_type,
    session: str,
) -> bool:
    """
    Remove one stored export. Returns False when nothing was stored.
    """
    blob = await get_export(db, course_key, lesson_date, session)
    if blob is None:
        return False

    await db.delete(blob)
    await db.commit()

    logger.info("Deleted export %s/%s/%s", course_key, lesson_date.isoformat(), session)
    return True
