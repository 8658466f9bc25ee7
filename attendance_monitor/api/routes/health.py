# attendance_monitor/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from attendance_monitor.core.config import get_settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str = Field(..., description="Always `ok` while the process serves requests.", examples=["ok"])
    app_name: str = Field(..., examples=["Course Attendance Monitor"])
    environment: str = Field(
        ...,
        description="Deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    default_course_name: str = Field(
        ...,
        description="Course name applied to exports without a topic.",
        examples=["Corso senza nome"],
    )
    timestamp_utc: datetime = Field(..., examples=["2025-09-19T10:30:00Z"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description=(
        "Report that the attendance service is up, with its name, environment "
        "and the default course name in effect.\n\n"
        "The database and the export store are not touched."
    ),
    responses={
        200: {
            "description": "Service is up.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "ok",
                        "app_name": "Course Attendance Monitor",
                        "environment": "local",
                        "default_course_name": "Corso senza nome",
                        "timestamp_utc": "2025-09-19T10:30:00Z",
                    }
                }
            },
        }
    },
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        default_course_name=settings.DEFAULT_COURSE_NAME,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
