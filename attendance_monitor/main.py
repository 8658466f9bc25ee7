# attendance_monitor/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from attendance_monitor.api.routes import courses, exports, health
from attendance_monitor.core.config import get_settings
from attendance_monitor.core.logging import get_logger, setup_logging
from attendance_monitor.db.session import init_db_for_startup

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover
    await init_db_for_startup()
    logger.info("Database schema ready")
    yield


def create_app() -> FastAPI:
    """
    Application factory for the Course Attendance Monitor service.
    """
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service that turns multi-day video-conference exports into\n"
            "per-day course attendance: reconnect-tolerant presence decisions,\n"
            "a deduplicated participant roster with fuzzy alias merging, and the\n"
            "placeholder values of the daily attendance documents."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(health.router)
    app.include_router(courses.router)
    app.include_router(exports.router)

    logger.info("%s started (env=%s)", settings.APP_NAME, settings.APP_ENV)
    return app


app = create_app()
