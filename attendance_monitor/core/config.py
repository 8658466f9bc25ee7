# attendance_monitor/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.

    Attendance thresholds (absence tolerance, gap tolerance, lesson windows,
    merge thresholds, template slots) are NOT configurable here; they live
    as constants next to the code that uses them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    APP_NAME: str = "Course Attendance Monitor"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./attendance_monitor.db",
        description="SQLAlchemy-compatible database URL used by the raw export store",
    )

    LOG_LEVEL: str = Field(
        "INFO",
        description="Log level for the attendance_monitor logger hierarchy.",
    )

    DEFAULT_COURSE_NAME: str = Field(
        "Corso senza nome",
        description="Course name used when an export does not carry a topic.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
