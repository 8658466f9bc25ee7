# tests/conftest.py
import os
import tempfile

# Point the app at a throwaway SQLite file before any app module builds its engine.
_DB_DIR = tempfile.mkdtemp(prefix="attendance_monitor_tests_")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from attendance_monitor.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from attendance_monitor.main import create_app  # noqa: E402

HEADER = (
    "Argomento,ID,Nome organizzatore,E-mail organizzatore,Ora di inizio,Ora di fine,"
    "Nome (nome originale),E-mail,Ora di ingresso,Ora di uscita,Durata (minuti),"
    "Guest,In sala d'attesa"
)

COURSE = "Python Base"
MEETING_ID = "123 456 789"
ORGANIZER = "Mario Rossi"
ORGANIZER_EMAIL = "mario.rossi@test.it"


def export_line(day: str, name: str, email: str, join: str, leave: str, minutes: int = 0) -> str:
    """
    One flat-layout export line for the test course; `day` is "DD/MM/YYYY",
    `join`/`leave` are 12-hour clock times like "09:00:00 AM".
    """
    return ",".join(
        [
            COURSE,
            MEETING_ID,
            ORGANIZER,
            ORGANIZER_EMAIL,
            f"{day} 09:00:00 AM",
            f"{day} 06:00:00 PM",
            name,
            email,
            f"{day} {join}",
            f"{day} {leave}",
            str(minutes),
            "No",
            "No",
        ]
    )


def build_export(lines: list[str]) -> str:
    return "\n".join([HEADER, *lines]) + "\n"


# Three lesson days:
# - 19/09: full day; Giorgio reconnects after 10 min, Luca after 30 min
# - 20/09: morning only; Giorgio shows up as "G. Santambrogio", Maria as "Maria V."
# - 22/09: afternoon only; Giorgio as "giorgio s.", Luca missing
COURSE_LINES = [
    export_line("19/09/2025", "Mario Rossi (Organizzatore)", ORGANIZER_EMAIL, "09:00:00 AM", "01:00:00 PM", 240),
    export_line("19/09/2025", "Mario Rossi (Organizzatore)", ORGANIZER_EMAIL, "02:00:00 PM", "06:00:00 PM", 240),
    export_line("19/09/2025", "Giorgio Santambrogio", "giorgio.s@test.it", "09:00:00 AM", "10:30:00 AM", 90),
    export_line("19/09/2025", "Giorgio Santambrogio", "giorgio.s@test.it", "10:40:00 AM", "01:00:00 PM", 140),
    export_line("19/09/2025", "Giorgio Santambrogio", "giorgio.s@test.it", "02:00:00 PM", "06:00:00 PM", 240),
    export_line("19/09/2025", "Maria Verdi", "maria.verdi@test.it", "09:05:00 AM", "01:00:00 PM", 235),
    export_line("19/09/2025", "Maria Verdi", "maria.verdi@test.it", "02:00:00 PM", "06:00:00 PM", 240),
    export_line("19/09/2025", "Luca Bianchi", "", "09:00:00 AM", "10:00:00 AM", 60),
    export_line("19/09/2025", "Luca Bianchi", "", "10:30:00 AM", "01:00:00 PM", 150),
    export_line("19/09/2025", "Luca Bianchi", "", "02:00:00 PM", "06:00:00 PM", 240),
    export_line("20/09/2025", "Mario Rossi (Organizzatore)", ORGANIZER_EMAIL, "09:00:00 AM", "01:00:00 PM", 240),
    export_line("20/09/2025", "G. Santambrogio", "giorgio.s@test.it", "09:00:00 AM", "11:00:00 AM", 120),
    export_line("20/09/2025", "G. Santambrogio", "giorgio.s@test.it", "11:01:00 AM", "01:00:00 PM", 119),
    export_line("20/09/2025", "Maria V.", "maria.verdi@test.it", "09:00:00 AM", "01:00:00 PM", 240),
    export_line("20/09/2025", "Luca Bianchi", "", "09:00:00 AM", "01:00:00 PM", 240),
    export_line("22/09/2025", "Mario Rossi (Organizzatore)", ORGANIZER_EMAIL, "02:00:00 PM", "06:00:00 PM", 240),
    export_line("22/09/2025", "giorgio s.", "giorgio.s@test.it", "02:00:00 PM", "06:00:00 PM", 240),
    export_line("22/09/2025", "Maria Verdi", "maria.verdi@test.it", "02:00:00 PM", "06:00:00 PM", 240),
]


@pytest.fixture
def course_export_text() -> str:
    return build_export(COURSE_LINES)


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for all API tests.

    Entering the client runs the app lifespan, which creates the schema in
    the temporary SQLite database.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
