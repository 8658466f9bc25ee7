# attendance_monitor/services/export_reader.py
from __future__ import annotations

import io
import re
from typing import Dict, List

import pandas as pd

from attendance_monitor.core.errors import (
    EmptyExportError,
    MalformedExportError,
    MissingParticipantSectionError,
)
from attendance_monitor.core.logging import get_logger
from attendance_monitor.schemas.attendance import RawEventRow

logger = get_logger("services.export_reader")

COL_COURSE = "Argomento"
COL_MEETING_ID = "ID"
COL_ORGANIZER_NAME = "Nome organizzatore"
COL_ORGANIZER_EMAIL = "E-mail organizzatore"
COL_MEETING_START = "Ora di inizio"
COL_MEETING_END = "Ora di fine"
COL_PARTICIPANT_NAME = "Nome (nome originale)"
COL_PARTICIPANT_EMAIL = "E-mail"
COL_JOIN = "Ora di ingresso"
COL_LEAVE = "Ora di uscita"
COL_DURATION = "Durata (minuti)"
COL_GUEST = "Guest"
COL_WAITING_ROOM = "In sala d'attesa"

MEETING_COLUMNS = (
    COL_COURSE,
    COL_MEETING_ID,
    COL_ORGANIZER_NAME,
    COL_ORGANIZER_EMAIL,
    COL_MEETING_START,
    COL_MEETING_END,
)

# Columns without which a participant row cannot be used at all.
_MANDATORY_PARTICIPANT_COLUMNS = (COL_PARTICIPANT_NAME, COL_JOIN, COL_LEAVE)

YES = "Sì"

_TRAILING_PARENTHESIS = re.compile(r"\s*\([^)]*\)$")


def clean_participant_name(name: str) -> str:
    """
    "Mario Rossi (Organizzatore)" -> "Mario Rossi"
    """
    return _TRAILING_PARENTHESIS.sub("", name or "").strip()


def _read_table(payload: str) -> pd.DataFrame:
    try:
        df = pd.read_csv(
            io.StringIO(payload),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.ParserError as exc:
        detail = str(exc).strip().splitlines()[-1] if str(exc).strip() else "unreadable CSV"
        logger.warning("Export table could not be tokenized: %s", detail)
        raise MalformedExportError(f"Invalid export format: {detail}") from exc
    df.columns = [str(c).strip() for c in df.columns]
    return df.fillna("")


def _to_int(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _cell(record: Dict[str, str], column: str) -> str:
    return str(record.get(column, "") or "").strip()


def _meeting_metadata(lines: List[str]) -> Dict[str, str]:
    block = "\n".join(line for line in lines if line.strip())
    if not block:
        return {}

    df = _read_table(block)
    if df.empty:
        return {}

    first = df.iloc[0].to_dict()
    return {column: _cell(first, column) for column in MEETING_COLUMNS}


def read_export_rows(text: str) -> List[RawEventRow]:
    """
    Turn the text of a course export into one RawEventRow per data line.

    Two layouts are understood:

    - flat: a single header carrying the participant columns and at least
      the meeting start time ("Ora di inizio"), one line per join/leave
      event (the full-course export);
    - sectioned: a meeting block (header + one row) followed by a
      participant section whose header contains "Nome (nome originale)".
      The meeting metadata is copied onto every participant row.

    Header cells are trimmed and column order does not matter. Blank lines
    are skipped.

    Raises
    ------
    EmptyExportError
        The text is empty.
    MissingParticipantSectionError
        No participant header with name/join/leave columns can be found.
    MalformedExportError
        A line does not tokenize (e.g. an unquoted comma in a name), or
        neither the participant header nor a meeting block carries the
        meeting start time.
    """
    if not text or not text.strip():
        raise EmptyExportError("Export is empty")

    lines = text.lstrip("\ufeff").splitlines()

    header_index = next(
        (i for i, line in enumerate(lines) if COL_PARTICIPANT_NAME in line),
        None,
    )
    if header_index is None:
        raise MissingParticipantSectionError(
            "Invalid export format: participant section not found"
        )

    df = _read_table("\n".join(lines[header_index:]))

    missing = [c for c in _MANDATORY_PARTICIPANT_COLUMNS if c not in df.columns]
    if missing:
        raise MissingParticipantSectionError(
            f"Invalid export format: participant columns missing: {', '.join(missing)}"
        )

    # Rows are grouped by meeting start, so its presence decides the layout.
    flat = COL_MEETING_START in df.columns
    metadata: Dict[str, str] = {} if flat else _meeting_metadata(lines[:header_index])
    if not flat and not metadata.get(COL_MEETING_START):
        raise MalformedExportError(
            f"Invalid export format: meeting start time column '{COL_MEETING_START}' not found"
        )

    rows: List[RawEventRow] = []
    for record in df.to_dict(orient="records"):
        if not any(str(v).strip() for v in record.values()):
            continue

        source = record if flat else metadata
        rows.append(
            RawEventRow(
                course_name=_cell(source, COL_COURSE),
                meeting_id=_cell(source, COL_MEETING_ID),
                organizer_name=_cell(source, COL_ORGANIZER_NAME),
                organizer_email=_cell(source, COL_ORGANIZER_EMAIL),
                meeting_start=_cell(source, COL_MEETING_START),
                meeting_end=_cell(source, COL_MEETING_END),
                participant_name=_cell(record, COL_PARTICIPANT_NAME),
                participant_email=_cell(record, COL_PARTICIPANT_EMAIL),
                join_time=_cell(record, COL_JOIN),
                leave_time=_cell(record, COL_LEAVE),
                duration_minutes=_to_int(_cell(record, COL_DURATION)),
                is_guest=_cell(record, COL_GUEST) == YES,
                in_waiting_room=_cell(record, COL_WAITING_ROOM) == YES,
            )
        )

    logger.info(
        "Read %d export row(s) (%s layout)",
        len(rows),
        "flat" if flat else "sectioned",
    )
    return rows
