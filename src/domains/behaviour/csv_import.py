# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CSV parsing for behaviour event exports.

Headers are normalised (BOM stripped, lowercased, non-alphanumeric runs
collapsed to "_") so exports such as "Student ID" and "student_id" both
map to the same column. Invalid rows are reported, not raised, so one bad
row does not block the rest of an import.
"""

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

REQUIRED_COLUMNS = ("student_id", "event_type", "event_date", "points")
OPTIONAL_COLUMNS = ("class_context", "staff_name", "category", "subcategory", "notes")


class CsvFormatError(ValueError):
    """Raised when the CSV document itself cannot be used."""

    pass


@dataclass
class CsvRowError:
    """A rejected data row."""

    row: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass
class CsvParseResult:
    """Parsed events plus the rows that were rejected."""

    events: list[dict[str, Any]] = field(default_factory=list)
    errors: list[CsvRowError] = field(default_factory=list)


def normalise_header(value: str) -> str:
    value = value.lstrip("\ufeff").strip().lower()
    return re.sub(r"[^a-z0-9]+", "_", value).strip("_")


def _parse_row(row: dict[str, str], source_system: str | None) -> dict[str, Any]:
    student_id = row.get("student_id", "")
    if not student_id:
        raise ValueError("student_id is required")

    event_type = row.get("event_type", "").lower()
    if event_type not in ("merit", "demerit"):
        raise ValueError(f"Invalid event_type '{row.get('event_type', '')}'")

    try:
        event_date = date.fromisoformat(row.get("event_date", ""))
    except ValueError:
        raise ValueError(f"Invalid event_date '{row.get('event_date', '')}'") from None

    try:
        points = abs(int(row.get("points") or "0"))
    except ValueError:
        raise ValueError(f"Invalid points '{row.get('points', '')}'") from None

    event: dict[str, Any] = {
        "student_id": student_id,
        "event_type": event_type,
        "event_date": event_date,
        "points": points,
        "source_system": source_system,
    }
    for column in OPTIONAL_COLUMNS:
        event[column] = row.get(column) or None
    return event


def parse_events_csv(text: str, source_system: str | None = None) -> CsvParseResult:
    """Parse a CSV export into behaviour event values.

    Args:
        text: CSV document with a header row.
        source_system: Value stored on every parsed event.

    Returns:
        CsvParseResult with event dicts ready for record_events().

    Raises:
        CsvFormatError: If the document is empty or lacks required columns.
    """
    reader = csv.reader(io.StringIO(text))
    rows = [cells for cells in reader if any(cell.strip() for cell in cells)]
    if not rows:
        raise CsvFormatError("No rows found in CSV")

    headers = [normalise_header(cell) for cell in rows[0]]
    missing = [column for column in REQUIRED_COLUMNS if column not in headers]
    if missing:
        raise CsvFormatError(f"Missing required columns: {', '.join(missing)}")

    result = CsvParseResult()
    for number, cells in enumerate(rows[1:], start=1):
        record = {
            header: (cells[index].strip() if index < len(cells) else "")
            for index, header in enumerate(headers)
        }
        try:
            result.events.append(_parse_row(record, source_system))
        except ValueError as e:
            result.errors.append(CsvRowError(row=number, message=str(e)))

    return result
