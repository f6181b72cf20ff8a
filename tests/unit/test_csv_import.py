# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for behaviour CSV parsing."""

from datetime import date

import pytest

from src.domains.behaviour import CsvFormatError, parse_events_csv
from src.domains.behaviour.csv_import import normalise_header


class TestNormaliseHeader:
    """Tests for header normalisation."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Student ID", "student_id"),
            ("\ufeffstudent_id", "student_id"),
            ("  Event-Date ", "event_date"),
            ("Class Context", "class_context"),
        ],
    )
    def test_normalise(self, raw, expected) -> None:
        assert normalise_header(raw) == expected


class TestParseEventsCsv:
    """Tests for parse_events_csv."""

    def test_parses_rows(self) -> None:
        text = (
            "\ufeffStudent ID,Event Type,Event Date,Points,Class Context,Category\n"
            "S1,Merit,2024-03-01,5,Math 7A,Leadership\n"
            "S2,demerit,2024-03-02,-2,,\n"
        )

        result = parse_events_csv(text, source_system="classcharts")

        assert result.errors == []
        assert len(result.events) == 2
        first, second = result.events
        assert first["student_id"] == "S1"
        assert first["event_type"] == "merit"
        assert first["event_date"] == date(2024, 3, 1)
        assert first["class_context"] == "Math 7A"
        assert first["source_system"] == "classcharts"
        assert second["points"] == 2
        assert second["class_context"] is None
        assert second["staff_name"] is None

    def test_row_errors_are_one_based(self) -> None:
        text = (
            "student_id,event_type,event_date,points\n"
            "S1,demerit,2024-03-01,1\n"
            "S2,bonus,2024-03-01,1\n"
            ",merit,2024-03-01,1\n"
            "S4,merit,03/01/2024,1\n"
            "S5,merit,2024-03-01,lots\n"
        )

        result = parse_events_csv(text)

        assert len(result.events) == 1
        assert [error.row for error in result.errors] == [2, 3, 4, 5]
        assert "event_type" in result.errors[0].message
        assert result.errors[1].to_dict() == {"row": 3, "message": "student_id is required"}

    def test_blank_lines_skipped(self) -> None:
        text = "student_id,event_type,event_date,points\n\nS1,merit,2024-03-01,1\n\n"

        result = parse_events_csv(text)

        assert len(result.events) == 1

    def test_missing_points_defaults_to_zero(self) -> None:
        text = "student_id,event_type,event_date,points\nS1,merit,2024-03-01,\n"

        assert parse_events_csv(text).events[0]["points"] == 0

    def test_missing_columns(self) -> None:
        with pytest.raises(CsvFormatError, match="points"):
            parse_events_csv("student_id,event_type,event_date\nS1,merit,2024-03-01\n")

    def test_empty_document(self) -> None:
        with pytest.raises(CsvFormatError):
            parse_events_csv("")

    def test_format_error_is_value_error(self) -> None:
        assert issubclass(CsvFormatError, ValueError)
