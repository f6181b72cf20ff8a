# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behaviour event and insight schemas."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BehaviourEventCreate(BaseModel):
    """A merit or demerit to append to the event store.

    Points are magnitudes: demerit points are subtracted when the net
    score is computed.
    """

    student_id: str = Field(min_length=1, max_length=64, description="Student identifier")
    event_type: Literal["merit", "demerit"] = Field(description="Event kind")
    event_date: date = Field(description="Calendar date of the event")
    class_context: str | None = Field(default=None, max_length=100, description="Class or period")
    staff_name: str | None = Field(default=None, max_length=200, description="Recording staff member")
    category: str | None = Field(default=None, max_length=200, description="Category")
    subcategory: str | None = Field(default=None, max_length=200, description="Subcategory")
    points: int = Field(default=0, ge=0, description="Point magnitude")
    notes: str | None = Field(default=None, description="Free-text notes")
    source_system: str | None = Field(default=None, max_length=100, description="Originating system")


class BehaviourEventBatchRequest(BaseModel):
    """Batch of events to record."""

    events: list[BehaviourEventCreate] = Field(min_length=1, description="Events to append")
    recompute: bool = Field(default=True, description="Recompute insights for affected students")


class BehaviourCsvImportRequest(BaseModel):
    """CSV export from a student information system."""

    csv_text: str = Field(min_length=1, description="CSV document including the header row")
    source_system: str | None = Field(default=None, description="Originating system")
    recompute: bool = Field(default=True, description="Recompute insights for affected students")


class BehaviourEventResponse(BaseModel):
    """Stored behaviour event."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    event_type: str
    event_date: date
    class_context: str | None = None
    staff_name: str | None = None
    category: str | None = None
    subcategory: str | None = None
    points: int
    source_system: str | None = None


class CsvRowErrorResponse(BaseModel):
    """A CSV row that could not be imported."""

    row: int = Field(description="1-based data row number")
    message: str = Field(description="Why the row was rejected")


class RecomputeResponse(BaseModel):
    """Outcome of an insight recompute run."""

    processed: int = Field(description="Students recomputed successfully")
    students: list[str] = Field(description="Student IDs recomputed successfully")
    failed: list[str] = Field(default_factory=list, description="Student IDs that failed")


class BehaviourImportResponse(BaseModel):
    """Result of recording a batch of events."""

    recorded: int = Field(description="Events appended")
    errors: list[CsvRowErrorResponse] = Field(default_factory=list, description="Rejected rows")
    insights: RecomputeResponse | None = Field(default=None, description="Recompute result")


class ReprocessRequest(BaseModel):
    """Request to recompute insights."""

    student_ids: list[str] | None = Field(
        default=None,
        description="Students to recompute; all recently active students when omitted",
    )


class StudentInsightResponse(BaseModel):
    """Insight snapshot for one time window."""

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    time_window: str
    total_merits: int
    total_demerits: int
    net_score: int
    demerit_frequency: int
    trend: str
    risk_level: str
    primary_issue_type: str | None = None
    interpretation: str | None = None
    last_computed: datetime


class StudentPatternResponse(BaseModel):
    """Detected behaviour pattern."""

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    pattern_type: str
    pattern_description: str
    confidence_score: float
    detected_at: datetime


class StudentInsightsResponse(BaseModel):
    """All derived insight data for a student."""

    student_id: str = Field(description="Student identifier")
    insights: list[StudentInsightResponse] = Field(description="Snapshots by time window")
    patterns: list[StudentPatternResponse] = Field(description="Current pattern tags")
