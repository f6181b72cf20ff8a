# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behaviour domain.

Append-only merit/demerit event store, CSV import and the rolling-window
insight engine.
"""

from src.domains.behaviour.csv_import import (
    CsvFormatError,
    CsvParseResult,
    CsvRowError,
    parse_events_csv,
)
from src.domains.behaviour.insights import (
    DetectedPattern,
    StudentInsights,
    WindowInsight,
    compute_student_insights,
)
from src.domains.behaviour.service import (
    BehaviourEventService,
    BehaviourInsightService,
    RecomputeResult,
)

__all__ = [
    "BehaviourEventService",
    "BehaviourInsightService",
    "CsvFormatError",
    "CsvParseResult",
    "CsvRowError",
    "DetectedPattern",
    "RecomputeResult",
    "StudentInsights",
    "WindowInsight",
    "compute_student_insights",
    "parse_events_csv",
]
