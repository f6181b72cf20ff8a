# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime and calendar-date operations
"""

from src.utils.datetime import (
    add_days,
    day_end,
    day_start,
    days_between,
    ensure_utc,
    format_iso,
    parse_iso,
    start_of_week,
    truncate_to_day,
    utc_now,
    utc_today,
)
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "utc_today",
    "ensure_utc",
    "day_start",
    "day_end",
    "truncate_to_day",
    "add_days",
    "start_of_week",
    "days_between",
    "format_iso",
    "parse_iso",
]
