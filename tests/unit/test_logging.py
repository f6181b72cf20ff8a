# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for logging setup."""

import logging

import structlog

from src.core.config.settings import Settings
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_levels(self):
        setup_logging(Settings(log_level="DEBUG"))

        assert logging.getLogger("src").level == logging.DEBUG
        assert logging.getLogger("sqlalchemy").level == logging.WARNING
        assert logging.getLogger("dramatiq").level == logging.WARNING

    def test_get_logger(self):
        setup_logging(Settings())

        assert get_logger(__name__) is not None


class TestLogContext:
    """Tests for job-scoped log context."""

    def test_bind_and_clear(self):
        bind_context(job="run_intervention_monitoring", run_date="2024-03-15")

        assert structlog.contextvars.get_contextvars() == {
            "job": "run_intervention_monitoring",
            "run_date": "2024-03-15",
        }

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
