# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Dramatiq intervention actors.

Actors are invoked through ``actor.fn`` so they run synchronously; the
database session and domain services are mocked.
"""

from contextlib import asynccontextmanager
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from dramatiq.brokers.stub import StubBroker

from src.core.config import clear_settings_cache
from src.domains.analytics import DigestGenerator
from src.domains.behaviour import RecomputeResult
from src.domains.intervention import MonitoringSweepResult
from src.infrastructure.background.broker import Queues, get_broker
from src.infrastructure.background.tasks import (
    get_all_actors,
    recompute_behaviour_insights,
    run_intervention_monitoring,
    send_weekly_digest,
)

TASKS = "src.infrastructure.background.tasks.interventions"


@pytest.fixture
def fake_session():
    """Patch worker_session with a mock session."""
    session = MagicMock()

    @asynccontextmanager
    async def _session():
        yield session

    with patch(f"{TASKS}.worker_session", _session):
        yield session


class TestActorRegistration:
    """Tests for actor wiring."""

    def test_all_actors(self):
        actors = get_all_actors()

        assert {actor.actor_name for actor in actors} == {
            "recompute_behaviour_insights",
            "run_intervention_monitoring",
            "send_weekly_digest",
        }

    def test_queues(self):
        assert recompute_behaviour_insights.queue_name == Queues.INSIGHTS
        assert run_intervention_monitoring.queue_name == Queues.MONITORING
        assert send_weekly_digest.queue_name == Queues.REPORTS

    def test_stub_broker_in_test_mode(self):
        assert isinstance(get_broker(), StubBroker)


class TestRecomputeBehaviourInsights:
    """Tests for recompute_behaviour_insights."""

    def test_recent_students_by_default(self, fake_session):
        service = MagicMock()
        service.recompute_recent = AsyncMock(
            return_value=RecomputeResult(processed=1, students=["S1"], failed=[])
        )

        with patch("src.domains.behaviour.BehaviourInsightService", return_value=service):
            result = recompute_behaviour_insights.fn(date_str="2024-03-15")

        service.recompute_recent.assert_awaited_once_with(date(2024, 3, 15))
        assert result == {"processed": 1, "students": ["S1"], "failed": []}

    def test_explicit_students(self, fake_session):
        service = MagicMock()
        service.recompute_students = AsyncMock(
            return_value=RecomputeResult(processed=2, students=["S1", "S2"], failed=[])
        )

        with patch("src.domains.behaviour.BehaviourInsightService", return_value=service):
            recompute_behaviour_insights.fn(["S1", "S2"], "2024-03-15")

        service.recompute_students.assert_awaited_once_with(["S1", "S2"], date(2024, 3, 15))

    def test_errors_propagate_for_retry(self, fake_session):
        service = MagicMock()
        service.recompute_recent = AsyncMock(side_effect=RuntimeError("database unavailable"))

        with patch("src.domains.behaviour.BehaviourInsightService", return_value=service):
            with pytest.raises(RuntimeError):
                recompute_behaviour_insights.fn(date_str="2024-03-15")


class TestRunInterventionMonitoring:
    """Tests for run_intervention_monitoring."""

    def test_run_date_serialized(self, fake_session):
        monitor = MagicMock()
        monitor.run = AsyncMock(
            return_value=MonitoringSweepResult(run_date=date(2024, 3, 15), level_b_closed=["B1"])
        )

        with patch("src.domains.intervention.InterventionMonitor", return_value=monitor):
            result = run_intervention_monitoring.fn("2024-03-15")

        monitor.run.assert_awaited_once_with(date(2024, 3, 15))
        assert result["run_date"] == "2024-03-15"
        assert result["level_b_closed"] == ["B1"]


class TestSendWeeklyDigest:
    """Tests for send_weekly_digest."""

    def test_generates_sends_and_archives(self, fake_session, sample_metrics_data, monkeypatch):
        monkeypatch.setenv("NOTIFY_DIGEST_RECIPIENTS", "head@school.org")
        clear_settings_cache()
        send = AsyncMock(return_value=1)
        save = AsyncMock(return_value="report-1")

        with (
            patch.object(DigestGenerator, "send_weekly_digest_emails", send),
            patch.object(DigestGenerator, "save_report_to_history", save),
        ):
            result = send_weekly_digest.fn(sample_metrics_data, "2024-03-11", "2024-03-17")

        digest, recipients = send.await_args.args
        assert recipients == ["head@school.org"]
        assert digest.report_name == "Weekly Digest - 2024-03-11 to 2024-03-17"
        assert result["emails_sent"] == 1
        assert result["report_id"] == "report-1"
        assert result["health_status"] == "GREEN"
        assert result["recipients"] == 1
