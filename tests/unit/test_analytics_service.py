# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the intervention analytics service.

Creation timestamps come from the database clock, so ranges here are
anchored on the real current time.
"""

from datetime import timedelta

import pytest

from src.domains.analytics import InterventionAnalyticsService, default_period
from src.domains.intervention import LevelAService, LevelCService, ReentryService
from src.utils.datetime import utc_now


@pytest.fixture
def period():
    start, now = default_period(utc_now(), 30)
    return start, now + timedelta(hours=1)


@pytest.fixture
async def seeded(db, domain_ids):
    """Four Level A records, one of which escalated to Level B."""
    now = utc_now()
    service = LevelAService(db)
    hallways = domain_ids["hallways"]
    for student_id, days_ago in (("S1", 5), ("S1", 2), ("S2", 1)):
        await service.create_level_a(
            student_id=student_id,
            staff_name="Mr. Yusuf",
            domain_id=hallways,
            intervention_type="pre_correct",
            now=now - timedelta(days=days_ago),
        )
    _, level_b = await service.create_level_a(
        student_id="S3",
        staff_name="Ms. Rahman",
        domain_id=domain_ids["respect"],
        intervention_type="private_check",
        escalation_trigger="demerit_assigned",
        now=now - timedelta(days=3),
    )
    return level_b


class TestSummaryAndDomains:
    """Tests for tier counts and domain metrics."""

    @pytest.mark.asyncio
    async def test_summary(self, db, seeded, period) -> None:
        summary = await InterventionAnalyticsService(db).get_summary(*period)

        assert summary.level_a_count == 4
        assert summary.level_b_count == 1
        assert summary.level_c_count == 0
        assert summary.distribution_healthy is True

    @pytest.mark.asyncio
    async def test_empty_range(self, db, seeded, period) -> None:
        start, _ = period
        summary = await InterventionAnalyticsService(db).get_summary(
            start - timedelta(days=60), start - timedelta(days=31)
        )

        assert summary.to_dict()["level_a_count"] == 0
        assert summary.distribution_healthy is True

    @pytest.mark.asyncio
    async def test_domain_metrics(self, db, seeded, period) -> None:
        metrics = {m.domain_key: m for m in await InterventionAnalyticsService(db).get_domain_metrics(*period)}

        assert metrics["hallways"].level_a_count == 3
        assert metrics["hallways"].repeat_rate == 33
        assert metrics["respect"].level_a_count == 1
        assert metrics["respect"].level_b_count == 1
        assert metrics["respect"].repeat_rate == 0

    @pytest.mark.asyncio
    async def test_repeats_outside_window_ignored(self, db, domain_ids, period) -> None:
        now = utc_now()
        service = LevelAService(db)
        for days_ago in (25, 2):
            await service.create_level_a(
                student_id="S1",
                staff_name="Mr. Yusuf",
                domain_id=domain_ids["lunch_recess"],
                intervention_type="redo",
                now=now - timedelta(days=days_ago),
            )

        metrics = {m.domain_key: m for m in await InterventionAnalyticsService(db).get_domain_metrics(*period)}

        assert metrics["lunch_recess"].level_a_count == 2
        assert metrics["lunch_recess"].repeat_rate == 0


class TestEscalationAndOutcomes:
    """Tests for escalation and outcome rates."""

    @pytest.mark.asyncio
    async def test_escalation_rates(self, db, seeded, period) -> None:
        metrics = await InterventionAnalyticsService(db).get_escalation_metrics(*period)

        assert metrics.a_to_b_count == 1
        assert metrics.a_to_b_rate == 25
        assert metrics.b_to_c_rate == 0

    @pytest.mark.asyncio
    async def test_outcome_rates(self, db, period) -> None:
        cases = LevelCService(db)
        case = await cases.create_case(student_id="S1", trigger_type="safety_incident")
        await cases.close_case(case.id, outcome_status="closed_escalated")
        reentries = ReentryService(db)
        for outcome in ("success", "escalated"):
            protocol = await reentries.create_protocol(
                student_id="S2", source_type="iss", reentry_date=utc_now().date()
            )
            await reentries.complete_reentry(protocol.id, outcome)

        metrics = await InterventionAnalyticsService(db).get_outcome_metrics(*period)

        assert metrics.level_b_completed == 0
        assert metrics.level_b_success_rate == 0
        assert metrics.level_c_completed == 1
        assert metrics.level_c_success_rate == 0
        assert metrics.reentry_completed == 2
        assert metrics.reentry_success_rate == 50


class TestDashboard:
    """Tests for trends, activity and the combined dashboard."""

    @pytest.mark.asyncio
    async def test_weekly_trends(self, db, seeded) -> None:
        trends = await InterventionAnalyticsService(db).get_weekly_trends(utc_now().date())

        assert len(trends) == 8
        assert trends[0].week_start < trends[-1].week_start
        assert sum(point.level_a for point in trends) == 4
        assert trends[-1].level_b == 1

    @pytest.mark.asyncio
    async def test_recent_activity_newest_first(self, db, seeded) -> None:
        activity = await InterventionAnalyticsService(db).get_recent_activity(limit=3)

        assert [item.type for item in activity] == ["level_b", "level_a", "level_a"]
        assert activity[0].id == seeded.id
        assert activity[1].student_id == "S2"
        assert activity[1].description == "Level A intervention (pre correct)"

    @pytest.mark.asyncio
    async def test_dashboard(self, db, seeded, period) -> None:
        dashboard = await InterventionAnalyticsService(db).get_dashboard(*period)

        data = dashboard.to_dict()
        assert data["summary"]["level_a_count"] == 4
        assert len(data["weekly_trends"]) == 8
        assert len(data["recent_activity"]) == 5
