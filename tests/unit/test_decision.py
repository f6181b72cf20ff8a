# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the intervention decision tree."""

from datetime import timedelta

import pytest

from src.domains.intervention import (
    DecisionTreeService,
    IncidentAssessment,
    LevelAService,
    LevelBService,
    get_escalation_summary,
    level_c_trigger_for_points,
)
from src.domains.intervention.enums import InterventionLevel, LevelCTriggerType


async def log_level_a(db, domain_id, when, student_id="S1"):
    await LevelAService(db).create_level_a(
        student_id=student_id,
        staff_name="Mr. Yusuf",
        domain_id=domain_id,
        intervention_type="quick_redirect",
        now=when,
    )


class TestPointTriggers:
    """Tests for SIS point thresholds."""

    @pytest.mark.parametrize(
        ("points", "expected"),
        [
            (0, None),
            (19, None),
            (20, LevelCTriggerType.THRESHOLD_20_POINTS),
            (29, LevelCTriggerType.THRESHOLD_20_POINTS),
            (30, LevelCTriggerType.THRESHOLD_30_POINTS),
            (35, LevelCTriggerType.THRESHOLD_35_POINTS),
            (52, LevelCTriggerType.THRESHOLD_40_POINTS),
        ],
    )
    def test_highest_threshold_reached(self, points, expected) -> None:
        assert level_c_trigger_for_points(points) == expected


class TestEscalationSummary:
    """Tests for level display summaries."""

    def test_summary_colors(self) -> None:
        assert get_escalation_summary("A")["color"] == "green"
        assert get_escalation_summary(InterventionLevel.B)["color"] == "yellow"
        assert get_escalation_summary("C")["title"] == "Level C: Case Management"


class TestDetermineInterventionLevel:
    """Tests for DecisionTreeService.determine_intervention_level."""

    @pytest.mark.asyncio
    async def test_safety_incident_is_level_c(self, db, domain_ids, now) -> None:
        assessment = IncidentAssessment(
            student_id="S1", domain_id=domain_ids["hallways"], is_safety_incident=True
        )

        result = await DecisionTreeService(db).determine_intervention_level(assessment, now=now)

        assert result.recommended_level == InterventionLevel.C
        assert result.reasons == ["Safety incident detected - requires Level C + Admin consequence"]

    @pytest.mark.asyncio
    async def test_no_triggers_is_level_a(self, db, domain_ids, now) -> None:
        assessment = IncidentAssessment(student_id="S1", domain_id=domain_ids["hallways"])

        result = await DecisionTreeService(db).determine_intervention_level(assessment, now=now)

        assert result.recommended_level == InterventionLevel.A
        assert result.reasons == ["No escalation triggers present"]
        assert result.to_dict()["summary"]["level"] == "A"

    @pytest.mark.asyncio
    async def test_one_ignored_prompt_is_not_a_trigger(self, db, domain_ids, now) -> None:
        assessment = IncidentAssessment(
            student_id="S1", domain_id=domain_ids["hallways"], ignored_prompts=1
        )

        result = await DecisionTreeService(db).determine_intervention_level(assessment, now=now)

        assert result.recommended_level == InterventionLevel.A

    @pytest.mark.asyncio
    async def test_triggers_are_level_b(self, db, domain_ids, now) -> None:
        assessment = IncidentAssessment(
            student_id="S1",
            domain_id=domain_ids["hallways"],
            demerit_assigned=True,
            ignored_prompts=2,
            affected_peers=True,
        )

        result = await DecisionTreeService(db).determine_intervention_level(assessment, now=now)

        assert result.recommended_level == InterventionLevel.B
        assert result.reasons == [
            "Demerit was assigned",
            "Ignored 2 prompts",
            "Affected other students",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("points", "expected"),
        [(9, InterventionLevel.A), (10, InterventionLevel.B)],
    )
    async def test_cumulative_point_threshold(self, db, domain_ids, now, points, expected) -> None:
        assessment = IncidentAssessment(
            student_id="S1", domain_id=domain_ids["hallways"], cumulative_points=points
        )

        result = await DecisionTreeService(db).determine_intervention_level(assessment, now=now)

        assert result.recommended_level == expected
        if expected == InterventionLevel.B:
            assert result.reasons == ["Reached 10 cumulative points (10+ threshold)"]

    @pytest.mark.asyncio
    async def test_third_incident_makes_pattern_student(self, db, domain_ids, now) -> None:
        hallways = domain_ids["hallways"]
        await log_level_a(db, hallways, now - timedelta(days=6))
        await log_level_a(db, hallways, now - timedelta(days=2))

        result = await DecisionTreeService(db).determine_intervention_level(
            IncidentAssessment(student_id="S1", domain_id=hallways), now=now
        )

        assert result.is_pattern_student is True
        assert result.recommended_level == InterventionLevel.B
        assert result.reasons == ["3rd incident in 10 days (same domain)"]

    @pytest.mark.asyncio
    async def test_old_incidents_do_not_count(self, db, domain_ids, now) -> None:
        hallways = domain_ids["hallways"]
        await log_level_a(db, hallways, now - timedelta(days=15))
        await log_level_a(db, hallways, now - timedelta(days=12))

        service = DecisionTreeService(db)

        assert await service.is_pattern_student("S1", hallways, now) is False

    @pytest.mark.asyncio
    async def test_other_domains_do_not_count(self, db, domain_ids, now) -> None:
        await log_level_a(db, domain_ids["respect"], now - timedelta(days=2))
        await log_level_a(db, domain_ids["respect"], now - timedelta(days=1))

        assert await DecisionTreeService(db).is_pattern_student("S1", domain_ids["hallways"], now) is False

    @pytest.mark.asyncio
    async def test_two_completed_level_b_cycles_is_level_c(
        self, db, domain_ids, now, documented_level_b
    ) -> None:
        service = LevelBService(db)
        for _ in range(2):
            intervention = await documented_level_b()
            await service.complete_monitoring(intervention.id, escalate=False)

        result = await DecisionTreeService(db).determine_intervention_level(
            IncidentAssessment(student_id="S1", domain_id=domain_ids["hallways"], disrupted_space=True),
            now=now,
        )

        assert result.recommended_level == InterventionLevel.C
        assert result.prior_level_b_count == 2
        assert result.reasons[-1] == "2 Level B attempts already completed for this domain"

    @pytest.mark.asyncio
    async def test_cancelled_level_b_not_counted(self, db, domain_ids, now, documented_level_b) -> None:
        service = LevelBService(db)
        for _ in range(2):
            intervention = await documented_level_b()
            await service.cancel(intervention.id)

        result = await DecisionTreeService(db).determine_intervention_level(
            IncidentAssessment(student_id="S1", domain_id=domain_ids["hallways"], is_safety_risk=True),
            now=now,
        )

        assert result.recommended_level == InterventionLevel.B


class TestShouldLogLevelA:
    """Tests for the Level A logging rule."""

    @pytest.mark.asyncio
    async def test_affected_others(self, db, domain_ids, now) -> None:
        decision = await DecisionTreeService(db).should_log_level_a(
            "S1", domain_ids["hallways"], affected_others=True, now=now
        )

        assert decision.should_log is True
        assert decision.reason == "Affected other students"

    @pytest.mark.asyncio
    async def test_first_minor_incident(self, db, domain_ids, now) -> None:
        decision = await DecisionTreeService(db).should_log_level_a(
            "S1", domain_ids["hallways"], affected_others=False, now=now
        )

        assert decision.should_log is False
        assert decision.reason == "First minor incident of the day"

    @pytest.mark.asyncio
    async def test_repeated_same_day(self, db, domain_ids, now) -> None:
        await log_level_a(db, domain_ids["hallways"], now - timedelta(hours=1))

        decision = await DecisionTreeService(db).should_log_level_a(
            "S1", domain_ids["hallways"], affected_others=False, now=now
        )

        assert decision.reason == "Repeated incident same day"

    @pytest.mark.asyncio
    async def test_known_pattern_student(self, db, domain_ids, now) -> None:
        await log_level_a(db, domain_ids["hallways"], now - timedelta(days=3))
        await log_level_a(db, domain_ids["hallways"], now - timedelta(days=2))

        decision = await DecisionTreeService(db).should_log_level_a(
            "S1", domain_ids["hallways"], affected_others=False, now=now
        )

        assert decision.should_log is True
        assert decision.reason == "Known pattern student"
