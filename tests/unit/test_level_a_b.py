# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for Level A coaching and Level B reset conferences."""

from datetime import date, timedelta

import pytest

from src.domains.intervention import (
    InterventionNotFoundError,
    InterventionValidationError,
    InvalidTransitionError,
    LevelAService,
    LevelBService,
    calculate_completion_percentage,
    reflection_prompts,
    reset_goal_examples,
)
from src.domains.intervention.enums import LevelBStatus


class TestLevelAService:
    """Tests for LevelAService."""

    @pytest.mark.asyncio
    async def test_create_complied(self, db, domain_ids, now) -> None:
        intervention, level_b = await LevelAService(db).create_level_a(
            student_id="S1",
            staff_name="Mr. Yusuf",
            staff_id="T1",
            domain_id=domain_ids["prayer_space"],
            intervention_type="pre_correct",
            location="Prayer hall",
            now=now,
        )

        assert level_b is None
        assert intervention.outcome == "complied"
        assert intervention.escalated_to_b is False
        assert intervention.is_repeated_same_day is False
        assert intervention.is_pattern_student is False

    @pytest.mark.asyncio
    async def test_escalated_outcome_creates_level_b(self, db, domain_ids, now) -> None:
        intervention, level_b = await LevelAService(db).create_level_a(
            student_id="S1",
            staff_name="Mr. Yusuf",
            domain_id=domain_ids["hallways"],
            intervention_type="quick_redirect",
            outcome="escalated",
            escalation_trigger="ignored_2plus_prompts",
            now=now,
        )

        assert intervention.escalated_to_b is True
        assert level_b is not None
        assert level_b.escalated_from_level_a_id == intervention.id
        assert level_b.escalation_trigger == "ignored_2plus_prompts"
        assert level_b.status == "in_progress"

    @pytest.mark.asyncio
    async def test_escalated_without_trigger_rejected(self, db, domain_ids, now) -> None:
        with pytest.raises(InterventionValidationError):
            await LevelAService(db).create_level_a(
                student_id="S1",
                staff_name="Mr. Yusuf",
                domain_id=domain_ids["hallways"],
                intervention_type="quick_redirect",
                outcome="escalated",
                now=now,
            )

    @pytest.mark.asyncio
    async def test_trigger_escalates_complied_outcome(self, db, domain_ids, now) -> None:
        _, level_b = await LevelAService(db).create_level_a(
            student_id="S1",
            staff_name="Mr. Yusuf",
            domain_id=domain_ids["respect"],
            intervention_type="quick_redirect",
            escalation_trigger="peer_impact",
            now=now,
        )

        assert level_b is not None

    @pytest.mark.asyncio
    async def test_pattern_student_escalates_automatically(self, db, domain_ids, now) -> None:
        service = LevelAService(db)
        hallways = domain_ids["hallways"]
        for hours in (50, 30):
            await service.create_level_a(
                student_id="S1",
                staff_name="Mr. Yusuf",
                domain_id=hallways,
                intervention_type="quick_redirect",
                now=now - timedelta(hours=hours),
            )

        intervention, level_b = await service.create_level_a(
            student_id="S1",
            staff_name="Mr. Yusuf",
            domain_id=hallways,
            intervention_type="quick_redirect",
            now=now,
        )

        assert intervention.is_pattern_student is True
        assert level_b is not None
        assert level_b.escalation_trigger == "3rd_incident_10days"

    @pytest.mark.asyncio
    async def test_same_day_repeat_flagged(self, db, domain_ids, now) -> None:
        service = LevelAService(db)
        kwargs = dict(
            student_id="S1",
            staff_name="Mr. Yusuf",
            domain_id=domain_ids["lunch_recess"],
            intervention_type="redo",
        )
        await service.create_level_a(**kwargs, now=now - timedelta(hours=2))

        intervention, _ = await service.create_level_a(**kwargs, now=now)

        assert intervention.is_repeated_same_day is True

    @pytest.mark.asyncio
    async def test_invalid_values_rejected(self, db, domain_ids, now) -> None:
        service = LevelAService(db)
        with pytest.raises(InterventionValidationError):
            await service.create_level_a(
                student_id="S1",
                staff_name="Mr. Yusuf",
                domain_id=domain_ids["hallways"],
                intervention_type="shouting",
                now=now,
            )
        with pytest.raises(InterventionValidationError):
            await service.create_level_a(
                student_id="S1",
                staff_name="Mr. Yusuf",
                domain_id=999,
                intervention_type="quick_redirect",
                now=now,
            )

    @pytest.mark.asyncio
    async def test_get_missing(self, db) -> None:
        with pytest.raises(InterventionNotFoundError):
            await LevelAService(db).get_level_a("missing")

    @pytest.mark.asyncio
    async def test_list_and_stats(self, db, domain_ids, now) -> None:
        service = LevelAService(db)
        await service.create_level_a(
            student_id="S1",
            staff_name="Mr. Yusuf",
            staff_id="T1",
            domain_id=domain_ids["hallways"],
            intervention_type="quick_redirect",
            now=now - timedelta(days=1),
        )
        await service.create_level_a(
            student_id="S1",
            staff_name="Ms. Rahman",
            staff_id="T2",
            domain_id=domain_ids["respect"],
            intervention_type="private_check",
            outcome="escalated",
            escalation_trigger="demerit_assigned",
            now=now,
        )
        await service.create_level_a(
            student_id="S2",
            staff_name="Mr. Yusuf",
            staff_id="T1",
            domain_id=domain_ids["hallways"],
            intervention_type="quick_redirect",
            now=now - timedelta(days=40),
        )

        items, total = await service.list_level_a(student_id="S1")
        assert total == 2
        assert items[0].domain_id == domain_ids["respect"]

        page, total = await service.list_level_a(staff_id="T1", limit=1)
        assert total == 2
        assert len(page) == 1

        stats = await service.student_level_a_stats("S1", now=now)
        assert stats.total_count == 2
        assert stats.by_domain == {"hallways": 1, "respect": 1}
        assert stats.by_outcome["escalated"] == 1
        assert stats.by_outcome["complied"] == 1
        assert stats.escalation_rate == pytest.approx(50.0)

        todays = await service.todays_level_a(staff_id="T2", now=now)
        assert [item.student_id for item in todays] == ["S1"]


class TestLevelBHelpers:
    """Tests for Level B reference helpers."""

    def test_reflection_prompts(self) -> None:
        assert len(reflection_prompts()) == 6

    def test_reset_goal_examples(self) -> None:
        assert reset_goal_examples("prayer_space")
        assert reset_goal_examples("unknown") == []


class TestLevelBService:
    """Tests for LevelBService."""

    @pytest.mark.asyncio
    async def test_create_requires_trigger(self, db, domain_ids) -> None:
        with pytest.raises(InterventionValidationError):
            await LevelBService(db).create_level_b(
                student_id="S1",
                staff_name="Ms. Rahman",
                domain_id=domain_ids["hallways"],
                escalation_trigger=None,
            )

    @pytest.mark.asyncio
    async def test_steps_any_order_and_completion(self, db, domain_ids) -> None:
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id="S1",
            staff_name="Ms. Rahman",
            domain_id=domain_ids["hallways"],
            escalation_trigger="space_disruption",
        )

        intervention = await service.update_step(
            intervention.id, 4, {"b4_repair_completed": True, "b4_repair_action_selected": "Reset space"}
        )
        intervention = await service.update_step(intervention.id, 1, {"b1_regulate_completed": True})

        assert calculate_completion_percentage(intervention) == 29
        assert intervention.conference_timestamp is not None
        assert intervention.status == "in_progress"

    @pytest.mark.asyncio
    async def test_step_requires_fields(self, db, domain_ids) -> None:
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id="S1",
            staff_name="Ms. Rahman",
            domain_id=domain_ids["hallways"],
            escalation_trigger="space_disruption",
        )

        with pytest.raises(InterventionValidationError, match="b6_reset_goal"):
            await service.update_step(intervention.id, 6, {"b6_reset_goal_completed": True})

    @pytest.mark.asyncio
    async def test_step_rejects_foreign_fields(self, db, domain_ids) -> None:
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id="S1",
            staff_name="Ms. Rahman",
            domain_id=domain_ids["hallways"],
            escalation_trigger="space_disruption",
        )

        with pytest.raises(InterventionValidationError):
            await service.update_step(intervention.id, 1, {"b4_repair_completed": True})
        with pytest.raises(InterventionValidationError):
            await service.update_step(intervention.id, 8, {})

    @pytest.mark.asyncio
    async def test_completed_step_cannot_reopen(self, db, domain_ids) -> None:
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id="S1",
            staff_name="Ms. Rahman",
            domain_id=domain_ids["hallways"],
            escalation_trigger="space_disruption",
        )
        await service.update_step(intervention.id, 1, {"b1_regulate_completed": True})

        with pytest.raises(InterventionValidationError, match="reopened"):
            await service.update_step(intervention.id, 1, {"b1_regulate_completed": False})

    @pytest.mark.asyncio
    async def test_documentation_requires_previous_steps(self, db, domain_ids) -> None:
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id="S1",
            staff_name="Ms. Rahman",
            domain_id=domain_ids["hallways"],
            escalation_trigger="space_disruption",
        )
        await service.update_step(intervention.id, 1, {"b1_regulate_completed": True})

        with pytest.raises(InterventionValidationError, match="2, 3, 4, 5, 6"):
            await service.update_step(intervention.id, 7, {"b7_documentation_completed": True})

    @pytest.mark.asyncio
    async def test_documentation_starts_monitoring(self, documented_level_b) -> None:
        intervention = await documented_level_b(monitoring_from=date(2024, 3, 10), timeline_days=5)

        assert intervention.status == LevelBStatus.MONITORING.value
        assert intervention.monitoring_start_date == date(2024, 3, 10)
        assert intervention.monitoring_end_date == date(2024, 3, 15)
        assert intervention.monitoring_method == "checklist"
        assert calculate_completion_percentage(intervention) == 100

    @pytest.mark.asyncio
    async def test_steps_locked_after_documentation(self, db, documented_level_b) -> None:
        intervention = await documented_level_b()

        with pytest.raises(InvalidTransitionError):
            await LevelBService(db).update_step(intervention.id, 2, {"b2_pattern_notes": "more"})

    @pytest.mark.asyncio
    async def test_daily_rates_require_monitoring(self, db, domain_ids) -> None:
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id="S1",
            staff_name="Ms. Rahman",
            domain_id=domain_ids["hallways"],
            escalation_trigger="space_disruption",
        )

        with pytest.raises(InvalidTransitionError):
            await service.log_daily_success_rate(intervention.id, date(2024, 3, 11), 90)

    @pytest.mark.asyncio
    async def test_successful_monitoring(self, db, documented_level_b) -> None:
        service = LevelBService(db)
        intervention = await documented_level_b()
        await service.log_daily_success_rate(intervention.id, date(2024, 3, 11), 90)
        await service.log_daily_success_rate(intervention.id, date(2024, 3, 12), 60)
        await service.log_daily_success_rate(intervention.id, date(2024, 3, 12), 70)

        completed = await service.complete_monitoring(intervention.id)

        assert completed.daily_success_rates == {"2024-03-11": 90.0, "2024-03-12": 70.0}
        assert completed.final_success_rate == 80.0
        assert completed.status == "completed_success"
        assert completed.escalated_to_c is False

    @pytest.mark.asyncio
    async def test_low_success_rate_escalates(self, db, documented_level_b) -> None:
        service = LevelBService(db)
        intervention = await documented_level_b()
        await service.log_daily_success_rate(intervention.id, date(2024, 3, 11), 60)
        await service.log_daily_success_rate(intervention.id, date(2024, 3, 12), 70)

        completed = await service.complete_monitoring(intervention.id)

        assert completed.status == "completed_escalated"
        assert completed.escalated_to_c is True
        assert completed.escalation_reason == "Success rate 65.0% below 80% threshold"

    @pytest.mark.asyncio
    async def test_no_rates_escalates(self, db, documented_level_b) -> None:
        completed = await LevelBService(db).complete_monitoring((await documented_level_b()).id)

        assert completed.final_success_rate == 0.0
        assert completed.escalated_to_c is True

    @pytest.mark.asyncio
    async def test_rate_out_of_range(self, db, documented_level_b) -> None:
        intervention = await documented_level_b()

        with pytest.raises(InterventionValidationError):
            await LevelBService(db).log_daily_success_rate(intervention.id, date(2024, 3, 11), 120)

    @pytest.mark.asyncio
    async def test_cancel(self, db, documented_level_b) -> None:
        service = LevelBService(db)
        intervention = await documented_level_b()

        cancelled = await service.cancel(intervention.id, reason="Transferred")

        assert cancelled.status == "cancelled"
        with pytest.raises(InvalidTransitionError):
            await service.cancel(intervention.id)

    @pytest.mark.asyncio
    async def test_monitoring_queries(self, db, documented_level_b) -> None:
        service = LevelBService(db)
        early = await documented_level_b(student_id="S1", monitoring_from=date(2024, 3, 1))
        late = await documented_level_b(student_id="S2", monitoring_from=date(2024, 3, 12))

        active = await service.active_monitoring()
        expired = await service.expired_monitoring(date(2024, 3, 10))
        items, total = await service.list_level_b(status="monitoring")

        assert [item.id for item in active] == [early.id, late.id]
        assert [item.id for item in expired] == [early.id]
        assert total == 2
