# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Level B structured reset conference service.

A Level B intervention walks through seven steps (regulate, name the
pattern, reflect, repair, practice a replacement skill, set a reset goal,
document). Steps are stored independently and may be saved in any order,
but a completed step can never be reopened. Completing step 7 requires
steps 1-6 and moves the record into monitoring:

    in_progress -> monitoring -> completed_success | completed_escalated
    in_progress | monitoring -> cancelled

Closing monitoring averages the daily success rates and escalates to
Level C when the mean is below the success threshold.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import (
    REFLECTION_PROMPTS,
    RESET_GOAL_EXAMPLES,
    InterventionPolicy,
    get_policy,
)
from src.domains.intervention.domains import BehavioralDomainService
from src.domains.intervention.enums import EscalationTrigger, LevelBStatus, MonitoringMethod
from src.domains.intervention.exceptions import (
    InterventionNotFoundError,
    InterventionValidationError,
    InvalidTransitionError,
)
from src.infrastructure.database.models.intervention import LevelBIntervention
from src.utils.datetime import utc_now, utc_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    """Columns owned by one protocol step."""

    number: int
    name: str
    completed_field: str
    payload_fields: tuple[str, ...]
    required_fields: tuple[str, ...] = ()


LEVEL_B_STEPS: dict[int, StepDefinition] = {
    1: StepDefinition(1, "Regulate", "b1_regulate_completed", ("b1_regulate_notes",)),
    2: StepDefinition(2, "Pattern Naming", "b2_pattern_naming_completed", ("b2_pattern_notes",)),
    3: StepDefinition(
        3,
        "Reflection",
        "b3_reflection_completed",
        ("b3_reflection_prompts_used",),
        ("b3_reflection_prompts_used",),
    ),
    4: StepDefinition(
        4,
        "Repair",
        "b4_repair_completed",
        ("b4_repair_action_selected",),
        ("b4_repair_action_selected",),
    ),
    5: StepDefinition(
        5,
        "Replacement Practice",
        "b5_replacement_completed",
        ("b5_replacement_skill_practiced",),
        ("b5_replacement_skill_practiced",),
    ),
    6: StepDefinition(
        6,
        "Reset Goal",
        "b6_reset_goal_completed",
        ("b6_reset_goal", "b6_reset_goal_timeline_days"),
        ("b6_reset_goal", "b6_reset_goal_timeline_days"),
    ),
    7: StepDefinition(7, "Documentation", "b7_documentation_completed", ("monitoring_method",)),
}

OPEN_STATUSES = (LevelBStatus.IN_PROGRESS.value, LevelBStatus.MONITORING.value)


def calculate_completion_percentage(intervention: LevelBIntervention) -> int:
    """Percent of the 7 protocol steps completed."""
    flags = intervention.step_flags()
    return round(sum(1 for flag in flags if flag) / len(flags) * 100)


def reflection_prompts() -> list[str]:
    return list(REFLECTION_PROMPTS)


def reset_goal_examples(domain_key: str) -> list[str]:
    """Example reset goals for a domain (empty for unknown domains)."""
    return list(RESET_GOAL_EXAMPLES.get(domain_key, ()))


class LevelBService:
    """Service for Level B reset conferences.

    Attributes:
        db: Async database session.
        policy: Monitoring thresholds.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or get_policy()
        self.domains = BehavioralDomainService(db)

    async def build_level_b(
        self,
        *,
        student_id: str,
        staff_name: str,
        domain_id: int,
        escalation_trigger: EscalationTrigger | str | None,
        staff_id: str | None = None,
        escalated_from_level_a_id: str | None = None,
    ) -> LevelBIntervention:
        """Validate and construct a Level B record without saving it.

        Raises:
            InterventionValidationError: If the trigger is missing or invalid
                or the domain is unknown.
        """
        if not escalation_trigger:
            raise InterventionValidationError("escalation_trigger is required for Level B")
        try:
            trigger = EscalationTrigger(escalation_trigger)
        except ValueError:
            raise InterventionValidationError(
                f"Invalid escalation trigger '{escalation_trigger}'"
            ) from None

        await self.domains.require_domain(domain_id)

        return LevelBIntervention(
            student_id=student_id,
            staff_id=staff_id,
            staff_name=staff_name,
            domain_id=domain_id,
            escalation_trigger=trigger.value,
            escalated_from_level_a_id=escalated_from_level_a_id,
            status=LevelBStatus.IN_PROGRESS.value,
            b3_reflection_prompts_used=[],
            daily_success_rates={},
        )

    async def create_level_b(
        self,
        *,
        student_id: str,
        staff_name: str,
        domain_id: int,
        escalation_trigger: EscalationTrigger | str | None,
        staff_id: str | None = None,
        escalated_from_level_a_id: str | None = None,
    ) -> LevelBIntervention:
        """Open a Level B reset conference.

        Returns:
            The created intervention in status in_progress.

        Raises:
            InterventionValidationError: If the trigger is missing or invalid.
        """
        intervention = await self.build_level_b(
            student_id=student_id,
            staff_name=staff_name,
            domain_id=domain_id,
            escalation_trigger=escalation_trigger,
            staff_id=staff_id,
            escalated_from_level_a_id=escalated_from_level_a_id,
        )
        self.db.add(intervention)
        await self.db.commit()
        await self.db.refresh(intervention)

        logger.info(
            "Created Level B %s for student %s (trigger %s)",
            intervention.id,
            student_id,
            intervention.escalation_trigger,
        )
        return intervention

    async def update_step(
        self,
        intervention_id: str,
        step: int,
        data: dict[str, Any],
        today: date | None = None,
    ) -> LevelBIntervention:
        """Apply a partial update to one protocol step.

        Args:
            intervention_id: Level B ID.
            step: Step number 1-7.
            data: Column values for the step. None values are ignored.
            today: Monitoring start day when step 7 completes.

        Returns:
            The updated intervention.

        Raises:
            InterventionNotFoundError: If the intervention does not exist.
            InvalidTransitionError: If the intervention is no longer in progress.
            InterventionValidationError: If the data is invalid, reopens a
                completed step or completes a step without its required fields.
        """
        intervention = await self.get_level_b(intervention_id)
        if intervention.status != LevelBStatus.IN_PROGRESS.value:
            raise InvalidTransitionError(
                f"Level B {intervention_id} is {intervention.status}; steps can no longer change"
            )

        definition = LEVEL_B_STEPS.get(step)
        if definition is None:
            raise InterventionValidationError(f"Invalid step {step}; expected 1-7")

        updates = {key: value for key, value in data.items() if value is not None}
        allowed = {definition.completed_field, *definition.payload_fields}
        unexpected = sorted(set(updates) - allowed)
        if unexpected:
            raise InterventionValidationError(
                f"Fields {', '.join(unexpected)} do not belong to step {step}"
            )

        already_done = bool(getattr(intervention, definition.completed_field))
        completing = bool(updates.get(definition.completed_field, already_done))
        if already_done and not completing:
            raise InterventionValidationError(f"Step {step} is already completed and cannot be reopened")

        if "monitoring_method" in updates:
            try:
                updates["monitoring_method"] = MonitoringMethod(updates["monitoring_method"]).value
            except ValueError:
                raise InterventionValidationError(
                    f"Invalid monitoring method '{updates['monitoring_method']}'"
                ) from None

        if completing:
            for field_name in definition.required_fields:
                value = updates.get(field_name, getattr(intervention, field_name))
                if not value:
                    raise InterventionValidationError(
                        f"Step {step} ({definition.name}) requires {field_name}"
                    )

        if step == 7 and completing and not already_done:
            incomplete = [number for number, flag in enumerate(intervention.step_flags()[:6], 1) if not flag]
            if incomplete:
                raise InterventionValidationError(
                    f"Steps {', '.join(map(str, incomplete))} must be completed before documentation"
                )

        for field_name, value in updates.items():
            if field_name == "b3_reflection_prompts_used":
                value = list(value)
            setattr(intervention, field_name, value)

        if step == 1 and completing and intervention.conference_timestamp is None:
            intervention.conference_timestamp = utc_now()

        if step == 7 and completing and not already_done:
            self._start_monitoring(intervention, today or utc_today())

        await self.db.commit()
        await self.db.refresh(intervention)

        logger.info(
            "Updated Level B %s step %d (%d%% complete, status %s)",
            intervention.id,
            step,
            calculate_completion_percentage(intervention),
            intervention.status,
        )
        return intervention

    def _start_monitoring(self, intervention: LevelBIntervention, today: date) -> None:
        days = intervention.b6_reset_goal_timeline_days or self.policy.level_b_default_monitoring_days
        intervention.monitoring_start_date = today
        intervention.monitoring_end_date = today + timedelta(days=days)
        intervention.monitoring_method = (
            intervention.monitoring_method or self.policy.level_b_default_monitoring_method
        )
        intervention.status = LevelBStatus.MONITORING.value

    async def log_daily_success_rate(
        self,
        intervention_id: str,
        day: date,
        success_rate: float,
    ) -> LevelBIntervention:
        """Record the success rate for one monitoring day.

        Logging the same day again replaces that day's rate.

        Raises:
            InvalidTransitionError: If the intervention is not in monitoring.
            InterventionValidationError: If the rate is outside 0-100.
        """
        if not 0 <= success_rate <= 100:
            raise InterventionValidationError("success_rate must be between 0 and 100")

        intervention = await self.get_level_b(intervention_id)
        if intervention.status != LevelBStatus.MONITORING.value:
            raise InvalidTransitionError(f"Level B {intervention_id} is not in monitoring")

        rates = dict(intervention.daily_success_rates or {})
        rates[day.isoformat()] = float(success_rate)
        intervention.daily_success_rates = rates

        await self.db.commit()
        await self.db.refresh(intervention)
        return intervention

    async def complete_monitoring(
        self,
        intervention_id: str,
        escalate: bool | None = None,
        reason: str | None = None,
    ) -> LevelBIntervention:
        """Close the monitoring window.

        The final success rate is the mean of the daily rates (0 when none
        were logged). Without an explicit ``escalate`` the outcome is
        decided by the success threshold.

        Raises:
            InvalidTransitionError: If the intervention is not in monitoring.
        """
        intervention = await self.get_level_b(intervention_id)
        if intervention.status != LevelBStatus.MONITORING.value or not intervention.b7_documentation_completed:
            raise InvalidTransitionError(
                f"Level B {intervention_id} must be documented and in monitoring to complete"
            )

        rates = list((intervention.daily_success_rates or {}).values())
        average = sum(rates) / len(rates) if rates else 0.0
        threshold = self.policy.level_b_success_threshold

        if escalate is None:
            escalate = average < threshold
        if escalate and not reason:
            reason = f"Success rate {average:.1f}% below {threshold:g}% threshold"

        intervention.final_success_rate = round(average, 1)
        intervention.status = (
            LevelBStatus.COMPLETED_ESCALATED.value if escalate else LevelBStatus.COMPLETED_SUCCESS.value
        )
        intervention.escalated_to_c = escalate
        intervention.escalation_reason = reason if escalate else None

        await self.db.commit()
        await self.db.refresh(intervention)

        logger.info(
            "Completed Level B %s monitoring: %s (%.1f%%)",
            intervention.id,
            intervention.status,
            average,
        )
        return intervention

    async def cancel(self, intervention_id: str, reason: str | None = None) -> LevelBIntervention:
        """Cancel an open Level B intervention.

        Raises:
            InvalidTransitionError: If the intervention is already closed.
        """
        intervention = await self.get_level_b(intervention_id)
        if intervention.status not in OPEN_STATUSES:
            raise InvalidTransitionError(f"Level B {intervention_id} is already {intervention.status}")

        intervention.status = LevelBStatus.CANCELLED.value
        if reason:
            intervention.escalation_reason = reason

        await self.db.commit()
        await self.db.refresh(intervention)
        logger.info("Cancelled Level B %s", intervention.id)
        return intervention

    async def get_level_b(self, intervention_id: str) -> LevelBIntervention:
        """Get a Level B intervention.

        Raises:
            InterventionNotFoundError: If not found.
        """
        intervention = await self.db.get(LevelBIntervention, intervention_id)
        if intervention is None:
            raise InterventionNotFoundError(f"Level B intervention {intervention_id} not found")
        return intervention

    async def list_level_b(
        self,
        *,
        student_id: str | None = None,
        domain_id: int | None = None,
        staff_id: str | None = None,
        status: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[LevelBIntervention], int]:
        """List Level B interventions, newest first.

        Returns:
            Tuple of (page of interventions, total matching count).
        """
        conditions = []
        if student_id:
            conditions.append(LevelBIntervention.student_id == student_id)
        if domain_id is not None:
            conditions.append(LevelBIntervention.domain_id == domain_id)
        if staff_id:
            conditions.append(LevelBIntervention.staff_id == staff_id)
        if status:
            conditions.append(LevelBIntervention.status == status)
        if from_date is not None:
            conditions.append(LevelBIntervention.created_at >= from_date)
        if to_date is not None:
            conditions.append(LevelBIntervention.created_at <= to_date)

        total = (
            await self.db.execute(select(func.count(LevelBIntervention.id)).where(*conditions))
        ).scalar_one()
        query = (
            select(LevelBIntervention)
            .where(*conditions)
            .order_by(LevelBIntervention.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def active_monitoring(self) -> list[LevelBIntervention]:
        """Interventions currently in monitoring, ending soonest first."""
        query = (
            select(LevelBIntervention)
            .where(LevelBIntervention.status == LevelBStatus.MONITORING.value)
            .order_by(LevelBIntervention.monitoring_end_date)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def expired_monitoring(self, today: date) -> list[LevelBIntervention]:
        """Interventions whose monitoring window ends on or before ``today``."""
        query = select(LevelBIntervention).where(
            LevelBIntervention.status == LevelBStatus.MONITORING.value,
            LevelBIntervention.monitoring_end_date <= today,
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
