# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Level C case management service.

A case moves through its phases as each phase's payload is completed:

    active -> context_packet -> admin_response -> pending_reentry
           -> monitoring -> closed

- The first context packet edit moves active -> context_packet; once
  incident summary, pattern review, environmental factors and prior
  interventions summary are all present the case waits for the admin
  response.
- Recording the admin response moves the case to pending_reentry.
- The re-entry plan seeds the readiness checklist and, for detention, ISS
  and OSS responses, creates the matching re-entry protocol.
- Monitoring starts on the re-entry date with review dates every few days
  and a final review on the last day.
- A case can be closed with any outcome from monitoring, or closed as
  escalated from any open phase.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import InterventionPolicy, get_policy
from src.domains.intervention.enums import (
    ADMIN_RESPONSE_REENTRY_SOURCES,
    AdminResponseType,
    LevelCCaseType,
    LevelCOutcome,
    LevelCStatus,
    LevelCTriggerType,
    ReentryType,
)
from src.domains.intervention.exceptions import (
    InterventionNotFoundError,
    InterventionValidationError,
    InvalidTransitionError,
)
from src.domains.intervention.reentry import ReentryService, default_readiness_checklist
from src.infrastructure.database.models.intervention import (
    LevelBIntervention,
    LevelCCase,
    ReentryProtocol,
)
from src.utils.datetime import format_iso, utc_now, utc_today

logger = logging.getLogger(__name__)

CONTEXT_PACKET_FIELDS = (
    "incident_summary",
    "pattern_review",
    "environmental_factors",
    "prior_interventions_summary",
)

OPEN_STATUSES = (
    LevelCStatus.ACTIVE.value,
    LevelCStatus.CONTEXT_PACKET.value,
    LevelCStatus.ADMIN_RESPONSE.value,
    LevelCStatus.PENDING_REENTRY.value,
    LevelCStatus.MONITORING.value,
)

PRE_MONITORING_STATUSES = OPEN_STATUSES[:-1]


def case_type_for_trigger(trigger: LevelCTriggerType) -> LevelCCaseType:
    """Default case intensity for a trigger."""
    if trigger == LevelCTriggerType.THRESHOLD_20_POINTS:
        return LevelCCaseType.LITE
    if trigger in (
        LevelCTriggerType.THRESHOLD_35_POINTS,
        LevelCTriggerType.THRESHOLD_40_POINTS,
        LevelCTriggerType.SAFETY_INCIDENT,
    ):
        return LevelCCaseType.INTENSIVE
    return LevelCCaseType.STANDARD


def build_review_schedule(start: date, end: date, interval_days: int) -> list[dict[str, str]]:
    """Review dates every ``interval_days`` before ``end`` plus a final review on ``end``."""
    schedule: list[dict[str, str]] = []
    current = start + timedelta(days=interval_days)
    while current < end:
        schedule.append({"date": current.isoformat(), "type": "check_in"})
        current += timedelta(days=interval_days)
    schedule.append({"date": end.isoformat(), "type": "final"})
    return schedule


class LevelCService:
    """Service for Level C cases.

    Attributes:
        db: Async database session.
        policy: Case durations and review cadence.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or get_policy()
        self.reentry = ReentryService(db, self.policy)

    async def create_case(
        self,
        *,
        student_id: str,
        trigger_type: LevelCTriggerType | str | None,
        case_type: LevelCCaseType | str | None = None,
        domain_focus_id: int | None = None,
        escalated_from_level_b_ids: Sequence[str] = (),
        sis_demerit_points_at_creation: int | None = None,
        case_manager_id: str | None = None,
        case_manager_name: str | None = None,
    ) -> LevelCCase:
        """Open a Level C case.

        The case type defaults from the trigger; monitoring length follows
        the case type. Referenced Level B records are marked escalated.

        Raises:
            InterventionValidationError: If the trigger is missing or an enum
                value is invalid.
        """
        if not trigger_type:
            raise InterventionValidationError("trigger_type is required for a Level C case")
        try:
            trigger = LevelCTriggerType(trigger_type)
            kind = LevelCCaseType(case_type) if case_type else case_type_for_trigger(trigger)
        except ValueError as e:
            raise InterventionValidationError(str(e)) from None

        level_b_ids = list(dict.fromkeys(escalated_from_level_b_ids))
        case = LevelCCase(
            student_id=student_id,
            case_manager_id=case_manager_id,
            case_manager_name=case_manager_name,
            trigger_type=trigger.value,
            case_type=kind.value,
            domain_focus_id=domain_focus_id,
            escalated_from_level_b_ids=level_b_ids,
            sis_demerit_points_at_creation=sis_demerit_points_at_creation,
            monitoring_duration_days=self.policy.level_c_monitoring_days[kind.value],
            environmental_factors=[],
            support_plan_strategies=[],
            repair_actions=[],
            reentry_restrictions=[],
            reentry_checklist=[],
            monitoring_schedule=[],
            review_dates=[],
            daily_check_ins=[],
            status=LevelCStatus.ACTIVE.value,
        )
        self.db.add(case)

        if level_b_ids:
            await self.db.execute(
                update(LevelBIntervention)
                .where(LevelBIntervention.id.in_(level_b_ids))
                .values(escalated_to_c=True)
                .execution_options(synchronize_session="fetch")
            )

        await self.db.commit()
        await self.db.refresh(case)

        logger.info(
            "Created Level C case %s for student %s (%s, %s)",
            case.id,
            student_id,
            case.trigger_type,
            case.case_type,
        )
        return case

    async def assign_case_manager(
        self,
        case_id: str,
        case_manager_id: str,
        case_manager_name: str,
    ) -> LevelCCase:
        case = await self.get_case(case_id)
        self._require_open(case)
        case.case_manager_id = case_manager_id
        case.case_manager_name = case_manager_name

        await self.db.commit()
        await self.db.refresh(case)
        logger.info("Assigned case manager %s to Level C case %s", case_manager_id, case.id)
        return case

    async def update_context_packet(self, case_id: str, data: dict[str, Any]) -> LevelCCase:
        """Apply a partial context packet update.

        Raises:
            InvalidTransitionError: If the context packet phase has passed.
        """
        case = await self.get_case(case_id)
        if case.status not in (LevelCStatus.ACTIVE.value, LevelCStatus.CONTEXT_PACKET.value):
            raise InvalidTransitionError(
                f"Level C case {case_id} is {case.status}; context packet is closed"
            )

        for field_name in CONTEXT_PACKET_FIELDS:
            value = data.get(field_name)
            if value is None:
                continue
            setattr(case, field_name, list(value) if field_name == "environmental_factors" else value)

        if all(getattr(case, field_name) for field_name in CONTEXT_PACKET_FIELDS):
            case.context_packet_completed = True
            case.status = LevelCStatus.ADMIN_RESPONSE.value
        else:
            case.status = LevelCStatus.CONTEXT_PACKET.value

        await self.db.commit()
        await self.db.refresh(case)
        logger.info("Updated Level C case %s context packet (status %s)", case.id, case.status)
        return case

    async def record_admin_response(
        self,
        case_id: str,
        *,
        admin_response_type: AdminResponseType | str,
        admin_response_details: str | None = None,
        consequence_start_date: date | None = None,
        consequence_end_date: date | None = None,
    ) -> LevelCCase:
        """Record the administrative response.

        Raises:
            InvalidTransitionError: If the context packet is not complete.
            InterventionValidationError: If the response type or dates are invalid.
        """
        try:
            response = AdminResponseType(admin_response_type)
        except ValueError:
            raise InterventionValidationError(
                f"Invalid admin response type '{admin_response_type}'"
            ) from None
        if (
            consequence_start_date is not None
            and consequence_end_date is not None
            and consequence_end_date < consequence_start_date
        ):
            raise InterventionValidationError("consequence_end_date is before consequence_start_date")

        case = await self.get_case(case_id)
        if case.status != LevelCStatus.ADMIN_RESPONSE.value:
            raise InvalidTransitionError(
                f"Level C case {case_id} is {case.status}; complete the context packet first"
            )

        case.admin_response_type = response.value
        case.admin_response_details = admin_response_details
        case.consequence_start_date = consequence_start_date
        case.consequence_end_date = consequence_end_date
        case.admin_response_completed = True
        case.status = LevelCStatus.PENDING_REENTRY.value

        await self.db.commit()
        await self.db.refresh(case)
        logger.info("Recorded admin response %s on Level C case %s", response.value, case.id)
        return case

    async def create_reentry_plan(
        self,
        case_id: str,
        *,
        support_plan_goal: str,
        reentry_date: date,
        support_plan_strategies: Sequence[str] = (),
        adult_mentor_id: str | None = None,
        adult_mentor_name: str | None = None,
        repair_actions: Sequence[dict[str, Any]] = (),
        reentry_type: ReentryType | str = ReentryType.STANDARD,
        reentry_restrictions: Sequence[str] = (),
        receiving_teacher_id: str | None = None,
        receiving_teacher_name: str | None = None,
    ) -> tuple[LevelCCase, ReentryProtocol | None]:
        """Record the support and re-entry plan.

        Returns:
            Tuple of (case, re-entry protocol created for the plan or None).

        Raises:
            InvalidTransitionError: If the admin response is not recorded yet.
            InterventionValidationError: If the goal is missing.
        """
        if not support_plan_goal:
            raise InterventionValidationError("support_plan_goal is required")
        try:
            kind = ReentryType(reentry_type)
        except ValueError:
            raise InterventionValidationError(f"Invalid re-entry type '{reentry_type}'") from None

        case = await self.get_case(case_id)
        if case.status != LevelCStatus.PENDING_REENTRY.value:
            raise InvalidTransitionError(
                f"Level C case {case_id} is {case.status}; record the admin response first"
            )

        case.support_plan_goal = support_plan_goal
        case.support_plan_strategies = list(support_plan_strategies)
        case.adult_mentor_id = adult_mentor_id
        case.adult_mentor_name = adult_mentor_name
        case.repair_actions = [dict(action) for action in repair_actions]
        case.reentry_date = reentry_date
        case.reentry_type = kind.value
        case.reentry_restrictions = list(reentry_restrictions)
        if not case.reentry_checklist:
            case.reentry_checklist = default_readiness_checklist()
        case.reentry_planning_completed = True

        protocol = None
        source = ADMIN_RESPONSE_REENTRY_SOURCES.get(AdminResponseType(case.admin_response_type))
        if source is not None and not await self._has_protocol(case.id):
            protocol = self.reentry.build_protocol(
                student_id=case.student_id,
                source_type=source,
                reentry_date=reentry_date,
                level_c_id=case.id,
                receiving_teacher_id=receiving_teacher_id,
                receiving_teacher_name=receiving_teacher_name,
                reset_goal=support_plan_goal,
            )
            self.db.add(protocol)

        await self.db.commit()
        await self.db.refresh(case)
        if protocol is not None:
            await self.db.refresh(protocol)
            logger.info("Created re-entry %s for Level C case %s", protocol.id, case.id)

        logger.info("Recorded re-entry plan for Level C case %s (%s)", case.id, reentry_date)
        return case, protocol

    async def start_monitoring(
        self,
        case_id: str,
        start_date: date | None = None,
        today: date | None = None,
    ) -> LevelCCase:
        """Start the monitoring period and build the review schedule.

        Args:
            case_id: Case ID.
            start_date: Monitoring start; defaults to the re-entry date, then today.
            today: Reference day.

        Raises:
            InvalidTransitionError: If the re-entry plan is not complete.
        """
        case = await self.get_case(case_id)
        if case.status != LevelCStatus.PENDING_REENTRY.value or not case.reentry_planning_completed:
            raise InvalidTransitionError(
                f"Level C case {case_id} needs a re-entry plan before monitoring"
            )

        start = start_date or case.reentry_date or today or utc_today()
        end = start + timedelta(days=case.monitoring_duration_days)
        schedule = build_review_schedule(start, end, self.policy.level_c_review_interval_days)

        case.monitoring_start_date = start
        case.monitoring_schedule = schedule
        case.review_dates = [entry["date"] for entry in schedule]
        case.status = LevelCStatus.MONITORING.value

        await self.db.commit()
        await self.db.refresh(case)
        logger.info("Started monitoring Level C case %s (%s to %s)", case.id, start, end)
        return case

    async def log_check_in(
        self,
        case_id: str,
        *,
        day: date,
        logged_by: str,
        notes: str = "",
        success_rate: float | None = None,
        check_in_time: str | None = None,
        check_out_time: str | None = None,
    ) -> LevelCCase:
        """Append a daily check-in.

        Raises:
            InvalidTransitionError: If the case is not in monitoring.
        """
        case = await self.get_case(case_id)
        if case.status != LevelCStatus.MONITORING.value:
            raise InvalidTransitionError(f"Level C case {case_id} is not in monitoring")

        entry: dict[str, Any] = {
            "date": day.isoformat(),
            "notes": notes,
            "logged_by": logged_by,
            "logged_at": format_iso(utc_now()),
        }
        if success_rate is not None:
            entry["success_rate"] = success_rate
        if check_in_time:
            entry["check_in_time"] = check_in_time
        if check_out_time:
            entry["check_out_time"] = check_out_time
        case.daily_check_ins = [*(case.daily_check_ins or []), entry]

        await self.db.commit()
        await self.db.refresh(case)
        return case

    async def close_case(
        self,
        case_id: str,
        *,
        outcome_status: LevelCOutcome | str,
        outcome_notes: str | None = None,
        closure_criteria: str | None = None,
        today: date | None = None,
    ) -> LevelCCase:
        """Close a case.

        Raises:
            InvalidTransitionError: If the case is closed, or not yet in
                monitoring for a non-escalated outcome.
            InterventionValidationError: If the outcome is invalid.
        """
        try:
            outcome = LevelCOutcome(outcome_status)
        except ValueError:
            raise InterventionValidationError(f"Invalid outcome status '{outcome_status}'") from None

        case = await self.get_case(case_id)
        self._require_open(case)
        if outcome != LevelCOutcome.CLOSED_ESCALATED and case.status != LevelCStatus.MONITORING.value:
            raise InvalidTransitionError(
                f"Level C case {case_id} is {case.status}; only escalation can close it before monitoring"
            )

        case.status = LevelCStatus.CLOSED.value
        case.outcome_status = outcome.value
        case.outcome_notes = outcome_notes
        case.closure_criteria = closure_criteria
        case.closure_date = today or utc_today()

        await self.db.commit()
        await self.db.refresh(case)
        logger.info("Closed Level C case %s: %s", case.id, outcome.value)
        return case

    async def get_case(self, case_id: str) -> LevelCCase:
        """Get a Level C case.

        Raises:
            InterventionNotFoundError: If not found.
        """
        case = await self.db.get(LevelCCase, case_id)
        if case is None:
            raise InterventionNotFoundError(f"Level C case {case_id} not found")
        return case

    async def list_cases(
        self,
        *,
        student_id: str | None = None,
        case_manager_id: str | None = None,
        status: str | None = None,
        case_type: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[LevelCCase], int]:
        """List cases, newest first."""
        conditions = []
        if student_id:
            conditions.append(LevelCCase.student_id == student_id)
        if case_manager_id:
            conditions.append(LevelCCase.case_manager_id == case_manager_id)
        if status:
            conditions.append(LevelCCase.status == status)
        if case_type:
            conditions.append(LevelCCase.case_type == case_type)
        if from_date is not None:
            conditions.append(LevelCCase.created_at >= from_date)
        if to_date is not None:
            conditions.append(LevelCCase.created_at <= to_date)

        total = (await self.db.execute(select(func.count(LevelCCase.id)).where(*conditions))).scalar_one()
        query = (
            select(LevelCCase)
            .where(*conditions)
            .order_by(LevelCCase.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def caseload(self, case_manager_id: str) -> list[LevelCCase]:
        """Open cases assigned to a case manager, oldest first."""
        query = (
            select(LevelCCase)
            .where(
                LevelCCase.case_manager_id == case_manager_id,
                LevelCCase.status != LevelCStatus.CLOSED.value,
            )
            .order_by(LevelCCase.created_at)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def pending_reentries(self, today: date) -> list[LevelCCase]:
        """Cases awaiting re-entry whose re-entry date is on or before ``today``."""
        query = (
            select(LevelCCase)
            .where(
                LevelCCase.status == LevelCStatus.PENDING_REENTRY.value,
                LevelCCase.reentry_date <= today,
            )
            .order_by(LevelCCase.reentry_date)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _has_protocol(self, case_id: str) -> bool:
        query = select(func.count(ReentryProtocol.id)).where(ReentryProtocol.level_c_id == case_id)
        return (await self.db.execute(query)).scalar_one() > 0

    @staticmethod
    def _require_open(case: LevelCCase) -> None:
        if case.status not in OPEN_STATUSES:
            raise InvalidTransitionError(f"Level C case {case.id} is {case.status}")
