# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Re-entry protocol service.

A re-entry protocol supervises a student's return to class after a Level B
conference, detention, in-school suspension (ISS) or out-of-school
suspension (OSS). Monitoring length and method are fixed by the source:

    level_b, detention -> 3 days, checklist
    iss                -> 5 days, check_in_out
    oss                -> 10 days, intensive

Lifecycle: pending -> ready (every readiness item complete and verified)
-> active (student returned) -> completed. Daily logs are append-only.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import (
    DEFAULT_READINESS_CHECKLIST,
    TEACHER_SCRIPT_TEMPLATE,
    InterventionPolicy,
    get_policy,
)
from src.domains.intervention.enums import (
    ReentryMonitoringType,
    ReentryOutcome,
    ReentrySourceType,
    ReentryStatus,
)
from src.domains.intervention.exceptions import (
    InterventionNotFoundError,
    InterventionValidationError,
    InvalidTransitionError,
)
from src.infrastructure.database.models.intervention import ReentryProtocol
from src.utils.datetime import format_iso, utc_now

logger = logging.getLogger(__name__)

MONITORING_TYPES_BY_DAYS = {
    3: ReentryMonitoringType.THREE_DAY,
    5: ReentryMonitoringType.FIVE_DAY,
    10: ReentryMonitoringType.TEN_DAY,
}

CHECKLIST_EDITABLE = (ReentryStatus.PENDING.value, ReentryStatus.READY.value)


def default_readiness_checklist() -> list[dict[str, Any]]:
    return [{"item": item, "completed": False} for item in DEFAULT_READINESS_CHECKLIST]


def generate_teacher_script(goal: str) -> str:
    """Script the receiving teacher reads when the student returns."""
    return TEACHER_SCRIPT_TEMPLATE.format(goal=goal)


class ReentryService:
    """Service for re-entry protocols.

    Attributes:
        db: Async database session.
        policy: Monitoring durations and methods.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or get_policy()

    def build_protocol(
        self,
        *,
        student_id: str,
        source_type: ReentrySourceType | str,
        reentry_date: date,
        level_b_id: str | None = None,
        level_c_id: str | None = None,
        reentry_time: str | None = None,
        receiving_teacher_id: str | None = None,
        receiving_teacher_name: str | None = None,
        reset_goal: str | None = None,
    ) -> ReentryProtocol:
        """Construct a protocol with its derived monitoring plan, unsaved.

        Raises:
            InterventionValidationError: If the source type is missing or invalid.
        """
        if not source_type:
            raise InterventionValidationError("source_type is required for a re-entry protocol")
        try:
            source = ReentrySourceType(source_type)
        except ValueError:
            raise InterventionValidationError(f"Invalid re-entry source type '{source_type}'") from None

        days = self.policy.reentry_duration_days(source.value)
        monitoring_type = MONITORING_TYPES_BY_DAYS.get(days)
        protocol = ReentryProtocol(
            student_id=student_id,
            source_type=source.value,
            level_b_id=level_b_id,
            level_c_id=level_c_id,
            reentry_date=reentry_date,
            reentry_time=reentry_time,
            receiving_teacher_id=receiving_teacher_id,
            receiving_teacher_name=receiving_teacher_name,
            readiness_checklist=default_readiness_checklist(),
            monitoring_start_date=reentry_date,
            monitoring_end_date=reentry_date + timedelta(days=days),
            monitoring_type=monitoring_type.value if monitoring_type else None,
            monitoring_method=self.policy.reentry_method(source.value),
            daily_logs=[],
            status=ReentryStatus.PENDING.value,
        )
        if reset_goal:
            protocol.reset_goal_from_intervention = reset_goal
            protocol.teacher_script = generate_teacher_script(reset_goal)
        return protocol

    async def create_protocol(self, **values: Any) -> ReentryProtocol:
        """Create a re-entry protocol.

        Accepts the keyword arguments of build_protocol().

        Returns:
            The created protocol in status pending.
        """
        protocol = self.build_protocol(**values)
        self.db.add(protocol)
        await self.db.commit()
        await self.db.refresh(protocol)

        logger.info(
            "Created re-entry %s for student %s (%s, %s to %s)",
            protocol.id,
            protocol.student_id,
            protocol.source_type,
            protocol.monitoring_start_date,
            protocol.monitoring_end_date,
        )
        return protocol

    async def update_readiness_checklist(
        self,
        protocol_id: str,
        checklist: Sequence[dict[str, Any]],
        verified_by: str | None = None,
    ) -> ReentryProtocol:
        """Replace the readiness checklist.

        The protocol becomes ready when every item is completed, stamping
        the verifier and time; otherwise it returns to pending.

        Raises:
            InvalidTransitionError: If the student has already returned.
            InterventionValidationError: If the checklist is empty, or complete
                without a verifier.
        """
        protocol = await self.get_protocol(protocol_id)
        if protocol.status not in CHECKLIST_EDITABLE:
            raise InvalidTransitionError(
                f"Re-entry {protocol_id} is {protocol.status}; checklist can no longer change"
            )
        if not checklist:
            raise InterventionValidationError("Readiness checklist cannot be empty")

        items = [dict(item) for item in checklist]
        for item in items:
            if item.get("completed_at") is not None and isinstance(item["completed_at"], datetime):
                item["completed_at"] = format_iso(item["completed_at"])

        all_complete = all(item.get("completed") for item in items)
        if all_complete and not verified_by:
            raise InterventionValidationError("verified_by is required once the checklist is complete")

        protocol.readiness_checklist = items
        if all_complete:
            protocol.readiness_verified_by = verified_by
            protocol.readiness_verified_at = utc_now()
            protocol.status = ReentryStatus.READY.value
        else:
            protocol.readiness_verified_by = None
            protocol.readiness_verified_at = None
            protocol.status = ReentryStatus.PENDING.value

        await self.db.commit()
        await self.db.refresh(protocol)
        logger.info("Updated re-entry %s checklist (status %s)", protocol.id, protocol.status)
        return protocol

    async def attach_teacher_script(self, protocol_id: str, goal: str) -> ReentryProtocol:
        """Store the reset goal and the generated teacher script."""
        if not goal:
            raise InterventionValidationError("A reset goal is required for the teacher script")

        protocol = await self.get_protocol(protocol_id)
        protocol.reset_goal_from_intervention = goal
        protocol.teacher_script = generate_teacher_script(goal)

        await self.db.commit()
        await self.db.refresh(protocol)
        return protocol

    async def start_reentry(self, protocol_id: str) -> ReentryProtocol:
        """Mark the student as returned (ready -> active).

        Raises:
            InvalidTransitionError: If readiness has not been verified.
        """
        protocol = await self.get_protocol(protocol_id)
        if protocol.status != ReentryStatus.READY.value:
            raise InvalidTransitionError(
                f"Re-entry {protocol_id} is {protocol.status}; readiness must be verified first"
            )

        protocol.status = ReentryStatus.ACTIVE.value
        await self.db.commit()
        await self.db.refresh(protocol)
        logger.info("Started re-entry %s", protocol.id)
        return protocol

    async def complete_first_rep(self, protocol_id: str) -> ReentryProtocol:
        """Record the first behavioural rep after return."""
        protocol = await self.get_protocol(protocol_id)
        if protocol.status not in (ReentryStatus.READY.value, ReentryStatus.ACTIVE.value):
            raise InvalidTransitionError(f"Re-entry {protocol_id} is {protocol.status}")

        protocol.first_behavioral_rep_completed = True
        await self.db.commit()
        await self.db.refresh(protocol)
        return protocol

    async def log_daily_entry(
        self,
        protocol_id: str,
        *,
        day: date,
        logged_by: str,
        notes: str = "",
        success_indicators: Sequence[str] = (),
        concerns: Sequence[str] = (),
    ) -> ReentryProtocol:
        """Append a daily monitoring log entry.

        Entries are never replaced; logging the same day twice keeps both.

        Raises:
            InvalidTransitionError: If the protocol is completed.
        """
        protocol = await self.get_protocol(protocol_id)
        if protocol.status == ReentryStatus.COMPLETED.value:
            raise InvalidTransitionError(f"Re-entry {protocol_id} is completed")

        entry = {
            "date": day.isoformat(),
            "notes": notes,
            "success_indicators": list(success_indicators),
            "concerns": list(concerns),
            "logged_by": logged_by,
            "logged_at": format_iso(utc_now()),
        }
        protocol.daily_logs = [*(protocol.daily_logs or []), entry]

        await self.db.commit()
        await self.db.refresh(protocol)
        return protocol

    async def complete_reentry(
        self,
        protocol_id: str,
        outcome: ReentryOutcome | str,
        notes: str | None = None,
    ) -> ReentryProtocol:
        """Close the protocol with its final outcome.

        Raises:
            InvalidTransitionError: If the protocol is already completed.
            InterventionValidationError: If the outcome is invalid.
        """
        try:
            result = ReentryOutcome(outcome)
        except ValueError:
            raise InterventionValidationError(f"Invalid re-entry outcome '{outcome}'") from None

        protocol = await self.get_protocol(protocol_id)
        if protocol.status == ReentryStatus.COMPLETED.value:
            raise InvalidTransitionError(f"Re-entry {protocol_id} is already completed")

        protocol.outcome = result.value
        protocol.outcome_notes = notes
        protocol.completed_at = utc_now()
        protocol.status = ReentryStatus.COMPLETED.value

        await self.db.commit()
        await self.db.refresh(protocol)
        logger.info("Completed re-entry %s: %s", protocol.id, result.value)
        return protocol

    async def get_protocol(self, protocol_id: str) -> ReentryProtocol:
        """Get a re-entry protocol.

        Raises:
            InterventionNotFoundError: If not found.
        """
        protocol = await self.db.get(ReentryProtocol, protocol_id)
        if protocol is None:
            raise InterventionNotFoundError(f"Re-entry protocol {protocol_id} not found")
        return protocol

    async def list_protocols(
        self,
        *,
        student_id: str | None = None,
        status: str | None = None,
        source_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ReentryProtocol], int]:
        """List protocols by re-entry date, latest first."""
        conditions = []
        if student_id:
            conditions.append(ReentryProtocol.student_id == student_id)
        if status:
            conditions.append(ReentryProtocol.status == status)
        if source_type:
            conditions.append(ReentryProtocol.source_type == source_type)

        total = (
            await self.db.execute(select(func.count(ReentryProtocol.id)).where(*conditions))
        ).scalar_one()
        query = (
            select(ReentryProtocol)
            .where(*conditions)
            .order_by(ReentryProtocol.reentry_date.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def pending_reentries(self, today: date) -> list[ReentryProtocol]:
        """Pending or ready protocols due on or before ``today``."""
        query = (
            select(ReentryProtocol)
            .where(
                ReentryProtocol.status.in_(CHECKLIST_EDITABLE),
                ReentryProtocol.reentry_date <= today,
            )
            .order_by(ReentryProtocol.reentry_date)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def active_reentries(self) -> list[ReentryProtocol]:
        """Protocols in monitoring, ending soonest first."""
        query = (
            select(ReentryProtocol)
            .where(ReentryProtocol.status == ReentryStatus.ACTIVE.value)
            .order_by(ReentryProtocol.monitoring_end_date)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
