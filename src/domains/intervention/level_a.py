# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Level A in-the-moment coaching service.

A Level A record is written in one action. It escalates to Level B when
the outcome is "escalated" or when an escalation trigger applies (either
reported by staff or detected because the student is a pattern student
in the domain). The Level B record is created in the same transaction and
references the Level A record.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import InterventionPolicy, get_policy
from src.domains.intervention.decision import DecisionTreeService
from src.domains.intervention.domains import BehavioralDomainService
from src.domains.intervention.enums import (
    EscalationTrigger,
    LevelAInterventionType,
    LevelAOutcome,
)
from src.domains.intervention.exceptions import (
    InterventionNotFoundError,
    InterventionValidationError,
)
from src.domains.intervention.level_b import LevelBService
from src.infrastructure.database.models.intervention import (
    LevelAIntervention,
    LevelBIntervention,
)
from src.utils.datetime import day_start, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LevelAStats:
    """Level A activity for one student."""

    total_count: int = 0
    by_domain: dict[str, int] = field(default_factory=dict)
    by_outcome: dict[str, int] = field(
        default_factory=lambda: {outcome.value: 0 for outcome in LevelAOutcome}
    )
    escalation_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_count": self.total_count,
            "by_domain": self.by_domain,
            "by_outcome": self.by_outcome,
            "escalation_rate": self.escalation_rate,
        }


class LevelAService:
    """Service for Level A interventions.

    Attributes:
        db: Async database session.
        policy: Escalation thresholds.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or get_policy()
        self.decisions = DecisionTreeService(db, self.policy)
        self.domains = BehavioralDomainService(db)
        self.level_b = LevelBService(db, self.policy)

    async def create_level_a(
        self,
        *,
        student_id: str,
        staff_name: str,
        domain_id: int,
        intervention_type: LevelAInterventionType | str,
        staff_id: str | None = None,
        behavior_description: str | None = None,
        location: str | None = None,
        outcome: LevelAOutcome | str = LevelAOutcome.COMPLIED,
        affected_others: bool = False,
        escalation_trigger: EscalationTrigger | str | None = None,
        now: datetime | None = None,
    ) -> tuple[LevelAIntervention, LevelBIntervention | None]:
        """Record a Level A intervention, escalating to Level B if required.

        Args:
            student_id: Student identifier.
            staff_name: Acting staff member.
            domain_id: Behavioural domain ID.
            intervention_type: One of the eight Level A tactics.
            staff_id: Acting staff identifier.
            behavior_description: What happened.
            location: Where it happened.
            outcome: Student response.
            affected_others: Whether peers were affected.
            escalation_trigger: Trigger reported by staff.
            now: Incident instant.

        Returns:
            Tuple of (Level A record, Level B record or None).

        Raises:
            InterventionValidationError: If an enum value or domain is invalid,
                or the incident escalates without an identifiable trigger.
        """
        try:
            tactic = LevelAInterventionType(intervention_type)
            result = LevelAOutcome(outcome)
            trigger = EscalationTrigger(escalation_trigger) if escalation_trigger else None
        except ValueError as e:
            raise InterventionValidationError(str(e)) from None

        await self.domains.require_domain(domain_id)
        now = now or utc_now()

        is_pattern = await self.decisions.is_pattern_student(student_id, domain_id, now)
        same_day = await self.decisions.count_todays_level_a(student_id, domain_id, now) > 0

        if trigger is None and is_pattern:
            trigger = EscalationTrigger.THIRD_INCIDENT_10DAYS
        escalate = result == LevelAOutcome.ESCALATED or trigger is not None
        if escalate and trigger is None:
            raise InterventionValidationError(
                "escalation_trigger is required when a Level A intervention escalates"
            )

        intervention = LevelAIntervention(
            student_id=student_id,
            staff_id=staff_id,
            staff_name=staff_name,
            domain_id=domain_id,
            intervention_type=tactic.value,
            behavior_description=behavior_description,
            location=location,
            outcome=result.value,
            escalated_to_b=escalate,
            is_repeated_same_day=same_day,
            affected_others=affected_others,
            is_pattern_student=is_pattern,
            event_timestamp=now,
        )
        self.db.add(intervention)
        await self.db.flush()

        level_b = None
        if escalate:
            level_b = await self.level_b.build_level_b(
                student_id=student_id,
                staff_name=staff_name,
                domain_id=domain_id,
                escalation_trigger=trigger,
                staff_id=staff_id,
                escalated_from_level_a_id=intervention.id,
            )
            self.db.add(level_b)

        await self.db.commit()
        await self.db.refresh(intervention)
        if level_b is not None:
            await self.db.refresh(level_b)

        logger.info(
            "Created Level A %s for student %s (%s, outcome %s)",
            intervention.id,
            student_id,
            tactic.value,
            result.value,
        )
        if level_b is not None:
            logger.info("Level A %s escalated to Level B %s", intervention.id, level_b.id)

        return intervention, level_b

    async def get_level_a(self, intervention_id: str) -> LevelAIntervention:
        """Get a Level A intervention.

        Raises:
            InterventionNotFoundError: If not found.
        """
        intervention = await self.db.get(LevelAIntervention, intervention_id)
        if intervention is None:
            raise InterventionNotFoundError(f"Level A intervention {intervention_id} not found")
        return intervention

    async def list_level_a(
        self,
        *,
        student_id: str | None = None,
        domain_id: int | None = None,
        staff_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[LevelAIntervention], int]:
        """List Level A interventions, newest first.

        Returns:
            Tuple of (page of interventions, total matching count).
        """
        conditions = []
        if student_id:
            conditions.append(LevelAIntervention.student_id == student_id)
        if domain_id is not None:
            conditions.append(LevelAIntervention.domain_id == domain_id)
        if staff_id:
            conditions.append(LevelAIntervention.staff_id == staff_id)
        if from_date is not None:
            conditions.append(LevelAIntervention.event_timestamp >= from_date)
        if to_date is not None:
            conditions.append(LevelAIntervention.event_timestamp <= to_date)

        total = (
            await self.db.execute(select(func.count(LevelAIntervention.id)).where(*conditions))
        ).scalar_one()
        query = (
            select(LevelAIntervention)
            .where(*conditions)
            .order_by(LevelAIntervention.event_timestamp.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def student_level_a_stats(
        self,
        student_id: str,
        days: int = 30,
        now: datetime | None = None,
    ) -> LevelAStats:
        """Summarise a student's Level A interventions over ``days`` days."""
        cutoff = (now or utc_now()) - timedelta(days=days)
        query = select(
            LevelAIntervention.domain_id,
            LevelAIntervention.outcome,
            LevelAIntervention.escalated_to_b,
        ).where(
            LevelAIntervention.student_id == student_id,
            LevelAIntervention.event_timestamp >= cutoff,
        )
        rows = (await self.db.execute(query)).all()
        domain_keys = await self.domains.domain_key_map()

        stats = LevelAStats(total_count=len(rows))
        escalated = 0
        for row in rows:
            key = domain_keys.get(row.domain_id, "unknown")
            stats.by_domain[key] = stats.by_domain.get(key, 0) + 1
            stats.by_outcome[row.outcome] = stats.by_outcome.get(row.outcome, 0) + 1
            if row.escalated_to_b:
                escalated += 1

        if rows:
            stats.escalation_rate = escalated / len(rows) * 100
        return stats

    async def todays_level_a(
        self,
        staff_id: str | None = None,
        now: datetime | None = None,
    ) -> list[LevelAIntervention]:
        """Level A interventions logged since midnight UTC, newest first."""
        start = day_start((now or utc_now()).date())
        query = select(LevelAIntervention).where(LevelAIntervention.event_timestamp >= start)
        if staff_id:
            query = query.where(LevelAIntervention.staff_id == staff_id)
        query = query.order_by(LevelAIntervention.event_timestamp.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())
