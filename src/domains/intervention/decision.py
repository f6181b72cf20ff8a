# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Decision tree for choosing an intervention level.

1. Safety incident: Level C with an admin consequence.
2. Any escalation trigger: Level B, or Level C once the student has
   completed two Level B cycles in the same domain.
3. Otherwise: Level A.

A student is a "pattern student" in a domain when the incident being
assessed would be the third Level A incident in that domain within the
repeat window.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import InterventionPolicy, get_policy
from src.domains.intervention.enums import InterventionLevel, LevelBStatus, LevelCTriggerType
from src.infrastructure.database.models.intervention import (
    LevelAIntervention,
    LevelBIntervention,
)
from src.utils.datetime import day_start, utc_now

logger = logging.getLogger(__name__)

COMPLETED_LEVEL_B_STATUSES = (
    LevelBStatus.COMPLETED_SUCCESS.value,
    LevelBStatus.COMPLETED_ESCALATED.value,
)

ESCALATION_SUMMARIES: dict[InterventionLevel, dict[str, str]] = {
    InterventionLevel.A: {
        "color": "green",
        "title": "Level A: In-the-moment Coaching",
        "description": "Quick redirect (30-90 seconds). Use universal script and positive closure.",
    },
    InterventionLevel.B: {
        "color": "yellow",
        "title": "Level B: Structured Reset Conference",
        "description": (
            "Pull student for 15-20 minute reset. Complete all 7 steps and set monitoring period."
        ),
    },
    InterventionLevel.C: {
        "color": "red",
        "title": "Level C: Case Management",
        "description": (
            "Escalate to Case Manager (Tarbiyah Director/Counselor). "
            "2-4 week intensive support required."
        ),
    },
}

POINT_THRESHOLD_TRIGGERS: dict[int, LevelCTriggerType] = {
    20: LevelCTriggerType.THRESHOLD_20_POINTS,
    30: LevelCTriggerType.THRESHOLD_30_POINTS,
    35: LevelCTriggerType.THRESHOLD_35_POINTS,
    40: LevelCTriggerType.THRESHOLD_40_POINTS,
}


@dataclass
class IncidentAssessment:
    """Facts observed about an incident."""

    student_id: str
    domain_id: int
    is_safety_incident: bool = False
    demerit_assigned: bool = False
    ignored_prompts: int = 0
    affected_peers: bool = False
    disrupted_space: bool = False
    is_safety_risk: bool = False
    cumulative_points: int = 0


@dataclass
class DecisionResult:
    """Recommended level with the reasons that produced it."""

    recommended_level: InterventionLevel
    reasons: list[str] = field(default_factory=list)
    is_pattern_student: bool = False
    prior_level_b_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommended_level": self.recommended_level.value,
            "reasons": list(self.reasons),
            "is_pattern_student": self.is_pattern_student,
            "prior_level_b_count": self.prior_level_b_count,
            "summary": get_escalation_summary(self.recommended_level),
        }


@dataclass
class LoggingDecision:
    """Whether a Level A intervention needs to be logged."""

    should_log: bool
    reason: str


def get_escalation_summary(level: InterventionLevel | str) -> dict[str, str]:
    """Display color, title and description for a level."""
    level = InterventionLevel(level)
    return {"level": level.value, **ESCALATION_SUMMARIES[level]}


def level_c_trigger_for_points(
    points: int,
    policy: InterventionPolicy | None = None,
) -> LevelCTriggerType | None:
    """Map cumulative SIS demerit points to the highest Level C threshold reached.

    Returns:
        The threshold trigger, or None below the lowest threshold.
    """
    policy = policy or get_policy()
    reached = [threshold for threshold in policy.level_c_point_thresholds if points >= threshold]
    if not reached:
        return None
    return POINT_THRESHOLD_TRIGGERS[max(reached)]


class DecisionTreeService:
    """Evaluates incidents against the escalation rules.

    Attributes:
        db: Async database session.
        policy: Escalation thresholds.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or get_policy()

    async def count_recent_level_a(
        self,
        student_id: str,
        domain_id: int,
        now: datetime,
    ) -> int:
        """Count Level A incidents in the domain within the repeat window."""
        cutoff = now - timedelta(days=self.policy.repeat_window_days)
        query = select(func.count(LevelAIntervention.id)).where(
            LevelAIntervention.student_id == student_id,
            LevelAIntervention.domain_id == domain_id,
            LevelAIntervention.event_timestamp >= cutoff,
        )
        return (await self.db.execute(query)).scalar_one()

    async def is_pattern_student(
        self,
        student_id: str,
        domain_id: int,
        now: datetime | None = None,
    ) -> bool:
        """Check whether a new incident would be the third in the repeat window."""
        now = now or utc_now()
        prior = await self.count_recent_level_a(student_id, domain_id, now)
        return prior + 1 >= self.policy.same_domain_pattern_count

    async def count_todays_level_a(
        self,
        student_id: str,
        domain_id: int | None,
        now: datetime,
    ) -> int:
        query = select(func.count(LevelAIntervention.id)).where(
            LevelAIntervention.student_id == student_id,
            LevelAIntervention.event_timestamp >= day_start(now.date()),
        )
        if domain_id is not None:
            query = query.where(LevelAIntervention.domain_id == domain_id)
        return (await self.db.execute(query)).scalar_one()

    async def count_level_b_attempts(self, student_id: str, domain_id: int) -> int:
        """Count completed Level B cycles for the student in the domain."""
        query = select(func.count(LevelBIntervention.id)).where(
            LevelBIntervention.student_id == student_id,
            LevelBIntervention.domain_id == domain_id,
            LevelBIntervention.status.in_(COMPLETED_LEVEL_B_STATUSES),
        )
        return (await self.db.execute(query)).scalar_one()

    async def determine_intervention_level(
        self,
        assessment: IncidentAssessment,
        now: datetime | None = None,
    ) -> DecisionResult:
        """Recommend an intervention level for an incident.

        Args:
            assessment: Observed incident facts.
            now: Reference instant for the repeat window.

        Returns:
            DecisionResult with the level and the reasons behind it.
        """
        if assessment.is_safety_incident:
            return DecisionResult(
                recommended_level=InterventionLevel.C,
                reasons=["Safety incident detected - requires Level C + Admin consequence"],
            )

        now = now or utc_now()
        is_pattern = await self.is_pattern_student(assessment.student_id, assessment.domain_id, now)

        triggers: list[str] = []
        if assessment.demerit_assigned:
            triggers.append("Demerit was assigned")
        if assessment.ignored_prompts >= self.policy.ignored_prompts_trigger:
            triggers.append(f"Ignored {assessment.ignored_prompts} prompts")
        if is_pattern:
            triggers.append(
                f"3rd incident in {self.policy.repeat_window_days} days (same domain)"
            )
        if assessment.affected_peers:
            triggers.append("Affected other students")
        if assessment.disrupted_space:
            triggers.append("Disrupted shared space")
        if assessment.is_safety_risk:
            triggers.append("Safety risk identified")
        if assessment.cumulative_points >= self.policy.level_b_point_threshold:
            triggers.append(
                f"Reached {assessment.cumulative_points} cumulative points "
                f"({self.policy.level_b_point_threshold}+ threshold)"
            )

        if not triggers:
            return DecisionResult(
                recommended_level=InterventionLevel.A,
                reasons=["No escalation triggers present"],
                is_pattern_student=is_pattern,
            )

        level_b_count = await self.count_level_b_attempts(
            assessment.student_id, assessment.domain_id
        )
        if level_b_count >= self.policy.level_c_cycles_before_case:
            triggers.append(f"{level_b_count} Level B attempts already completed for this domain")
            level = InterventionLevel.C
        else:
            level = InterventionLevel.B

        logger.debug(
            "Decision for student %s in domain %s: level %s (%d triggers)",
            assessment.student_id,
            assessment.domain_id,
            level.value,
            len(triggers),
        )
        return DecisionResult(
            recommended_level=level,
            reasons=triggers,
            is_pattern_student=is_pattern,
            prior_level_b_count=level_b_count,
        )

    async def should_log_level_a(
        self,
        student_id: str,
        domain_id: int,
        affected_others: bool,
        now: datetime | None = None,
    ) -> LoggingDecision:
        """Apply the Level A logging rule.

        Level A incidents are logged when they affected others, involve a
        known pattern student, or repeat an incident from the same day.
        """
        if affected_others:
            return LoggingDecision(should_log=True, reason="Affected other students")

        now = now or utc_now()
        if await self.is_pattern_student(student_id, domain_id, now):
            return LoggingDecision(should_log=True, reason="Known pattern student")

        if await self.count_todays_level_a(student_id, domain_id, now) > 0:
            return LoggingDecision(should_log=True, reason="Repeated incident same day")

        return LoggingDecision(should_log=False, reason="First minor incident of the day")
