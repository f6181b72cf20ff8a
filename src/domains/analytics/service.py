# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention analytics service.

Read-only aggregation over the intervention tables for a timestamp range:

- Summary: record counts per tier and whether the A/B/C distribution is
  healthy
- Domain metrics: Level A/B volume and repeat rate per active domain
- Escalation metrics: A->B and B->C escalation rates
- Outcome metrics: success rates of completed records
- Weekly trends: tier counts for the trailing weeks
- Recent activity: newest records across every tier

Level A records are dated by their event timestamp, every other tier by
its creation time.

Usage:
    from src.domains.analytics import InterventionAnalyticsService

    service = InterventionAnalyticsService(db=db_session)
    dashboard = await service.get_dashboard(start, end)
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import ColumnElement, and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from src.core.config.policy import InterventionPolicy, get_policy
from src.domains.analytics.metrics import (
    ActivityItem,
    DomainMetrics,
    EscalationMetrics,
    InterventionDashboard,
    InterventionSummary,
    OutcomeMetrics,
    TrendPoint,
    bucket_bounds,
    humanize,
    is_distribution_healthy,
    merge_recent_activity,
    percentage,
    week_buckets,
)
from src.domains.intervention.enums import (
    LevelBStatus,
    LevelCOutcome,
    ReentryOutcome,
    ReentryStatus,
)
from src.infrastructure.database.models.intervention import (
    BehavioralDomain,
    LevelAIntervention,
    LevelBIntervention,
    LevelCCase,
    ReentryProtocol,
)
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

LEVEL_C_SUCCESS_OUTCOMES = (
    LevelCOutcome.CLOSED_SUCCESS.value,
    LevelCOutcome.CLOSED_CONTINUED_SUPPORT.value,
)
REENTRY_SUCCESS_OUTCOMES = (ReentryOutcome.SUCCESS.value, ReentryOutcome.PARTIAL.value)


def default_period(now: datetime, days: int = 30) -> tuple[datetime, datetime]:
    """The trailing ``days`` up to ``now``."""
    return now - timedelta(days=days), now


class InterventionAnalyticsService:
    """Service for intervention analytics dashboards.

    Attributes:
        _db: Database session.
        policy: Distribution, repeat-window and trend settings.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self._db = db
        self.policy = policy or get_policy()

    async def get_dashboard(
        self,
        start: datetime,
        end: datetime,
        now: datetime | None = None,
        activity_limit: int | None = None,
    ) -> InterventionDashboard:
        """Build the full analytics dashboard.

        Args:
            start: Range start (inclusive).
            end: Range end (inclusive).
            now: Reference instant for the weekly trends.
            activity_limit: Length of the activity feed.

        Returns:
            InterventionDashboard for the range.
        """
        now = now or utc_now()

        dashboard = InterventionDashboard(
            period_start=start,
            period_end=end,
            summary=await self.get_summary(start, end),
            domain_metrics=await self.get_domain_metrics(start, end),
            escalation_metrics=await self.get_escalation_metrics(start, end),
            outcome_metrics=await self.get_outcome_metrics(start, end),
            weekly_trends=await self.get_weekly_trends(now.date()),
            recent_activity=await self.get_recent_activity(
                activity_limit or self.policy.recent_activity_limit
            ),
        )

        logger.debug(
            "Built intervention dashboard %s to %s: A=%d B=%d C=%d",
            start,
            end,
            dashboard.summary.level_a_count,
            dashboard.summary.level_b_count,
            dashboard.summary.level_c_count,
        )
        return dashboard

    async def get_summary(self, start: datetime, end: datetime) -> InterventionSummary:
        level_a = await self._count_level_a(start, end)
        level_b = await self._count(LevelBIntervention, start, end)
        level_c = await self._count(LevelCCase, start, end)
        reentry = await self._count(ReentryProtocol, start, end)

        return InterventionSummary(
            level_a_count=level_a,
            level_b_count=level_b,
            level_c_count=level_c,
            reentry_count=reentry,
            distribution_healthy=is_distribution_healthy(
                level_a, level_b, level_c, self.policy.healthy_level_a_share
            ),
        )

    async def get_domain_metrics(self, start: datetime, end: datetime) -> list[DomainMetrics]:
        """Per active domain volume and repeat rate.

        The repeat rate is the number of students with two or more Level A
        records in the domain within the repeat window, as a percentage of
        the domain's Level A volume.
        """
        domains = (
            await self._db.execute(
                select(BehavioralDomain)
                .where(BehavioralDomain.is_active.is_(True))
                .order_by(BehavioralDomain.id)
            )
        ).scalars().all()
        if not domains:
            return []

        level_a_counts = await self._grouped_counts(
            LevelAIntervention.domain_id,
            LevelAIntervention.event_timestamp.between(start, end),
        )
        level_b_counts = await self._grouped_counts(
            LevelBIntervention.domain_id,
            LevelBIntervention.created_at.between(start, end),
        )
        repeat_counts = await self._repeat_student_counts(start, end)

        metrics = []
        for domain in domains:
            level_a = level_a_counts.get(domain.id, 0)
            metrics.append(
                DomainMetrics(
                    domain_key=domain.domain_key,
                    domain_name=domain.domain_name,
                    level_a_count=level_a,
                    level_b_count=level_b_counts.get(domain.id, 0),
                    repeat_rate=percentage(repeat_counts.get(domain.id, 0), level_a),
                )
            )
        return metrics

    async def get_escalation_metrics(self, start: datetime, end: datetime) -> EscalationMetrics:
        total_a = await self._count_level_a(start, end)
        a_to_b = await self._count_level_a(start, end, LevelAIntervention.escalated_to_b.is_(True))
        total_b = await self._count(LevelBIntervention, start, end)
        b_to_c = await self._count(
            LevelBIntervention, start, end, LevelBIntervention.escalated_to_c.is_(True)
        )

        return EscalationMetrics(
            a_to_b_count=a_to_b,
            a_to_b_rate=percentage(a_to_b, total_a),
            b_to_c_count=b_to_c,
            b_to_c_rate=percentage(b_to_c, total_b),
        )

    async def get_outcome_metrics(self, start: datetime, end: datetime) -> OutcomeMetrics:
        level_b_completed = await self._count(
            LevelBIntervention,
            start,
            end,
            LevelBIntervention.status.in_(
                (LevelBStatus.COMPLETED_SUCCESS.value, LevelBStatus.COMPLETED_ESCALATED.value)
            ),
        )
        level_b_success = await self._count(
            LevelBIntervention,
            start,
            end,
            LevelBIntervention.status == LevelBStatus.COMPLETED_SUCCESS.value,
        )

        level_c_completed = await self._count(
            LevelCCase, start, end, LevelCCase.outcome_status.is_not(None)
        )
        level_c_success = await self._count(
            LevelCCase, start, end, LevelCCase.outcome_status.in_(LEVEL_C_SUCCESS_OUTCOMES)
        )

        reentry_completed = await self._count(
            ReentryProtocol,
            start,
            end,
            ReentryProtocol.status == ReentryStatus.COMPLETED.value,
        )
        reentry_success = await self._count(
            ReentryProtocol,
            start,
            end,
            ReentryProtocol.status == ReentryStatus.COMPLETED.value,
            ReentryProtocol.outcome.in_(REENTRY_SUCCESS_OUTCOMES),
        )

        return OutcomeMetrics(
            level_b_completed=level_b_completed,
            level_b_success_rate=percentage(level_b_success, level_b_completed),
            level_c_completed=level_c_completed,
            level_c_success_rate=percentage(level_c_success, level_c_completed),
            reentry_completed=reentry_completed,
            reentry_success_rate=percentage(reentry_success, reentry_completed),
        )

    async def get_weekly_trends(self, today: date) -> list[TrendPoint]:
        """Tier counts for the trailing weeks, oldest first."""
        trends = []
        for first, last in week_buckets(today, self.policy.trend_weeks, self.policy.week_start):
            start, end = bucket_bounds(first, last)
            trends.append(
                TrendPoint(
                    week_start=first,
                    level_a=await self._count_level_a(start, end),
                    level_b=await self._count(LevelBIntervention, start, end),
                    level_c=await self._count(LevelCCase, start, end),
                )
            )
        return trends

    async def get_recent_activity(self, limit: int = 10) -> list[ActivityItem]:
        """Newest records across all tiers."""
        per_tier = self.policy.recent_activity_per_tier
        items: list[ActivityItem] = []

        level_a = await self._db.execute(
            select(LevelAIntervention)
            .order_by(LevelAIntervention.event_timestamp.desc())
            .limit(per_tier)
        )
        for record in level_a.scalars():
            items.append(
                ActivityItem(
                    id=record.id,
                    type="level_a",
                    student_id=record.student_id,
                    description=f"Level A intervention ({humanize(record.intervention_type)})",
                    timestamp=record.event_timestamp,
                )
            )

        level_b = await self._db.execute(
            select(LevelBIntervention).order_by(LevelBIntervention.created_at.desc()).limit(per_tier)
        )
        for record in level_b.scalars():
            items.append(
                ActivityItem(
                    id=record.id,
                    type="level_b",
                    student_id=record.student_id,
                    description=f"Level B reset conference ({humanize(record.status)})",
                    timestamp=record.created_at,
                )
            )

        level_c = await self._db.execute(
            select(LevelCCase).order_by(LevelCCase.created_at.desc()).limit(per_tier)
        )
        for record in level_c.scalars():
            items.append(
                ActivityItem(
                    id=record.id,
                    type="level_c",
                    student_id=record.student_id,
                    description=f"Level C case opened ({humanize(record.status)})",
                    timestamp=record.created_at,
                )
            )

        reentries = await self._db.execute(
            select(ReentryProtocol).order_by(ReentryProtocol.created_at.desc()).limit(per_tier)
        )
        for record in reentries.scalars():
            items.append(
                ActivityItem(
                    id=record.id,
                    type="reentry",
                    student_id=record.student_id,
                    description=f"Re-entry protocol ({humanize(record.source_type)})",
                    timestamp=record.created_at,
                )
            )

        return merge_recent_activity(items, limit)

    # =========================================================================
    # Query helpers
    # =========================================================================

    async def _count_level_a(self, start: datetime, end: datetime, *conditions: Any) -> int:
        query = select(func.count(LevelAIntervention.id)).where(
            LevelAIntervention.event_timestamp.between(start, end),
            *conditions,
        )
        return (await self._db.execute(query)).scalar_one()

    async def _count(self, model: Any, start: datetime, end: datetime, *conditions: Any) -> int:
        query = select(func.count(model.id)).where(model.created_at.between(start, end), *conditions)
        return (await self._db.execute(query)).scalar_one()

    async def _grouped_counts(self, column: Any, *conditions: Any) -> dict[int, int]:
        query = select(column, func.count()).where(column.is_not(None), *conditions).group_by(column)
        result = await self._db.execute(query)
        return {key: count for key, count in result.all()}

    async def _repeat_student_counts(self, start: datetime, end: datetime) -> dict[int, int]:
        """Students per domain with a second Level A inside the repeat window."""
        first = aliased(LevelAIntervention)
        repeat = aliased(LevelAIntervention)

        query = (
            select(first.domain_id, func.count(distinct(first.student_id)))
            .join(
                repeat,
                and_(
                    repeat.student_id == first.student_id,
                    repeat.domain_id == first.domain_id,
                    repeat.id != first.id,
                    repeat.event_timestamp >= first.event_timestamp,
                ),
            )
            .where(
                first.domain_id.is_not(None),
                first.event_timestamp.between(start, end),
                repeat.event_timestamp.between(start, end),
                self._days_apart(repeat.event_timestamp, first.event_timestamp)
                <= self.policy.repeat_window_days,
            )
            .group_by(first.domain_id)
        )
        result = await self._db.execute(query)
        return {domain_id: count for domain_id, count in result.all()}

    def _days_apart(self, later: Any, earlier: Any) -> ColumnElement:
        if self._db.bind.dialect.name == "sqlite":
            return func.julianday(later) - func.julianday(earlier)
        return func.extract("epoch", later - earlier) / 86400
