# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behaviour event store and insight recompute services.

BehaviourEventService appends merit/demerit events and answers the
queries the insight engine needs. BehaviourInsightService recomputes
insight snapshots and pattern tags and writes them back.

Recompute semantics:
- All events for the batch are read before anything is written, so a
  read failure leaves stored insights untouched.
- Each student is written inside its own savepoint. A write failure for
  one student rolls back only that student and is reported in
  RecomputeResult.failed.
- Insights are upserted on (student_id, time_window); patterns for the
  student are deleted and re-inserted. Both are regenerable.

Usage:
    service = BehaviourInsightService(db=session)
    result = await service.recompute_recent(today=utc_today())
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import InterventionPolicy, get_policy
from src.domains.behaviour.insights import StudentInsights, compute_student_insights
from src.infrastructure.database.models.behaviour import (
    BehaviourEvent,
    StudentBehaviourInsight,
    StudentBehaviourPattern,
)
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

RISK_ORDER = {"red": 0, "yellow": 1, "green": 2}


@dataclass
class RecomputeResult:
    """Outcome of a recompute run."""

    processed: int = 0
    students: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "students": self.students,
            "failed": self.failed,
        }


class BehaviourEventService:
    """Append-only access to behaviour events.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def record_events(self, events: Iterable[dict[str, Any]]) -> list[BehaviourEvent]:
        """Append events to the store.

        Args:
            events: Event column values (student_id, event_type, event_date,
                points and optional context fields).

        Returns:
            The stored events.
        """
        records = [BehaviourEvent(**values) for values in events]
        self.db.add_all(records)
        await self.db.commit()

        logger.info(
            "Recorded %d behaviour events for %d students",
            len(records),
            len({record.student_id for record in records}),
        )
        return records

    async def list_student_events(
        self,
        student_id: str,
        since: date | None = None,
    ) -> list[BehaviourEvent]:
        """List a student's events, oldest first."""
        query = select(BehaviourEvent).where(BehaviourEvent.student_id == student_id)
        if since is not None:
            query = query.where(BehaviourEvent.event_date >= since)
        query = query.order_by(BehaviourEvent.event_date, BehaviourEvent.created_at)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def events_for_students(
        self,
        student_ids: Sequence[str],
        since: date,
    ) -> dict[str, list[BehaviourEvent]]:
        """Load events for many students in one query, grouped by student."""
        grouped: dict[str, list[BehaviourEvent]] = defaultdict(list)
        if not student_ids:
            return grouped

        query = (
            select(BehaviourEvent)
            .where(
                BehaviourEvent.student_id.in_(list(student_ids)),
                BehaviourEvent.event_date >= since,
            )
            .order_by(BehaviourEvent.event_date)
        )
        result = await self.db.execute(query)
        for event in result.scalars().all():
            grouped[event.student_id].append(event)
        return grouped

    async def students_with_recent_activity(self, today: date, days: int = 30) -> list[str]:
        """Distinct students with an event in the trailing ``days`` days."""
        since = today - timedelta(days=days)
        query = (
            select(BehaviourEvent.student_id)
            .where(BehaviourEvent.event_date >= since)
            .distinct()
            .order_by(BehaviourEvent.student_id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())


class BehaviourInsightService:
    """Recomputes and reads derived insight data.

    Attributes:
        db: Async database session.
        policy: Thresholds for pattern detection.
    """

    def __init__(self, db: AsyncSession, policy: InterventionPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or get_policy()
        self.events = BehaviourEventService(db)

    async def recompute_students(self, student_ids: Sequence[str], today: date) -> RecomputeResult:
        """Recompute insights and patterns for the given students.

        Args:
            student_ids: Students to recompute. Duplicates are ignored.
            today: Reference day for every student in the run.

        Returns:
            RecomputeResult with succeeded and failed student IDs.

        Raises:
            SQLAlchemyError: If loading the events fails.
        """
        unique_ids = list(dict.fromkeys(student_ids))
        result = RecomputeResult()
        if not unique_ids:
            return result

        since = today - timedelta(days=self.policy.insight_lookback_days)
        events_by_student = await self.events.events_for_students(unique_ids, since)
        computed_at = utc_now()

        for student_id in unique_ids:
            insights = compute_student_insights(
                student_id, events_by_student.get(student_id, []), today, self.policy
            )
            try:
                async with self.db.begin_nested():
                    await self._write_insights(insights, computed_at)
            except SQLAlchemyError:
                logger.exception("Failed to store behaviour insights for student %s", student_id)
                result.failed.append(student_id)
                continue
            result.students.append(student_id)

        await self.db.commit()
        result.processed = len(result.students)

        logger.info(
            "Recomputed behaviour insights: %d processed, %d failed",
            result.processed,
            len(result.failed),
        )
        return result

    async def recompute_recent(self, today: date) -> RecomputeResult:
        """Recompute every student with activity in the lookback window."""
        student_ids = await self.events.students_with_recent_activity(
            today, days=self.policy.insight_lookback_days
        )
        return await self.recompute_students(student_ids, today)

    async def get_student_insights(self, student_id: str) -> list[StudentBehaviourInsight]:
        query = (
            select(StudentBehaviourInsight)
            .where(StudentBehaviourInsight.student_id == student_id)
            .order_by(StudentBehaviourInsight.time_window.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_student_patterns(self, student_id: str) -> list[StudentBehaviourPattern]:
        query = (
            select(StudentBehaviourPattern)
            .where(StudentBehaviourPattern.student_id == student_id)
            .order_by(StudentBehaviourPattern.confidence_score.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_at_risk_students(
        self,
        risk_levels: Sequence[str] = ("red", "yellow"),
        time_window: str | None = None,
    ) -> list[StudentBehaviourInsight]:
        """List insight snapshots at the given risk levels, most severe first.

        Args:
            risk_levels: Risk levels to include.
            time_window: Restrict to "7d" or "30d"; both when None.
        """
        query = select(StudentBehaviourInsight).where(
            StudentBehaviourInsight.risk_level.in_(list(risk_levels))
        )
        if time_window is not None:
            query = query.where(StudentBehaviourInsight.time_window == time_window)

        result = await self.db.execute(query)
        rows = list(result.scalars().all())
        rows.sort(key=lambda row: (RISK_ORDER.get(row.risk_level, 3), row.student_id, row.time_window))
        return rows

    async def _write_insights(self, insights: StudentInsights, computed_at: datetime) -> None:
        existing_query = select(StudentBehaviourInsight).where(
            StudentBehaviourInsight.student_id == insights.student_id
        )
        existing = {
            row.time_window: row for row in (await self.db.execute(existing_query)).scalars().all()
        }

        for time_window, window in insights.windows.items():
            row = existing.get(time_window)
            if row is None:
                row = StudentBehaviourInsight(student_id=insights.student_id, time_window=time_window)
                self.db.add(row)
            for column, value in window.to_record().items():
                setattr(row, column, value)
            row.last_computed = computed_at

        await self.db.execute(
            delete(StudentBehaviourPattern).where(
                StudentBehaviourPattern.student_id == insights.student_id
            )
        )
        self.db.add_all(
            StudentBehaviourPattern(
                student_id=insights.student_id,
                pattern_type=pattern.pattern_type,
                pattern_description=pattern.description,
                confidence_score=pattern.confidence,
                detected_at=computed_at,
            )
            for pattern in insights.patterns
        )
        await self.db.flush()
