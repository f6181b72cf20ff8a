# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the behaviour event store and insight recompute."""

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from src.domains.behaviour import BehaviourEventService, BehaviourInsightService

TODAY = date(2024, 3, 15)


def demerit(student_id: str, days_ago: int, **values) -> dict:
    return {
        "student_id": student_id,
        "event_type": "demerit",
        "event_date": TODAY - timedelta(days=days_ago),
        "points": 1,
        **values,
    }


def merit(student_id: str, days_ago: int, **values) -> dict:
    return {**demerit(student_id, days_ago, **values), "event_type": "merit"}


class TestBehaviourEventService:
    """Tests for BehaviourEventService."""

    @pytest.mark.asyncio
    async def test_record_and_list_events(self, db) -> None:
        service = BehaviourEventService(db)

        stored = await service.record_events([demerit("S1", 3), merit("S1", 1), demerit("S2", 2)])

        assert len(stored) == 3
        assert all(event.id for event in stored)
        events = await service.list_student_events("S1")
        assert [event.event_type for event in events] == ["demerit", "merit"]

    @pytest.mark.asyncio
    async def test_list_since(self, db) -> None:
        service = BehaviourEventService(db)
        await service.record_events([demerit("S1", 40), demerit("S1", 2)])

        events = await service.list_student_events("S1", since=TODAY - timedelta(days=30))

        assert len(events) == 1

    @pytest.mark.asyncio
    async def test_students_with_recent_activity(self, db) -> None:
        service = BehaviourEventService(db)
        await service.record_events([demerit("S2", 2), demerit("S1", 5), demerit("S3", 45)])

        assert await service.students_with_recent_activity(TODAY) == ["S1", "S2"]

    @pytest.mark.asyncio
    async def test_events_for_students_grouped(self, db) -> None:
        service = BehaviourEventService(db)
        await service.record_events([demerit("S1", 2), demerit("S1", 3), demerit("S2", 2)])

        grouped = await service.events_for_students(["S1", "S2", "S9"], TODAY - timedelta(days=30))

        assert len(grouped["S1"]) == 2
        assert len(grouped["S2"]) == 1
        assert "S9" not in grouped


class TestBehaviourInsightService:
    """Tests for BehaviourInsightService."""

    @pytest.mark.asyncio
    async def test_recompute_writes_both_windows(self, db) -> None:
        await BehaviourEventService(db).record_events([demerit("S1", d) for d in (1, 2, 3)])
        service = BehaviourInsightService(db)

        result = await service.recompute_students(["S1", "S1"], TODAY)

        assert result.processed == 1
        assert result.students == ["S1"]
        insights = {row.time_window: row for row in await service.get_student_insights("S1")}
        assert set(insights) == {"7d", "30d"}
        assert insights["7d"].risk_level == "yellow"
        assert insights["7d"].total_demerits == 3
        assert insights["30d"].risk_level == "green"
        patterns = await service.get_student_patterns("S1")
        assert [pattern.pattern_type for pattern in patterns] == ["early_concern"]

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db) -> None:
        await BehaviourEventService(db).record_events([demerit("S1", d) for d in (1, 2, 3)])
        service = BehaviourInsightService(db)

        await service.recompute_students(["S1"], TODAY)
        await service.recompute_students(["S1"], TODAY)

        assert len(await service.get_student_insights("S1")) == 2
        assert len(await service.get_student_patterns("S1")) == 1

    @pytest.mark.asyncio
    async def test_recompute_replaces_patterns(self, db) -> None:
        await BehaviourEventService(db).record_events([demerit("S1", d) for d in (1, 2, 3)])
        service = BehaviourInsightService(db)
        await service.recompute_students(["S1"], TODAY)

        await service.recompute_students(["S1"], TODAY + timedelta(days=20))

        assert await service.get_student_patterns("S1") == []
        insights = await service.get_student_insights("S1")
        assert all(row.risk_level == "green" for row in insights)

    @pytest.mark.asyncio
    async def test_recompute_recent(self, db) -> None:
        await BehaviourEventService(db).record_events(
            [demerit("S1", 2), merit("S2", 4), demerit("S3", 60)]
        )

        result = await BehaviourInsightService(db).recompute_recent(TODAY)

        assert result.students == ["S1", "S2"]

    @pytest.mark.asyncio
    async def test_recompute_empty(self, db) -> None:
        result = await BehaviourInsightService(db).recompute_students([], TODAY)

        assert result.to_dict() == {"processed": 0, "students": [], "failed": []}

    @pytest.mark.asyncio
    async def test_failed_student_does_not_block_others(self, db) -> None:
        await BehaviourEventService(db).record_events([demerit("S1", 2), demerit("S2", 2)])
        service = BehaviourInsightService(db)
        original = service._write_insights

        async def flaky(insights, computed_at):
            if insights.student_id == "S2":
                raise SQLAlchemyError("disk full")
            await original(insights, computed_at)

        service._write_insights = flaky

        result = await service.recompute_students(["S1", "S2"], TODAY)

        assert result.students == ["S1"]
        assert result.failed == ["S2"]
        assert len(await service.get_student_insights("S1")) == 2
        assert await service.get_student_insights("S2") == []

    @pytest.mark.asyncio
    async def test_at_risk_sorted_by_severity(self, db) -> None:
        events = [demerit("S2", d) for d in (1, 2, 3)]
        events += [demerit("S1", d) for d in (1, 2, 3, 9, 10, 16)]
        await BehaviourEventService(db).record_events(events)
        service = BehaviourInsightService(db)
        await service.recompute_students(["S1", "S2"], TODAY)

        at_risk = await service.list_at_risk_students()

        assert [(row.student_id, row.risk_level) for row in at_risk] == [
            ("S1", "red"),
            ("S1", "red"),
            ("S2", "yellow"),
        ]
        week_only = await service.list_at_risk_students(risk_levels=("red",), time_window="7d")
        assert [(row.student_id, row.time_window) for row in week_only] == [("S1", "7d")]
