# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (pure functions and services on an in-memory database)
- Integration tests (HTTP API through the FastAPI app)
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

from collections.abc import AsyncGenerator, Callable
from datetime import date, datetime, timezone
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.config import clear_settings_cache, get_policy
from src.core.config.policy import InterventionPolicy
from src.infrastructure.database.connection import create_sessionmaker, enable_sqlite_savepoints
from src.infrastructure.database.models import Base
from src.infrastructure.database.models.behaviour import BehaviourEvent
from src.infrastructure.database.seeds import seed_behavioral_domains


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (HTTP API on SQLite)"
    )


# =============================================================================
# Reference Instants
# =============================================================================


@pytest.fixture
def today() -> date:
    """Fixed reference day shared by a test."""
    return date(2024, 3, 15)


@pytest.fixture
def now(today: date) -> datetime:
    """Fixed reference instant on the reference day."""
    return datetime(today.year, today.month, today.day, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> InterventionPolicy:
    """Default intervention policy."""
    return get_policy()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    """Reload settings for every test so env overrides apply."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session with the behavioural domains seeded."""
    sessionmaker = create_sessionmaker(engine)
    async with sessionmaker() as session:
        await seed_behavioral_domains(session)
        await session.commit()
        yield session


@pytest.fixture
async def domain_ids(db: AsyncSession) -> dict[str, int]:
    """Seeded domain IDs by domain key."""
    from src.domains.intervention import BehavioralDomainService

    domains = await BehavioralDomainService(db).list_domains()
    return {domain.domain_key: domain.id for domain in domains}


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def make_event() -> Callable[..., BehaviourEvent]:
    """Factory for unsaved behaviour events."""

    def _make(
        event_type: str = "demerit",
        event_date: date = date(2024, 3, 14),
        student_id: str = "S1",
        points: int = 1,
        **values: Any,
    ) -> BehaviourEvent:
        return BehaviourEvent(
            student_id=student_id,
            event_type=event_type,
            event_date=event_date,
            points=points,
            **values,
        )

    return _make


@pytest.fixture
def sample_student_id() -> str:
    """Provide a sample student ID for testing."""
    return "STU-1001"


@pytest.fixture
def sample_metrics_data() -> dict[str, Any]:
    """Implementation metrics for a healthy week."""
    return {
        "participation_rate": 85.0,
        "active_staff": 34,
        "total_staff": 40,
        "inactive_staff_count": 2,
        "total_points": 4250,
        "total_transactions": 610,
        "category_balance_score": 82.0,
        "category_percentages": {"Respect": 35.0, "Responsibility": 33.0, "Righteousness": 32.0},
        "dominant_category": "Respect",
        "category_balanced": True,
        "house_points": {"Badr": 1100, "Uhud": 1050, "Khandaq": 1000, "Tabuk": 1100},
        "house_balance_score": 90.0,
        "house_variance": 10.0,
        "house_balanced": True,
        "active_alerts": 0,
        "red_alerts": 0,
        "amber_alerts": 0,
        "consistency_score": 78.0,
        "health_score": 84.0,
        "health_status": "GREEN",
    }


LEVEL_B_STEP_DATA: dict[int, dict[str, Any]] = {
    1: {"b1_regulate_completed": True, "b1_regulate_notes": "Breathing reset"},
    2: {"b2_pattern_naming_completed": True, "b2_pattern_notes": "Talks over peers in line"},
    3: {"b3_reflection_completed": True, "b3_reflection_prompts_used": ["Who was affected by your actions?"]},
    4: {"b4_repair_completed": True, "b4_repair_action_selected": "Apologize to affected peers"},
    5: {"b5_replacement_completed": True, "b5_replacement_skill_practiced": "Silent line reset"},
    6: {
        "b6_reset_goal_completed": True,
        "b6_reset_goal": "Walk on the right side with voice off",
        "b6_reset_goal_timeline_days": 3,
    },
    7: {"b7_documentation_completed": True},
}


@pytest.fixture
def documented_level_b(db: AsyncSession, domain_ids: dict[str, int]) -> Callable[..., Any]:
    """Factory for a Level B record taken through all seven steps."""
    from src.domains.intervention import LevelBService

    async def _make(
        student_id: str = "S1",
        domain_key: str = "hallways",
        monitoring_from: date = date(2024, 3, 10),
        timeline_days: int = 3,
    ):
        service = LevelBService(db)
        intervention = await service.create_level_b(
            student_id=student_id,
            staff_name="Ms. Rahman",
            domain_id=domain_ids[domain_key],
            escalation_trigger="demerit_assigned",
        )
        for step, data in LEVEL_B_STEP_DATA.items():
            values = dict(data)
            if step == 6:
                values["b6_reset_goal_timeline_days"] = timeline_days
            intervention = await service.update_step(intervention.id, step, values, today=monitoring_from)
        return intervention

    return _make
