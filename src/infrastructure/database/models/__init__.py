# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the interventions store.

Primary records (behaviour events, Level A/B/C interventions, re-entry
protocols) are the durable source of truth. Insight snapshots, behaviour
patterns and analytics snapshots are derived and safe to regenerate.
"""

from src.infrastructure.database.models.analytics import AnalyticsSnapshot, ReportHistory
from src.infrastructure.database.models.base import Base, JSONType, TimestampMixin, generate_uuid
from src.infrastructure.database.models.behaviour import (
    BehaviourEvent,
    StudentBehaviourInsight,
    StudentBehaviourPattern,
)
from src.infrastructure.database.models.intervention import (
    BehavioralDomain,
    LevelAIntervention,
    LevelBIntervention,
    LevelCCase,
    ReentryProtocol,
)

__all__ = [
    "Base",
    "JSONType",
    "TimestampMixin",
    "generate_uuid",
    "BehaviourEvent",
    "StudentBehaviourInsight",
    "StudentBehaviourPattern",
    "BehavioralDomain",
    "LevelAIntervention",
    "LevelBIntervention",
    "LevelCCase",
    "ReentryProtocol",
    "AnalyticsSnapshot",
    "ReportHistory",
]
