# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behaviour event and derived insight models.

behaviour_events is append-only. student_behaviour_insights holds one row
per (student, time window), overwritten on every recompute.
student_behaviour_patterns is fully replaced per student on recompute.
"""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class BehaviourEvent(UUIDPrimaryKeyMixin, Base):
    """A single merit or demerit recorded against a student."""

    __tablename__ = "behaviour_events"
    __table_args__ = (Index("ix_behaviour_events_student_date", "student_id", "event_date"),)

    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(10), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    class_context: Mapped[str | None] = mapped_column(String(100), nullable=True)
    staff_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String(200), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_system: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<BehaviourEvent(student_id={self.student_id}, type={self.event_type}, "
            f"date={self.event_date}, points={self.points})>"
        )


class StudentBehaviourInsight(UUIDPrimaryKeyMixin, Base):
    """Current insight snapshot for a student over one time window."""

    __tablename__ = "student_behaviour_insights"
    __table_args__ = (
        UniqueConstraint("student_id", "time_window", name="uq_behaviour_insight_student_window"),
    )

    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    time_window: Mapped[str] = mapped_column(String(5), nullable=False)
    total_merits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_demerits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    demerit_frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    trend: Mapped[str] = mapped_column(String(20), nullable=False, default="stable")
    risk_level: Mapped[str] = mapped_column(String(10), nullable=False, default="green", index=True)
    primary_issue_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    interpretation: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_computed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class StudentBehaviourPattern(UUIDPrimaryKeyMixin, Base):
    """A qualitative pattern tag detected for a student."""

    __tablename__ = "student_behaviour_patterns"

    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    pattern_type: Mapped[str] = mapped_column(String(50), nullable=False)
    pattern_description: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
