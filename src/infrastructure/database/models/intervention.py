# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""A/B/C intervention framework models.

Each tier is a separate table whose status column acts as the
discriminator of the record's lifecycle. JSON payload columns (step data,
checklists, daily logs, success-rate maps) are always reassigned as a new
value, never mutated in place, so the ORM detects the change.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from src.utils.datetime import utc_now


class BehavioralDomain(Base):
    """A context category used to scope interventions and repeat rates."""

    __tablename__ = "behavioral_domains"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    domain_key: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    domain_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    expectations: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    repair_menu_immediate: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    repair_menu_restorative: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<BehavioralDomain(id={self.id}, key={self.domain_key})>"


class LevelAIntervention(UUIDPrimaryKeyMixin, Base):
    """In-the-moment coaching intervention for a minor incident."""

    __tablename__ = "level_a_interventions"

    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    staff_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    staff_name: Mapped[str] = mapped_column(String(200), nullable=False)
    domain_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("behavioral_domains.id"), nullable=True, index=True
    )
    intervention_type: Mapped[str] = mapped_column(String(30), nullable=False)
    behavior_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="complied")
    escalated_to_b: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_repeated_same_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    affected_others: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_pattern_student: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    event_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class LevelBIntervention(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Structured 7-step reset conference with a monitoring window."""

    __tablename__ = "level_b_interventions"

    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    staff_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    staff_name: Mapped[str] = mapped_column(String(200), nullable=False)
    domain_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("behavioral_domains.id"), nullable=True, index=True
    )
    escalation_trigger: Mapped[str] = mapped_column(String(40), nullable=False)

    # 7-step protocol
    b1_regulate_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    b1_regulate_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    b2_pattern_naming_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    b2_pattern_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    b3_reflection_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    b3_reflection_prompts_used: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    b4_repair_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    b4_repair_action_selected: Mapped[str | None] = mapped_column(Text, nullable=True)
    b5_replacement_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    b5_replacement_skill_practiced: Mapped[str | None] = mapped_column(Text, nullable=True)
    b6_reset_goal_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    b6_reset_goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    b6_reset_goal_timeline_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    b7_documentation_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Monitoring
    monitoring_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monitoring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    monitoring_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    daily_success_rates: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    final_success_rate: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Outcome
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="in_progress", index=True
    )
    escalated_to_c: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    escalated_from_level_a_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("level_a_interventions.id"), nullable=True
    )
    conference_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def step_flags(self) -> list[bool]:
        """Completion flags of steps 1 to 7 in order."""
        return [
            self.b1_regulate_completed,
            self.b2_pattern_naming_completed,
            self.b3_reflection_completed,
            self.b4_repair_completed,
            self.b5_replacement_completed,
            self.b6_reset_goal_completed,
            self.b7_documentation_completed,
        ]


class LevelCCase(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Case-managed intensive intervention."""

    __tablename__ = "level_c_cases"

    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    case_manager_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    case_manager_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    trigger_type: Mapped[str] = mapped_column(String(40), nullable=False)
    case_type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")
    domain_focus_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("behavioral_domains.id"), nullable=True
    )

    # Context packet
    incident_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    pattern_review: Mapped[str | None] = mapped_column(Text, nullable=True)
    environmental_factors: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    prior_interventions_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    context_packet_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Admin response
    admin_response_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    admin_response_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    consequence_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    consequence_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    admin_response_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Support plan and re-entry
    support_plan_goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    support_plan_strategies: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    adult_mentor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    adult_mentor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    repair_actions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    reentry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reentry_type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")
    reentry_restrictions: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    reentry_checklist: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    reentry_planning_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Monitoring
    monitoring_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    monitoring_schedule: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    review_dates: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    daily_check_ins: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    monitoring_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Closure
    closure_criteria: Mapped[str | None] = mapped_column(Text, nullable=True)
    closure_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    outcome_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    escalated_from_level_b_ids: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    sis_demerit_points_at_creation: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active", index=True)


class ReentryProtocol(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Supervised return to class after a consequence."""

    __tablename__ = "reentry_protocols"

    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    level_b_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("level_b_interventions.id"), nullable=True
    )
    level_c_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("level_c_cases.id"), nullable=True
    )
    reentry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reentry_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    receiving_teacher_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    receiving_teacher_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    readiness_checklist: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    readiness_verified_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    readiness_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    teacher_script: Mapped[str | None] = mapped_column(Text, nullable=True)
    reset_goal_from_intervention: Mapped[str | None] = mapped_column(Text, nullable=True)
    first_behavioral_rep_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    monitoring_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monitoring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monitoring_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    monitoring_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    daily_logs: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )

    outcome: Mapped[str | None] = mapped_column(String(20), nullable=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
