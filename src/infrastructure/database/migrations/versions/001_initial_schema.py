# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial intervention framework schema.

Creates:
- behavioral_domains: Context categories with expectations and repair menus
- behaviour_events: Append-only merit/demerit log
- student_behaviour_insights: Per-window insight snapshots (upserted)
- student_behaviour_patterns: Detected pattern tags (replaced per recompute)
- level_a_interventions / level_b_interventions / level_c_cases
- reentry_protocols: Return-to-class monitoring
- analytics_snapshots / report_history

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _json(name: str, default: str = "'[]'::jsonb") -> sa.Column:
    return sa.Column(name, postgresql.JSONB(), nullable=False, server_default=sa.text(default))


def _flag(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create all intervention framework tables."""

    # =========================================================================
    # Behavioural domains
    # =========================================================================
    op.create_table(
        "behavioral_domains",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("domain_key", sa.String(50), nullable=False, unique=True),
        sa.Column("domain_name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _json("expectations"),
        _json("repair_menu_immediate"),
        _json("repair_menu_restorative"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================================
    # Behaviour events and derived insights
    # =========================================================================
    op.create_table(
        "behaviour_events",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("event_type", sa.String(10), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("class_context", sa.String(100), nullable=True),
        sa.Column("staff_name", sa.String(200), nullable=True),
        sa.Column("category", sa.String(200), nullable=True),
        sa.Column("subcategory", sa.String(200), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source_system", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("event_type IN ('merit', 'demerit')", name="ck_behaviour_events_type"),
    )
    op.create_index("ix_behaviour_events_student_date", "behaviour_events", ["student_id", "event_date"])
    op.create_index("ix_behaviour_events_event_date", "behaviour_events", ["event_date"])

    op.create_table(
        "student_behaviour_insights",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("time_window", sa.String(5), nullable=False),
        sa.Column("total_merits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_demerits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("demerit_frequency", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("trend", sa.String(20), nullable=False, server_default="stable"),
        sa.Column("risk_level", sa.String(10), nullable=False, server_default="green"),
        sa.Column("primary_issue_type", sa.String(50), nullable=True),
        sa.Column("interpretation", sa.Text(), nullable=True),
        sa.Column("last_computed", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("student_id", "time_window", name="uq_behaviour_insight_student_window"),
    )
    op.create_index("ix_student_behaviour_insights_student_id", "student_behaviour_insights", ["student_id"])
    op.create_index("ix_student_behaviour_insights_risk_level", "student_behaviour_insights", ["risk_level"])

    op.create_table(
        "student_behaviour_patterns",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("pattern_type", sa.String(50), nullable=False),
        sa.Column("pattern_description", sa.Text(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("detected_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_behaviour_patterns_confidence",
        ),
    )
    op.create_index("ix_student_behaviour_patterns_student_id", "student_behaviour_patterns", ["student_id"])

    # =========================================================================
    # Level A
    # =========================================================================
    op.create_table(
        "level_a_interventions",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("staff_id", sa.String(64), nullable=True),
        sa.Column("staff_name", sa.String(200), nullable=False),
        sa.Column("domain_id", sa.Integer(), sa.ForeignKey("behavioral_domains.id"), nullable=True),
        sa.Column("intervention_type", sa.String(30), nullable=False),
        sa.Column("behavior_description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("outcome", sa.String(20), nullable=False, server_default="complied"),
        _flag("escalated_to_b"),
        _flag("is_repeated_same_day"),
        _flag("affected_others"),
        _flag("is_pattern_student"),
        sa.Column("event_timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_level_a_interventions_student_id", "level_a_interventions", ["student_id"])
    op.create_index("ix_level_a_interventions_staff_id", "level_a_interventions", ["staff_id"])
    op.create_index("ix_level_a_interventions_domain_id", "level_a_interventions", ["domain_id"])
    op.create_index("ix_level_a_interventions_event_timestamp", "level_a_interventions", ["event_timestamp"])

    # =========================================================================
    # Level B
    # =========================================================================
    op.create_table(
        "level_b_interventions",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("staff_id", sa.String(64), nullable=True),
        sa.Column("staff_name", sa.String(200), nullable=False),
        sa.Column("domain_id", sa.Integer(), sa.ForeignKey("behavioral_domains.id"), nullable=True),
        sa.Column("escalation_trigger", sa.String(40), nullable=False),
        _flag("b1_regulate_completed"),
        sa.Column("b1_regulate_notes", sa.Text(), nullable=True),
        _flag("b2_pattern_naming_completed"),
        sa.Column("b2_pattern_notes", sa.Text(), nullable=True),
        _flag("b3_reflection_completed"),
        _json("b3_reflection_prompts_used"),
        _flag("b4_repair_completed"),
        sa.Column("b4_repair_action_selected", sa.Text(), nullable=True),
        _flag("b5_replacement_completed"),
        sa.Column("b5_replacement_skill_practiced", sa.Text(), nullable=True),
        _flag("b6_reset_goal_completed"),
        sa.Column("b6_reset_goal", sa.Text(), nullable=True),
        sa.Column("b6_reset_goal_timeline_days", sa.Integer(), nullable=True),
        _flag("b7_documentation_completed"),
        sa.Column("monitoring_start_date", sa.Date(), nullable=True),
        sa.Column("monitoring_end_date", sa.Date(), nullable=True),
        sa.Column("monitoring_method", sa.String(20), nullable=True),
        _json("daily_success_rates", "'{}'::jsonb"),
        sa.Column("final_success_rate", sa.Float(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="in_progress"),
        _flag("escalated_to_c"),
        sa.Column("escalation_reason", sa.Text(), nullable=True),
        sa.Column(
            "escalated_from_level_a_id",
            sa.String(36),
            sa.ForeignKey("level_a_interventions.id"),
            nullable=True,
        ),
        sa.Column("conference_timestamp", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_level_b_interventions_student_id", "level_b_interventions", ["student_id"])
    op.create_index("ix_level_b_interventions_domain_id", "level_b_interventions", ["domain_id"])
    op.create_index("ix_level_b_interventions_status", "level_b_interventions", ["status"])
    op.create_index(
        "ix_level_b_interventions_monitoring_end_date", "level_b_interventions", ["monitoring_end_date"]
    )

    # =========================================================================
    # Level C
    # =========================================================================
    op.create_table(
        "level_c_cases",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("case_manager_id", sa.String(64), nullable=True),
        sa.Column("case_manager_name", sa.String(200), nullable=True),
        sa.Column("trigger_type", sa.String(40), nullable=False),
        sa.Column("case_type", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("domain_focus_id", sa.Integer(), sa.ForeignKey("behavioral_domains.id"), nullable=True),
        sa.Column("incident_summary", sa.Text(), nullable=True),
        sa.Column("pattern_review", sa.Text(), nullable=True),
        _json("environmental_factors"),
        sa.Column("prior_interventions_summary", sa.Text(), nullable=True),
        _flag("context_packet_completed"),
        sa.Column("admin_response_type", sa.String(30), nullable=True),
        sa.Column("admin_response_details", sa.Text(), nullable=True),
        sa.Column("consequence_start_date", sa.Date(), nullable=True),
        sa.Column("consequence_end_date", sa.Date(), nullable=True),
        _flag("admin_response_completed"),
        sa.Column("support_plan_goal", sa.Text(), nullable=True),
        _json("support_plan_strategies"),
        sa.Column("adult_mentor_id", sa.String(64), nullable=True),
        sa.Column("adult_mentor_name", sa.String(200), nullable=True),
        _json("repair_actions"),
        sa.Column("reentry_date", sa.Date(), nullable=True),
        sa.Column("reentry_type", sa.String(20), nullable=False, server_default="standard"),
        _json("reentry_restrictions"),
        _json("reentry_checklist"),
        _flag("reentry_planning_completed"),
        sa.Column("monitoring_duration_days", sa.Integer(), nullable=False, server_default="10"),
        _json("monitoring_schedule"),
        _json("review_dates"),
        _json("daily_check_ins"),
        sa.Column("monitoring_start_date", sa.Date(), nullable=True),
        sa.Column("closure_criteria", sa.Text(), nullable=True),
        sa.Column("closure_date", sa.Date(), nullable=True),
        sa.Column("outcome_status", sa.String(30), nullable=True),
        sa.Column("outcome_notes", sa.Text(), nullable=True),
        _json("escalated_from_level_b_ids"),
        sa.Column("sis_demerit_points_at_creation", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_level_c_cases_student_id", "level_c_cases", ["student_id"])
    op.create_index("ix_level_c_cases_case_manager_id", "level_c_cases", ["case_manager_id"])
    op.create_index("ix_level_c_cases_status", "level_c_cases", ["status"])

    # =========================================================================
    # Re-entry protocols
    # =========================================================================
    op.create_table(
        "reentry_protocols",
        _uuid_pk(),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("source_type", sa.String(20), nullable=False),
        sa.Column("level_b_id", sa.String(36), sa.ForeignKey("level_b_interventions.id"), nullable=True),
        sa.Column("level_c_id", sa.String(36), sa.ForeignKey("level_c_cases.id"), nullable=True),
        sa.Column("reentry_date", sa.Date(), nullable=False),
        sa.Column("reentry_time", sa.String(8), nullable=True),
        sa.Column("receiving_teacher_id", sa.String(64), nullable=True),
        sa.Column("receiving_teacher_name", sa.String(200), nullable=True),
        _json("readiness_checklist"),
        sa.Column("readiness_verified_by", sa.String(200), nullable=True),
        sa.Column("readiness_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("teacher_script", sa.Text(), nullable=True),
        sa.Column("reset_goal_from_intervention", sa.Text(), nullable=True),
        _flag("first_behavioral_rep_completed"),
        sa.Column("monitoring_start_date", sa.Date(), nullable=True),
        sa.Column("monitoring_end_date", sa.Date(), nullable=True),
        sa.Column("monitoring_type", sa.String(10), nullable=True),
        sa.Column("monitoring_method", sa.String(20), nullable=True),
        _json("daily_logs"),
        sa.Column("outcome", sa.String(20), nullable=True),
        sa.Column("outcome_notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("ix_reentry_protocols_student_id", "reentry_protocols", ["student_id"])
    op.create_index("ix_reentry_protocols_reentry_date", "reentry_protocols", ["reentry_date"])
    op.create_index("ix_reentry_protocols_status", "reentry_protocols", ["status"])

    # =========================================================================
    # Analytics snapshots and report history
    # =========================================================================
    op.create_table(
        "analytics_snapshots",
        _uuid_pk(),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("snapshot_type", sa.String(10), nullable=False, server_default="daily"),
        sa.Column("staff_participation_rate", sa.Float(), nullable=True),
        sa.Column("total_points_awarded", sa.Integer(), nullable=True),
        sa.Column("category_balance_score", sa.Float(), nullable=True),
        sa.Column("house_balance_score", sa.Float(), nullable=True),
        sa.Column("health_score", sa.Float(), nullable=True),
        sa.Column("health_status", sa.String(10), nullable=True),
        sa.Column("level_a_count", sa.Integer(), nullable=True),
        sa.Column("level_b_count", sa.Integer(), nullable=True),
        sa.Column("level_c_count", sa.Integer(), nullable=True),
        sa.Column("a_to_b_escalation_rate", sa.Float(), nullable=True),
        sa.Column("b_to_c_escalation_rate", sa.Float(), nullable=True),
        _json("repeat_rates", "'{}'::jsonb"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "snapshot_type IN ('daily', 'weekly', 'monthly')",
            name="ck_analytics_snapshots_type",
        ),
    )
    op.create_index(
        "ix_analytics_snapshots_type_date", "analytics_snapshots", ["snapshot_type", "snapshot_date"]
    )

    op.create_table(
        "report_history",
        _uuid_pk(),
        sa.Column("report_type", sa.String(30), nullable=False),
        sa.Column("report_name", sa.String(200), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        _json("report_data", "'{}'::jsonb"),
        sa.Column("generated_by", sa.String(200), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_report_history_report_type", "report_history", ["report_type"])


def downgrade() -> None:
    """Drop all intervention framework tables."""
    op.drop_table("report_history")
    op.drop_table("analytics_snapshots")
    op.drop_table("reentry_protocols")
    op.drop_table("level_c_cases")
    op.drop_table("level_b_interventions")
    op.drop_table("level_a_interventions")
    op.drop_table("student_behaviour_patterns")
    op.drop_table("student_behaviour_insights")
    op.drop_table("behaviour_events")
    op.drop_table("behavioral_domains")
