# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention framework schemas.

Request models validate enum values and field shapes at the API boundary.
Response models are read straight from the ORM records.
"""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.domains.intervention.enums import (
    AdminResponseType,
    EscalationTrigger,
    InterventionLevel,
    LevelAInterventionType,
    LevelAOutcome,
    LevelCCaseType,
    LevelCOutcome,
    LevelCTriggerType,
    MonitoringMethod,
    ReentryOutcome,
    ReentrySourceType,
    ReentryType,
)


class StaffIdentity(BaseModel):
    """Acting staff member, resolved by the caller's authentication layer."""

    staff_id: str | None = Field(default=None, max_length=64, description="Staff identifier")
    staff_name: str = Field(min_length=1, max_length=200, description="Staff display name")


# ============================================================================
# Domains and decision tree
# ============================================================================


class BehavioralDomainResponse(BaseModel):
    """Behavioural domain with expectations and repair menus."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    domain_key: str
    domain_name: str
    description: str | None = None
    expectations: list[str]
    repair_menu_immediate: list[str]
    repair_menu_restorative: list[str]


class IncidentAssessmentRequest(BaseModel):
    """Observed facts about an incident."""

    student_id: str = Field(min_length=1, max_length=64)
    domain_id: int = Field(description="Behavioural domain ID")
    is_safety_incident: bool = False
    demerit_assigned: bool = False
    ignored_prompts: int = Field(default=0, ge=0, description="Prompts the student ignored")
    affected_peers: bool = False
    disrupted_space: bool = False
    is_safety_risk: bool = False
    cumulative_points: int = Field(default=0, ge=0, description="Demerit points accumulated this term")


class LoggingCheckRequest(BaseModel):
    """Facts needed to apply the Level A logging rule."""

    student_id: str = Field(min_length=1, max_length=64)
    domain_id: int = Field(description="Behavioural domain ID")
    affected_others: bool = False


class EscalationSummaryResponse(BaseModel):
    """Display summary for a recommended level."""

    level: InterventionLevel
    color: Literal["green", "yellow", "red"]
    title: str
    description: str


class DecisionResponse(BaseModel):
    """Recommended intervention level with its reasons."""

    recommended_level: InterventionLevel
    reasons: list[str]
    is_pattern_student: bool
    prior_level_b_count: int
    summary: EscalationSummaryResponse


class LoggingDecisionResponse(BaseModel):
    """Whether a Level A intervention should be logged."""

    should_log: bool
    reason: str


# ============================================================================
# Level A
# ============================================================================


class LevelACreateRequest(StaffIdentity):
    """Record an in-the-moment coaching intervention."""

    student_id: str = Field(min_length=1, max_length=64)
    domain_id: int = Field(description="Behavioural domain ID")
    intervention_type: LevelAInterventionType
    behavior_description: str | None = None
    location: str | None = Field(default=None, max_length=200)
    outcome: LevelAOutcome = LevelAOutcome.COMPLIED
    affected_others: bool = False
    escalation_trigger: EscalationTrigger | None = Field(
        default=None,
        description="Trigger observed during the incident; escalates to Level B",
    )


class LevelAResponse(BaseModel):
    """Stored Level A intervention."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    staff_id: str | None = None
    staff_name: str
    domain_id: int | None = None
    intervention_type: str
    behavior_description: str | None = None
    location: str | None = None
    outcome: str
    escalated_to_b: bool
    is_repeated_same_day: bool
    affected_others: bool
    is_pattern_student: bool
    event_timestamp: datetime


class LevelAStatsResponse(BaseModel):
    """Level A statistics for a student."""

    total_count: int
    by_domain: dict[str, int]
    by_outcome: dict[str, int]
    escalation_rate: float = Field(description="Percent of interventions escalated to Level B")


# ============================================================================
# Level B
# ============================================================================


class LevelBCreateRequest(StaffIdentity):
    """Open a Level B reset conference."""

    student_id: str = Field(min_length=1, max_length=64)
    domain_id: int = Field(description="Behavioural domain ID")
    escalation_trigger: EscalationTrigger
    escalated_from_level_a_id: str | None = None


class LevelBStepData(BaseModel):
    """Partial update for one or more protocol steps."""

    model_config = ConfigDict(extra="forbid")

    b1_regulate_completed: bool | None = None
    b1_regulate_notes: str | None = None
    b2_pattern_naming_completed: bool | None = None
    b2_pattern_notes: str | None = None
    b3_reflection_completed: bool | None = None
    b3_reflection_prompts_used: list[str] | None = None
    b4_repair_completed: bool | None = None
    b4_repair_action_selected: str | None = None
    b5_replacement_completed: bool | None = None
    b5_replacement_skill_practiced: str | None = None
    b6_reset_goal_completed: bool | None = None
    b6_reset_goal: str | None = None
    b6_reset_goal_timeline_days: int | None = Field(default=None, ge=1, le=30)
    b7_documentation_completed: bool | None = None
    monitoring_method: MonitoringMethod | None = None


class LevelBStepUpdateRequest(BaseModel):
    """Update a protocol step."""

    step: int = Field(ge=1, le=7, description="Protocol step 1-7")
    data: LevelBStepData


class DailySuccessRateRequest(BaseModel):
    """Daily monitoring result."""

    day: date = Field(description="Monitoring day")
    success_rate: float = Field(ge=0, le=100, description="Success rate percent")


class CompleteMonitoringRequest(BaseModel):
    """Close a Level B monitoring window."""

    escalate: bool | None = Field(
        default=None,
        description="Force the outcome; decided by the success threshold when omitted",
    )
    escalation_reason: str | None = None


class LevelBResponse(BaseModel):
    """Stored Level B intervention."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    staff_id: str | None = None
    staff_name: str
    domain_id: int | None = None
    escalation_trigger: str
    b1_regulate_completed: bool
    b1_regulate_notes: str | None = None
    b2_pattern_naming_completed: bool
    b2_pattern_notes: str | None = None
    b3_reflection_completed: bool
    b3_reflection_prompts_used: list[str]
    b4_repair_completed: bool
    b4_repair_action_selected: str | None = None
    b5_replacement_completed: bool
    b5_replacement_skill_practiced: str | None = None
    b6_reset_goal_completed: bool
    b6_reset_goal: str | None = None
    b6_reset_goal_timeline_days: int | None = None
    b7_documentation_completed: bool
    monitoring_start_date: date | None = None
    monitoring_end_date: date | None = None
    monitoring_method: str | None = None
    daily_success_rates: dict[str, float]
    final_success_rate: float | None = None
    status: str
    escalated_to_c: bool
    escalation_reason: str | None = None
    escalated_from_level_a_id: str | None = None
    conference_timestamp: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def completion_percentage(self) -> int:
        """Percent of the 7 protocol steps completed."""
        flags = [
            self.b1_regulate_completed,
            self.b2_pattern_naming_completed,
            self.b3_reflection_completed,
            self.b4_repair_completed,
            self.b5_replacement_completed,
            self.b6_reset_goal_completed,
            self.b7_documentation_completed,
        ]
        return round(sum(flags) / 7 * 100)


class LevelACreateResponse(BaseModel):
    """Level A record and the Level B it escalated to, if any."""

    intervention: LevelAResponse
    level_b: LevelBResponse | None = None


# ============================================================================
# Level C
# ============================================================================


class LevelCCreateRequest(BaseModel):
    """Open a Level C case."""

    student_id: str = Field(min_length=1, max_length=64)
    trigger_type: LevelCTriggerType
    case_type: LevelCCaseType | None = Field(
        default=None, description="Derived from the trigger when omitted"
    )
    domain_focus_id: int | None = None
    escalated_from_level_b_ids: list[str] = Field(default_factory=list)
    sis_demerit_points_at_creation: int | None = Field(default=None, ge=0)
    case_manager_id: str | None = None
    case_manager_name: str | None = None


class CaseManagerRequest(BaseModel):
    """Assign a case manager."""

    case_manager_id: str = Field(min_length=1, max_length=64)
    case_manager_name: str = Field(min_length=1, max_length=200)


class ContextPacketRequest(BaseModel):
    """Partial context packet update."""

    incident_summary: str | None = None
    pattern_review: str | None = None
    environmental_factors: list[str] | None = None
    prior_interventions_summary: str | None = None


class AdminResponseRequest(BaseModel):
    """Administrative response to a case."""

    admin_response_type: AdminResponseType
    admin_response_details: str | None = None
    consequence_start_date: date | None = None
    consequence_end_date: date | None = None


class RepairActionItem(BaseModel):
    """Repair action in a support plan."""

    action: str = Field(min_length=1)
    type: Literal["immediate", "restorative"]
    status: Literal["pending", "in_progress", "completed"] = "pending"
    completed_at: datetime | None = None
    notes: str | None = None


class ReentryPlanRequest(BaseModel):
    """Support and re-entry plan for a case."""

    support_plan_goal: str = Field(min_length=1)
    support_plan_strategies: list[str] = Field(default_factory=list)
    adult_mentor_id: str | None = None
    adult_mentor_name: str | None = None
    repair_actions: list[RepairActionItem] = Field(default_factory=list)
    reentry_date: date
    reentry_type: ReentryType = ReentryType.STANDARD
    reentry_restrictions: list[str] = Field(default_factory=list)
    receiving_teacher_id: str | None = None
    receiving_teacher_name: str | None = None


class PointTriggerResponse(BaseModel):
    """Highest Level C threshold reached by a point total."""

    points: int
    trigger_type: LevelCTriggerType | None = None


class StartCaseMonitoringRequest(BaseModel):
    """Start a case's monitoring period."""

    start_date: date | None = Field(default=None, description="Defaults to the re-entry date")


class CaseCheckInRequest(BaseModel):
    """Daily case check-in."""

    day: date
    notes: str = ""
    success_rate: float | None = Field(default=None, ge=0, le=100)
    check_in_time: str | None = None
    check_out_time: str | None = None
    logged_by: str = Field(min_length=1)


class CloseCaseRequest(BaseModel):
    """Close a case."""

    outcome_status: LevelCOutcome
    outcome_notes: str | None = None
    closure_criteria: str | None = None


class LevelCResponse(BaseModel):
    """Stored Level C case."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    case_manager_id: str | None = None
    case_manager_name: str | None = None
    trigger_type: str
    case_type: str
    domain_focus_id: int | None = None
    incident_summary: str | None = None
    pattern_review: str | None = None
    environmental_factors: list[str]
    prior_interventions_summary: str | None = None
    context_packet_completed: bool
    admin_response_type: str | None = None
    admin_response_details: str | None = None
    consequence_start_date: date | None = None
    consequence_end_date: date | None = None
    admin_response_completed: bool
    support_plan_goal: str | None = None
    support_plan_strategies: list[str]
    adult_mentor_id: str | None = None
    adult_mentor_name: str | None = None
    repair_actions: list[dict[str, Any]]
    reentry_date: date | None = None
    reentry_type: str
    reentry_restrictions: list[str]
    reentry_checklist: list[dict[str, Any]]
    reentry_planning_completed: bool
    monitoring_duration_days: int
    monitoring_start_date: date | None = None
    monitoring_schedule: list[dict[str, Any]]
    review_dates: list[str]
    daily_check_ins: list[dict[str, Any]]
    closure_criteria: str | None = None
    closure_date: date | None = None
    outcome_status: str | None = None
    outcome_notes: str | None = None
    escalated_from_level_b_ids: list[str]
    sis_demerit_points_at_creation: int | None = None
    status: str
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Re-entry
# ============================================================================


class ReentryCreateRequest(BaseModel):
    """Create a re-entry protocol."""

    student_id: str = Field(min_length=1, max_length=64)
    source_type: ReentrySourceType
    reentry_date: date
    level_b_id: str | None = None
    level_c_id: str | None = None
    reentry_time: str | None = Field(default=None, max_length=8)
    receiving_teacher_id: str | None = None
    receiving_teacher_name: str | None = None
    reset_goal: str | None = Field(default=None, description="Reset goal carried from the intervention")


class ChecklistItem(BaseModel):
    """Readiness checklist entry."""

    item: str = Field(min_length=1)
    completed: bool = False
    completed_at: datetime | None = None
    completed_by: str | None = None


class ReadinessChecklistRequest(BaseModel):
    """Replace a protocol's readiness checklist."""

    checklist: list[ChecklistItem] = Field(min_length=1)
    verified_by: str | None = Field(default=None, description="Required once every item is complete")


class TeacherScriptRequest(BaseModel):
    """Reset goal for the receiving teacher's script."""

    goal: str = Field(min_length=1)


class DailyLogRequest(BaseModel):
    """Daily re-entry monitoring entry."""

    day: date
    notes: str = ""
    success_indicators: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    logged_by: str = Field(min_length=1)


class CompleteReentryRequest(BaseModel):
    """Close a re-entry protocol."""

    outcome: ReentryOutcome
    outcome_notes: str | None = None


class ReentryResponse(BaseModel):
    """Stored re-entry protocol."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    source_type: str
    level_b_id: str | None = None
    level_c_id: str | None = None
    reentry_date: date
    reentry_time: str | None = None
    receiving_teacher_id: str | None = None
    receiving_teacher_name: str | None = None
    readiness_checklist: list[dict[str, Any]]
    readiness_verified_by: str | None = None
    readiness_verified_at: datetime | None = None
    teacher_script: str | None = None
    reset_goal_from_intervention: str | None = None
    first_behavioral_rep_completed: bool
    monitoring_start_date: date | None = None
    monitoring_end_date: date | None = None
    monitoring_type: str | None = None
    monitoring_method: str | None = None
    daily_logs: list[dict[str, Any]]
    outcome: str | None = None
    outcome_notes: str | None = None
    completed_at: datetime | None = None
    status: str
    created_at: datetime
    updated_at: datetime


class MonitoringSweepResponse(BaseModel):
    """Result of the daily monitoring sweep."""

    run_date: date
    level_b_closed: list[str]
    level_b_escalated: list[str]
    stale_level_c: list[str]
    overdue_level_c: list[str]
    overdue_reentries: list[str]
    expired_reentries: list[str]
    actions: list[str] = Field(default_factory=list)
    notifications_sent: int


class CancelLevelBRequest(BaseModel):
    """Cancel an open Level B intervention."""

    reason: str | None = None


# ============================================================================
# Lists
# ============================================================================


class LevelAListResponse(BaseModel):
    """Page of Level A interventions."""

    items: list[LevelAResponse]
    total: int
    limit: int
    offset: int


class LevelBListResponse(BaseModel):
    """Page of Level B interventions."""

    items: list[LevelBResponse]
    total: int
    limit: int
    offset: int


class LevelCListResponse(BaseModel):
    """Page of Level C cases."""

    items: list[LevelCResponse]
    total: int
    limit: int
    offset: int


class ReentryListResponse(BaseModel):
    """Page of re-entry protocols."""

    items: list[ReentryResponse]
    total: int
    limit: int
    offset: int


class LevelCReentryPlanResponse(BaseModel):
    """Case after re-entry planning and the protocol it created, if any."""

    case: LevelCResponse
    reentry_protocol: ReentryResponse | None = None
