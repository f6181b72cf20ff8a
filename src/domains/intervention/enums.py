# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enumerations for the A/B/C intervention framework.

Values are the strings persisted in the intervention tables.
"""

from enum import Enum


class InterventionLevel(str, Enum):
    """Intervention tier."""

    A = "A"
    B = "B"
    C = "C"


class LevelAInterventionType(str, Enum):
    """Quick-response tactics used in the moment."""

    PRE_CORRECT = "pre_correct"
    POSITIVE_NARRATION = "positive_narration"
    QUICK_REDIRECT = "quick_redirect"
    REDO = "redo"
    CHOICE_CONSEQUENCE = "choice_consequence"
    PRIVATE_CHECK = "private_check"
    MICRO_REPAIR = "micro_repair"
    QUICK_REINFORCEMENT = "quick_reinforcement"


LEVEL_A_INTERVENTION_LABELS: dict[LevelAInterventionType, str] = {
    LevelAInterventionType.PRE_CORRECT: "Pre-Correct",
    LevelAInterventionType.POSITIVE_NARRATION: "Positive Narration",
    LevelAInterventionType.QUICK_REDIRECT: "Quick Redirect",
    LevelAInterventionType.REDO: '"Do It Again" Redo',
    LevelAInterventionType.CHOICE_CONSEQUENCE: "Choice + Consequence",
    LevelAInterventionType.PRIVATE_CHECK: "Brief Private Check",
    LevelAInterventionType.MICRO_REPAIR: "Micro-Repair",
    LevelAInterventionType.QUICK_REINFORCEMENT: "Quick Reinforcement",
}


class LevelAOutcome(str, Enum):
    """Student response to a Level A intervention."""

    COMPLIED = "complied"
    ESCALATED = "escalated"
    PARTIAL = "partial"


class EscalationTrigger(str, Enum):
    """Conditions that move an incident from Level A to Level B."""

    DEMERIT_ASSIGNED = "demerit_assigned"
    THIRD_INCIDENT_10DAYS = "3rd_incident_10days"
    IGNORED_2PLUS_PROMPTS = "ignored_2plus_prompts"
    PEER_IMPACT = "peer_impact"
    SPACE_DISRUPTION = "space_disruption"
    SAFETY_RISK = "safety_risk"
    THRESHOLD_10_POINTS = "threshold_10_points"


ESCALATION_TRIGGER_LABELS: dict[EscalationTrigger, str] = {
    EscalationTrigger.DEMERIT_ASSIGNED: "Demerit Assigned",
    EscalationTrigger.THIRD_INCIDENT_10DAYS: "3rd Incident in 10 Days (Same Domain)",
    EscalationTrigger.IGNORED_2PLUS_PROMPTS: "Ignored 2+ Prompts",
    EscalationTrigger.PEER_IMPACT: "Peer Impact",
    EscalationTrigger.SPACE_DISRUPTION: "Shared Space Disruption",
    EscalationTrigger.SAFETY_RISK: "Safety Risk",
    EscalationTrigger.THRESHOLD_10_POINTS: "10+ SIS Demerit Points",
}


class LevelBStatus(str, Enum):
    """Lifecycle of a Level B reset conference."""

    IN_PROGRESS = "in_progress"
    MONITORING = "monitoring"
    COMPLETED_SUCCESS = "completed_success"
    COMPLETED_ESCALATED = "completed_escalated"
    CANCELLED = "cancelled"


class MonitoringMethod(str, Enum):
    """How a Level B monitoring window is tracked."""

    CHECKLIST = "checklist"
    VERBAL_CHECK = "verbal_check"
    WRITTEN_LOG = "written_log"


class LevelCTriggerType(str, Enum):
    """Conditions that open a Level C case."""

    SAFETY_INCIDENT = "safety_incident"
    NO_IMPROVEMENT_2_LEVEL_B = "no_improvement_2_level_b"
    CHRONIC_PATTERN = "chronic_pattern"
    POST_OSS_REENTRY = "post_oss_reentry"
    THRESHOLD_20_POINTS = "threshold_20_points"
    THRESHOLD_30_POINTS = "threshold_30_points"
    THRESHOLD_35_POINTS = "threshold_35_points"
    THRESHOLD_40_POINTS = "threshold_40_points"
    ADMIN_REFERRAL = "admin_referral"


class LevelCCaseType(str, Enum):
    """Case intensity."""

    STANDARD = "standard"
    LITE = "lite"
    INTENSIVE = "intensive"


class AdminResponseType(str, Enum):
    """Administrative consequence recorded on a Level C case."""

    DETENTION = "detention"
    ISS = "iss"
    OSS = "oss"
    BEHAVIOR_CONTRACT = "behavior_contract"
    PARENT_CONFERENCE = "parent_conference"
    OTHER = "other"


class LevelCStatus(str, Enum):
    """Phase of a Level C case."""

    ACTIVE = "active"
    CONTEXT_PACKET = "context_packet"
    ADMIN_RESPONSE = "admin_response"
    PENDING_REENTRY = "pending_reentry"
    MONITORING = "monitoring"
    CLOSED = "closed"


class LevelCOutcome(str, Enum):
    """Closure outcome of a Level C case."""

    CLOSED_SUCCESS = "closed_success"
    CLOSED_CONTINUED_SUPPORT = "closed_continued_support"
    CLOSED_ESCALATED = "closed_escalated"


class ReentryType(str, Enum):
    """Conditions placed on a student's return to class."""

    STANDARD = "standard"
    RESTRICTED = "restricted"


class ReentrySourceType(str, Enum):
    """Consequence a re-entry follows."""

    LEVEL_B = "level_b"
    DETENTION = "detention"
    ISS = "iss"
    OSS = "oss"


class ReentryMonitoringType(str, Enum):
    """Length of the re-entry monitoring window."""

    THREE_DAY = "3_day"
    FIVE_DAY = "5_day"
    TEN_DAY = "10_day"


class ReentryStatus(str, Enum):
    """Lifecycle of a re-entry protocol."""

    PENDING = "pending"
    READY = "ready"
    ACTIVE = "active"
    COMPLETED = "completed"


class ReentryOutcome(str, Enum):
    """Final outcome of a re-entry monitoring period."""

    SUCCESS = "success"
    PARTIAL = "partial"
    ESCALATED = "escalated"


ADMIN_RESPONSE_REENTRY_SOURCES: dict[AdminResponseType, ReentrySourceType] = {
    AdminResponseType.DETENTION: ReentrySourceType.DETENTION,
    AdminResponseType.ISS: ReentrySourceType.ISS,
    AdminResponseType.OSS: ReentrySourceType.OSS,
}
