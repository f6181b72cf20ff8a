# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention domain.

The A/B/C escalation framework: decision tree, Level A quick responses,
the seven-step Level B reset conference, Level C case management,
re-entry protocols and the daily monitoring sweep.
"""

from src.domains.intervention.decision import (
    DecisionResult,
    DecisionTreeService,
    IncidentAssessment,
    LoggingDecision,
    get_escalation_summary,
    level_c_trigger_for_points,
)
from src.domains.intervention.domains import BehavioralDomainService
from src.domains.intervention.exceptions import (
    InterventionError,
    InterventionNotFoundError,
    InterventionValidationError,
    InvalidTransitionError,
)
from src.domains.intervention.level_a import LevelAService, LevelAStats
from src.domains.intervention.level_b import (
    LEVEL_B_STEPS,
    LevelBService,
    calculate_completion_percentage,
    reflection_prompts,
    reset_goal_examples,
)
from src.domains.intervention.level_c import (
    LevelCService,
    build_review_schedule,
    case_type_for_trigger,
)
from src.domains.intervention.monitoring import InterventionMonitor, MonitoringSweepResult
from src.domains.intervention.reentry import (
    ReentryService,
    default_readiness_checklist,
    generate_teacher_script,
)

__all__ = [
    # Services
    "BehavioralDomainService",
    "DecisionTreeService",
    "InterventionMonitor",
    "LevelAService",
    "LevelBService",
    "LevelCService",
    "ReentryService",
    # Results
    "DecisionResult",
    "IncidentAssessment",
    "LevelAStats",
    "LoggingDecision",
    "MonitoringSweepResult",
    # Helpers
    "LEVEL_B_STEPS",
    "build_review_schedule",
    "calculate_completion_percentage",
    "case_type_for_trigger",
    "default_readiness_checklist",
    "generate_teacher_script",
    "get_escalation_summary",
    "level_c_trigger_for_points",
    "reflection_prompts",
    "reset_goal_examples",
    # Errors
    "InterventionError",
    "InterventionNotFoundError",
    "InterventionValidationError",
    "InvalidTransitionError",
]
