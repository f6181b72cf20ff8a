# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention policy thresholds and static reference data.

Every number the intervention framework reasons with lives in
InterventionPolicy. The policy is immutable, loaded once via get_policy()
and passed to services that need it. Behavioural domain definitions,
Level B reflection prompts, reset-goal examples and the default readiness
checklist are module-level immutable constants.

Example:
    >>> from src.core.config.policy import get_policy
    >>> policy = get_policy()
    >>> policy.reentry_duration_days("oss")
    10
"""

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class InterventionPolicy:
    """Fixed thresholds for pattern detection, escalation and analytics.

    Attributes:
        early_concern_demerits: 7-day demerit count that raises early concern.
        context_isolation_share: Share of demerits tied to one class or staff
            member that counts as context isolation.
        strength_keywords: Merit category fragments that mark a strength.
        struggle_keywords: Demerit category fragments that mark a struggle.
        early_concern_confidence: Confidence of an early_concern pattern.
        escalation_confidence: Confidence of an escalation pattern.
        mismatch_confidence: Confidence of a strength_struggle_mismatch pattern.
        insight_lookback_days: Event history loaded per student recompute.
        healthy_level_a_share: Minimum Level A share of all tiers for a
            healthy distribution.
        repeat_window_days: Window for same-domain repeat detection.
        same_domain_pattern_count: Incidents in the repeat window that make a
            pattern student (the new incident included).
        ignored_prompts_trigger: Ignored prompts that trigger Level B.
        level_b_point_threshold: Cumulative points that trigger Level B.
        level_c_point_thresholds: Cumulative point thresholds for Level C,
            ascending.
        level_c_cycles_before_case: Completed Level B cycles after which an
            escalation goes straight to Level C.
        level_b_success_threshold: Mean daily success rate (percent) a Level B
            monitoring window must reach.
        level_b_default_monitoring_days: Monitoring days when no reset-goal
            timeline is set.
        level_b_default_monitoring_method: Monitoring method when none is given.
        reentry_durations: Monitoring days by re-entry source type.
        reentry_methods: Monitoring method by re-entry source type.
        default_reentry_method: Method for source types not in reentry_methods.
        level_c_monitoring_days: Monitoring days by Level C case type.
        level_c_review_interval_days: Days between Level C review dates.
        stale_case_days: Days without update before a pre-monitoring Level C
            case is flagged.
        trend_weeks: Number of weekly trend buckets.
        week_start: Weekday that starts an analytics week (0 = Monday).
        recent_activity_per_tier: Records fetched per tier for the activity feed.
        recent_activity_limit: Default length of the merged activity feed.
        participation_excellent: Participation percent rated excellent.
        participation_moderate: Participation percent rated moderate.
        participation_reminder: Participation percent below which a reminder
            action is recommended.
        participation_target: Quarterly participation target percent.
        engagement_moderate: Participation percent below which quarterly
            engagement is reported as below target.
        inactive_staff_alert: Inactive staff count that produces an insight.
        house_variance_insight: House point variance percent that produces an
            insight.
        house_variance_action: House point variance percent that produces an
            action.
        digest_max_items: Maximum insights and actions in a digest.
    """

    early_concern_demerits: int = 3
    context_isolation_share: float = 0.6
    strength_keywords: tuple[str, ...] = ("leadership", "responsibility")
    struggle_keywords: tuple[str, ...] = ("disruption", "talking")
    early_concern_confidence: float = 0.8
    escalation_confidence: float = 0.9
    mismatch_confidence: float = 0.7
    insight_lookback_days: int = 30

    healthy_level_a_share: float = 0.6
    repeat_window_days: int = 10
    same_domain_pattern_count: int = 3
    ignored_prompts_trigger: int = 2
    level_b_point_threshold: int = 10
    level_c_point_thresholds: tuple[int, ...] = (20, 30, 35, 40)
    level_c_cycles_before_case: int = 2

    level_b_success_threshold: float = 80.0
    level_b_default_monitoring_days: int = 3
    level_b_default_monitoring_method: str = "checklist"

    reentry_durations: Mapping[str, int] = field(
        default_factory=lambda: _frozen({"level_b": 3, "detention": 3, "iss": 5, "oss": 10})
    )
    reentry_methods: Mapping[str, str] = field(
        default_factory=lambda: _frozen({"oss": "intensive", "iss": "check_in_out"})
    )
    default_reentry_method: str = "checklist"

    level_c_monitoring_days: Mapping[str, int] = field(
        default_factory=lambda: _frozen({"lite": 14, "standard": 10, "intensive": 10})
    )
    level_c_review_interval_days: int = 3
    stale_case_days: int = 3

    trend_weeks: int = 8
    week_start: int = 0
    recent_activity_per_tier: int = 5
    recent_activity_limit: int = 10

    participation_excellent: float = 80.0
    participation_moderate: float = 60.0
    participation_reminder: float = 70.0
    participation_target: float = 70.0
    engagement_moderate: float = 50.0
    inactive_staff_alert: int = 5
    house_variance_insight: float = 30.0
    house_variance_action: float = 25.0
    digest_max_items: int = 5

    def reentry_duration_days(self, source_type: str) -> int:
        """Monitoring length for a re-entry source type."""
        return self.reentry_durations[source_type]

    def reentry_method(self, source_type: str) -> str:
        """Monitoring method for a re-entry source type."""
        return self.reentry_methods.get(source_type, self.default_reentry_method)


@lru_cache(maxsize=1)
def get_policy() -> InterventionPolicy:
    """Get the process-wide intervention policy.

    Returns:
        Cached InterventionPolicy instance.
    """
    return InterventionPolicy()


# =============================================================================
# Reference data
# =============================================================================


@dataclass(frozen=True)
class DomainDefinition:
    """Seed definition of a behavioural domain."""

    key: str
    name: str
    description: str
    expectations: tuple[str, ...]
    repair_menu_immediate: tuple[str, ...]
    repair_menu_restorative: tuple[str, ...]


BEHAVIORAL_DOMAINS: tuple[DomainDefinition, ...] = (
    DomainDefinition(
        key="prayer_space",
        name="Prayer Space (Salah & Transitions)",
        description="Sacred space respect, wudu preparation, stillness during prayer, proper entry/exit",
        expectations=(
            "Maintain wudu properly",
            "Enter prayer space with adab",
            "Maintain stillness during salah",
            "Respectful entry and exit transitions",
        ),
        repair_menu_immediate=(
            "Redo entry with adab",
            "Silent line reset",
            "Apologize to affected peers",
            "Reset disrupted space",
        ),
        repair_menu_restorative=(
            "Write reflection on salah adab",
            "Help set up prayer space for next salah",
            "Staff commitment meeting",
        ),
    ),
    DomainDefinition(
        key="hallways",
        name="Hallways & Transitions",
        description="Right-side flow, quiet voices, hands-to-self, respectful spacing",
        expectations=(
            "Walk on right side",
            "Use quiet voices",
            "Keep hands to self",
            "Maintain respectful spacing",
        ),
        repair_menu_immediate=(
            "Redo transition silently",
            "Flow correction practice",
            "Apologize for crowding or disruption",
        ),
        repair_menu_restorative=(
            "Greeting culture repair activity",
            "Reflection note on safety risks",
            "Hallway monitor helper duty",
        ),
    ),
    DomainDefinition(
        key="lunch_recess",
        name="Lunch/Recess & Unstructured Time",
        description="Inclusion behaviors, environmental care, conflict resolution",
        expectations=(
            "Include others in activities",
            "Care for shared space and environment",
            "Resolve conflicts peacefully",
            "Follow adult directions promptly",
        ),
        repair_menu_immediate=(
            "Clean area fully",
            "Specific peer apology",
            "Supervised inclusion invitation to peer",
        ),
        repair_menu_restorative=(
            "Service repair (table/chair reset duty)",
            "Conflict replay writing exercise",
            "Lunch helper duty for week",
        ),
    ),
    DomainDefinition(
        key="respect",
        name="Respect & Community",
        description="Appropriate speech, authority relationships, peer interactions, disagreement with dignity",
        expectations=(
            "Use appropriate and respectful language",
            "Respect authority figures",
            "Treat peers with kindness",
            "Disagree with dignity and respect",
        ),
        repair_menu_immediate=(
            "4-step apology format",
            "Public correction of public disrespect",
            "Private reflection time",
        ),
        repair_menu_restorative=(
            "72-hour respect contract",
            "Community service activity",
            "Restorative circle participation",
        ),
    ),
)

REFLECTION_PROMPTS: tuple[str, ...] = (
    "What happened just before this incident?",
    "How were you feeling at that moment?",
    "Who was affected by your actions?",
    "What expectation did you not meet?",
    "What could you have done differently?",
    "How would you handle this situation next time?",
)

RESET_GOAL_EXAMPLES: Mapping[str, tuple[str, ...]] = _frozen(
    {
        "prayer_space": (
            "Enter the prayer hall with hands at sides and voice off for 3 days",
            "Complete wudu fully before entering prayer space for 3 days",
            "Maintain stillness during salah for 3 consecutive prayers",
        ),
        "hallways": (
            "Walk on the right side with hands to self for 3 days",
            "Use whisper voice during all transitions for 3 days",
            "Keep appropriate spacing from peers during all transitions",
        ),
        "lunch_recess": (
            "Invite at least one different peer to join activities daily",
            "Clean up my eating area completely before leaving for 3 days",
            "Use words instead of physical contact when frustrated",
        ),
        "respect": (
            "Respond to adult directions the first time for 3 days",
            'Use "I disagree because..." instead of arguing for 3 days',
            "Apologize sincerely when I make a mistake that affects others",
        ),
    }
)

DEFAULT_READINESS_CHECKLIST: tuple[str, ...] = (
    "Student can articulate what happened",
    "Student can name the expectation broken",
    "Student has identified repair action",
    "Student can state reset goal",
)

TEACHER_SCRIPT_TEMPLATE = 'Welcome back. Your reset goal is "{goal}". Show me the first rep now.'
