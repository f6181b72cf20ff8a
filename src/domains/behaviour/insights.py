# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rolling-window behaviour insight computation.

Pure functions that turn one student's merit/demerit history into the two
insight snapshots (7d and 30d) and the set of detected pattern tags. No
database access happens here; BehaviourInsightService loads the events and
persists the results.

The reference day is always passed in explicitly so a whole recompute run
works against a single "today".

Window and bucket boundaries:
- A window includes events dated on or after ``today - 7`` (7d) or
  ``today - 30`` (30d).
- Weekly demerit buckets are half-open ranges over the full history:
  [today-7, today), [today-14, today-7), [today-21, today-14).

Example:
    insights = compute_student_insights("S1", events, today=date(2024, 3, 1))
    insights.windows["7d"].risk_level   # "green" | "yellow" | "red"
    [p.pattern_type for p in insights.patterns]
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Protocol, Sequence

from src.core.config.policy import InterventionPolicy, get_policy

TIME_WINDOWS: dict[str, int] = {"7d": 7, "30d": 30}

ESCALATION_MESSAGE = "Demerits are increasing week-over-week for two consecutive weeks."
EARLY_CONCERN_MESSAGE = "Three or more demerits in the last 7 days."
STRENGTH_MISMATCH_INTERPRETATION = "unchannelled_strength"


class EventLike(Protocol):
    """Attributes read from a behaviour event."""

    event_type: str
    event_date: date
    class_context: str | None
    staff_name: str | None
    category: str | None
    subcategory: str | None
    points: int


@dataclass
class ContextIsolation:
    """Demerits concentrated in one class or with one staff member."""

    dimension: str
    value: str
    share: float

    @property
    def label(self) -> str:
        return "class" if self.dimension == "class_context" else "staff member"


@dataclass
class WindowInsight:
    """Insight snapshot for a single time window."""

    time_window: str
    total_merits: int
    total_demerits: int
    net_score: int
    trend: str
    risk_level: str
    escalation: bool
    early_concern: bool
    has_strength_mismatch: bool
    context_isolation: ContextIsolation | None = None
    primary_issue_type: str | None = None
    interpretation: str | None = None

    @property
    def demerit_frequency(self) -> int:
        return self.total_demerits

    def to_record(self) -> dict[str, Any]:
        """Column values for the persisted insight row."""
        return {
            "total_merits": self.total_merits,
            "total_demerits": self.total_demerits,
            "net_score": self.net_score,
            "demerit_frequency": self.demerit_frequency,
            "trend": self.trend,
            "risk_level": self.risk_level,
            "primary_issue_type": self.primary_issue_type,
            "interpretation": self.interpretation,
        }


@dataclass
class DetectedPattern:
    """A pattern tag detected for a student."""

    pattern_type: str
    description: str
    confidence: float


@dataclass
class StudentInsights:
    """Both window snapshots and the detected patterns for one student."""

    student_id: str
    windows: dict[str, WindowInsight] = field(default_factory=dict)
    patterns: list[DetectedPattern] = field(default_factory=list)


def week_demerit_counts(events: Iterable[EventLike], today: date) -> tuple[int, int, int]:
    """Count demerits in the three most recent 7-day buckets.

    Args:
        events: Full event history of the student.
        today: Reference day (bucket 0 ends just before it).

    Returns:
        Counts most-recent-first.
    """
    counts = [0, 0, 0]
    for event in events:
        if event.event_type != "demerit":
            continue
        days_ago = (today - event.event_date).days
        if 1 <= days_ago <= 21:
            counts[(days_ago - 1) // 7] += 1
    return counts[0], counts[1], counts[2]


def trend_from_counts(counts: Sequence[int]) -> str:
    week0, week1, week2 = counts[0], counts[1], counts[2]
    if week0 > week1 > week2:
        return "declining"
    if week0 < week1 < week2:
        return "improving"
    return "stable"


def is_escalating(counts: Sequence[int]) -> bool:
    return counts[0] > counts[1] > counts[2]


def matches_any(events: Iterable[EventLike], keywords: Sequence[str]) -> bool:
    """Check whether any event's category text contains one of the keywords."""
    terms = [keyword.lower() for keyword in keywords]
    for event in events:
        haystack = f"{event.category or ''} {event.subcategory or ''}".lower()
        if any(term in haystack for term in terms):
            return True
    return False


def find_context_isolation(
    demerits: Sequence[EventLike],
    share_threshold: float,
) -> ContextIsolation | None:
    """Find a class or staff member that accounts for most demerits.

    Class context is checked before staff identity; the first dimension
    whose most frequent value reaches the threshold wins.
    """
    if not demerits:
        return None

    total = len(demerits)
    for dimension in ("class_context", "staff_name"):
        counts = Counter(getattr(event, dimension) for event in demerits if getattr(event, dimension))
        if not counts:
            continue
        value, count = counts.most_common(1)[0]
        if count / total >= share_threshold:
            return ContextIsolation(
                dimension="class_context" if dimension == "class_context" else "staff",
                value=value,
                share=count / total,
            )
    return None


def compute_window_insight(
    events: Sequence[EventLike],
    time_window: str,
    today: date,
    policy: InterventionPolicy | None = None,
) -> WindowInsight:
    """Compute the insight snapshot for one time window.

    Args:
        events: Full recent event history of the student.
        time_window: "7d" or "30d".
        today: Reference day.
        policy: Thresholds to apply.

    Returns:
        The window snapshot.
    """
    policy = policy or get_policy()
    window_start = today - timedelta(days=TIME_WINDOWS[time_window])
    in_window = [event for event in events if event.event_date >= window_start]

    merits = [event for event in in_window if event.event_type == "merit"]
    demerits = [event for event in in_window if event.event_type == "demerit"]
    net_score = sum(event.points for event in merits) - sum(event.points for event in demerits)

    counts = week_demerit_counts(events, today)
    escalation = is_escalating(counts)
    early_concern = time_window == "7d" and len(demerits) >= policy.early_concern_demerits

    if escalation:
        risk_level = "red"
    elif early_concern:
        risk_level = "yellow"
    else:
        risk_level = "green"

    isolation = find_context_isolation(demerits, policy.context_isolation_share)
    mismatch = matches_any(merits, policy.strength_keywords) and matches_any(
        demerits, policy.struggle_keywords
    )

    if mismatch:
        interpretation = STRENGTH_MISMATCH_INTERPRETATION
    elif escalation:
        interpretation = ESCALATION_MESSAGE
    elif early_concern:
        interpretation = EARLY_CONCERN_MESSAGE
    else:
        interpretation = None

    return WindowInsight(
        time_window=time_window,
        total_merits=len(merits),
        total_demerits=len(demerits),
        net_score=net_score,
        trend=trend_from_counts(counts),
        risk_level=risk_level,
        escalation=escalation,
        early_concern=early_concern,
        has_strength_mismatch=mismatch,
        context_isolation=isolation,
        primary_issue_type="contextual" if isolation else None,
        interpretation=interpretation,
    )


def detect_patterns(
    window_7d: WindowInsight,
    window_30d: WindowInsight,
    policy: InterventionPolicy | None = None,
) -> list[DetectedPattern]:
    """Derive pattern tags from the two window snapshots."""
    policy = policy or get_policy()
    patterns: list[DetectedPattern] = []

    if window_7d.early_concern:
        patterns.append(
            DetectedPattern(
                pattern_type="early_concern",
                description="Three or more demerits recorded within the last 7 days.",
                confidence=policy.early_concern_confidence,
            )
        )

    if window_30d.escalation:
        patterns.append(
            DetectedPattern(
                pattern_type="escalation",
                description=ESCALATION_MESSAGE,
                confidence=policy.escalation_confidence,
            )
        )

    isolation = window_30d.context_isolation
    if isolation is not None:
        patterns.append(
            DetectedPattern(
                pattern_type="context_isolation",
                description=(
                    f"At least {policy.context_isolation_share:.0%} of demerits come from "
                    f"the same {isolation.label} ({isolation.value})."
                ),
                confidence=min(1.0, isolation.share),
            )
        )

    if window_30d.has_strength_mismatch:
        patterns.append(
            DetectedPattern(
                pattern_type="strength_struggle_mismatch",
                description="Leadership/responsibility merits paired with disruption/talking demerits.",
                confidence=policy.mismatch_confidence,
            )
        )

    return patterns


def compute_student_insights(
    student_id: str,
    events: Sequence[EventLike],
    today: date,
    policy: InterventionPolicy | None = None,
) -> StudentInsights:
    """Compute both window snapshots and the pattern set for a student.

    Args:
        student_id: Student identifier.
        events: The student's events over at least the trailing 30 days.
        today: Reference day, shared by the whole recompute run.
        policy: Thresholds to apply.

    Returns:
        StudentInsights with "7d" and "30d" windows and detected patterns.
    """
    policy = policy or get_policy()
    windows = {
        time_window: compute_window_insight(events, time_window, today, policy)
        for time_window in TIME_WINDOWS
    }
    return StudentInsights(
        student_id=student_id,
        windows=windows,
        patterns=detect_patterns(windows["7d"], windows["30d"], policy),
    )
