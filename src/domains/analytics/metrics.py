# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention analytics result types and pure aggregation helpers.

Everything here works on plain values. The database side lives in
InterventionAnalyticsService.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from src.utils.datetime import day_end, day_start, ensure_utc, format_iso, start_of_week


def percentage(numerator: int, denominator: int) -> int:
    """Rounded percentage, 0 when the denominator is 0."""
    if denominator <= 0:
        return 0
    return round(numerator / denominator * 100)


def is_distribution_healthy(level_a: int, level_b: int, level_c: int, min_a_share: float) -> bool:
    """Most incidents should resolve at the lightest tier.

    Healthy when A >= B >= C and Level A makes up at least ``min_a_share``
    of all tiers. No records at all counts as healthy.
    """
    total = level_a + level_b + level_c
    if total == 0:
        return True
    return level_a >= level_b >= level_c and level_a / total >= min_a_share


def week_buckets(today: date, weeks: int, week_start: int = 0) -> list[tuple[date, date]]:
    """Trailing calendar weeks ending with the current one, oldest first.

    Returns:
        List of (first day, last day) pairs.
    """
    current = start_of_week(today, week_start)
    buckets = []
    for offset in range(weeks - 1, -1, -1):
        first = current - timedelta(weeks=offset)
        buckets.append((first, first + timedelta(days=6)))
    return buckets


def bucket_bounds(first: date, last: date) -> tuple[datetime, datetime]:
    """Inclusive UTC timestamp range covering whole days."""
    return day_start(first), day_end(last)


def humanize(value: str) -> str:
    return value.replace("_", " ")


@dataclass
class InterventionSummary:
    """Record counts per tier in a date range."""

    level_a_count: int = 0
    level_b_count: int = 0
    level_c_count: int = 0
    reentry_count: int = 0
    distribution_healthy: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "level_a_count": self.level_a_count,
            "level_b_count": self.level_b_count,
            "level_c_count": self.level_c_count,
            "reentry_count": self.reentry_count,
            "distribution_healthy": self.distribution_healthy,
        }


@dataclass
class DomainMetrics:
    """Volume and repeat rate for one behavioural domain."""

    domain_key: str
    domain_name: str
    level_a_count: int = 0
    level_b_count: int = 0
    repeat_rate: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain_key": self.domain_key,
            "domain_name": self.domain_name,
            "level_a_count": self.level_a_count,
            "level_b_count": self.level_b_count,
            "repeat_rate": self.repeat_rate,
        }


@dataclass
class EscalationMetrics:
    """How often each tier escalates to the next."""

    a_to_b_count: int = 0
    a_to_b_rate: int = 0
    b_to_c_count: int = 0
    b_to_c_rate: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "a_to_b_count": self.a_to_b_count,
            "a_to_b_rate": self.a_to_b_rate,
            "b_to_c_count": self.b_to_c_count,
            "b_to_c_rate": self.b_to_c_rate,
        }


@dataclass
class OutcomeMetrics:
    """Success rates of completed Level B, Level C and re-entry records."""

    level_b_completed: int = 0
    level_b_success_rate: int = 0
    level_c_completed: int = 0
    level_c_success_rate: int = 0
    reentry_completed: int = 0
    reentry_success_rate: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "level_b_completed": self.level_b_completed,
            "level_b_success_rate": self.level_b_success_rate,
            "level_c_completed": self.level_c_completed,
            "level_c_success_rate": self.level_c_success_rate,
            "reentry_completed": self.reentry_completed,
            "reentry_success_rate": self.reentry_success_rate,
        }


@dataclass
class TrendPoint:
    """Tier counts for one week."""

    week_start: date
    level_a: int = 0
    level_b: int = 0
    level_c: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.week_start.isoformat(),
            "level_a": self.level_a,
            "level_b": self.level_b,
            "level_c": self.level_c,
        }


@dataclass
class ActivityItem:
    """One entry of the recent activity feed."""

    id: str
    type: str
    student_id: str
    description: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "student_id": self.student_id,
            "description": self.description,
            "timestamp": format_iso(self.timestamp),
        }


def merge_recent_activity(items: Iterable[ActivityItem], limit: int) -> list[ActivityItem]:
    """Newest first across all tiers, capped at ``limit``."""
    return sorted(items, key=lambda item: ensure_utc(item.timestamp), reverse=True)[:limit]


@dataclass
class InterventionDashboard:
    """Everything the intervention analytics dashboard shows."""

    period_start: datetime
    period_end: datetime
    summary: InterventionSummary
    domain_metrics: list[DomainMetrics] = field(default_factory=list)
    escalation_metrics: EscalationMetrics = field(default_factory=EscalationMetrics)
    outcome_metrics: OutcomeMetrics = field(default_factory=OutcomeMetrics)
    weekly_trends: list[TrendPoint] = field(default_factory=list)
    recent_activity: list[ActivityItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "period_start": format_iso(self.period_start),
            "period_end": format_iso(self.period_end),
            "summary": self.summary.to_dict(),
            "domain_metrics": [metric.to_dict() for metric in self.domain_metrics],
            "escalation_metrics": self.escalation_metrics.to_dict(),
            "outcome_metrics": self.outcome_metrics.to_dict(),
            "weekly_trends": [point.to_dict() for point in self.weekly_trends],
            "recent_activity": [item.to_dict() for item in self.recent_activity],
        }
