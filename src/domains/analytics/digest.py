# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Weekly implementation digest and quarterly board report.

Implementation metrics (staff participation, point economy, category and
house balance, alerts, consistency and the composite health score) come
from the house points system through an ImplementationMetricsProvider.
The generator turns them into a bounded list of insights and recommended
actions, emails the digest, snapshots metrics for later comparison and
archives every generated report.

Usage:
    from src.domains.analytics import DigestGenerator

    generator = DigestGenerator(db, provider=provider)
    digest = await generator.generate_weekly_digest(week_start, week_end)
    sent = await generator.send_weekly_digest_emails(digest, recipients)
    report_id = await generator.save_report_to_history(
        "WEEKLY_DIGEST", digest.report_name, week_start, week_end, digest.to_dict()
    )
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import InterventionPolicy, get_policy
from src.core.config.settings import Settings, get_settings
from src.domains.analytics.metrics import InterventionSummary
from src.infrastructure.database.models.analytics import AnalyticsSnapshot, ReportHistory
from src.infrastructure.notifications import NotificationService

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

NEXT_QUARTER_DEFAULTS = (
    "Continue monitoring staff engagement patterns",
    "Schedule quarterly calibration session",
    "Review and refresh training materials if needed",
)


@dataclass
class ImplementationMetrics:
    """Implementation metrics for one period.

    Attributes:
        participation_rate: Percent of staff who awarded points, None when
            staff counts are unknown.
        health_score: Composite score computed by the metrics provider.
        health_status: GREEN, AMBER or RED, passed through unchanged.
    """

    participation_rate: float | None = None
    active_staff: int = 0
    total_staff: int = 0
    inactive_staff_count: int = 0
    total_points: int = 0
    total_transactions: int = 0
    category_balance_score: float = 0.0
    category_percentages: dict[str, float] = field(default_factory=dict)
    dominant_category: str | None = None
    category_balanced: bool = False
    house_points: dict[str, int] = field(default_factory=dict)
    house_balance_score: float = 0.0
    house_variance: float = 0.0
    house_balanced: bool = False
    active_alerts: int = 0
    red_alerts: int = 0
    amber_alerts: int = 0
    consistency_score: float = 0.0
    health_score: float = 0.0
    health_status: str = "GREEN"


class ImplementationMetricsProvider(Protocol):
    """Source of implementation metrics for a date range."""

    async def collect(self, start: date, end: date) -> ImplementationMetrics: ...


def generate_insights(metrics: ImplementationMetrics, policy: InterventionPolicy) -> list[str]:
    """Natural-language observations, most important first."""
    insights: list[str] = []

    rate = metrics.participation_rate
    if rate is not None:
        if rate >= policy.participation_excellent:
            insights.append(f"Excellent participation rate at {rate:.0f}%")
        elif rate >= policy.participation_moderate:
            insights.append(f"Participation rate is moderate at {rate:.0f}%")
        else:
            insights.append(f"Participation rate needs attention at {rate:.0f}%")

    if metrics.total_points > 0:
        insights.append(f"{metrics.total_points:,} total points awarded this period")

    if metrics.category_balanced:
        insights.append("Category distribution is well-balanced across the 3Rs")
    elif metrics.dominant_category:
        insights.append(f"{metrics.dominant_category} category is dominant - consider diversifying")

    if metrics.house_balanced:
        insights.append("House point distribution is equitable")
    elif metrics.house_variance > policy.house_variance_insight:
        insights.append(
            f"Significant house imbalance detected ({metrics.house_variance:.0f}% variance)"
        )

    if metrics.red_alerts > 0:
        insights.append(f"{metrics.red_alerts} critical alert(s) require immediate attention")
    elif metrics.active_alerts > 0:
        insights.append(f"{metrics.active_alerts} active alert(s) to review")
    else:
        insights.append("No active alerts - system is healthy")

    return insights[: policy.digest_max_items]


def generate_actions(metrics: ImplementationMetrics, policy: InterventionPolicy) -> list[str]:
    """Recommended follow-ups for leadership."""
    actions: list[str] = []

    if metrics.participation_rate is not None and metrics.participation_rate < policy.participation_reminder:
        actions.append("Send participation reminder to inactive staff")

    if metrics.inactive_staff_count > policy.inactive_staff_alert:
        actions.append(f"Follow up with {metrics.inactive_staff_count} inactive staff members")

    if not metrics.category_balanced and metrics.dominant_category:
        actions.append(
            f"Encourage recognition in categories other than {metrics.dominant_category}"
        )

    if metrics.house_variance > policy.house_variance_action:
        actions.append("Review point distribution patterns by staff")

    if metrics.red_alerts > 0:
        actions.append("Address critical alerts immediately")
    elif metrics.amber_alerts > 0:
        actions.append("Review and address warning-level alerts")

    if not actions:
        actions.append("Continue current implementation practices")
        actions.append("Schedule next huddle to review progress")

    return actions[: policy.digest_max_items]


@dataclass
class WeeklyDigest:
    """Weekly implementation digest."""

    week_start: date
    week_end: date
    metrics: ImplementationMetrics
    insights: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)

    @property
    def report_name(self) -> str:
        return f"Weekly Digest - {self.week_start.isoformat()} to {self.week_end.isoformat()}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response and report history."""
        m = self.metrics
        return {
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "health_status": m.health_status,
            "health_score": m.health_score,
            "participation_rate": m.participation_rate,
            "total_points": m.total_points,
            "active_staff": m.active_staff,
            "total_staff": m.total_staff,
            "insights": self.insights,
            "actions": self.actions,
            "category_balance": m.category_percentages,
            "house_distribution": m.house_points,
            "alerts": {
                "active_count": m.active_alerts,
                "red_count": m.red_alerts,
                "amber_count": m.amber_alerts,
            },
        }


@dataclass
class KpiRow:
    """One line of the quarterly KPI table."""

    name: str
    current: str
    previous: str
    change: str


@dataclass
class QuarterlyReport:
    """Quarterly board report."""

    quarter: str
    year: int
    executive_summary: str
    kpis: list[KpiRow] = field(default_factory=list)
    highlights: list[str] = field(default_factory=list)
    challenges: list[str] = field(default_factory=list)
    next_quarter: list[str] = field(default_factory=list)

    @property
    def report_name(self) -> str:
        return f"Quarterly Board Report - {self.quarter} {self.year}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "quarter": self.quarter,
            "year": self.year,
            "executive_summary": self.executive_summary,
            "kpis": [asdict(kpi) for kpi in self.kpis],
            "highlights": self.highlights,
            "challenges": self.challenges,
            "next_quarter": self.next_quarter,
        }


def _kpi_rows(metrics: ImplementationMetrics, previous: AnalyticsSnapshot | None) -> list[KpiRow]:
    """Current metrics against the previous snapshot.

    Any value without a previous counterpart shows N/A.
    """
    prev_participation = previous.staff_participation_rate if previous else None
    prev_points = previous.total_points_awarded if previous else None
    prev_category = previous.category_balance_score if previous else None
    prev_house = previous.house_balance_score if previous else None

    rate = metrics.participation_rate
    participation = KpiRow(
        name="Staff Participation Rate",
        current=f"{rate:.0f}%" if rate is not None else NOT_AVAILABLE,
        previous=f"{prev_participation:.0f}%" if prev_participation is not None else NOT_AVAILABLE,
        change=(
            f"{rate - prev_participation:+.0f}%"
            if rate is not None and prev_participation is not None
            else NOT_AVAILABLE
        ),
    )
    points = KpiRow(
        name="Total Points Awarded",
        current=f"{metrics.total_points:,}",
        previous=f"{prev_points:,}" if prev_points is not None else NOT_AVAILABLE,
        change=(
            f"{(metrics.total_points - prev_points) / prev_points * 100:+.0f}%"
            if prev_points
            else NOT_AVAILABLE
        ),
    )
    category = KpiRow(
        name="Category Balance Score",
        current=f"{metrics.category_balance_score:.0f}/100",
        previous=f"{prev_category:.0f}/100" if prev_category is not None else NOT_AVAILABLE,
        change=(
            f"{metrics.category_balance_score - prev_category:+.0f}"
            if prev_category is not None
            else NOT_AVAILABLE
        ),
    )
    house = KpiRow(
        name="House Balance Score",
        current=f"{metrics.house_balance_score:.0f}/100",
        previous=f"{prev_house:.0f}/100" if prev_house is not None else NOT_AVAILABLE,
        change=(
            f"{metrics.house_balance_score - prev_house:+.0f}"
            if prev_house is not None
            else NOT_AVAILABLE
        ),
    )
    return [participation, points, category, house]


class DigestGenerator:
    """Generates, sends and archives digests and board reports.

    Attributes:
        _db: Database session.
        policy: Digest thresholds.
    """

    def __init__(
        self,
        db: AsyncSession,
        provider: ImplementationMetricsProvider | None = None,
        policy: InterventionPolicy | None = None,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._db = db
        self._provider = provider
        self.policy = policy or get_policy()
        self._settings = settings or get_settings()
        self._notifications = notifications

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self._settings)
        return self._notifications

    async def _metrics(
        self,
        start: date,
        end: date,
        metrics: ImplementationMetrics | None,
    ) -> ImplementationMetrics:
        if metrics is not None:
            return metrics
        if self._provider is None:
            raise ValueError("Implementation metrics are required when no provider is configured")
        return await self._provider.collect(start, end)

    async def generate_weekly_digest(
        self,
        week_start: date,
        week_end: date,
        metrics: ImplementationMetrics | None = None,
    ) -> WeeklyDigest:
        """Build the weekly digest.

        Args:
            week_start: First day of the digest period.
            week_end: Last day of the digest period.
            metrics: Period metrics; collected from the provider when omitted.

        Returns:
            WeeklyDigest with at most five insights and five actions.
        """
        metrics = await self._metrics(week_start, week_end, metrics)
        digest = WeeklyDigest(
            week_start=week_start,
            week_end=week_end,
            metrics=metrics,
            insights=generate_insights(metrics, self.policy),
            actions=generate_actions(metrics, self.policy),
        )
        logger.info(
            "Generated weekly digest %s to %s (%s)",
            week_start,
            week_end,
            metrics.health_status,
        )
        return digest

    async def send_weekly_digest_emails(self, digest: WeeklyDigest, recipients: list[str]) -> int:
        """Email the digest.

        Returns:
            Number of recipients the digest reached.
        """
        if not recipients:
            logger.warning("No digest recipients configured")
            return 0

        m = digest.metrics
        variables = {
            "week_start": digest.week_start.isoformat(),
            "week_end": digest.week_end.isoformat(),
            "health_status": m.health_status,
            "health_score": f"{m.health_score:.0f}",
            "participation_rate": (
                f"{m.participation_rate:.0f}" if m.participation_rate is not None else NOT_AVAILABLE
            ),
            "total_points": f"{m.total_points:,}",
            "active_staff": m.active_staff,
            "total_staff": m.total_staff,
            "insights": digest.insights,
            "actions": digest.actions,
            "dashboard_url": self.notifications.dashboard_url("/dashboard/tier2-analytics"),
        }
        sent = await self.notifications.send_to_many("weekly_digest", recipients, variables)
        logger.info("Sent weekly digest to %d of %d recipients", sent, len(recipients))
        return sent

    async def generate_quarterly_report(
        self,
        quarter: str,
        year: int,
        start: date,
        end: date,
        metrics: ImplementationMetrics | None = None,
    ) -> QuarterlyReport:
        """Build the quarterly board report.

        KPIs are compared against the most recent monthly snapshot taken
        before ``start``.
        """
        metrics = await self._metrics(start, end, metrics)
        previous = await self.previous_snapshot(start)
        rate = metrics.participation_rate
        target = self.policy.participation_target

        if rate is not None and rate >= target:
            engagement = "strong"
        elif rate is not None and rate >= self.policy.engagement_moderate:
            engagement = "moderate"
        else:
            engagement = "below target"
        summary = (
            f"During {quarter} {year}, the League of Champions system maintained {engagement} "
            f"staff engagement with {metrics.active_staff} active staff members. A total of "
            f"{metrics.total_points:,} merit points were awarded across "
            f"{metrics.total_transactions} transactions."
        )

        highlights = []
        if rate is not None and rate >= target:
            highlights.append(f"Staff participation exceeded {target:.0f}% target")
        if metrics.category_balanced:
            highlights.append("Category balance maintained across the 3Rs framework")
        if metrics.house_balanced:
            highlights.append("House point distribution remained equitable")
        highlights.append(f"{metrics.total_transactions} recognition events recorded")

        challenges = []
        if rate is not None and rate < target:
            challenges.append(f"Staff participation at {rate:.0f}% - below {target:.0f}% target")
        if not metrics.category_balanced and metrics.dominant_category:
            challenges.append(f"{metrics.dominant_category} category dominance requires calibration")
        if metrics.inactive_staff_count > 0:
            challenges.append(f"{metrics.inactive_staff_count} staff members showed no activity")

        next_quarter = list(NEXT_QUARTER_DEFAULTS)
        if rate is not None and rate < target:
            next_quarter.insert(0, "Implement participation improvement initiative")

        if previous is None:
            logger.info("No monthly snapshot before %s; KPI comparison unavailable", start)

        return QuarterlyReport(
            quarter=quarter,
            year=year,
            executive_summary=summary,
            kpis=_kpi_rows(metrics, previous),
            highlights=highlights[: self.policy.digest_max_items],
            challenges=challenges or ["No significant challenges this quarter"],
            next_quarter=next_quarter,
        )

    async def previous_snapshot(self, before: date) -> AnalyticsSnapshot | None:
        """Most recent monthly snapshot taken before ``before``."""
        query = (
            select(AnalyticsSnapshot)
            .where(
                AnalyticsSnapshot.snapshot_type == "monthly",
                AnalyticsSnapshot.snapshot_date < before,
            )
            .order_by(AnalyticsSnapshot.snapshot_date.desc())
            .limit(1)
        )
        return (await self._db.execute(query)).scalar_one_or_none()

    async def record_snapshot(
        self,
        snapshot_date: date,
        snapshot_type: str,
        metrics: ImplementationMetrics,
        summary: InterventionSummary | None = None,
        escalation_rates: tuple[float, float] | None = None,
        repeat_rates: dict[str, int] | None = None,
    ) -> AnalyticsSnapshot:
        """Store a metrics snapshot for later period comparisons."""
        snapshot = AnalyticsSnapshot(
            snapshot_date=snapshot_date,
            snapshot_type=snapshot_type,
            staff_participation_rate=metrics.participation_rate,
            total_points_awarded=metrics.total_points,
            category_balance_score=metrics.category_balance_score,
            house_balance_score=metrics.house_balance_score,
            health_score=metrics.health_score,
            health_status=metrics.health_status,
            repeat_rates=dict(repeat_rates or {}),
        )
        if summary is not None:
            snapshot.level_a_count = summary.level_a_count
            snapshot.level_b_count = summary.level_b_count
            snapshot.level_c_count = summary.level_c_count
        if escalation_rates is not None:
            snapshot.a_to_b_escalation_rate, snapshot.b_to_c_escalation_rate = escalation_rates

        self._db.add(snapshot)
        await self._db.commit()
        await self._db.refresh(snapshot)
        logger.info("Recorded %s analytics snapshot for %s", snapshot_type, snapshot_date)
        return snapshot

    async def save_report_to_history(
        self,
        report_type: str,
        report_name: str,
        period_start: date,
        period_end: date,
        report_data: dict[str, Any],
        generated_by: str | None = None,
    ) -> str | None:
        """Archive a generated report.

        Returns:
            The report id, or None when it could not be stored.
        """
        report = ReportHistory(
            report_type=report_type,
            report_name=report_name,
            period_start=period_start,
            period_end=period_end,
            report_data=report_data,
            generated_by=generated_by,
        )
        try:
            self._db.add(report)
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("Failed to save report %s: %s", report_name, e, exc_info=True)
            return None
        return report.id
