# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics domain services.

This module provides read-only analytics over the intervention framework
and the leadership reporting built on implementation metrics:
- Intervention dashboard (tier distribution, domains, escalation,
  outcomes, weekly trends, recent activity)
- Weekly implementation digest with insights and recommended actions
- Quarterly board report compared against the previous monthly snapshot

Usage:
    from src.domains.analytics import InterventionAnalyticsService

    service = InterventionAnalyticsService(db=db_session)
    dashboard = await service.get_dashboard(start, end)

    from src.domains.analytics import DigestGenerator

    generator = DigestGenerator(db_session, provider=metrics_provider)
    digest = await generator.generate_weekly_digest(week_start, week_end)
"""

from src.domains.analytics.digest import (
    DigestGenerator,
    ImplementationMetrics,
    ImplementationMetricsProvider,
    KpiRow,
    QuarterlyReport,
    WeeklyDigest,
    generate_actions,
    generate_insights,
)
from src.domains.analytics.metrics import (
    ActivityItem,
    DomainMetrics,
    EscalationMetrics,
    InterventionDashboard,
    InterventionSummary,
    OutcomeMetrics,
    TrendPoint,
    is_distribution_healthy,
    percentage,
    week_buckets,
)
from src.domains.analytics.service import InterventionAnalyticsService, default_period

__all__ = [
    # Dashboard
    "InterventionAnalyticsService",
    "InterventionDashboard",
    "InterventionSummary",
    "DomainMetrics",
    "EscalationMetrics",
    "OutcomeMetrics",
    "TrendPoint",
    "ActivityItem",
    "default_period",
    "is_distribution_healthy",
    "percentage",
    "week_buckets",
    # Reporting
    "DigestGenerator",
    "ImplementationMetrics",
    "ImplementationMetricsProvider",
    "WeeklyDigest",
    "QuarterlyReport",
    "KpiRow",
    "generate_insights",
    "generate_actions",
]
