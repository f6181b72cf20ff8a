# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Leadership reporting API endpoints.

Implementation metrics (participation, points, balance scores, alerts and
the health score) are computed by the points system and supplied in the
request body.

Endpoints:
- POST /reports/weekly-digest - Preview, send and archive the weekly digest
- POST /reports/quarterly - Quarterly board report
- POST /reports/snapshots - Store a metrics snapshot
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, status

from src.api.dependencies import DB, CronAuth, Policy
from src.core.config import get_settings
from src.domains.analytics import DigestGenerator, ImplementationMetrics, InterventionAnalyticsService
from src.models.analytics import (
    ImplementationMetricsRequest,
    QuarterlyReportRequest,
    QuarterlyReportResponse,
    SnapshotRequest,
    SnapshotResponse,
    WeeklyDigestRequest,
    WeeklyDigestResponse,
)
from src.utils.datetime import day_end, day_start

logger = logging.getLogger(__name__)

router = APIRouter()


def _metrics(request: ImplementationMetricsRequest) -> ImplementationMetrics:
    return ImplementationMetrics(**request.model_dump())


@router.post(
    "/weekly-digest",
    response_model=WeeklyDigestResponse,
    summary="Generate the weekly digest",
)
async def weekly_digest(request: WeeklyDigestRequest, db: DB, policy: Policy) -> WeeklyDigestResponse:
    """Generate the weekly digest.

    With ``send`` the digest is emailed to the configured digest
    recipients; with ``save`` it is archived in report history.
    """
    generator = DigestGenerator(db, policy=policy)
    digest = await generator.generate_weekly_digest(
        request.start_date, request.end_date, metrics=_metrics(request.metrics)
    )

    emails_sent = 0
    if request.send:
        recipients = get_settings().notifications.digest_recipients_list
        emails_sent = await generator.send_weekly_digest_emails(digest, recipients)

    report_id = None
    if request.save:
        report_id = await generator.save_report_to_history(
            "WEEKLY_DIGEST",
            digest.report_name,
            digest.week_start,
            digest.week_end,
            digest.to_dict(),
        )

    return WeeklyDigestResponse(**digest.to_dict(), emails_sent=emails_sent, report_id=report_id)


@router.post(
    "/weekly-digest/send",
    response_model=WeeklyDigestResponse,
    dependencies=[CronAuth],
    summary="Send the weekly digest (cron)",
)
async def send_weekly_digest(request: WeeklyDigestRequest, db: DB, policy: Policy) -> WeeklyDigestResponse:
    """Cron entry point: always sends and archives."""
    return await weekly_digest(request.model_copy(update={"send": True, "save": True}), db, policy)


@router.post(
    "/quarterly",
    response_model=QuarterlyReportResponse,
    summary="Generate the quarterly board report",
)
async def quarterly_report(
    request: QuarterlyReportRequest,
    db: DB,
    policy: Policy,
) -> QuarterlyReportResponse:
    generator = DigestGenerator(db, policy=policy)
    report = await generator.generate_quarterly_report(
        request.quarter,
        request.year,
        request.start_date,
        request.end_date,
        metrics=_metrics(request.metrics),
    )

    report_id = None
    if request.save:
        report_id = await generator.save_report_to_history(
            "QUARTERLY_BOARD",
            report.report_name,
            request.start_date,
            request.end_date,
            report.to_dict(),
            generated_by=request.generated_by,
        )

    return QuarterlyReportResponse(**report.to_dict(), report_id=report_id)


@router.post(
    "/snapshots",
    response_model=SnapshotResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[CronAuth],
    summary="Store an analytics snapshot",
)
async def record_snapshot(request: SnapshotRequest, db: DB, policy: Policy) -> SnapshotResponse:
    """Store implementation metrics with the intervention figures for the period.

    The period is the 30 days ending on the snapshot date.
    """
    end = day_end(request.snapshot_date)
    start = day_start(request.snapshot_date - timedelta(days=29))

    analytics = InterventionAnalyticsService(db, policy)
    summary = await analytics.get_summary(start, end)
    escalation = await analytics.get_escalation_metrics(start, end)
    domains = await analytics.get_domain_metrics(start, end)

    snapshot = await DigestGenerator(db, policy=policy).record_snapshot(
        request.snapshot_date,
        request.snapshot_type,
        _metrics(request.metrics),
        summary=summary,
        escalation_rates=(float(escalation.a_to_b_rate), float(escalation.b_to_c_rate)),
        repeat_rates={metric.domain_key: metric.repeat_rate for metric in domains},
    )
    return SnapshotResponse.model_validate(snapshot)
