# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention analytics API endpoints.

Endpoints:
- GET /interventions/analytics/dashboard - Full intervention dashboard
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from src.api.dependencies import DB, Policy
from src.domains.analytics import InterventionAnalyticsService, default_period
from src.models.analytics import InterventionDashboardResponse
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/dashboard",
    response_model=InterventionDashboardResponse,
    summary="Get intervention dashboard",
    description="Tier counts, domain repeat rates, escalation and outcome rates, "
    "weekly trends and recent activity.",
)
async def get_dashboard(
    db: DB,
    policy: Policy,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    period_days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> InterventionDashboardResponse:
    """Get the intervention analytics dashboard.

    Args:
        db: Database session.
        policy: Intervention policy.
        start_date: Range start; defaults to ``period_days`` before the end.
        end_date: Range end; defaults to now.
        period_days: Length of the default range.

    Returns:
        InterventionDashboardResponse for the range.

    Raises:
        HTTPException: If the range is reversed.
    """
    now = utc_now()
    end = ensure_utc(end_date) if end_date else now
    start = ensure_utc(start_date) if start_date else default_period(end, period_days)[0]
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must not be before start_date",
        )

    logger.info("Building intervention dashboard %s to %s", start, end)
    dashboard = await InterventionAnalyticsService(db, policy).get_dashboard(start, end, now=now)
    return InterventionDashboardResponse(**dashboard.to_dict())
