# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behaviour event and insight API endpoints.

Endpoints:
- POST /behaviour/events - Append merit/demerit events
- POST /behaviour/import - Import events from a CSV export
- POST /behaviour/reprocess - Recompute insights (cron)
- GET /behaviour/students/{student_id}/insights - Insights and patterns
- GET /behaviour/students/{student_id}/patterns - Pattern tags
- GET /behaviour/at-risk - Students at yellow or red risk
"""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Query, status

from src.api.dependencies import DB, CronAuth, Policy
from src.domains.behaviour import (
    BehaviourEventService,
    BehaviourInsightService,
    RecomputeResult,
    parse_events_csv,
)
from src.models.behaviour import (
    BehaviourCsvImportRequest,
    BehaviourEventBatchRequest,
    BehaviourImportResponse,
    CsvRowErrorResponse,
    RecomputeResponse,
    ReprocessRequest,
    StudentInsightResponse,
    StudentInsightsResponse,
    StudentPatternResponse,
)
from src.utils.datetime import utc_today

logger = logging.getLogger(__name__)

router = APIRouter()


def _recompute_response(result: RecomputeResult) -> RecomputeResponse:
    return RecomputeResponse(**result.to_dict())


@router.post(
    "/events",
    response_model=BehaviourImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record behaviour events",
)
async def record_events(
    request: BehaviourEventBatchRequest,
    db: DB,
    policy: Policy,
) -> BehaviourImportResponse:
    """Append events and optionally recompute the affected students."""
    events = await BehaviourEventService(db).record_events(
        event.model_dump() for event in request.events
    )

    insights = None
    if request.recompute:
        student_ids = [event.student_id for event in events]
        result = await BehaviourInsightService(db, policy).recompute_students(student_ids, utc_today())
        insights = _recompute_response(result)

    return BehaviourImportResponse(recorded=len(events), insights=insights)


@router.post(
    "/import",
    response_model=BehaviourImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import behaviour events from CSV",
)
async def import_events(
    request: BehaviourCsvImportRequest,
    db: DB,
    policy: Policy,
) -> BehaviourImportResponse:
    """Import a CSV export.

    Rows that fail validation are reported and skipped; the valid rows are
    still stored. A document without the required columns is rejected
    with 422.
    """
    parsed = parse_events_csv(request.csv_text, source_system=request.source_system)
    errors = [CsvRowErrorResponse(**error.to_dict()) for error in parsed.errors]
    if parsed.errors:
        logger.info("CSV import rejected %d rows", len(parsed.errors))

    events = []
    if parsed.events:
        events = await BehaviourEventService(db).record_events(parsed.events)

    insights = None
    if request.recompute and events:
        student_ids = [event.student_id for event in events]
        result = await BehaviourInsightService(db, policy).recompute_students(student_ids, utc_today())
        insights = _recompute_response(result)

    return BehaviourImportResponse(recorded=len(events), errors=errors, insights=insights)


@router.post(
    "/reprocess",
    response_model=RecomputeResponse,
    dependencies=[CronAuth],
    summary="Recompute behaviour insights",
)
async def reprocess(
    db: DB,
    policy: Policy,
    request: ReprocessRequest | None = None,
) -> RecomputeResponse:
    """Recompute insights for the given students, or every recently active student."""
    service = BehaviourInsightService(db, policy)
    today = utc_today()
    if request is not None and request.student_ids:
        result = await service.recompute_students(request.student_ids, today)
    else:
        result = await service.recompute_recent(today)
    return _recompute_response(result)


@router.get(
    "/students/{student_id}/insights",
    response_model=StudentInsightsResponse,
    summary="Get student insights",
)
async def get_student_insights(student_id: str, db: DB) -> StudentInsightsResponse:
    service = BehaviourInsightService(db)
    insights = await service.get_student_insights(student_id)
    patterns = await service.get_student_patterns(student_id)
    return StudentInsightsResponse(
        student_id=student_id,
        insights=[StudentInsightResponse.model_validate(row) for row in insights],
        patterns=[StudentPatternResponse.model_validate(row) for row in patterns],
    )


@router.get(
    "/students/{student_id}/patterns",
    response_model=list[StudentPatternResponse],
    summary="Get student patterns",
)
async def get_student_patterns(student_id: str, db: DB) -> list[StudentPatternResponse]:
    patterns = await BehaviourInsightService(db).get_student_patterns(student_id)
    return [StudentPatternResponse.model_validate(row) for row in patterns]


@router.get(
    "/at-risk",
    response_model=list[StudentInsightResponse],
    summary="List at-risk students",
)
async def list_at_risk(
    db: DB,
    risk_level: Annotated[list[Literal["red", "yellow"]] | None, Query()] = None,
    time_window: Annotated[Literal["7d", "30d"] | None, Query()] = None,
) -> list[StudentInsightResponse]:
    """Insight snapshots at yellow or red risk, most severe first."""
    rows = await BehaviourInsightService(db).list_at_risk_students(
        risk_levels=risk_level or ("red", "yellow"),
        time_window=time_window,
    )
    return [StudentInsightResponse.model_validate(row) for row in rows]
