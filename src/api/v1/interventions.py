# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention framework API endpoints.

Covers the decision tree, Level A responses, Level B reset conferences,
Level C cases, re-entry protocols and the daily monitoring sweep.
The acting staff member is identified in request bodies.

Domain errors are mapped to HTTP status codes by the application
exception handlers (not found 404, validation 422, transition 409).
"""

import logging
from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.dependencies import DB, CronAuth, Policy
from src.domains.intervention import (
    BehavioralDomainService,
    DecisionTreeService,
    IncidentAssessment,
    InterventionMonitor,
    LevelAService,
    LevelBService,
    LevelCService,
    ReentryService,
    get_escalation_summary,
    level_c_trigger_for_points,
    reflection_prompts,
    reset_goal_examples,
)
from src.models.intervention import (
    AdminResponseRequest,
    BehavioralDomainResponse,
    CancelLevelBRequest,
    CaseCheckInRequest,
    CaseManagerRequest,
    CloseCaseRequest,
    CompleteMonitoringRequest,
    CompleteReentryRequest,
    ContextPacketRequest,
    DailyLogRequest,
    DailySuccessRateRequest,
    DecisionResponse,
    EscalationSummaryResponse,
    IncidentAssessmentRequest,
    LevelACreateRequest,
    LevelACreateResponse,
    LevelAListResponse,
    LevelAResponse,
    LevelAStatsResponse,
    LevelBCreateRequest,
    LevelBListResponse,
    LevelBResponse,
    LevelBStepUpdateRequest,
    LevelCCreateRequest,
    LevelCListResponse,
    LevelCReentryPlanResponse,
    LevelCResponse,
    LoggingCheckRequest,
    LoggingDecisionResponse,
    MonitoringSweepResponse,
    PointTriggerResponse,
    ReadinessChecklistRequest,
    ReentryCreateRequest,
    ReentryListResponse,
    ReentryPlanRequest,
    ReentryResponse,
    StartCaseMonitoringRequest,
    TeacherScriptRequest,
)
from src.utils.datetime import utc_today

logger = logging.getLogger(__name__)

router = APIRouter()

Limit = Annotated[int, Query(ge=1, le=200, description="Maximum results")]
Offset = Annotated[int, Query(ge=0, description="Pagination offset")]


# ============================================================================
# Decision tree and reference data
# ============================================================================


@router.post("/decision", response_model=DecisionResponse, summary="Recommend an intervention level")
async def determine_level(
    request: IncidentAssessmentRequest,
    db: DB,
    policy: Policy,
) -> DecisionResponse:
    result = await DecisionTreeService(db, policy).determine_intervention_level(
        IncidentAssessment(**request.model_dump())
    )
    return DecisionResponse(
        recommended_level=result.recommended_level,
        reasons=result.reasons,
        is_pattern_student=result.is_pattern_student,
        prior_level_b_count=result.prior_level_b_count,
        summary=EscalationSummaryResponse(**get_escalation_summary(result.recommended_level)),
    )


@router.post(
    "/should-log",
    response_model=LoggingDecisionResponse,
    summary="Check whether a Level A incident must be logged",
)
async def should_log_level_a(
    request: LoggingCheckRequest,
    db: DB,
    policy: Policy,
) -> LoggingDecisionResponse:
    decision = await DecisionTreeService(db, policy).should_log_level_a(
        request.student_id,
        request.domain_id,
        request.affected_others,
    )
    return LoggingDecisionResponse(should_log=decision.should_log, reason=decision.reason)


@router.get("/domains", response_model=list[BehavioralDomainResponse], summary="List behavioural domains")
async def list_domains(db: DB) -> list[BehavioralDomainResponse]:
    domains = await BehavioralDomainService(db).list_domains()
    return [BehavioralDomainResponse.model_validate(domain) for domain in domains]


@router.get(
    "/domains/{domain_key}/reset-goals",
    response_model=list[str],
    summary="Example reset goals for a domain",
)
async def get_reset_goal_examples(domain_key: str) -> list[str]:
    return reset_goal_examples(domain_key)


# ============================================================================
# Level A
# ============================================================================


@router.post(
    "/level-a",
    response_model=LevelACreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a Level A intervention",
)
async def create_level_a(
    request: LevelACreateRequest,
    db: DB,
    policy: Policy,
) -> LevelACreateResponse:
    """Record a Level A intervention.

    An escalated outcome, an escalation trigger or a detected pattern opens
    a Level B reset conference in the same request.
    """
    intervention, level_b = await LevelAService(db, policy).create_level_a(**request.model_dump())
    return LevelACreateResponse(
        intervention=LevelAResponse.model_validate(intervention),
        level_b=LevelBResponse.model_validate(level_b) if level_b is not None else None,
    )


@router.get("/level-a", response_model=LevelAListResponse, summary="List Level A interventions")
async def list_level_a(
    db: DB,
    student_id: str | None = None,
    domain_id: int | None = None,
    staff_id: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: Limit = 50,
    offset: Offset = 0,
) -> LevelAListResponse:
    items, total = await LevelAService(db).list_level_a(
        student_id=student_id,
        domain_id=domain_id,
        staff_id=staff_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return LevelAListResponse(
        items=[LevelAResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/level-a/today", response_model=list[LevelAResponse], summary="Today's Level A interventions")
async def todays_level_a(db: DB, staff_id: str | None = None) -> list[LevelAResponse]:
    items = await LevelAService(db).todays_level_a(staff_id=staff_id)
    return [LevelAResponse.model_validate(item) for item in items]


@router.get("/level-a/{intervention_id}", response_model=LevelAResponse, summary="Get a Level A intervention")
async def get_level_a(intervention_id: str, db: DB) -> LevelAResponse:
    return LevelAResponse.model_validate(await LevelAService(db).get_level_a(intervention_id))


@router.get(
    "/students/{student_id}/level-a-stats",
    response_model=LevelAStatsResponse,
    summary="Level A statistics for a student",
)
async def student_level_a_stats(
    student_id: str,
    db: DB,
    days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> LevelAStatsResponse:
    stats = await LevelAService(db).student_level_a_stats(student_id, days=days)
    return LevelAStatsResponse(**stats.to_dict())


# ============================================================================
# Level B
# ============================================================================


@router.post(
    "/level-b",
    response_model=LevelBResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a Level B reset conference",
)
async def create_level_b(request: LevelBCreateRequest, db: DB, policy: Policy) -> LevelBResponse:
    intervention = await LevelBService(db, policy).create_level_b(**request.model_dump())
    return LevelBResponse.model_validate(intervention)


@router.get("/level-b", response_model=LevelBListResponse, summary="List Level B interventions")
async def list_level_b(
    db: DB,
    student_id: str | None = None,
    domain_id: int | None = None,
    staff_id: str | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: Limit = 50,
    offset: Offset = 0,
) -> LevelBListResponse:
    items, total = await LevelBService(db).list_level_b(
        student_id=student_id,
        domain_id=domain_id,
        staff_id=staff_id,
        status=status_filter,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return LevelBListResponse(
        items=[LevelBResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/level-b/reflection-prompts", response_model=list[str], summary="Level B reflection prompts")
async def get_reflection_prompts() -> list[str]:
    return reflection_prompts()


@router.get("/level-b/monitoring", response_model=list[LevelBResponse], summary="Level B in monitoring")
async def active_level_b_monitoring(db: DB) -> list[LevelBResponse]:
    items = await LevelBService(db).active_monitoring()
    return [LevelBResponse.model_validate(item) for item in items]


@router.get("/level-b/{intervention_id}", response_model=LevelBResponse, summary="Get a Level B intervention")
async def get_level_b(intervention_id: str, db: DB) -> LevelBResponse:
    return LevelBResponse.model_validate(await LevelBService(db).get_level_b(intervention_id))


@router.patch(
    "/level-b/{intervention_id}/steps",
    response_model=LevelBResponse,
    summary="Update a Level B protocol step",
)
async def update_level_b_step(
    intervention_id: str,
    request: LevelBStepUpdateRequest,
    db: DB,
    policy: Policy,
) -> LevelBResponse:
    """Apply a partial update to one of the seven protocol steps.

    Completing step 7 starts the monitoring window.
    """
    intervention = await LevelBService(db, policy).update_step(
        intervention_id,
        request.step,
        request.data.model_dump(mode="json", exclude_none=True),
        today=utc_today(),
    )
    return LevelBResponse.model_validate(intervention)


@router.post(
    "/level-b/{intervention_id}/daily-rate",
    response_model=LevelBResponse,
    summary="Log a monitoring day's success rate",
)
async def log_level_b_daily_rate(
    intervention_id: str,
    request: DailySuccessRateRequest,
    db: DB,
) -> LevelBResponse:
    intervention = await LevelBService(db).log_daily_success_rate(
        intervention_id, request.day, request.success_rate
    )
    return LevelBResponse.model_validate(intervention)


@router.post(
    "/level-b/{intervention_id}/complete",
    response_model=LevelBResponse,
    summary="Close the Level B monitoring window",
)
async def complete_level_b_monitoring(
    intervention_id: str,
    request: CompleteMonitoringRequest,
    db: DB,
    policy: Policy,
) -> LevelBResponse:
    intervention = await LevelBService(db, policy).complete_monitoring(
        intervention_id,
        escalate=request.escalate,
        reason=request.escalation_reason,
    )
    return LevelBResponse.model_validate(intervention)


@router.post("/level-b/{intervention_id}/cancel", response_model=LevelBResponse, summary="Cancel a Level B")
async def cancel_level_b(
    intervention_id: str,
    request: CancelLevelBRequest,
    db: DB,
) -> LevelBResponse:
    intervention = await LevelBService(db).cancel(intervention_id, reason=request.reason)
    return LevelBResponse.model_validate(intervention)


# ============================================================================
# Level C
# ============================================================================


@router.post(
    "/level-c",
    response_model=LevelCResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a Level C case",
)
async def create_level_c(request: LevelCCreateRequest, db: DB, policy: Policy) -> LevelCResponse:
    case = await LevelCService(db, policy).create_case(**request.model_dump())
    return LevelCResponse.model_validate(case)


@router.get("/level-c", response_model=LevelCListResponse, summary="List Level C cases")
async def list_level_c(
    db: DB,
    student_id: str | None = None,
    case_manager_id: str | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    case_type: str | None = None,
    limit: Limit = 50,
    offset: Offset = 0,
) -> LevelCListResponse:
    items, total = await LevelCService(db).list_cases(
        student_id=student_id,
        case_manager_id=case_manager_id,
        status=status_filter,
        case_type=case_type,
        limit=limit,
        offset=offset,
    )
    return LevelCListResponse(
        items=[LevelCResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/level-c/point-trigger",
    response_model=PointTriggerResponse,
    summary="Level C trigger for a demerit point total",
)
async def get_point_trigger(
    policy: Policy,
    points: Annotated[int, Query(ge=0)],
) -> PointTriggerResponse:
    return PointTriggerResponse(points=points, trigger_type=level_c_trigger_for_points(points, policy))


@router.get(
    "/level-c/caseload/{case_manager_id}",
    response_model=list[LevelCResponse],
    summary="Open cases for a case manager",
)
async def get_caseload(case_manager_id: str, db: DB) -> list[LevelCResponse]:
    cases = await LevelCService(db).caseload(case_manager_id)
    return [LevelCResponse.model_validate(case) for case in cases]


@router.get(
    "/level-c/pending-reentries",
    response_model=list[LevelCResponse],
    summary="Cases due for re-entry",
)
async def get_pending_case_reentries(db: DB, today: date | None = None) -> list[LevelCResponse]:
    cases = await LevelCService(db).pending_reentries(today or utc_today())
    return [LevelCResponse.model_validate(case) for case in cases]


@router.get("/level-c/{case_id}", response_model=LevelCResponse, summary="Get a Level C case")
async def get_level_c(case_id: str, db: DB) -> LevelCResponse:
    return LevelCResponse.model_validate(await LevelCService(db).get_case(case_id))


@router.put("/level-c/{case_id}/case-manager", response_model=LevelCResponse, summary="Assign a case manager")
async def assign_case_manager(case_id: str, request: CaseManagerRequest, db: DB) -> LevelCResponse:
    case = await LevelCService(db).assign_case_manager(
        case_id, request.case_manager_id, request.case_manager_name
    )
    return LevelCResponse.model_validate(case)


@router.put(
    "/level-c/{case_id}/context-packet",
    response_model=LevelCResponse,
    summary="Update the context packet",
)
async def update_context_packet(case_id: str, request: ContextPacketRequest, db: DB) -> LevelCResponse:
    """Partial update; the case moves to admin response once every field is filled."""
    case = await LevelCService(db).update_context_packet(case_id, request.model_dump(exclude_none=True))
    return LevelCResponse.model_validate(case)


@router.post(
    "/level-c/{case_id}/admin-response",
    response_model=LevelCResponse,
    summary="Record the administrative response",
)
async def record_admin_response(case_id: str, request: AdminResponseRequest, db: DB) -> LevelCResponse:
    case = await LevelCService(db).record_admin_response(case_id, **request.model_dump())
    return LevelCResponse.model_validate(case)


@router.post(
    "/level-c/{case_id}/reentry-plan",
    response_model=LevelCReentryPlanResponse,
    summary="Record the support and re-entry plan",
)
async def create_reentry_plan(
    case_id: str,
    request: ReentryPlanRequest,
    db: DB,
    policy: Policy,
) -> LevelCReentryPlanResponse:
    """Record the plan.

    Detention, in-school and out-of-school suspension responses also
    create a re-entry protocol for the re-entry date.
    """
    values = request.model_dump()
    values["repair_actions"] = [action.model_dump(mode="json") for action in request.repair_actions]
    case, protocol = await LevelCService(db, policy).create_reentry_plan(case_id, **values)
    return LevelCReentryPlanResponse(
        case=LevelCResponse.model_validate(case),
        reentry_protocol=ReentryResponse.model_validate(protocol) if protocol is not None else None,
    )


@router.post(
    "/level-c/{case_id}/monitoring",
    response_model=LevelCResponse,
    summary="Start case monitoring",
)
async def start_case_monitoring(
    case_id: str,
    request: StartCaseMonitoringRequest,
    db: DB,
    policy: Policy,
) -> LevelCResponse:
    case = await LevelCService(db, policy).start_monitoring(
        case_id, start_date=request.start_date, today=utc_today()
    )
    return LevelCResponse.model_validate(case)


@router.post(
    "/level-c/{case_id}/check-ins",
    response_model=LevelCResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log a daily check-in",
)
async def log_case_check_in(case_id: str, request: CaseCheckInRequest, db: DB) -> LevelCResponse:
    case = await LevelCService(db).log_check_in(case_id, **request.model_dump())
    return LevelCResponse.model_validate(case)


@router.post("/level-c/{case_id}/close", response_model=LevelCResponse, summary="Close a Level C case")
async def close_case(case_id: str, request: CloseCaseRequest, db: DB) -> LevelCResponse:
    case = await LevelCService(db).close_case(case_id, **request.model_dump(), today=utc_today())
    return LevelCResponse.model_validate(case)


# ============================================================================
# Re-entry
# ============================================================================


@router.post(
    "/reentry",
    response_model=ReentryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a re-entry protocol",
)
async def create_reentry(request: ReentryCreateRequest, db: DB, policy: Policy) -> ReentryResponse:
    protocol = await ReentryService(db, policy).create_protocol(**request.model_dump())
    return ReentryResponse.model_validate(protocol)


@router.get("/reentry", response_model=ReentryListResponse, summary="List re-entry protocols")
async def list_reentry(
    db: DB,
    student_id: str | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    source_type: str | None = None,
    limit: Limit = 50,
    offset: Offset = 0,
) -> ReentryListResponse:
    items, total = await ReentryService(db).list_protocols(
        student_id=student_id,
        status=status_filter,
        source_type=source_type,
        limit=limit,
        offset=offset,
    )
    return ReentryListResponse(
        items=[ReentryResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/reentry/pending", response_model=list[ReentryResponse], summary="Re-entries due")
async def pending_reentries(db: DB, today: date | None = None) -> list[ReentryResponse]:
    items = await ReentryService(db).pending_reentries(today or utc_today())
    return [ReentryResponse.model_validate(item) for item in items]


@router.get("/reentry/active", response_model=list[ReentryResponse], summary="Active re-entries")
async def active_reentries(db: DB) -> list[ReentryResponse]:
    items = await ReentryService(db).active_reentries()
    return [ReentryResponse.model_validate(item) for item in items]


@router.get("/reentry/{protocol_id}", response_model=ReentryResponse, summary="Get a re-entry protocol")
async def get_reentry(protocol_id: str, db: DB) -> ReentryResponse:
    return ReentryResponse.model_validate(await ReentryService(db).get_protocol(protocol_id))


@router.put(
    "/reentry/{protocol_id}/checklist",
    response_model=ReentryResponse,
    summary="Update the readiness checklist",
)
async def update_readiness_checklist(
    protocol_id: str,
    request: ReadinessChecklistRequest,
    db: DB,
) -> ReentryResponse:
    protocol = await ReentryService(db).update_readiness_checklist(
        protocol_id,
        [item.model_dump(mode="json") for item in request.checklist],
        verified_by=request.verified_by,
    )
    return ReentryResponse.model_validate(protocol)


@router.put(
    "/reentry/{protocol_id}/teacher-script",
    response_model=ReentryResponse,
    summary="Generate the receiving teacher script",
)
async def attach_teacher_script(
    protocol_id: str,
    request: TeacherScriptRequest,
    db: DB,
) -> ReentryResponse:
    protocol = await ReentryService(db).attach_teacher_script(protocol_id, request.goal)
    return ReentryResponse.model_validate(protocol)


@router.post("/reentry/{protocol_id}/start", response_model=ReentryResponse, summary="Start re-entry")
async def start_reentry(protocol_id: str, db: DB) -> ReentryResponse:
    return ReentryResponse.model_validate(await ReentryService(db).start_reentry(protocol_id))


@router.post(
    "/reentry/{protocol_id}/first-rep",
    response_model=ReentryResponse,
    summary="Mark the first behavioural rep complete",
)
async def complete_first_rep(protocol_id: str, db: DB) -> ReentryResponse:
    return ReentryResponse.model_validate(await ReentryService(db).complete_first_rep(protocol_id))


@router.post(
    "/reentry/{protocol_id}/daily-logs",
    response_model=ReentryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a daily monitoring log",
)
async def log_reentry_day(protocol_id: str, request: DailyLogRequest, db: DB) -> ReentryResponse:
    protocol = await ReentryService(db).log_daily_entry(protocol_id, **request.model_dump())
    return ReentryResponse.model_validate(protocol)


@router.post(
    "/reentry/{protocol_id}/complete",
    response_model=ReentryResponse,
    summary="Complete a re-entry protocol",
)
async def complete_reentry(
    protocol_id: str,
    request: CompleteReentryRequest,
    db: DB,
) -> ReentryResponse:
    protocol = await ReentryService(db).complete_reentry(
        protocol_id, request.outcome, notes=request.outcome_notes
    )
    return ReentryResponse.model_validate(protocol)


# ============================================================================
# Monitoring sweep
# ============================================================================


@router.post(
    "/monitoring/run",
    response_model=MonitoringSweepResponse,
    dependencies=[CronAuth],
    summary="Run the daily monitoring sweep",
)
async def run_monitoring(db: DB, policy: Policy, today: date | None = None) -> MonitoringSweepResponse:
    result = await InterventionMonitor(db, policy).run(today or utc_today())
    logger.info("Monitoring sweep via API: %d actions", len(result.actions))
    return MonitoringSweepResponse(**result.to_dict())
