# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics and reporting schemas."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Intervention dashboard
# ============================================================================


class InterventionSummaryResponse(BaseModel):
    level_a_count: int
    level_b_count: int
    level_c_count: int
    reentry_count: int
    distribution_healthy: bool


class DomainMetricsResponse(BaseModel):
    domain_key: str
    domain_name: str
    level_a_count: int
    level_b_count: int
    repeat_rate: int = Field(description="Percent of Level A volume from repeat students")


class EscalationMetricsResponse(BaseModel):
    a_to_b_count: int
    a_to_b_rate: int
    b_to_c_count: int
    b_to_c_rate: int


class OutcomeMetricsResponse(BaseModel):
    level_b_completed: int
    level_b_success_rate: int
    level_c_completed: int
    level_c_success_rate: int
    reentry_completed: int
    reentry_success_rate: int


class TrendPointResponse(BaseModel):
    date: date
    level_a: int
    level_b: int
    level_c: int


class ActivityItemResponse(BaseModel):
    id: str
    type: Literal["level_a", "level_b", "level_c", "reentry"]
    student_id: str
    description: str
    timestamp: datetime


class InterventionDashboardResponse(BaseModel):
    """Intervention analytics dashboard."""

    period_start: datetime
    period_end: datetime
    summary: InterventionSummaryResponse
    domain_metrics: list[DomainMetricsResponse]
    escalation_metrics: EscalationMetricsResponse
    outcome_metrics: OutcomeMetricsResponse
    weekly_trends: list[TrendPointResponse]
    recent_activity: list[ActivityItemResponse]


# ============================================================================
# Digest and reports
# ============================================================================


class ImplementationMetricsRequest(BaseModel):
    """Implementation metrics supplied by the house points system."""

    participation_rate: float | None = Field(default=None, ge=0, le=100)
    active_staff: int = Field(default=0, ge=0)
    total_staff: int = Field(default=0, ge=0)
    inactive_staff_count: int = Field(default=0, ge=0)
    total_points: int = Field(default=0, ge=0)
    total_transactions: int = Field(default=0, ge=0)
    category_balance_score: float = Field(default=0.0, ge=0, le=100)
    category_percentages: dict[str, float] = Field(default_factory=dict)
    dominant_category: str | None = None
    category_balanced: bool = False
    house_points: dict[str, int] = Field(default_factory=dict)
    house_balance_score: float = Field(default=0.0, ge=0, le=100)
    house_variance: float = Field(default=0.0, ge=0)
    house_balanced: bool = False
    active_alerts: int = Field(default=0, ge=0)
    red_alerts: int = Field(default=0, ge=0)
    amber_alerts: int = Field(default=0, ge=0)
    consistency_score: float = Field(default=0.0, ge=0, le=100)
    health_score: float = Field(default=0.0, ge=0, le=100)
    health_status: Literal["GREEN", "AMBER", "RED"] = "GREEN"


class PeriodRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_order(self) -> "PeriodRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class WeeklyDigestRequest(PeriodRequest):
    """Generate a weekly digest."""

    metrics: ImplementationMetricsRequest
    send: bool = Field(default=False, description="Email the digest to the configured recipients")
    save: bool = Field(default=True, description="Archive the digest in report history")


class AlertCountsResponse(BaseModel):
    active_count: int
    red_count: int
    amber_count: int


class WeeklyDigestResponse(BaseModel):
    week_start: date
    week_end: date
    health_status: str
    health_score: float
    participation_rate: float | None = None
    total_points: int
    active_staff: int
    total_staff: int
    insights: list[str]
    actions: list[str]
    category_balance: dict[str, float]
    house_distribution: dict[str, int]
    alerts: AlertCountsResponse
    emails_sent: int = 0
    report_id: str | None = None


class QuarterlyReportRequest(PeriodRequest):
    """Generate a quarterly board report."""

    quarter: Literal["Q1", "Q2", "Q3", "Q4"]
    year: int = Field(ge=2000, le=2100)
    metrics: ImplementationMetricsRequest
    save: bool = True
    generated_by: str | None = None


class KpiRowResponse(BaseModel):
    name: str
    current: str
    previous: str
    change: str


class QuarterlyReportResponse(BaseModel):
    quarter: str
    year: int
    executive_summary: str
    kpis: list[KpiRowResponse]
    highlights: list[str]
    challenges: list[str]
    next_quarter: list[str]
    report_id: str | None = None


class SnapshotRequest(BaseModel):
    """Store an implementation metrics snapshot."""

    snapshot_date: date
    snapshot_type: Literal["daily", "weekly", "monthly"] = "daily"
    metrics: ImplementationMetricsRequest


class SnapshotResponse(BaseModel):
    """Stored analytics snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    snapshot_date: date
    snapshot_type: str
    level_a_count: int | None = None
    level_b_count: int | None = None
    level_c_count: int | None = None
    a_to_b_escalation_rate: float | None = None
    b_to_c_escalation_rate: float | None = None
