# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics snapshot and report history models.

Snapshots are derived periodic metrics used for period-over-period
comparisons in quarterly reports. Report history stores every generated
report payload.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, JSONType, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class AnalyticsSnapshot(UUIDPrimaryKeyMixin, Base):
    """Point-in-time implementation and intervention metrics."""

    __tablename__ = "analytics_snapshots"
    __table_args__ = (Index("ix_analytics_snapshots_type_date", "snapshot_type", "snapshot_date"),)

    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    snapshot_type: Mapped[str] = mapped_column(String(10), nullable=False, default="daily")

    staff_participation_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_points_awarded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_balance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    house_balance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    health_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    health_status: Mapped[str | None] = mapped_column(String(10), nullable=True)

    level_a_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    level_b_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    level_c_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    a_to_b_escalation_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    b_to_c_escalation_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    repeat_rates: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class ReportHistory(UUIDPrimaryKeyMixin, Base):
    """A generated digest or board report."""

    __tablename__ = "report_history"

    report_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    report_name: Mapped[str] = mapped_column(String(200), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    report_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    generated_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
