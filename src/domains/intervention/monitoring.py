# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Daily intervention monitoring sweep.

Run once a day by the cron-triggered worker. The sweep:

- closes Level B monitoring windows that ended before today, deciding the
  outcome from the success threshold;
- flags Level C cases left untouched in a pre-monitoring phase;
- flags Level C cases whose monitoring outlived its duration;
- flags re-entries still pending or ready after their re-entry date, and
  active re-entries past their monitoring end.

Escalation and summary emails are best-effort.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import InterventionPolicy, get_policy
from src.core.config.settings import Settings, get_settings
from src.domains.intervention.enums import LevelCStatus, ReentryStatus
from src.domains.intervention.level_b import LevelBService
from src.infrastructure.database.models.intervention import LevelCCase, ReentryProtocol
from src.infrastructure.notifications import NotificationService
from src.utils.datetime import day_start

logger = logging.getLogger(__name__)

STALE_CASE_STATUSES = (
    LevelCStatus.ACTIVE.value,
    LevelCStatus.CONTEXT_PACKET.value,
    LevelCStatus.ADMIN_RESPONSE.value,
    LevelCStatus.PENDING_REENTRY.value,
)


@dataclass
class MonitoringSweepResult:
    """Record ids touched or flagged by one sweep."""

    run_date: date
    level_b_closed: list[str] = field(default_factory=list)
    level_b_escalated: list[str] = field(default_factory=list)
    stale_level_c: list[str] = field(default_factory=list)
    overdue_level_c: list[str] = field(default_factory=list)
    overdue_reentries: list[str] = field(default_factory=list)
    expired_reentries: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    notifications_sent: int = 0

    @property
    def has_findings(self) -> bool:
        return bool(
            self.level_b_closed
            or self.stale_level_c
            or self.overdue_level_c
            or self.overdue_reentries
            or self.expired_reentries
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_date": self.run_date,
            "level_b_closed": self.level_b_closed,
            "level_b_escalated": self.level_b_escalated,
            "stale_level_c": self.stale_level_c,
            "overdue_level_c": self.overdue_level_c,
            "overdue_reentries": self.overdue_reentries,
            "expired_reentries": self.expired_reentries,
            "actions": self.actions,
            "notifications_sent": self.notifications_sent,
        }


class InterventionMonitor:
    """Daily sweep over open interventions.

    Attributes:
        db: Async database session.
        policy: Thresholds for auto-close and staleness.
        level_b: Level B service used to close expired windows.
    """

    def __init__(
        self,
        db: AsyncSession,
        policy: InterventionPolicy | None = None,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.policy = policy or get_policy()
        self.level_b = LevelBService(db, self.policy)
        self._settings = settings or get_settings()
        self._notifications = notifications

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self._settings)
        return self._notifications

    async def run(self, today: date) -> MonitoringSweepResult:
        """Run the sweep for ``today``.

        Store errors propagate; email failures never do.
        """
        result = MonitoringSweepResult(run_date=today)

        await self._close_expired_level_b(today, result)
        await self._flag_stale_level_c(today, result)
        await self._flag_overdue_level_c(today, result)
        await self._flag_reentries(today, result)

        result.notifications_sent = await self._notify(result)

        logger.info(
            "Monitoring sweep %s: %d Level B closed (%d escalated), %d stale and %d overdue "
            "Level C, %d overdue and %d expired re-entries",
            today,
            len(result.level_b_closed),
            len(result.level_b_escalated),
            len(result.stale_level_c),
            len(result.overdue_level_c),
            len(result.overdue_reentries),
            len(result.expired_reentries),
        )
        return result

    async def _close_expired_level_b(self, today: date, result: MonitoringSweepResult) -> None:
        yesterday = today - timedelta(days=1)
        for intervention in await self.level_b.expired_monitoring(yesterday):
            closed = await self.level_b.complete_monitoring(intervention.id)
            result.level_b_closed.append(closed.id)
            if closed.escalated_to_c:
                result.level_b_escalated.append(closed.id)
            result.actions.append(
                f"Level B {closed.id}: {closed.status} ({closed.final_success_rate:.0f}% success)"
            )

    async def _flag_stale_level_c(self, today: date, result: MonitoringSweepResult) -> None:
        cutoff = day_start(today) - timedelta(days=self.policy.stale_case_days)
        query = select(LevelCCase).where(
            LevelCCase.status.in_(STALE_CASE_STATUSES),
            LevelCCase.updated_at < cutoff,
        )
        for case in (await self.db.execute(query)).scalars():
            result.stale_level_c.append(case.id)
            result.actions.append(f"Level C {case.id}: no update since {case.updated_at:%Y-%m-%d} ({case.status})")

    async def _flag_overdue_level_c(self, today: date, result: MonitoringSweepResult) -> None:
        query = select(LevelCCase).where(LevelCCase.status == LevelCStatus.MONITORING.value)
        for case in (await self.db.execute(query)).scalars():
            start = case.monitoring_start_date or case.created_at.date()
            if start + timedelta(days=case.monitoring_duration_days) < today:
                result.overdue_level_c.append(case.id)
                result.actions.append(
                    f"Level C {case.id}: monitoring exceeded {case.monitoring_duration_days} days"
                )

    async def _flag_reentries(self, today: date, result: MonitoringSweepResult) -> None:
        expired = select(ReentryProtocol).where(
            ReentryProtocol.status == ReentryStatus.ACTIVE.value,
            ReentryProtocol.monitoring_end_date < today,
        )
        for protocol in (await self.db.execute(expired)).scalars():
            result.expired_reentries.append(protocol.id)
            result.actions.append(f"Re-entry {protocol.id}: monitoring ended, awaiting completion")

        overdue = select(ReentryProtocol).where(
            ReentryProtocol.status.in_((ReentryStatus.PENDING.value, ReentryStatus.READY.value)),
            ReentryProtocol.reentry_date < today,
        )
        for protocol in (await self.db.execute(overdue)).scalars():
            result.overdue_reentries.append(protocol.id)
            result.actions.append(f"Re-entry {protocol.id}: re-entry date passed but not started")

    async def _notify(self, result: MonitoringSweepResult) -> int:
        recipients = self._settings.notifications.escalation_recipients_list
        if not recipients or not result.has_findings:
            return 0

        sent = 0
        for intervention_id in result.level_b_escalated:
            intervention = await self.level_b.get_level_b(intervention_id)
            sent += await self.notifications.send_to_many(
                "intervention_escalation",
                recipients,
                {
                    "record_type": "Level B",
                    "record_id": intervention.id,
                    "student_id": intervention.student_id,
                    "reason": intervention.escalation_reason,
                },
            )

        sent += await self.notifications.send_to_many(
            "monitoring_summary",
            recipients,
            {
                "run_date": result.run_date.isoformat(),
                "level_b_closed": len(result.level_b_closed),
                "level_b_escalated": len(result.level_b_escalated),
                "level_c_flagged": len(result.stale_level_c) + len(result.overdue_level_c),
                "reentry_flagged": len(result.overdue_reentries) + len(result.expired_reentries),
                "details": result.actions,
                "dashboard_url": self.notifications.dashboard_url("/interventions"),
            },
        )
        return sent
