# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention background tasks.

Entry points for the external cron:
- recompute_behaviour_insights: nightly insight and pattern recompute
- run_intervention_monitoring: daily monitoring sweep
- send_weekly_digest: weekly leadership digest
"""

import logging
from datetime import date
from typing import Any

import dramatiq

from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async, worker_session
from src.utils.datetime import utc_today
from src.utils.logging import bind_context, clear_context

# Setup broker before defining actors
setup_dramatiq()

logger = logging.getLogger(__name__)


def _parse_day(date_str: str | None) -> date:
    return date.fromisoformat(date_str) if date_str else utc_today()


@dramatiq.actor(
    queue_name=Queues.INSIGHTS,
    max_retries=2,
    time_limit=600000,  # 10 minutes
    priority=Priority.LOW,
)
def recompute_behaviour_insights(
    student_ids: list[str] | None = None,
    date_str: str | None = None,
) -> dict[str, Any]:
    """Recompute insight snapshots and patterns.

    Args:
        student_ids: Students to recompute. Defaults to every student with
            events in the lookback window.
        date_str: Reference day (YYYY-MM-DD). Defaults to today.

    Returns:
        RecomputeResult as a dictionary.
    """

    async def _recompute() -> dict[str, Any]:
        from src.domains.behaviour import BehaviourInsightService

        today = _parse_day(date_str)
        async with worker_session() as session:
            service = BehaviourInsightService(session)
            if student_ids:
                result = await service.recompute_students(student_ids, today)
            else:
                result = await service.recompute_recent(today)

        logger.info(
            "Insight recompute for %s: %d processed, %d failed",
            today,
            result.processed,
            len(result.failed),
        )
        return result.to_dict()

    bind_context(job="recompute_behaviour_insights")
    try:
        return run_async(_recompute())
    except Exception:
        logger.error("Insight recompute failed", exc_info=True)
        raise
    finally:
        clear_context()


@dramatiq.actor(
    queue_name=Queues.MONITORING,
    max_retries=1,
    time_limit=300000,  # 5 minutes
    priority=Priority.NORMAL,
)
def run_intervention_monitoring(date_str: str | None = None) -> dict[str, Any]:
    """Run the daily intervention monitoring sweep.

    Args:
        date_str: Sweep day (YYYY-MM-DD). Defaults to today.

    Returns:
        MonitoringSweepResult as a dictionary.
    """

    async def _sweep() -> dict[str, Any]:
        from src.domains.intervention import InterventionMonitor

        async with worker_session() as session:
            result = await InterventionMonitor(session).run(_parse_day(date_str))

        data = result.to_dict()
        data["run_date"] = result.run_date.isoformat()
        return data

    bind_context(job="run_intervention_monitoring", run_date=date_str)
    try:
        return run_async(_sweep())
    except Exception:
        logger.error("Intervention monitoring sweep failed", exc_info=True)
        raise
    finally:
        clear_context()


@dramatiq.actor(
    queue_name=Queues.REPORTS,
    max_retries=1,
    time_limit=120000,  # 2 minutes
    priority=Priority.LOW,
)
def send_weekly_digest(
    metrics: dict[str, Any],
    week_start: str,
    week_end: str,
) -> dict[str, Any]:
    """Generate, email and archive the weekly digest.

    Args:
        metrics: ImplementationMetrics fields for the week.
        week_start: First day of the week (YYYY-MM-DD).
        week_end: Last day of the week (YYYY-MM-DD).

    Returns:
        Digest summary with the number of emails sent and the report id.
    """

    async def _send() -> dict[str, Any]:
        from src.core.config import get_settings
        from src.domains.analytics import DigestGenerator, ImplementationMetrics

        recipients = get_settings().notifications.digest_recipients_list
        async with worker_session() as session:
            generator = DigestGenerator(session)
            digest = await generator.generate_weekly_digest(
                date.fromisoformat(week_start),
                date.fromisoformat(week_end),
                metrics=ImplementationMetrics(**metrics),
            )
            sent = await generator.send_weekly_digest_emails(digest, recipients)
            report_id = await generator.save_report_to_history(
                "WEEKLY_DIGEST",
                digest.report_name,
                digest.week_start,
                digest.week_end,
                digest.to_dict(),
            )

        return {
            "week_start": week_start,
            "week_end": week_end,
            "health_status": digest.metrics.health_status,
            "insights_count": len(digest.insights),
            "actions_count": len(digest.actions),
            "recipients": len(recipients),
            "emails_sent": sent,
            "report_id": report_id,
        }

    bind_context(job="send_weekly_digest", week_start=week_start)
    try:
        return run_async(_send())
    except Exception:
        logger.error("Weekly digest failed", exc_info=True)
        raise
    finally:
        clear_context()


def get_intervention_actors() -> list[dramatiq.Actor]:
    """Get all intervention actors."""
    return [
        recompute_behaviour_insights,
        run_intervention_monitoring,
        send_weekly_digest,
    ]
