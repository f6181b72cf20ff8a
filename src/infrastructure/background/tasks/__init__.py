# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors.

Usage:
    from src.infrastructure.background.tasks import run_intervention_monitoring

    run_intervention_monitoring.send("2025-03-14")

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 1 --threads 4
"""

from src.infrastructure.background.tasks.base import run_async, worker_session
from src.infrastructure.background.tasks.interventions import (
    get_intervention_actors,
    recompute_behaviour_insights,
    run_intervention_monitoring,
    send_weekly_digest,
)


def get_all_actors() -> list:
    """Get all registered actors for worker registration."""
    return get_intervention_actors()


__all__ = [
    "get_all_actors",
    "get_intervention_actors",
    "recompute_behaviour_insights",
    "run_async",
    "run_intervention_monitoring",
    "send_weekly_digest",
    "worker_session",
]
