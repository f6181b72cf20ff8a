# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure module.

Batch jobs run as Dramatiq actors on a Redis broker. Nothing is scheduled
in-process: the external cron enqueues the actors (or calls the matching
HTTP endpoints).

Quick Start:
    from src.infrastructure.background import setup_dramatiq
    setup_dramatiq()

    from src.infrastructure.background.tasks import recompute_behaviour_insights
    recompute_behaviour_insights.send()

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 1 --threads 4
"""

from src.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
]
