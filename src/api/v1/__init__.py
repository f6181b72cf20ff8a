# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific domain.

Modules:
    behaviour: Behaviour events, CSV import, insights and patterns.
    interventions: Decision tree, Level A/B/C, re-entry and monitoring sweep.
    analytics: Intervention analytics dashboard.
    reports: Weekly digest, quarterly report and snapshots.
"""

from fastapi import APIRouter

from src.api.v1 import analytics, behaviour, interventions, reports

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(behaviour.router, prefix="/behaviour", tags=["Behaviour"])
router.include_router(analytics.router, prefix="/interventions/analytics", tags=["Analytics"])
router.include_router(interventions.router, prefix="/interventions", tags=["Interventions"])
router.include_router(reports.router, prefix="/reports", tags=["Reports"])

__all__ = ["router"]
