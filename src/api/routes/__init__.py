# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unversioned API routes.

Liveness and readiness probes live outside /api/v1 so load balancers can
reach them without the version prefix.
"""

from src.api.routes import health

__all__ = ["health"]
