# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention service exceptions."""


class InterventionError(Exception):
    """Base exception for intervention service errors."""

    pass


class InterventionNotFoundError(InterventionError):
    """Raised when an intervention record does not exist."""

    pass


class InterventionValidationError(InterventionError):
    """Raised when required data for a step or phase is missing or invalid."""

    pass


class InvalidTransitionError(InterventionError):
    """Raised when a record's current status does not allow the operation."""

    pass
