# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer.

This package contains domain services that encapsulate business logic.

Domains:
    behaviour: Merit/demerit event store and the student insight engine.
    intervention: A/B/C intervention state machine and re-entry protocols.
    analytics: Intervention analytics, weekly digest and quarterly reports.
"""
