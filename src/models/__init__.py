# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request and response schemas.

Modules:
    behaviour: Behaviour events, insight snapshots and patterns.
    intervention: Level A/B/C and re-entry requests and responses.
    analytics: Intervention dashboard and digest responses.
"""
