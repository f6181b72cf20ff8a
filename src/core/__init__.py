# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the interventions backend.

This package contains configuration shared by every layer:
- config: Application settings and the immutable intervention policy
"""
