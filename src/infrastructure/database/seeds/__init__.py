# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database seed package.

Seeds the static reference data the intervention framework depends on.
"""

from src.infrastructure.database.seeds.domains import seed_behavioral_domains

__all__ = ["seed_behavioral_domains"]
