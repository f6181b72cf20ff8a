"""League Interventions Backend.

Behavioural intervention service for the house points platform: merit and
demerit pattern detection, the A/B/C escalation framework with re-entry
protocols, and the analytics and digests built on top of them.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
