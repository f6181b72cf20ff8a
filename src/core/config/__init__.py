# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the interventions backend.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- Policy: Immutable intervention thresholds and reference data

Example:
    >>> from src.core.config import get_settings, get_policy
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
    >>> get_policy().level_b_success_threshold
    80.0
"""

from src.core.config.policy import (
    BEHAVIORAL_DOMAINS,
    DEFAULT_READINESS_CHECKLIST,
    REFLECTION_PROMPTS,
    RESET_GOAL_EXAMPLES,
    TEACHER_SCRIPT_TEMPLATE,
    DomainDefinition,
    InterventionPolicy,
    get_policy,
)
from src.core.config.settings import (
    APISettings,
    CORSSettings,
    DatabaseSettings,
    NotificationSettings,
    RedisSettings,
    Settings,
    SMTPSettings,
    WorkerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "DatabaseSettings",
    "RedisSettings",
    "SMTPSettings",
    "NotificationSettings",
    "CORSSettings",
    "APISettings",
    "WorkerSettings",
    "get_settings",
    "clear_settings_cache",
    # Policy
    "InterventionPolicy",
    "get_policy",
    "DomainDefinition",
    "BEHAVIORAL_DOMAINS",
    "REFLECTION_PROMPTS",
    "RESET_GOAL_EXAMPLES",
    "DEFAULT_READINESS_CHECKLIST",
    "TEACHER_SCRIPT_TEMPLATE",
]
