# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for application settings and the intervention policy."""

import dataclasses
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import (
    BEHAVIORAL_DOMAINS,
    DEFAULT_READINESS_CHECKLIST,
    REFLECTION_PROMPTS,
    TEACHER_SCRIPT_TEMPLATE,
    APISettings,
    DatabaseSettings,
    NotificationSettings,
    RedisSettings,
    Settings,
    SMTPSettings,
    clear_settings_cache,
    get_policy,
    get_settings,
)


class TestDatabaseSettings:
    """Tests for DatabaseSettings."""

    def test_url_from_components(self) -> None:
        settings = DatabaseSettings(
            user="u",
            password="p",  # type: ignore[arg-type]
            host="db",
            port=5433,
            database="league",
        )

        assert settings.url == "postgresql+asyncpg://u:p@db:5433/league"
        assert settings.sync_url == "postgresql://u:p@db:5433/league"
        assert settings.is_sqlite is False

    def test_database_url_override(self) -> None:
        with patch.dict(os.environ, {"DATABASE_URL": "sqlite+aiosqlite:///league.db"}):
            settings = DatabaseSettings()

        assert settings.url == "sqlite+aiosqlite:///league.db"
        assert settings.is_sqlite is True


class TestRedisSettings:
    """Tests for RedisSettings."""

    def test_url_without_password(self) -> None:
        assert RedisSettings(host="cache", port=6380, database=2).url == "redis://cache:6380/2"

    def test_url_with_password(self) -> None:
        settings = RedisSettings(password="secret")  # type: ignore[arg-type]

        assert settings.url == "redis://:secret@localhost:6379/0"


class TestSMTPSettings:
    """Tests for SMTPSettings."""

    def test_not_configured_by_default(self) -> None:
        assert SMTPSettings().is_configured is False

    def test_configured(self) -> None:
        settings = SMTPSettings(
            host="smtp.school.org",
            username="mailer",
            password="pw",  # type: ignore[arg-type]
            from_email="noreply@school.org",
        )

        assert settings.is_configured is True


class TestNotificationSettings:
    """Tests for recipient parsing."""

    def test_recipient_lists(self) -> None:
        env = {
            "NOTIFY_DIGEST_RECIPIENTS": "head@school.org, deputy@school.org,",
            "NOTIFY_ESCALATION_RECIPIENTS": "",
        }
        with patch.dict(os.environ, env):
            settings = NotificationSettings()

        assert settings.digest_recipients_list == ["head@school.org", "deputy@school.org"]
        assert settings.escalation_recipients_list == []


class TestSettings:
    """Tests for the aggregate Settings."""

    def test_cron_secret_alias(self) -> None:
        with patch.dict(os.environ, {"CRON_SECRET": "s3cret"}):
            settings = APISettings()

        assert settings.cron_secret is not None
        assert settings.cron_secret.get_secret_value() == "s3cret"

    def test_production_requires_cron_secret(self) -> None:
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("CRON_SECRET", None)
            with pytest.raises(ValidationError, match="CRON_SECRET"):
                Settings(environment="production")

    def test_environment_flags(self) -> None:
        settings = Settings(environment="development")

        assert settings.is_development is True
        assert settings.is_production is False

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self) -> None:
        first = get_settings()
        clear_settings_cache()

        assert get_settings() is not first


class TestInterventionPolicy:
    """Tests for policy defaults and reference data."""

    def test_policy_is_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            get_policy().level_b_success_threshold = 50.0  # type: ignore[misc]

    def test_reentry_durations(self) -> None:
        policy = get_policy()

        assert policy.reentry_duration_days("level_b") == 3
        assert policy.reentry_duration_days("detention") == 3
        assert policy.reentry_duration_days("iss") == 5
        assert policy.reentry_duration_days("oss") == 10

    def test_reentry_methods(self) -> None:
        policy = get_policy()

        assert policy.reentry_method("oss") == "intensive"
        assert policy.reentry_method("iss") == "check_in_out"
        assert policy.reentry_method("detention") == "checklist"

    def test_thresholds(self) -> None:
        policy = get_policy()

        assert policy.level_c_point_thresholds == (20, 30, 35, 40)
        assert policy.early_concern_demerits == 3
        assert policy.context_isolation_share == 0.6

    def test_reference_data(self) -> None:
        assert [domain.key for domain in BEHAVIORAL_DOMAINS] == [
            "prayer_space",
            "hallways",
            "lunch_recess",
            "respect",
        ]
        assert len(REFLECTION_PROMPTS) == 6
        assert len(DEFAULT_READINESS_CHECKLIST) == 4
        assert "{goal}" in TEACHER_SCRIPT_TEMPLATE
