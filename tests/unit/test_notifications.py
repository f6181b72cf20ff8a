# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for templated email notifications."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest

from src.core.config import Settings, SMTPSettings
from src.infrastructure.notifications import (
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    EmailChannel,
    NotificationPayload,
    NotificationService,
    TemplateNotFoundError,
)
from src.infrastructure.notifications.templates import get_template


@pytest.fixture
def mock_channel() -> MagicMock:
    """Channel that reports every send as delivered."""
    channel = MagicMock()
    channel.send = AsyncMock(
        return_value=ChannelResult(
            channel=ChannelType.EMAIL,
            status=DeliveryStatus.SENT,
            message_id="<msg-1>",
        )
    )
    return channel


@pytest.fixture
def smtp_settings() -> SMTPSettings:
    return SMTPSettings(
        host="smtp.school.org",
        username="mailer",
        password="pw",  # type: ignore[arg-type]
        from_email="noreply@school.org",
    )


class TestTemplates:
    """Tests for template rendering."""

    def test_render_lists_as_bullets(self) -> None:
        subject, body = get_template("intervention_escalation").render(
            {"record_type": "Level B", "record_id": "b1", "student_id": "S1", "reason": "Low rate"}
        )

        assert subject == "Intervention follow-up needed: Level B for student S1"
        assert "Reason: Low rate" in body

    def test_render_missing_value(self) -> None:
        with pytest.raises(KeyError):
            get_template("intervention_escalation").render({"record_type": "Level B"})

    def test_unknown_template(self) -> None:
        with pytest.raises(TemplateNotFoundError):
            get_template("nope")


class TestNotificationService:
    """Tests for NotificationService."""

    @pytest.mark.asyncio
    async def test_send_templated_email(self, mock_channel: MagicMock) -> None:
        service = NotificationService(Settings(), channel=mock_channel)

        message_id = await service.send_templated_email(
            "intervention_escalation",
            "dean@school.org",
            {
                "record_type": "Level C case",
                "record_id": "c1",
                "student_id": "S1",
                "reason": "Stale",
                "dashboard_url": "http://portal/cases",
            },
        )

        assert message_id == "<msg-1>"
        payload: NotificationPayload = mock_channel.send.await_args.args[0]
        assert payload.recipient_email == "dean@school.org"
        assert payload.action_url == "http://portal/cases"

    @pytest.mark.asyncio
    async def test_render_failure_returns_none(self, mock_channel: MagicMock) -> None:
        service = NotificationService(Settings(), channel=mock_channel)

        assert await service.send_templated_email("intervention_escalation", "a@b.c", {}) is None
        mock_channel.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_to_many_counts_delivered(self, mock_channel: MagicMock) -> None:
        mock_channel.send.side_effect = [
            ChannelResult(channel=ChannelType.EMAIL, status=DeliveryStatus.SENT, message_id="1"),
            ChannelResult(channel=ChannelType.EMAIL, status=DeliveryStatus.FAILED, error_message="x"),
        ]
        service = NotificationService(Settings(), channel=mock_channel)
        variables = {"record_type": "Re-entry", "record_id": "r1", "student_id": "S1", "reason": "Late"}

        sent = await service.send_to_many("intervention_escalation", ["a@x.org", "b@x.org"], variables)

        assert sent == 1

    def test_dashboard_url(self, mock_channel: MagicMock) -> None:
        service = NotificationService(Settings(app_url="https://portal.school.org/"), channel=mock_channel)

        assert service.dashboard_url("/dashboard/cases") == "https://portal.school.org/dashboard/cases"


class TestEmailChannel:
    """Tests for the SMTP channel."""

    def _payload(self) -> NotificationPayload:
        return NotificationPayload(
            template_key="weekly_digest",
            subject="Digest",
            body="Body",
            recipient_email="head@school.org",
        )

    @pytest.mark.asyncio
    async def test_skipped_when_not_configured(self) -> None:
        result = await EmailChannel(SMTPSettings()).send(self._payload())

        assert result.status == DeliveryStatus.SKIPPED
        assert result.succeeded is False

    @pytest.mark.asyncio
    async def test_sends_via_smtp(self, smtp_settings: SMTPSettings) -> None:
        with patch("src.infrastructure.notifications.channels.email.aiosmtplib.send", new=AsyncMock()) as send:
            result = await EmailChannel(smtp_settings).send(self._payload())

        assert result.succeeded is True
        send.assert_awaited_once()
        assert send.await_args.kwargs["hostname"] == "smtp.school.org"

    @pytest.mark.asyncio
    async def test_smtp_error_is_failure(self, smtp_settings: SMTPSettings) -> None:
        error = aiosmtplib.SMTPException("refused")
        with patch("src.infrastructure.notifications.channels.email.aiosmtplib.send", new=AsyncMock(side_effect=error)):
            result = await EmailChannel(smtp_settings).send(self._payload())

        assert result.status == DeliveryStatus.FAILED
        assert "refused" in result.error_message
