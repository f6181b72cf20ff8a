# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification service for templated email dispatch.

Dispatch is best-effort: rendering or delivery failures are logged and
reported as a missing message id so the calling workflow always proceeds.
"""

import logging
from typing import Any

from src.core.config.settings import Settings, get_settings
from src.infrastructure.notifications.channels import (
    BaseChannel,
    EmailChannel,
    NotificationPayload,
)
from src.infrastructure.notifications.templates import get_template

logger = logging.getLogger(__name__)


class NotificationService:
    """Renders templates and sends them through the email channel.

    Attributes:
        app_url: Base portal URL used for dashboard links.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        channel: BaseChannel | None = None,
    ) -> None:
        """Initialize the notification service.

        Args:
            settings: Application settings. Defaults to get_settings().
            channel: Delivery channel. Defaults to an EmailChannel built from
                the SMTP settings.
        """
        settings = settings or get_settings()
        self.app_url = settings.app_url.rstrip("/")
        self._channel = channel or EmailChannel(settings.smtp)

    async def send_templated_email(
        self,
        template_key: str,
        recipient: str,
        variables: dict[str, Any],
    ) -> str | None:
        """Render a template and send it to one recipient.

        Args:
            template_key: Registered template name.
            recipient: Destination email address.
            variables: Template placeholder values. A dashboard_url value is
                used as the message action link.

        Returns:
            The transport message id, or None if nothing was sent.
        """
        try:
            subject, body = get_template(template_key).render(variables)
        except KeyError as e:
            logger.warning("Cannot render email template %s: missing %s", template_key, e)
            return None

        payload = NotificationPayload(
            template_key=template_key,
            subject=subject,
            body=body,
            recipient_email=recipient,
            action_url=variables.get("dashboard_url"),
        )
        result = await self._channel.send(payload)

        if not result.succeeded:
            logger.warning(
                "Email %s to %s not sent: %s",
                template_key,
                recipient,
                result.error_message,
            )
            return None
        return result.message_id or ""

    async def send_to_many(
        self,
        template_key: str,
        recipients: list[str],
        variables: dict[str, Any],
    ) -> int:
        """Send the same templated email to several recipients.

        Returns:
            Number of recipients the message was sent to.
        """
        sent = 0
        for recipient in recipients:
            if await self.send_templated_email(template_key, recipient, variables) is not None:
                sent += 1
        return sent

    def dashboard_url(self, path: str) -> str:
        """Build an absolute portal URL for a dashboard path."""
        return f"{self.app_url}/{path.lstrip('/')}"


# Singleton instance management
_service_instance: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get or create the notification service singleton."""
    global _service_instance
    if _service_instance is None:
        _service_instance = NotificationService()
    return _service_instance


def reset_notification_service() -> None:
    """Drop the singleton so the next call rebuilds it from settings."""
    global _service_instance
    _service_instance = None
