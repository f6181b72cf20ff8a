# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system.

Templated email dispatch used by the digest generator and the daily
intervention monitoring sweep. Delivery is best-effort: failures are
logged and never raised to the calling workflow.

Usage:
    from src.infrastructure.notifications import get_notification_service

    service = get_notification_service()
    message_id = await service.send_templated_email(
        "weekly_digest", "head@school.org", variables
    )

Configuration (environment variables):
- SMTP_HOST, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD
- SMTP_FROM_EMAIL, SMTP_FROM_NAME, SMTP_USE_TLS
"""

from src.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    EmailChannel,
    NotificationPayload,
)
from src.infrastructure.notifications.service import (
    NotificationService,
    get_notification_service,
    reset_notification_service,
)
from src.infrastructure.notifications.templates import (
    EMAIL_TEMPLATES,
    EmailTemplate,
    TemplateNotFoundError,
)

__all__ = [
    # Service
    "NotificationService",
    "get_notification_service",
    "reset_notification_service",
    # Templates
    "EMAIL_TEMPLATES",
    "EmailTemplate",
    "TemplateNotFoundError",
    # Channel types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "NotificationPayload",
    "EmailChannel",
]
