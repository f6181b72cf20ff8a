# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email notification channel using async SMTP.

This channel sends email using aiosmtplib. Every message carries a plain
text part and, when the payload provides one, an HTML alternative.

Configuration comes from SMTPSettings (SMTP_* environment variables). The
channel skips sends until host, username, password and sender address are
all configured.
"""

import html
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import aiosmtplib

from src.core.config.settings import SMTPSettings
from src.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    NotificationPayload,
)


class EmailChannel(BaseChannel):
    """Email notification channel using async SMTP."""

    def __init__(self, settings: SMTPSettings) -> None:
        """Initialize the email channel.

        Args:
            settings: SMTP configuration.
        """
        super().__init__()
        self._settings = settings
        if not settings.is_configured:
            self.logger.warning(
                "Email notifications disabled: SMTP_HOST, SMTP_USERNAME, "
                "SMTP_PASSWORD, or SMTP_FROM_EMAIL not set"
            )

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.EMAIL

    @property
    def is_configured(self) -> bool:
        """Whether sends will be attempted."""
        return self._settings.is_configured

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Send an email via SMTP.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with delivery status. Transport errors produce a
            failed result rather than an exception.
        """
        if not self.is_configured:
            return self.create_skipped_result("SMTP configuration incomplete")

        if not payload.recipient_email:
            return self.create_skipped_result("No recipient email address")

        message = self._build_email_message(payload)

        try:
            await aiosmtplib.send(
                message,
                hostname=self._settings.host,
                port=self._settings.port,
                username=self._settings.username,
                password=self._settings.password.get_secret_value() if self._settings.password else None,
                start_tls=self._settings.use_tls,
                timeout=self._settings.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            self.logger.error(
                "Failed to send email to %s: %s",
                payload.recipient_email,
                str(e),
                exc_info=True,
            )
            return self.create_failure_result(
                f"SMTP error: {str(e)}",
                metadata={"recipient": payload.recipient_email},
            )

        self.logger.info(
            "Email sent to %s: %s",
            payload.recipient_email,
            payload.subject,
        )
        return self.create_success_result(
            message_id=message["Message-ID"],
            metadata={"recipient": payload.recipient_email, "template": payload.template_key},
        )

    def _build_email_message(self, payload: NotificationPayload) -> MIMEMultipart:
        """Build the MIME message for a payload."""
        message = MIMEMultipart("alternative")
        message["From"] = f"{self._settings.from_name} <{self._settings.from_email}>"
        message["To"] = payload.recipient_email
        message["Subject"] = payload.subject
        message["Message-ID"] = make_msgid(domain=(self._settings.from_email or "").partition("@")[2] or None)

        message.attach(MIMEText(self._build_plain_text(payload), "plain", "utf-8"))
        message.attach(MIMEText(payload.html_body or self._build_html(payload), "html", "utf-8"))
        return message

    def _build_plain_text(self, payload: NotificationPayload) -> str:
        lines = [payload.subject, "=" * len(payload.subject), "", payload.body, ""]
        if payload.action_url:
            lines.extend([f"Open dashboard: {payload.action_url}", ""])
        lines.extend(["---", f"Sent by {self._settings.from_name}."])
        return "\n".join(lines)

    def _build_html(self, payload: NotificationPayload) -> str:
        subject = html.escape(payload.subject)
        body = html.escape(payload.body).replace("\n", "<br>")

        action_button = ""
        if payload.action_url:
            action_button = f"""
            <div style="margin: 24px 0;">
                <a href="{html.escape(payload.action_url, quote=True)}"
                   style="background-color: #1E3A8A; color: white;
                          padding: 12px 24px; text-decoration: none;
                          border-radius: 6px; font-weight: 500;">
                    Open dashboard
                </a>
            </div>
            """

        return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1F2937;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #1E3A8A; font-size: 22px;">{subject}</h1>
        <div style="font-size: 15px;">{body}</div>
        {action_button}
        <p style="font-size: 12px; color: #9CA3AF;">Sent by {html.escape(self._settings.from_name)}.</p>
    </div>
</body>
</html>
        """.strip()
