# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email templates keyed by template name.

Templates use str.format placeholders. List values are rendered as
bulleted lines before substitution.
"""

from dataclasses import dataclass
from typing import Any


class TemplateNotFoundError(KeyError):
    """Raised when a template key is not registered."""


@dataclass(frozen=True)
class EmailTemplate:
    """Subject and body pattern for one email type."""

    key: str
    subject: str
    body: str

    def render(self, variables: dict[str, Any]) -> tuple[str, str]:
        """Render subject and body.

        Args:
            variables: Placeholder values.

        Returns:
            Tuple of (subject, body).

        Raises:
            KeyError: If a placeholder has no value.
        """
        context = {key: _format_value(value) for key, value in variables.items()}
        return self.subject.format_map(context), self.body.format_map(context)


def _format_value(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return "\n".join(f"  - {item}" for item in value) or "  - None"
    return value


EMAIL_TEMPLATES: dict[str, EmailTemplate] = {
    "weekly_digest": EmailTemplate(
        key="weekly_digest",
        subject="Weekly implementation digest ({week_start} to {week_end}): {health_status}",
        body=(
            "Health: {health_status} (score {health_score})\n"
            "Staff participation: {participation_rate}% "
            "({active_staff} of {total_staff} staff active)\n"
            "Points awarded: {total_points}\n\n"
            "Insights:\n{insights}\n\n"
            "Recommended actions:\n{actions}"
        ),
    ),
    "intervention_escalation": EmailTemplate(
        key="intervention_escalation",
        subject="Intervention follow-up needed: {record_type} for student {student_id}",
        body=(
            "{record_type} {record_id} for student {student_id} needs attention.\n\n"
            "Reason: {reason}\n\n"
            "Review the record in the interventions dashboard."
        ),
    ),
    "monitoring_summary": EmailTemplate(
        key="monitoring_summary",
        subject="Daily intervention monitoring for {run_date}",
        body=(
            "Level B windows closed: {level_b_closed}\n"
            "Level B escalated to case management: {level_b_escalated}\n"
            "Level C cases needing attention: {level_c_flagged}\n"
            "Re-entries needing attention: {reentry_flagged}\n\n"
            "Details:\n{details}"
        ),
    ),
}


def get_template(template_key: str) -> EmailTemplate:
    """Look up a registered template.

    Raises:
        TemplateNotFoundError: If the key is unknown.
    """
    try:
        return EMAIL_TEMPLATES[template_key]
    except KeyError:
        raise TemplateNotFoundError(template_key) from None
