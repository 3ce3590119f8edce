"""Alert e-mail for critical issues, sent over SMTP with aiosmtplib."""

from __future__ import annotations

import html
import json
import logging
from email.message import EmailMessage
from typing import Any

from subdoctor.core.config import settings

logger = logging.getLogger(__name__)


def build_message(to: str, subject: str, html_body: str) -> EmailMessage:
    """HTML message with a plain-text fallback part."""
    msg = EmailMessage()
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content("This alert is formatted as HTML.")
    msg.add_alternative(html_body, subtype="html")
    return msg


class EmailService:
    """Delivers operator alerts.

    With no ``SMTP_HOST`` configured every send is a logged no-op that
    still reports success; SMTP failures propagate to the caller.
    """

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        if not settings.SMTP_HOST:
            logger.info("SMTP disabled, not sending %r to %s", subject, to)
            return True

        import aiosmtplib

        await aiosmtplib.send(
            build_message(to, subject, html_body),
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME or None,
            password=settings.SMTP_PASSWORD or None,
            start_tls=settings.SMTP_USE_TLS,
        )
        logger.info("Sent %r to %s", subject, to)
        return True

    async def send_critical_issue_alert(
        self,
        subscription_id: int | None,
        issue_type: str,
        category: str,
        details: dict[str, Any],
    ) -> bool:
        """Notify the operator address about a critical issue.

        Returns False without sending when no alert address is configured.
        """
        if not settings.ALERT_EMAIL:
            logger.warning("ALERT_EMAIL not configured, skipping critical alert for %s", issue_type)
            return False

        label = f"#{subscription_id}" if subscription_id else "(no subscription)"
        subject = f"Critical Subscription Issue - {label}"
        html_body = (
            f"<h2>Critical issue on subscription {html.escape(label)}</h2>"
            f"<table>"
            f"<tr><td><strong>Type:</strong></td><td>{html.escape(issue_type)}</td></tr>"
            f"<tr><td><strong>Category:</strong></td><td>{html.escape(category)}</td></tr>"
            f"<tr><td><strong>Details:</strong></td>"
            f"<td><pre>{html.escape(json.dumps(details, indent=2, default=str))}</pre></td></tr>"
            f"</table>"
            f"<p>Please review immediately.</p>"
        )
        return await self.send_email(to=settings.ALERT_EMAIL, subject=subject, html_body=html_body)
