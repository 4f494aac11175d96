"""Email service for onboarding emails sent via SMTP."""

from __future__ import annotations

import html
import logging
from email.message import EmailMessage
from typing import TYPE_CHECKING

from app.core.config import settings

if TYPE_CHECKING:
    from app.models.tenant import Tenant

logger = logging.getLogger(__name__)


def _format_cents(amount_cents: int | None) -> str:
    """Format an amount in cents with two decimal places."""
    cents = amount_cents or 0
    return f"{cents // 100:,}.{cents % 100:02d}"


class EmailService:
    """Service for sending onboarding emails via SMTP."""

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """Send an email via SMTP.

        Args:
            to: Recipient email address.
            subject: Email subject line.
            html_body: HTML content of the email.

        Returns:
            True if sent successfully (or no-op when SMTP unconfigured).
        """
        if not settings.smtp_enabled:
            logger.info("SMTP not configured, skipping email to %s: %s", to, subject)
            return True

        import aiosmtplib

        msg = EmailMessage()
        msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Please view this email in an HTML-capable client.")
        msg.add_alternative(html_body, subtype="html")

        await aiosmtplib.send(
            msg,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME or None,
            password=settings.SMTP_PASSWORD or None,
            start_tls=settings.SMTP_USE_TLS,
        )
        logger.info("Email sent to %s: %s", to, subject)
        return True

    async def send_otp_email(self, tenant: Tenant, code: str, ttl_seconds: int) -> bool:
        """Send the email verification code to the tenant's contact address."""
        minutes = max(1, ttl_seconds // 60)
        name = html.escape(str(tenant.contact_name or tenant.organization_name))
        html_body = (
            f"<h2>Verify your email address</h2>"
            f"<p>Hi {name},</p>"
            f"<p>Your verification code is:</p>"
            f"<p style=\"font-size:24px;letter-spacing:4px\"><strong>{code}</strong></p>"
            f"<p>The code expires in {minutes} minutes. "
            f"If you did not request it, you can ignore this email.</p>"
        )
        return await self.send_email(
            to=str(tenant.email),
            subject=f"{settings.APP_NAME} verification code",
            html_body=html_body,
        )

    async def send_activation_email(
        self,
        email: str,
        organization_name: str,
        plan_name: str,
        amount_cents: int,
        currency: str,
    ) -> bool:
        """Confirm to the tenant that payment went through and the account is live."""
        org_name = html.escape(organization_name)
        html_body = (
            f"<h2>Welcome to {html.escape(settings.APP_NAME)}</h2>"
            f"<p>Your account for {org_name} is now active.</p>"
            f"<table>"
            f"<tr><td><strong>Plan:</strong></td><td>{html.escape(plan_name)}</td></tr>"
            f"<tr><td><strong>Amount paid:</strong></td>"
            f"<td>{_format_cents(amount_cents)} {currency}</td></tr>"
            f"</table>"
            f"<p>Thank you for choosing us.</p>"
        )
        return await self.send_email(
            to=email,
            subject=f"Your {settings.APP_NAME} account is active",
            html_body=html_body,
        )
