"""
Email Service

Sends the account and invoice emails through the configured provider.
Delivery problems are logged and reported in the SendResult; callers decide
whether a failure matters.
"""
import logging
from typing import Optional

from simplegrowth.config import settings
from simplegrowth.notifications import templates
from simplegrowth.notifications.email_provider import (
    EmailMessage,
    EmailProvider,
    SendResult,
    get_email_provider,
)

logger = logging.getLogger(__name__)


def _smtp_config() -> Optional[dict]:
    if not settings.SMTP_HOST:
        return None
    return {
        "host": settings.SMTP_HOST,
        "port": settings.SMTP_PORT,
        "username": settings.SMTP_USERNAME,
        "password": settings.SMTP_PASSWORD,
        "use_tls": settings.SMTP_USE_TLS,
    }


class EmailService:
    """High-level email operations used by route handlers."""

    def __init__(self, provider: Optional[EmailProvider] = None):
        self.provider = provider or get_email_provider(
            resend_api_key=settings.RESEND_API_KEY,
            from_email=settings.EMAIL_FROM,
            smtp_config=_smtp_config(),
            console_mode=settings.EMAIL_CONSOLE_MODE,
        )

    @property
    def frontend_url(self) -> str:
        return settings.FRONTEND_URL.rstrip("/")

    async def _send(self, to: str, built: tuple[str, str, str], tag: str) -> SendResult:
        subject, html_body, plain_text_body = built
        result = await self.provider.send(
            EmailMessage(
                to=to,
                subject=subject,
                html_body=html_body,
                plain_text_body=plain_text_body,
                tag=tag,
            )
        )
        if not result.success:
            logger.warning(f"Email '{subject}' to {to} was not delivered: {result.error}")
        return result

    async def send_verification_email(self, email: str, name: str, token: str) -> SendResult:
        verify_url = f"{self.frontend_url}/verify-email?token={token}"
        return await self._send(email, templates.build_verification_email(name, verify_url), "verification")

    async def send_welcome_email(self, email: str, name: Optional[str]) -> SendResult:
        return await self._send(email, templates.build_welcome_email(name or "there"), "welcome")

    async def send_password_reset_email(self, email: str, token: str) -> SendResult:
        reset_url = f"{self.frontend_url}/reset-password?token={token}"
        return await self._send(email, templates.build_password_reset_email(reset_url), "password_reset")

    async def send_invoice_reminder_email(
        self,
        email: str,
        client_name: str,
        invoice_number: str,
        amount_cents: int,
        due_date: str,
        days_overdue: int,
    ) -> SendResult:
        amount = f"${amount_cents / 100:,.2f}"
        return await self._send(
            email,
            templates.build_invoice_reminder_email(
                client_name, invoice_number, amount, due_date, days_overdue
            ),
            "invoice_reminder",
        )


def get_email_service() -> EmailService:
    """FastAPI dependency for the email service."""
    return EmailService()
