"""
Email delivery backends.

Resend is used whenever an API key is set, SMTP when a relay is configured,
and the console backend otherwise so local signups and reminders still
complete without sending anything.
"""

import logging
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import Optional

import aiosmtplib
import httpx

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT = 30.0


@dataclass
class EmailMessage:
    """One outbound email. ``tag`` labels the email kind for delivery analytics."""
    to: str
    subject: str
    html_body: str
    plain_text_body: str
    from_email: Optional[str] = None
    reply_to: Optional[str] = None
    tag: Optional[str] = None


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailProvider:
    """Base class; subclasses implement ``send``."""

    name = "base"

    async def send(self, message: EmailMessage) -> SendResult:
        raise NotImplementedError


class ResendProvider(EmailProvider):
    """Delivers through the Resend HTTP API."""

    name = "resend"

    def __init__(self, api_key: str, from_email: str):
        self.api_key = api_key
        self.from_email = from_email

    def _payload(self, message: EmailMessage) -> dict:
        payload = {
            "from": message.from_email or self.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.plain_text_body,
        }
        if message.reply_to:
            payload["reply_to"] = message.reply_to
        if message.tag:
            payload["tags"] = [{"name": "category", "value": message.tag}]
        return payload

    async def send(self, message: EmailMessage) -> SendResult:
        if not self.api_key:
            return SendResult(success=False, error="Resend API key not configured")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=self._payload(message),
                    timeout=RESEND_TIMEOUT,
                )
        except httpx.HTTPError as e:
            logger.exception(f"Resend request failed for {message.to}")
            return SendResult(success=False, error=str(e))

        if response.status_code != 200:
            logger.error(f"Resend rejected '{message.subject}' ({response.status_code}): {response.text}")
            return SendResult(success=False, error=response.text)

        return SendResult(success=True, message_id=response.json().get("id"))


class SMTPProvider(EmailProvider):
    """Delivers through an SMTP relay with aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls

    def _build(self, message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime["Subject"] = message.subject
        mime["From"] = message.from_email or self.from_email
        mime["To"] = message.to
        if message.reply_to:
            mime["Reply-To"] = message.reply_to
        if message.tag:
            mime["X-Email-Category"] = message.tag
        mime.set_content(message.plain_text_body)
        mime.add_alternative(message.html_body, subtype="html")
        return mime

    async def send(self, message: EmailMessage) -> SendResult:
        if not (self.host and self.username and self.password):
            return SendResult(success=False, error="SMTP not configured")

        try:
            await aiosmtplib.send(
                self._build(message),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.exception(f"SMTP delivery to {message.to} failed")
            return SendResult(success=False, error=str(e))

        return SendResult(success=True)


class ConsoleProvider(EmailProvider):
    """Logs the plain-text body instead of sending. Used in development."""

    name = "console"

    async def send(self, message: EmailMessage) -> SendResult:
        logger.info(
            "Email not sent (console mode)\nTo: %s\nSubject: %s\n\n%s",
            message.to,
            message.subject,
            message.plain_text_body,
        )
        return SendResult(success=True, message_id="dev-mode")


def get_email_provider(
    resend_api_key: Optional[str] = None,
    from_email: str = "",
    smtp_config: Optional[dict] = None,
    console_mode: bool = False,
) -> EmailProvider:
    """Pick a backend: console mode, then Resend, then SMTP, then console."""
    if console_mode:
        provider = ConsoleProvider()
    elif resend_api_key:
        provider = ResendProvider(api_key=resend_api_key, from_email=from_email)
    elif smtp_config:
        provider = SMTPProvider(from_email=from_email, **smtp_config)
    else:
        provider = ConsoleProvider()

    logger.debug(f"Using {provider.name} email provider")
    return provider
