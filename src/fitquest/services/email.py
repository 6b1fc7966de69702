"""Transactional email: verification and password reset links.

``EmailService`` renders messages and hands them to a backend chosen by
``settings.email_backend``. Delivery is best-effort: account workflows have
already committed by the time an email goes out, so failures are logged and
reported as ``False`` rather than raised.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from email.message import EmailMessage

import aiosmtplib
import httpx

from fitquest.config import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str


class EmailBackend(ABC):
    """Delivers a rendered email."""

    @abstractmethod
    async def send(self, email: OutgoingEmail) -> bool:
        """Deliver ``email``. Returns True if the provider accepted it."""


class ConsoleEmailBackend(EmailBackend):
    """Writes emails to the log instead of delivering them (development)."""

    async def send(self, email: OutgoingEmail) -> bool:
        rule = "=" * 60
        logger.info(
            f"\n{rule}\nEMAIL (console backend, not sent)\n"
            f"To: {email.to}\nSubject: {email.subject}\n{rule}\n{email.text}\n{rule}"
        )
        return True


class SMTPEmailBackend(EmailBackend):
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        """Multipart/alternative message with plain text and HTML parts."""
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.text)
        message.add_alternative(email.html, subtype="html")
        return message

    async def send(self, email: OutgoingEmail) -> bool:
        try:
            await aiosmtplib.send(
                self.build_message(email),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP delivery to {email.to} failed: {e}")
            return False

        logger.info(f"Email sent via SMTP to {email.to}")
        return True


class ResendEmailBackend(EmailBackend):
    """Delivers through the Resend HTTP API."""

    def __init__(self, api_key: str, from_address: str):
        self.api_key = api_key
        self.from_address = from_address

    async def send(self, email: OutgoingEmail) -> bool:
        payload = {
            "from": self.from_address,
            "to": [email.to],
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }
        async with httpx.AsyncClient(timeout=30.0) as client:
            try:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend API error: {e.response.status_code} - {e.response.text}")
                return False
            except httpx.HTTPError as e:
                logger.error(f"Resend delivery to {email.to} failed: {e}")
                return False

        logger.info(f"Email sent via Resend to {email.to}")
        return True


def get_email_backend() -> EmailBackend:
    """Build the backend named by ``settings.email_backend``."""
    name = settings.email_backend
    if name == "console":
        return ConsoleEmailBackend()
    if name == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
        )
    if name == "resend":
        return ResendEmailBackend(api_key=settings.resend_api_key, from_address=settings.email_from)
    raise ValueError(f"Unknown email backend: {name}")


def _format_duration(ttl: timedelta) -> str:
    minutes = int(ttl.total_seconds() // 60)
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


@dataclass(frozen=True)
class LinkEmailTemplate:
    """A single call-to-action email: greeting, one button, expiry notice."""

    subject: str
    heading: str
    intro: str
    button_label: str
    footer: str

    def render(self, to: str, url: str, expires_in: str) -> OutgoingEmail:
        html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #00E676;">{self.heading}</h1>
  <p>{self.intro}</p>
  <p style="margin: 24px 0;">
    <a href="{url}" style="background-color: #00E676; color: #0A0A0A; padding: 12px 24px; text-decoration: none; border-radius: 8px; font-weight: bold;">{self.button_label}</a>
  </p>
  <p style="color: #666; font-size: 12px; word-break: break-all;">{url}</p>
  <p style="color: #666; font-size: 14px;">This link will expire in {expires_in}.</p>
  <p style="color: #999; font-size: 12px;">{self.footer}</p>
</body>
</html>
"""
        text = (
            f"{self.heading}\n\n{self.intro}\n\n{url}\n\n"
            f"This link will expire in {expires_in}.\n\n{self.footer}\n"
        )
        return OutgoingEmail(to=to, subject=self.subject, html=html, text=text)


VERIFICATION_EMAIL = LinkEmailTemplate(
    subject="Verify Your FitQuest Account",
    heading="Welcome to FitQuest!",
    intro="Verify your email address to start your fitness adventure.",
    button_label="Verify Email",
    footer="If you didn't create a FitQuest account, you can safely ignore this email.",
)

PASSWORD_RESET_EMAIL = LinkEmailTemplate(
    subject="Reset Your FitQuest Password",
    heading="Password Reset Request",
    intro="We received a request to reset your FitQuest password. Use the link below to choose a new one.",
    button_label="Reset Password",
    footer=(
        "If you didn't request a password reset, you can safely ignore this email. "
        "Your password will remain unchanged."
    ),
)


class EmailService:
    """Sends the account emails through a backend. Never raises."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def _deliver(self, email: OutgoingEmail) -> bool:
        try:
            sent = await self.backend.send(email)
        except Exception:
            logger.exception(f"Error sending '{email.subject}' email to {email.to}")
            return False

        if not sent:
            logger.error(f"'{email.subject}' email to {email.to} was not delivered")
        return sent

    async def send_verification_email(self, to: str, verification_url: str) -> bool:
        expires_in = _format_duration(settings.verification_token_ttl)
        return await self._deliver(VERIFICATION_EMAIL.render(to, verification_url, expires_in))

    async def send_password_reset_email(self, to: str, reset_url: str) -> bool:
        expires_in = _format_duration(settings.password_reset_ttl)
        return await self._deliver(PASSWORD_RESET_EMAIL.render(to, reset_url, expires_in))
