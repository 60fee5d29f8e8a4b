"""
Transactional email.

``SendGridNotifier`` talks to the SendGrid v3 mail API over httpx;
``LogNotifier`` is used when no API key is configured and only logs.
Callers decide whether a send is load-bearing (``await notifier.send``)
or best-effort (``await send_quietly``).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from html import escape

import httpx

from backoffice.core.config import settings
from backoffice.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class Notifier(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> None:
        """Deliver one HTML email; raise ``UpstreamError`` on failure."""


class LogNotifier(Notifier):
    async def send(self, to: str, subject: str, html: str) -> None:
        logger.info("Email (not sent, no provider configured) to=%s subject=%r", to, subject)


class SendGridNotifier(Notifier):
    def __init__(self, api_key: str, from_email: str, timeout: float = 10.0):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    async def send(self, to: str, subject: str, html: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    SENDGRID_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Email delivery failed: {exc}") from exc
        logger.info("Email sent to %s (%s)", to, subject)


def build_notifier() -> Notifier:
    if settings.SENDGRID_API_KEY:
        return SendGridNotifier(
            settings.SENDGRID_API_KEY,
            settings.FROM_EMAIL,
            timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )
    return LogNotifier()


async def send_quietly(notifier: Notifier, to: str, subject: str, html: str) -> bool:
    """Best-effort send: failures are logged and never propagate."""
    try:
        await notifier.send(to, subject, html)
    except UpstreamError as exc:
        logger.warning("Email to %s failed: %s", to, exc.message)
        return False
    return True


# ── Templates ───────────────────────────────────────────────────────
def welcome_email() -> tuple[str, str]:
    return (
        "Welcome to Our Service!",
        "<p>Hello,</p><p>Thank you for registering with us.</p>"
        f"<p>Best regards,<br/>{escape(settings.COMPANY_NAME)} Team</p>",
    )


def password_reset_email(reset_url: str) -> tuple[str, str]:
    url = escape(reset_url)
    return (
        "Password Reset Request",
        f'<p>Click here to reset your password: <a href="{url}">{url}</a></p>'
        f"<p>This link expires in {settings.RESET_TOKEN_EXPIRE_MINUTES} minutes.</p>",
    )


def staff_invite_email(link: str) -> tuple[str, str]:
    url = escape(link)
    return (
        "Staff Invitation",
        "<h2>Welcome!</h2><p>Please complete your registration:</p>"
        f'<a href="{url}">Complete Registration</a>',
    )


def staff_approved_email(name: str | None, joining_date: str) -> tuple[str, str]:
    company = escape(settings.COMPANY_NAME)
    return (
        "Congratulations! Your application is approved",
        f"<h2>Congratulations {escape(name or '')}!</h2>"
        f"<p>You are appointed as a worker at <strong>{company}</strong>.</p>"
        "<p>You can use your registered email and password to log in and start working.</p>"
        f"<p>This is your official joining date: <strong>{escape(joining_date)}</strong></p>",
    )


def resignation_decision_email(
    name: str | None, status: str, admin_comment: str | None
) -> tuple[str, str]:
    comment = f"<p><b>Admin Comment:</b> {escape(admin_comment)}</p>" if admin_comment else ""
    return (
        f"Your Resignation Has Been {status.capitalize()}",
        f"<p>Dear {escape(name or '')},</p>"
        f"<p>Your resignation request has been <b>{status.upper()}</b>.</p>"
        f"{comment}<p>Thank you for your service to our organization.</p>",
    )
