"""Email delivery over SMTP."""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from html import escape

import structlog

from core.config import settings
from domain.entities.notification import (
    ChannelErrorKind,
    NotificationChannel,
    NotificationPayload,
    Recipient,
    SendResult,
)
from domain.services.notification_catalog import get_entry

logger = structlog.get_logger()

PREFERENCES_PATH = "/notification-settings"


def _absolute_url(path: str | None) -> str:
    base = settings.app_base_url.rstrip("/")
    if not path:
        return f"{base}/dashboard"
    if path.startswith(("http://", "https://")):
        return path
    return f"{base}{path if path.startswith('/') else '/' + path}"


def render_email(payload: NotificationPayload) -> tuple[str, str, str]:
    """Return ``(subject, text, html)`` for a notification."""
    action_text = get_entry(payload.type).email_action_text
    action_url = _absolute_url(payload.url)
    preferences_url = _absolute_url(PREFERENCES_PATH)
    brand = settings.smtp_from_name

    text = (
        f"{payload.title}\n\n{payload.body}\n\n"
        f"{action_text}: {action_url}\n\n"
        f"Best regards,\nThe {brand} Team\n\n"
        f"Manage preferences: {preferences_url}"
    )

    html = f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #6D28D9; padding: 30px; border-radius: 12px 12px 0 0;">
    <h1 style="color: white; margin: 0; font-size: 24px;">{escape(brand)}</h1>
  </div>
  <div style="background: white; padding: 30px; border: 1px solid #E5E7EB; border-top: none; border-radius: 0 0 12px 12px;">
    <h2 style="color: #1F2937; margin-top: 0;">{escape(payload.title)}</h2>
    <p style="color: #4B5563; font-size: 16px; line-height: 1.6;">{escape(payload.body)}</p>
    <div style="margin: 30px 0;">
      <a href="{escape(action_url, quote=True)}" style="background: #8B5CF6; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; display: inline-block; font-weight: 600;">{escape(action_text)}</a>
    </div>
    <hr style="border: none; border-top: 1px solid #E5E7EB; margin: 30px 0;">
    <p style="color: #9CA3AF; font-size: 14px; line-height: 1.5;">Best regards,<br>The {escape(brand)} Team</p>
    <p style="color: #9CA3AF; font-size: 12px; margin-top: 20px;">
      You're receiving this because you have notifications enabled for your {escape(brand)} account.
      <a href="{escape(preferences_url, quote=True)}" style="color: #8B5CF6; text-decoration: none;">Manage preferences</a>
    </p>
  </div>
</div>
"""
    return payload.title, text, html


class EmailSender:
    """Sends one HTML + plain text message per notification.

    Without SMTP settings the message is logged instead of sent and reported
    as delivered, which keeps local development quiet.
    """

    channel = NotificationChannel.EMAIL

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds or settings.email_timeout_seconds

    async def resolve_destination(self, recipient: Recipient) -> str | None:
        email = (recipient.email or "").strip()
        return email or None

    async def send(self, destination: str, payload: NotificationPayload) -> SendResult:
        subject, text, html = render_email(payload)

        if not settings.smtp_configured:
            logger.info(
                "email_not_sent_smtp_unconfigured",
                to=destination,
                subject=subject,
                preview=text[:100],
            )
            return SendResult.success()

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((settings.smtp_from_name, settings.smtp_from))
        msg["To"] = destination
        msg["Message-ID"] = make_msgid(domain=settings.smtp_from.split("@")[-1] or None)
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        try:
            await asyncio.to_thread(self._deliver, destination, msg)
        except smtplib.SMTPRecipientsRefused as exc:
            return SendResult.failure(ChannelErrorKind.PERMANENT, f"Recipient refused: {exc.recipients}")
        except smtplib.SMTPResponseException as exc:
            kind = ChannelErrorKind.PERMANENT if exc.smtp_code >= 500 else ChannelErrorKind.TRANSIENT
            detail = exc.smtp_error.decode(errors="replace") if isinstance(exc.smtp_error, bytes) else exc.smtp_error
            return SendResult.failure(kind, f"SMTP {exc.smtp_code}: {detail}")
        except OSError as exc:
            return SendResult.failure(ChannelErrorKind.TRANSIENT, str(exc) or type(exc).__name__)

        logger.info("email_sent", to=destination, subject=subject)
        return SendResult.success(provider_message_id=msg["Message-ID"])

    def _deliver(self, destination: str, msg: MIMEMultipart) -> None:
        if settings.smtp_port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                settings.smtp_host, settings.smtp_port, timeout=self.timeout_seconds
            )
        else:
            server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=self.timeout_seconds)
        with server:
            if settings.smtp_port != 465:
                server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.smtp_from, [destination], msg.as_string())
