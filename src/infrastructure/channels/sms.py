"""SMS delivery through the Twilio REST API."""

import re

import httpx
import structlog

from core.config import settings
from domain.entities.notification import (
    ChannelErrorKind,
    NotificationChannel,
    NotificationPayload,
    Recipient,
    SendResult,
)

logger = structlog.get_logger()

MAX_SMS_LENGTH = 160
DEFAULT_COUNTRY_CODE = "1"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(raw: str | None) -> str | None:
    """Normalize to E.164, assuming a North American number without a ``+``.

    Returns None for anything that cannot be a dialable number.
    """
    if not raw:
        return None
    raw = raw.strip()
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) < 10 or len(digits) > 15:
        return None
    if raw.startswith("+"):
        return f"+{digits}"
    if len(digits) == 11 and digits.startswith(DEFAULT_COUNTRY_CODE):
        return f"+{digits}"
    return f"+{DEFAULT_COUNTRY_CODE}{digits}"


def sms_body(payload: NotificationPayload) -> str:
    text = f"{payload.title}: {payload.body}"
    if len(text) > MAX_SMS_LENGTH:
        return text[: MAX_SMS_LENGTH - 3] + "..."
    return text


class SmsSender:
    """Sends a single-segment text to the recipient's verified phone."""

    channel = NotificationChannel.SMS

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._http = http_client
        self.timeout_seconds = timeout_seconds or settings.sms_timeout_seconds

    async def resolve_destination(self, recipient: Recipient) -> str | None:
        if not recipient.phone_verified:
            return None
        return normalize_phone_number(recipient.phone_number)

    async def send(self, destination: str, payload: NotificationPayload) -> SendResult:
        if not settings.sms_configured:
            return SendResult.failure(ChannelErrorKind.NOT_CONFIGURED, "SMS is disabled or not configured")

        url = f"{settings.twilio_api_base}/Accounts/{settings.twilio_account_sid}/Messages.json"
        form = {"To": destination, "From": settings.twilio_phone_number, "Body": sms_body(payload)}
        auth = (settings.twilio_account_sid, settings.twilio_auth_token)

        try:
            if self._http is not None:
                response = await self._http.post(url, data=form, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(url, data=form, auth=auth)
        except httpx.HTTPError as exc:
            return SendResult.failure(ChannelErrorKind.TRANSIENT, str(exc) or type(exc).__name__)

        if response.status_code >= 400:
            return self._failure(response)

        sid = response.json().get("sid")
        logger.info("sms_sent", to=_mask(destination), sid=sid)
        return SendResult.success(provider_message_id=sid)

    @staticmethod
    def _failure(response: httpx.Response) -> SendResult:
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("message") or response.text or f"HTTP {response.status_code}"
        code = body.get("code")

        if response.status_code == 429 or response.status_code >= 500:
            kind = ChannelErrorKind.TRANSIENT
        else:
            kind = ChannelErrorKind.PERMANENT

        logger.warning("sms_rejected", status=response.status_code, code=code, error=message)
        return SendResult.failure(kind, f"Twilio {code or response.status_code}: {message}")


def _mask(number: str) -> str:
    return "*" * (len(number) - 4) + number[-4:]
