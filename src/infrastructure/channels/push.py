"""Push delivery to browsers (Web Push/VAPID) and mobile devices (Expo).

Browser subscriptions are sent one by one with pywebpush in a worker thread.
Mobile tokens are batched through the Expo push HTTP API. Every device send
(or Expo batch) runs concurrently under its own timeout, which is shorter than
the channel timeout the dispatcher applies, so one hung device cannot discard
the results of the others. The channel counts as sent when at least one device
accepted the message. Subscriptions the push service reports as gone are
removed from the registry as soon as that device's result arrives.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any

import httpx
import orjson
import structlog
from pywebpush import WebPushException, webpush

from core.config import settings
from domain.entities.notification import (
    ChannelErrorKind,
    DeviceRecord,
    DeviceSendResult,
    NotificationChannel,
    NotificationPayload,
    Recipient,
    SendResult,
)
from domain.services.device_registry import DeviceRegistry

logger = structlog.get_logger()

ICON_URL = "/pwa-192x192.png"
BADGE_URL = "/pwa-64x64.png"
EXPO_BATCH_SIZE = 100
WEB_PUSH_TTL_SECONDS = 24 * 60 * 60
# Share of the channel timeout each device send may use.
DEVICE_TIMEOUT_RATIO = 0.8

_GONE_STATUS = {404, 410}


def _classify_status(status: int | None) -> ChannelErrorKind:
    if status is None or status == 429 or status >= 500:
        return ChannelErrorKind.TRANSIENT
    return ChannelErrorKind.PERMANENT


def web_push_message(payload: NotificationPayload) -> dict[str, Any]:
    """Notification body understood by the service worker."""
    booking_id = payload.data.get("booking_id")
    tag = f"booking-{booking_id}" if booking_id else f"{payload.type.value}-{payload.id}"
    return {
        "title": payload.title,
        "body": payload.body,
        "icon": ICON_URL,
        "badge": BADGE_URL,
        "tag": tag,
        "requireInteraction": payload.require_interaction,
        "data": {
            **payload.data,
            "notificationId": str(payload.id),
            "type": payload.type.value,
            "url": payload.url,
        },
        "actions": [
            {k: v for k, v in (("action", a.action), ("title", a.title), ("icon", a.icon)) if v}
            for a in payload.actions
        ],
    }


def expo_message(token: str, payload: NotificationPayload) -> dict[str, Any]:
    return {
        "to": token,
        "title": payload.title,
        "body": payload.body,
        "data": {
            **payload.data,
            "notificationId": str(payload.id),
            "type": payload.type.value,
            "url": payload.url,
        },
        "sound": "default",
        "priority": "high" if payload.require_interaction else "default",
        "channelId": payload.category.value,
    }


class PushSender:
    """Delivers to every registered device of a user."""

    channel = NotificationChannel.PUSH

    def __init__(
        self,
        registry: DeviceRegistry,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._registry = registry
        self._http = http_client
        self.timeout_seconds = timeout_seconds or settings.push_timeout_seconds
        self.device_timeout_seconds = self.timeout_seconds * DEVICE_TIMEOUT_RATIO

    async def resolve_destination(self, recipient: Recipient) -> list[DeviceRecord] | None:
        devices = await self._registry.list_for_user(recipient.id)
        return devices or None

    async def send(self, destination: list[DeviceRecord], payload: NotificationPayload) -> SendResult:
        web = [d for d in destination if d.is_web]
        mobile = [d for d in destination if not d.is_web]
        chunks = [mobile[i : i + EXPO_BATCH_SIZE] for i in range(0, len(mobile), EXPO_BATCH_SIZE)]

        batches = await asyncio.gather(
            *(self._settle(self._send_web(d, payload), [d]) for d in web),
            *(self._settle(self._send_expo_batch(chunk, payload), chunk) for chunk in chunks),
        )
        device_results = [r for batch in batches for r in batch]
        return self._summarize(device_results)

    async def _settle(
        self,
        attempt: Awaitable[DeviceSendResult | list[DeviceSendResult]],
        devices: list[DeviceRecord],
    ) -> list[DeviceSendResult]:
        """Bound one device send, then drop any devices it found gone."""
        try:
            outcome = await asyncio.wait_for(attempt, timeout=self.device_timeout_seconds)
        except asyncio.TimeoutError:
            return [
                DeviceSendResult(
                    device_id=d.device_id,
                    ok=False,
                    error_kind=ChannelErrorKind.TIMEOUT,
                    error_message=f"No response within {self.device_timeout_seconds:g}s",
                )
                for d in devices
            ]

        results = outcome if isinstance(outcome, list) else [outcome]
        gone = [r.device_id for r in results if r.gone]
        if gone:
            # Removal must finish even if the dispatcher gives up on the channel.
            await asyncio.shield(self._registry.remove_gone(gone))
        return results

    # --- Web push ---

    async def _send_web(self, device: DeviceRecord, payload: NotificationPayload) -> DeviceSendResult:
        if not settings.web_push_configured:
            return DeviceSendResult(
                device_id=device.device_id,
                ok=False,
                error_kind=ChannelErrorKind.NOT_CONFIGURED,
                error_message="VAPID keys are not configured",
            )

        data = orjson.dumps(web_push_message(payload)).decode()
        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=device.subscription_info(),
                data=data,
                vapid_private_key=settings.vapid_private_key,
                vapid_claims={"sub": settings.vapid_subject},
                ttl=WEB_PUSH_TTL_SECONDS,
                timeout=self.device_timeout_seconds,
            )
        except WebPushException as exc:
            if exc.response is None:
                # Raised before any request: the stored subscription keys are unusable.
                logger.info("web_push_subscription_invalid", device_id=device.device_id, error=exc.message)
                return DeviceSendResult(
                    device_id=device.device_id,
                    ok=False,
                    error_kind=ChannelErrorKind.PERMANENT,
                    error_message=f"Invalid subscription: {exc.message}",
                    gone=True,
                )
            status = getattr(exc.response, "status_code", None)
            gone = status in _GONE_STATUS
            if gone:
                logger.info("web_push_subscription_gone", device_id=device.device_id, status=status)
            return DeviceSendResult(
                device_id=device.device_id,
                ok=False,
                error_kind=_classify_status(status),
                error_message=f"Push service returned {status}: {exc.message}",
                gone=gone,
            )
        except OSError as exc:
            # requests connection errors and timeouts are OSError subclasses
            return DeviceSendResult(
                device_id=device.device_id,
                ok=False,
                error_kind=ChannelErrorKind.TRANSIENT,
                error_message=str(exc),
            )
        return DeviceSendResult(device_id=device.device_id, ok=True)

    # --- Mobile push (Expo) ---

    async def _send_expo_batch(
        self, devices: list[DeviceRecord], payload: NotificationPayload
    ) -> list[DeviceSendResult]:
        messages = [expo_message(d.token or "", payload) for d in devices]
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if settings.expo_access_token:
            headers["Authorization"] = f"Bearer {settings.expo_access_token}"

        try:
            if self._http is not None:
                response = await self._http.post(
                    settings.expo_push_url, content=orjson.dumps(messages), headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=self.device_timeout_seconds) as client:
                    response = await client.post(
                        settings.expo_push_url, content=orjson.dumps(messages), headers=headers
                    )
        except httpx.HTTPError as exc:
            return [
                DeviceSendResult(
                    device_id=d.device_id,
                    ok=False,
                    error_kind=ChannelErrorKind.TRANSIENT,
                    error_message=str(exc) or type(exc).__name__,
                )
                for d in devices
            ]

        if response.status_code >= 400:
            kind = _classify_status(response.status_code)
            return [
                DeviceSendResult(
                    device_id=d.device_id,
                    ok=False,
                    error_kind=kind,
                    error_message=f"Expo returned {response.status_code}",
                )
                for d in devices
            ]

        tickets = response.json().get("data") or []
        results: list[DeviceSendResult] = []
        for device, ticket in zip(devices, tickets):
            if ticket.get("status") == "ok":
                results.append(DeviceSendResult(device_id=device.device_id, ok=True))
                continue
            error = (ticket.get("details") or {}).get("error")
            gone = error == "DeviceNotRegistered"
            results.append(
                DeviceSendResult(
                    device_id=device.device_id,
                    ok=False,
                    error_kind=(
                        ChannelErrorKind.TRANSIENT
                        if error == "MessageRateExceeded"
                        else ChannelErrorKind.PERMANENT
                    ),
                    error_message=ticket.get("message") or error,
                    gone=gone,
                )
            )
        # Fewer tickets than messages means Expo dropped the tail of the batch.
        for device in devices[len(tickets) :]:
            results.append(
                DeviceSendResult(
                    device_id=device.device_id,
                    ok=False,
                    error_kind=ChannelErrorKind.TRANSIENT,
                    error_message="Missing push ticket",
                )
            )
        return results

    @staticmethod
    def _summarize(results: list[DeviceSendResult]) -> SendResult:
        device_results = tuple(results)
        if any(r.ok for r in results):
            return SendResult(ok=True, device_results=device_results)

        kinds = {r.error_kind for r in results}
        if ChannelErrorKind.TRANSIENT in kinds:
            kind = ChannelErrorKind.TRANSIENT
        elif ChannelErrorKind.TIMEOUT in kinds:
            kind = ChannelErrorKind.TIMEOUT
        elif kinds == {ChannelErrorKind.NOT_CONFIGURED}:
            kind = ChannelErrorKind.NOT_CONFIGURED
        elif not results:
            kind = ChannelErrorKind.NO_DESTINATION
        else:
            kind = ChannelErrorKind.PERMANENT

        messages = "; ".join(r.error_message for r in results if r.error_message)
        return SendResult(
            ok=False,
            error_kind=kind,
            error_message=messages or "No device accepted the notification",
            device_results=device_results,
        )
