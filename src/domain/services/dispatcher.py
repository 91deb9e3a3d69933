"""Multi-channel notification dispatcher."""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog

from core.exceptions import UnknownRecipientError
from domain.entities.notification import (
    ChannelErrorKind,
    ChannelOutcome,
    DispatchOptions,
    DispatchResult,
    InAppNotification,
    NotificationChannel,
    NotificationDeliveryStatus,
    NotificationPayload,
    NotificationType,
    Recipient,
    SendResult,
)
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.channels import ChannelSender, JobScheduler
from domain.services.delivery_tracker import DeliveryTracker
from domain.services.in_app_service import InAppNotificationService
from domain.services.notification_catalog import build_payload, parse_type
from domain.services.preference_service import PreferenceService

logger = structlog.get_logger()

# Channels delivered through an external provider, in attempt order.
PROVIDER_CHANNELS = (
    NotificationChannel.PUSH,
    NotificationChannel.EMAIL,
    NotificationChannel.SMS,
)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class NotificationDispatcher:
    """Fans one domain event out to every eligible channel.

    Eligible channels are the requested channels, filtered by the user's
    preferences (unless skipped) and by priority gating for SMS. The in-app
    record is committed before anything is broadcast. WebSocket and provider
    channels are then sent concurrently and a failure on one never affects the
    others. Timeouts and transient provider errors are retried in the
    background with exponential backoff.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        preferences: PreferenceService,
        in_app: InAppNotificationService,
        tracker: DeliveryTracker,
        senders: Iterable[ChannelSender],
        scheduler: JobScheduler | None = None,
        max_attempts: int = 3,
        retry_base_delay_seconds: float = 2.0,
    ) -> None:
        self._uow_factory = uow_factory
        self._preferences = preferences
        self._in_app = in_app
        self._tracker = tracker
        self._senders: dict[NotificationChannel, ChannelSender] = {s.channel: s for s in senders}
        self._scheduler = scheduler
        self._max_attempts = max(1, max_attempts)
        self._retry_base_delay = retry_base_delay_seconds

    async def dispatch(
        self,
        event_type: NotificationType | str,
        recipient_user_id: UUID | str,
        data: dict[str, Any] | None = None,
        options: DispatchOptions | None = None,
    ) -> DispatchResult:
        """Deliver one notification.

        Raises:
            InvalidEventTypeError: ``event_type`` is not in the catalog.
            UnknownRecipientError: the recipient does not exist.

        Channel failures never raise; they are reported in the result.
        """
        notification_type = parse_type(event_type)
        options = options or DispatchOptions()
        recipient = await self._load_recipient(recipient_user_id)
        notification_id = uuid4()

        if options.scheduled_for is not None:
            run_at = _as_naive_utc(options.scheduled_for)
            if run_at > datetime.utcnow():
                return self._schedule(notification_id, notification_type, recipient, data, options, run_at)

        return await self._deliver(notification_id, notification_type, recipient, data, options)

    # --- Delivery ---

    async def _deliver(
        self,
        notification_id: UUID,
        notification_type: NotificationType,
        recipient: Recipient,
        data: dict[str, Any] | None,
        options: DispatchOptions,
    ) -> DispatchResult:
        payload = build_payload(notification_type, data, options.priority, notification_id)
        channels, destinations = await self._resolve_channels(recipient, payload, options)

        result = DispatchResult(
            notification_id=notification_id,
            type=notification_type,
            recipient_id=recipient.id,
            priority=payload.priority,
        )
        if not channels:
            logger.info(
                "notification_skipped",
                notification_id=str(notification_id),
                type=notification_type.value,
                user_id=str(recipient.id),
                reason="no_eligible_channels",
            )
            return result

        records = await self._tracker.start(notification_id, recipient.id, channels)
        outcomes: dict[NotificationChannel, ChannelOutcome] = {}

        if NotificationChannel.IN_APP in channels:
            await self._in_app.create(self._in_app_record(recipient.id, payload))
            result.in_app_notification_id = payload.id
            outcomes[NotificationChannel.IN_APP] = ChannelOutcome(
                channel=NotificationChannel.IN_APP,
                status=NotificationDeliveryStatus.SENT,
            )

        # The in-app record is committed above; every other channel goes out together.
        concurrent = [c for c in channels if c != NotificationChannel.IN_APP]
        settled = await asyncio.gather(
            *(self._send(c, destinations.get(c), payload) for c in concurrent)
        )
        for outcome in settled:
            self._schedule_retry(notification_id, recipient, payload, outcome)
            outcomes[outcome.channel] = outcome

        await self._tracker.finish(records, outcomes)
        result.outcomes = outcomes

        logger.info(
            "notification_dispatched",
            notification_id=str(notification_id),
            type=notification_type.value,
            user_id=str(recipient.id),
            priority=payload.priority.value,
            channels={c.value: o.status.value for c, o in outcomes.items()},
        )
        return result

    async def _resolve_channels(
        self,
        recipient: Recipient,
        payload: NotificationPayload,
        options: DispatchOptions,
    ) -> tuple[list[NotificationChannel], dict[NotificationChannel, Any]]:
        """Work out which channels to attempt and where each one delivers to."""
        if options.channels is None:
            requested = set(NotificationChannel)
        else:
            requested = set(options.channels)

        if not options.skip_preferences:
            prefs = await self._preferences.get_preferences(recipient.id, payload.type)
            requested = {c for c in requested if prefs.allows(c)}

        if not payload.priority.allows_sms:
            requested.discard(NotificationChannel.SMS)

        channels: list[NotificationChannel] = []
        destinations: dict[NotificationChannel, Any] = {}

        if NotificationChannel.IN_APP in requested:
            channels.append(NotificationChannel.IN_APP)
            ws_sender = self._senders.get(NotificationChannel.WEBSOCKET)
            if NotificationChannel.WEBSOCKET in requested and ws_sender is not None:
                live = await ws_sender.resolve_destination(recipient)
                if live is not None:
                    channels.append(NotificationChannel.WEBSOCKET)
                    destinations[NotificationChannel.WEBSOCKET] = live

        for channel in PROVIDER_CHANNELS:
            sender = self._senders.get(channel)
            if channel in requested and sender is not None:
                channels.append(channel)
                destinations[channel] = await sender.resolve_destination(recipient)

        return channels, destinations

    async def _send(
        self,
        channel: NotificationChannel,
        destination: Any,
        payload: NotificationPayload,
    ) -> ChannelOutcome:
        """Run one sender, turning every failure mode into an outcome."""
        sender = self._senders[channel]
        if destination is None:
            result = SendResult.failure(
                ChannelErrorKind.NO_DESTINATION,
                f"Recipient has no {channel.value} destination",
            )
        else:
            try:
                result = await asyncio.wait_for(
                    sender.send(destination, payload), timeout=sender.timeout_seconds
                )
            except asyncio.TimeoutError:
                result = SendResult.failure(
                    ChannelErrorKind.TIMEOUT,
                    f"No response within {sender.timeout_seconds}s",
                )
            except Exception as exc:
                logger.exception(
                    "channel_send_error",
                    channel=channel.value,
                    notification_id=str(payload.id),
                )
                result = SendResult.failure(ChannelErrorKind.ERROR, str(exc) or type(exc).__name__)

        if not result.ok:
            logger.warning(
                "channel_send_failed",
                channel=channel.value,
                notification_id=str(payload.id),
                error_kind=result.error_kind.value if result.error_kind else None,
                error=result.error_message,
            )

        return ChannelOutcome(
            channel=channel,
            status=NotificationDeliveryStatus.SENT if result.ok else NotificationDeliveryStatus.FAILED,
            error_kind=None if result.ok else result.error_kind,
            error_message=None if result.ok else result.error_message,
            provider_message_id=result.provider_message_id,
        )

    # --- Retries ---

    def _schedule_retry(
        self,
        notification_id: UUID,
        recipient: Recipient,
        payload: NotificationPayload,
        outcome: ChannelOutcome,
    ) -> None:
        if outcome.status != NotificationDeliveryStatus.FAILED:
            return
        if outcome.error_kind is None or not outcome.error_kind.is_retryable:
            return
        if outcome.channel not in PROVIDER_CHANNELS or self._scheduler is None:
            return
        if outcome.attempts >= self._max_attempts:
            return

        next_attempt = outcome.attempts + 1
        delay = self._retry_base_delay * 2 ** (outcome.attempts - 1)
        channel = outcome.channel

        async def retry() -> None:
            await self._retry(notification_id, recipient, payload, channel, next_attempt)

        self._scheduler.schedule_in(
            delay, retry, name=f"retry:{channel.value}:{notification_id}"
        )
        outcome.retry_scheduled = True
        logger.info(
            "channel_retry_scheduled",
            notification_id=str(notification_id),
            channel=channel.value,
            attempt=next_attempt,
            delay_seconds=delay,
        )

    async def _retry(
        self,
        notification_id: UUID,
        recipient: Recipient,
        payload: NotificationPayload,
        channel: NotificationChannel,
        attempt: int,
    ) -> None:
        destination = await self._senders[channel].resolve_destination(recipient)
        outcome = await self._send(channel, destination, payload)
        outcome.attempts = attempt
        self._schedule_retry(notification_id, recipient, payload, outcome)
        await self._tracker.record_retry(notification_id, outcome)

        logger.info(
            "channel_retry_settled",
            notification_id=str(notification_id),
            channel=channel.value,
            attempt=attempt,
            status=outcome.status.value,
        )

    # --- Scheduling ---

    def _schedule(
        self,
        notification_id: UUID,
        notification_type: NotificationType,
        recipient: Recipient,
        data: dict[str, Any] | None,
        options: DispatchOptions,
        run_at: datetime,
    ) -> DispatchResult:
        if self._scheduler is None:
            raise RuntimeError("Scheduled dispatch requires a job scheduler")

        immediate = replace(options, scheduled_for=None)
        frozen_data = dict(data or {})

        async def deliver() -> None:
            await self._deliver(notification_id, notification_type, recipient, frozen_data, immediate)

        self._scheduler.schedule_at(
            run_at, deliver, name=f"dispatch:{notification_type.value}:{notification_id}"
        )
        logger.info(
            "notification_scheduled",
            notification_id=str(notification_id),
            type=notification_type.value,
            user_id=str(recipient.id),
            scheduled_for=run_at.isoformat(),
        )

        priority = build_payload(notification_type, frozen_data, options.priority).priority
        return DispatchResult(
            notification_id=notification_id,
            type=notification_type,
            recipient_id=recipient.id,
            priority=priority,
            scheduled=True,
            scheduled_for=run_at,
        )

    # --- Helpers ---

    async def _load_recipient(self, user_id: UUID | str) -> Recipient:
        try:
            uid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            raise UnknownRecipientError(str(user_id)) from None

        async with self._uow_factory() as uow:
            recipient = await uow.users.get(uid)
        if recipient is None:
            raise UnknownRecipientError(str(uid))
        return recipient

    @staticmethod
    def _in_app_record(user_id: UUID, payload: NotificationPayload) -> InAppNotification:
        return InAppNotification(
            id=payload.id,
            user_id=user_id,
            type=payload.type,
            title=payload.title,
            body=payload.body,
            data=payload.data,
            category=payload.category,
            priority=payload.priority,
            created_at=payload.created_at,
        )
