"""Per-channel delivery status records."""

from collections.abc import Callable, Iterable
from uuid import UUID

import structlog

from domain.entities.notification import (
    ChannelOutcome,
    DeliveryRecord,
    NotificationChannel,
    NotificationDeliveryStatus,
)
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()


class DeliveryTracker:
    """Writes one record per (dispatch, channel).

    Records start ``pending``, move to ``sent`` or ``failed`` once the sender
    settles, and reach ``delivered`` only through a receipt callback.
    """

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def start(
        self,
        notification_id: UUID,
        user_id: UUID,
        channels: Iterable[NotificationChannel],
    ) -> dict[NotificationChannel, DeliveryRecord]:
        records = [
            DeliveryRecord(notification_id=notification_id, user_id=user_id, channel=channel)
            for channel in channels
        ]
        if not records:
            return {}
        async with self._uow_factory() as uow:
            created = await uow.deliveries.create_many(records)
            await uow.commit()
        return {r.channel: r for r in created}

    async def finish(
        self,
        records: dict[NotificationChannel, DeliveryRecord],
        outcomes: dict[NotificationChannel, ChannelOutcome],
    ) -> None:
        """Copy settled outcomes onto their pending records."""
        async with self._uow_factory() as uow:
            for channel, outcome in outcomes.items():
                record = records.get(channel)
                if record is None:
                    continue
                _apply(record, outcome)
                await uow.deliveries.update(record)
            await uow.commit()

    async def record_retry(self, notification_id: UUID, outcome: ChannelOutcome) -> None:
        """Store the result of a background retry."""
        async with self._uow_factory() as uow:
            record = await uow.deliveries.get(notification_id, outcome.channel)
            if record is None:
                logger.warning(
                    "delivery_record_missing",
                    notification_id=str(notification_id),
                    channel=outcome.channel.value,
                )
                return
            _apply(record, outcome)
            await uow.deliveries.update(record)
            await uow.commit()

    async def confirm_delivered(
        self,
        user_id: UUID,
        notification_id: UUID,
        channel: NotificationChannel = NotificationChannel.PUSH,
    ) -> bool:
        """Mark a sent record delivered. Returns False if there is nothing to confirm."""
        async with self._uow_factory() as uow:
            record = await uow.deliveries.get(notification_id, channel)
            if record is None or record.user_id != user_id:
                return False
            if record.status == NotificationDeliveryStatus.DELIVERED:
                return True
            if record.status != NotificationDeliveryStatus.SENT:
                return False
            record.status = NotificationDeliveryStatus.DELIVERED
            await uow.deliveries.update(record)
            await uow.commit()

        logger.info(
            "delivery_confirmed",
            notification_id=str(notification_id),
            channel=channel.value,
        )
        return True

    async def history(self, notification_id: UUID) -> list[DeliveryRecord]:
        async with self._uow_factory() as uow:
            return await uow.deliveries.list_for_notification(notification_id)


def _apply(record: DeliveryRecord, outcome: ChannelOutcome) -> None:
    record.status = outcome.status
    record.error_kind = outcome.error_kind
    record.error_message = outcome.error_message
    record.attempts = outcome.attempts
    record.provider_message_id = outcome.provider_message_id
