"""Delivery record repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.notification import DeliveryRecord, NotificationChannel


class IDeliveryRepository(Protocol):
    """Repository interface for per-channel delivery records."""

    async def create_many(self, records: list[DeliveryRecord]) -> list[DeliveryRecord]:
        """Insert delivery records."""
        ...

    async def update(self, record: DeliveryRecord) -> DeliveryRecord:
        """Persist status, error and attempt changes of one record."""
        ...

    async def get(
        self, notification_id: UUID, channel: NotificationChannel
    ) -> DeliveryRecord | None:
        """Get the record of one channel of one dispatch."""
        ...

    async def list_for_notification(self, notification_id: UUID) -> list[DeliveryRecord]:
        """All channel records of one dispatch."""
        ...
