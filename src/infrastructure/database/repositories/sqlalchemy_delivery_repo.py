"""SQLAlchemy implementation of the delivery record repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.notification import (
    ChannelErrorKind,
    DeliveryRecord,
    NotificationChannel,
    NotificationDeliveryStatus,
)
from infrastructure.database.models import NotificationDeliveryModel


class SQLAlchemyDeliveryRepository:
    """SQLAlchemy implementation of IDeliveryRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_many(self, records: list[DeliveryRecord]) -> list[DeliveryRecord]:
        """Insert delivery records."""
        models = [self._to_model(r) for r in records]
        self._session.add_all(models)
        await self._session.flush()
        return [self._to_entity(m) for m in models]

    async def update(self, record: DeliveryRecord) -> DeliveryRecord:
        """Persist status, error and attempt changes of one record."""
        record.updated_at = datetime.utcnow()
        stmt = (
            update(NotificationDeliveryModel)
            .where(NotificationDeliveryModel.id == record.id)
            .values(
                status=record.status.value,
                error_kind=record.error_kind.value if record.error_kind else None,
                error_message=record.error_message,
                attempts=record.attempts,
                provider_message_id=record.provider_message_id,
                updated_at=record.updated_at,
            )
        )
        await self._session.execute(stmt)
        return record

    async def get(
        self, notification_id: UUID, channel: NotificationChannel
    ) -> DeliveryRecord | None:
        """Get the record of one channel of one dispatch."""
        stmt = select(NotificationDeliveryModel).where(
            NotificationDeliveryModel.notification_id == notification_id,
            NotificationDeliveryModel.channel == channel.value,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_for_notification(self, notification_id: UUID) -> list[DeliveryRecord]:
        """All channel records of one dispatch."""
        stmt = (
            select(NotificationDeliveryModel)
            .where(NotificationDeliveryModel.notification_id == notification_id)
            .order_by(NotificationDeliveryModel.channel)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    # --- Conversion methods ---

    def _to_entity(self, model: NotificationDeliveryModel) -> DeliveryRecord:
        """Convert NotificationDeliveryModel to domain entity."""
        return DeliveryRecord(
            id=model.id,
            notification_id=model.notification_id,
            user_id=model.user_id,
            channel=NotificationChannel(model.channel),
            status=NotificationDeliveryStatus(model.status),
            error_kind=ChannelErrorKind(model.error_kind) if model.error_kind else None,
            error_message=model.error_message,
            attempts=model.attempts,
            provider_message_id=model.provider_message_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: DeliveryRecord) -> NotificationDeliveryModel:
        """Convert DeliveryRecord domain entity to ORM model."""
        return NotificationDeliveryModel(
            id=entity.id,
            notification_id=entity.notification_id,
            user_id=entity.user_id,
            channel=entity.channel.value,
            status=entity.status.value,
            error_kind=entity.error_kind.value if entity.error_kind else None,
            error_message=entity.error_message,
            attempts=entity.attempts,
            provider_message_id=entity.provider_message_id,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
