"""SQLAlchemy implementation of the notification preference repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.notification import (
    ChannelPreferences,
    NotificationPreference,
    NotificationType,
)
from infrastructure.database.models import NotificationPreferenceModel


class SQLAlchemyPreferenceRepository:
    """SQLAlchemy implementation of IPreferenceRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, user_id: UUID, notification_type: NotificationType
    ) -> NotificationPreference | None:
        """Get the stored preference row, if any."""
        model = await self._get_model(user_id, notification_type)
        return self._to_entity(model) if model else None

    async def list_for_user(self, user_id: UUID) -> list[NotificationPreference]:
        """All stored preference rows of a user."""
        stmt = select(NotificationPreferenceModel).where(
            NotificationPreferenceModel.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    async def upsert(self, preference: NotificationPreference) -> NotificationPreference:
        """Insert or overwrite the row for (user_id, notification_type)."""
        existing = await self._get_model(preference.user_id, preference.notification_type)
        if existing is None:
            model = self._to_model(preference)
            self._session.add(model)
            await self._session.flush()
            await self._session.refresh(model)
            return self._to_entity(model)

        self._apply(existing, preference.channels)
        await self._session.flush()
        await self._session.refresh(existing)
        return self._to_entity(existing)

    async def _get_model(
        self, user_id: UUID, notification_type: NotificationType
    ) -> NotificationPreferenceModel | None:
        stmt = select(NotificationPreferenceModel).where(
            NotificationPreferenceModel.user_id == user_id,
            NotificationPreferenceModel.notification_type == notification_type.value,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    # --- Conversion methods ---

    @staticmethod
    def _apply(model: NotificationPreferenceModel, channels: ChannelPreferences) -> None:
        model.channel_push = channels.push
        model.channel_email = channels.email
        model.channel_sms = channels.sms
        model.channel_in_app = channels.in_app
        model.updated_at = datetime.utcnow()

    def _to_entity(self, model: NotificationPreferenceModel) -> NotificationPreference:
        """Convert NotificationPreferenceModel to domain entity."""
        return NotificationPreference(
            id=model.id,
            user_id=model.user_id,
            notification_type=NotificationType(model.notification_type),
            channels=ChannelPreferences(
                push=model.channel_push,
                email=model.channel_email,
                sms=model.channel_sms,
                in_app=model.channel_in_app,
            ),
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: NotificationPreference) -> NotificationPreferenceModel:
        """Convert NotificationPreference domain entity to ORM model."""
        model = NotificationPreferenceModel(
            id=entity.id,
            user_id=entity.user_id,
            notification_type=entity.notification_type.value,
        )
        self._apply(model, entity.channels)
        return model
