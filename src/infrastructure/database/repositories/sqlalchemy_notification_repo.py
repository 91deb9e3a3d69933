"""SQLAlchemy implementation of the in-app notification repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.notification import (
    InAppNotification,
    NotificationCategory,
    NotificationPriority,
    NotificationType,
)
from infrastructure.database.models import NotificationModel


class SQLAlchemyNotificationRepository:
    """SQLAlchemy implementation of INotificationRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, notification: InAppNotification) -> InAppNotification:
        """Create a new in-app notification."""
        model = self._to_model(notification)
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return self._to_entity(model)

    async def get(self, user_id: UUID, notification_id: UUID) -> InAppNotification | None:
        """Get a user's notification by ID."""
        stmt = select(NotificationModel).where(
            NotificationModel.id == notification_id,
            NotificationModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_for_user(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[InAppNotification]:
        """List a user's notifications, newest first."""
        stmt = (
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    async def unread_count(self, user_id: UUID) -> int:
        """Count a user's unread notifications."""
        stmt = select(func.count(NotificationModel.id)).where(
            NotificationModel.user_id == user_id,
            NotificationModel.is_read.is_(False),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> bool:
        """Mark one notification read. Returns True if it was unread."""
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.utcnow())
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification read. Returns count updated."""
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.utcnow())
        )
        result = await self._session.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

    async def delete(self, user_id: UUID, notification_id: UUID) -> bool:
        """Delete one notification. Returns True if a row was removed."""
        stmt = delete(NotificationModel).where(
            NotificationModel.id == notification_id,
            NotificationModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def delete_created_before(self, cutoff: datetime) -> int:
        """Delete notifications older than the cutoff. Returns count deleted."""
        stmt = (
            delete(NotificationModel)
            .where(NotificationModel.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

    # --- Conversion methods ---

    def _to_entity(self, model: NotificationModel) -> InAppNotification:
        """Convert NotificationModel to domain entity."""
        return InAppNotification(
            id=model.id,
            user_id=model.user_id,
            type=NotificationType(model.type),
            title=model.title,
            body=model.body,
            data=model.data or {},
            category=NotificationCategory(model.category),
            priority=NotificationPriority(model.priority),
            is_read=model.is_read,
            read_at=model.read_at,
            created_at=model.created_at,
        )

    def _to_model(self, entity: InAppNotification) -> NotificationModel:
        """Convert InAppNotification domain entity to ORM model."""
        return NotificationModel(
            id=entity.id,
            user_id=entity.user_id,
            type=entity.type.value,
            title=entity.title,
            body=entity.body,
            data=entity.data,
            category=entity.category.value,
            priority=entity.priority.value,
            is_read=entity.is_read,
            read_at=entity.read_at,
            created_at=entity.created_at,
        )
