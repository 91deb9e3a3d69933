"""In-app notification center."""

from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

import structlog

from domain.entities.notification import InAppNotification
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.channels import RealtimePublisher

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100

# Real-time message types
NOTIFICATION_NEW = "notification:new"
NOTIFICATION_READ = "notification:read"
NOTIFICATION_DELETED = "notification:deleted"
NOTIFICATION_UNREAD_COUNT = "notification:unread_count"


class InAppNotificationService:
    """Durable per-user notification records with read state.

    State changes are mirrored to the user's live connections when a
    realtime publisher is configured.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        realtime: RealtimePublisher | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._realtime = realtime

    async def create(self, notification: InAppNotification) -> InAppNotification:
        """Persist and commit a new record."""
        async with self._uow_factory() as uow:
            created = await uow.notifications.create(notification)
            await uow.commit()
        return created

    async def list(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[InAppNotification]:
        """Newest first."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        async with self._uow_factory() as uow:
            return await uow.notifications.list_for_user(user_id, limit=limit, offset=max(offset, 0))

    async def unread_count(self, user_id: UUID) -> int:
        async with self._uow_factory() as uow:
            return await uow.notifications.unread_count(user_id)

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> None:
        """Mark one record read. Unknown or already-read ids are a no-op."""
        async with self._uow_factory() as uow:
            changed = await uow.notifications.mark_read(user_id, notification_id)
            await uow.commit()
        if changed:
            await self._publish(user_id, NOTIFICATION_READ, {"id": str(notification_id)})

    async def mark_all_read(self, user_id: UUID) -> int:
        async with self._uow_factory() as uow:
            count = await uow.notifications.mark_all_read(user_id)
            await uow.commit()
        if count:
            await self._publish(user_id, NOTIFICATION_UNREAD_COUNT, {"count": 0})
        return count

    async def delete(self, user_id: UUID, notification_id: UUID) -> None:
        """Delete one record. Unknown ids are a no-op."""
        async with self._uow_factory() as uow:
            removed = await uow.notifications.delete(user_id, notification_id)
            await uow.commit()
        if removed:
            await self._publish(user_id, NOTIFICATION_DELETED, {"id": str(notification_id)})

    async def purge_older_than(self, days: int) -> int:
        """Delete records older than ``days``. Returns count deleted."""
        cutoff = datetime.utcnow() - timedelta(days=days)
        async with self._uow_factory() as uow:
            deleted = await uow.notifications.delete_created_before(cutoff)
            await uow.commit()
        return deleted

    async def _publish(self, user_id: UUID, message_type: str, payload: dict) -> None:
        if self._realtime is None:
            return
        try:
            await self._realtime.send_to_user(user_id, message_type, payload)
        except Exception:
            logger.warning("realtime_publish_failed", user_id=str(user_id), message_type=message_type)
