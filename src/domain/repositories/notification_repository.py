"""In-app notification repository protocol."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from domain.entities.notification import InAppNotification


class INotificationRepository(Protocol):
    """Repository interface for in-app notification records."""

    async def create(self, notification: InAppNotification) -> InAppNotification:
        """Create a new in-app notification."""
        ...

    async def get(self, user_id: UUID, notification_id: UUID) -> InAppNotification | None:
        """Get a user's notification by ID."""
        ...

    async def list_for_user(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[InAppNotification]:
        """List a user's notifications, newest first."""
        ...

    async def unread_count(self, user_id: UUID) -> int:
        """Count a user's unread notifications."""
        ...

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> bool:
        """Mark one notification read. Returns True if it was unread."""
        ...

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification read. Returns count updated."""
        ...

    async def delete(self, user_id: UUID, notification_id: UUID) -> bool:
        """Delete one notification. Returns True if a row was removed."""
        ...

    async def delete_created_before(self, cutoff: datetime) -> int:
        """Delete notifications older than the cutoff. Returns count deleted."""
        ...
