"""Notification preference repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.notification import NotificationPreference, NotificationType


class IPreferenceRepository(Protocol):
    """Repository interface for per-user, per-type channel preferences."""

    async def get(
        self, user_id: UUID, notification_type: NotificationType
    ) -> NotificationPreference | None:
        """Get the stored preference row, if any."""
        ...

    async def list_for_user(self, user_id: UUID) -> list[NotificationPreference]:
        """All stored preference rows of a user."""
        ...

    async def upsert(self, preference: NotificationPreference) -> NotificationPreference:
        """Insert or overwrite the row for (user_id, notification_type)."""
        ...
