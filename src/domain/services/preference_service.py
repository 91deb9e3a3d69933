"""Per-user, per-type channel preferences."""

from collections.abc import Callable, Mapping
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError

from domain.entities.notification import (
    DEFAULT_CHANNEL_PREFERENCES,
    ChannelPreferences,
    NotificationCategory,
    NotificationPreference,
    NotificationType,
)
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.notification_catalog import types_in_category

logger = structlog.get_logger()

PreferencePatch = Mapping[str, bool | None]


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = str(exc.orig).lower() if exc.orig else ""
    return "unique" in orig or "duplicate" in orig


class PreferenceService:
    """Reads and writes channel preferences.

    This is the only place defaults are resolved. A missing row is created
    with the defaults on first read, and rows are overwritten rather than
    deleted on reset.
    """

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def get_preferences(
        self, user_id: UUID, notification_type: NotificationType
    ) -> ChannelPreferences:
        """Get preferences for one type, creating the default row if missing."""
        async with self._uow_factory() as uow:
            existing = await uow.preferences.get(user_id, notification_type)
            if existing is not None:
                return existing.channels

        default = NotificationPreference(user_id=user_id, notification_type=notification_type)
        try:
            async with self._uow_factory() as uow:
                await uow.preferences.upsert(default)
                await uow.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent first read; the winner wrote defaults.
            if not _is_unique_violation(exc):
                raise
            logger.debug(
                "preference_row_race",
                user_id=str(user_id),
                notification_type=notification_type.value,
            )
        return DEFAULT_CHANNEL_PREFERENCES

    async def get_all_preferences(self, user_id: UUID) -> dict[NotificationType, ChannelPreferences]:
        """Preferences for every notification type, defaults filled in."""
        async with self._uow_factory() as uow:
            rows = await uow.preferences.list_for_user(user_id)
        stored = {row.notification_type: row.channels for row in rows}
        return {t: stored.get(t, DEFAULT_CHANNEL_PREFERENCES) for t in NotificationType}

    async def set_preferences(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        patch: PreferencePatch,
    ) -> ChannelPreferences:
        """Merge-patch one type. Fields missing from ``patch`` keep their value."""
        result = await self.set_many(user_id, {notification_type: patch})
        return result[notification_type]

    async def set_many(
        self,
        user_id: UUID,
        patches: Mapping[NotificationType, PreferencePatch],
    ) -> dict[NotificationType, ChannelPreferences]:
        """Merge-patch several types in one transaction. Returns the full map."""
        async with self._uow_factory() as uow:
            rows = await uow.preferences.list_for_user(user_id)
            stored = {row.notification_type: row.channels for row in rows}

            for notification_type, patch in patches.items():
                current = stored.get(notification_type, DEFAULT_CHANNEL_PREFERENCES)
                updated = current.merge(dict(patch))
                await uow.preferences.upsert(
                    NotificationPreference(
                        user_id=user_id,
                        notification_type=notification_type,
                        channels=updated,
                    )
                )
                stored[notification_type] = updated

            await uow.commit()

        logger.info(
            "preferences_updated",
            user_id=str(user_id),
            types=[t.value for t in patches],
        )
        return {t: stored.get(t, DEFAULT_CHANNEL_PREFERENCES) for t in NotificationType}

    async def set_category_preferences(
        self,
        user_id: UUID,
        category: NotificationCategory,
        patch: PreferencePatch,
    ) -> dict[NotificationType, ChannelPreferences]:
        """Apply one merge-patch to every type in a category."""
        return await self.set_many(user_id, {t: patch for t in types_in_category(category)})

    async def reset_all(self, user_id: UUID) -> None:
        """Overwrite every type with the defaults."""
        async with self._uow_factory() as uow:
            for notification_type in NotificationType:
                await uow.preferences.upsert(
                    NotificationPreference(
                        user_id=user_id,
                        notification_type=notification_type,
                        channels=DEFAULT_CHANNEL_PREFERENCES,
                    )
                )
            await uow.commit()
        logger.info("preferences_reset", user_id=str(user_id))
