"""SQLAlchemy Unit of Work implementation."""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.repositories.sqlalchemy_delivery_repo import (
    SQLAlchemyDeliveryRepository,
)
from infrastructure.database.repositories.sqlalchemy_device_repo import SQLAlchemyDeviceRepository
from infrastructure.database.repositories.sqlalchemy_notification_repo import (
    SQLAlchemyNotificationRepository,
)
from infrastructure.database.repositories.sqlalchemy_preference_repo import (
    SQLAlchemyPreferenceRepository,
)
from infrastructure.database.repositories.sqlalchemy_user_repo import SQLAlchemyUserRepository


class SQLAlchemyUnitOfWork:
    """Unit of Work implementation using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    def _require_session(self) -> AsyncSession:
        if not self._session:
            raise RuntimeError("UnitOfWork not initialized. Use as context manager.")
        return self._session

    @property
    def notifications(self) -> SQLAlchemyNotificationRepository:
        """Get in-app notification repository."""
        return SQLAlchemyNotificationRepository(self._require_session())

    @property
    def deliveries(self) -> SQLAlchemyDeliveryRepository:
        """Get delivery record repository."""
        return SQLAlchemyDeliveryRepository(self._require_session())

    @property
    def preferences(self) -> SQLAlchemyPreferenceRepository:
        """Get notification preference repository."""
        return SQLAlchemyPreferenceRepository(self._require_session())

    @property
    def devices(self) -> SQLAlchemyDeviceRepository:
        """Get device registration repository."""
        return SQLAlchemyDeviceRepository(self._require_session())

    @property
    def users(self) -> SQLAlchemyUserRepository:
        """Get recipient lookup."""
        return SQLAlchemyUserRepository(self._require_session())

    async def commit(self) -> None:
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        """Enter the context manager and create session."""
        self._session = self._session_factory()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[Exception],
        exc_tb: Any,
    ) -> None:
        """Exit the context manager and cleanup."""
        if self._session:
            if exc_type:
                await self.rollback()
            await self._session.close()
            self._session = None
