"""SQLAlchemy implementation of the recipient lookup."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.notification import Recipient
from infrastructure.database.models import UserModel


class SQLAlchemyUserRepository:
    """SQLAlchemy implementation of IUserRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID) -> Recipient | None:
        """Get a recipient by user ID."""
        stmt = select(UserModel).where(UserModel.id == user_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Recipient(
            id=model.id,
            email=model.email,
            display_name=model.display_name,
            phone_number=model.phone_number,
            phone_verified=model.phone_verified,
        )
