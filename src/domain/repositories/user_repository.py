"""Recipient lookup protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.notification import Recipient


class IUserRepository(Protocol):
    """Read-only access to users that can receive notifications."""

    async def get(self, user_id: UUID) -> Recipient | None:
        """Get a recipient by user ID."""
        ...
