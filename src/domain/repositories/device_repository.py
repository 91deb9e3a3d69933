"""Device registration repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.notification import DeviceRecord


class IDeviceRepository(Protocol):
    """Repository interface for push subscriptions and mobile device tokens."""

    async def get_by_device_id(self, device_id: str) -> DeviceRecord | None:
        """Get a registration by its globally unique device id."""
        ...

    async def create(self, device: DeviceRecord) -> DeviceRecord:
        """Insert a new registration."""
        ...

    async def update(self, device: DeviceRecord) -> DeviceRecord:
        """Overwrite the owner and push target of an existing registration."""
        ...

    async def list_for_user(self, user_id: UUID) -> list[DeviceRecord]:
        """All registrations of a user."""
        ...

    async def delete(self, user_id: UUID, device_id: str) -> bool:
        """Delete a user's registration. Returns True if a row was removed."""
        ...

    async def delete_many(self, device_ids: list[str]) -> int:
        """Delete registrations by device id. Returns count deleted."""
        ...
