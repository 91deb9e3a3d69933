"""SQLAlchemy implementation of the device registration repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.notification import DevicePlatform, DeviceRecord
from infrastructure.database.models import DeviceRegistrationModel


class SQLAlchemyDeviceRepository:
    """SQLAlchemy implementation of IDeviceRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_device_id(self, device_id: str) -> DeviceRecord | None:
        """Get a registration by its globally unique device id."""
        stmt = select(DeviceRegistrationModel).where(
            DeviceRegistrationModel.device_id == device_id
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, device: DeviceRecord) -> DeviceRecord:
        """Insert a new registration."""
        model = self._to_model(device)
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return self._to_entity(model)

    async def update(self, device: DeviceRecord) -> DeviceRecord:
        """Overwrite the owner and push target of an existing registration."""
        device.updated_at = datetime.utcnow()
        stmt = (
            update(DeviceRegistrationModel)
            .where(DeviceRegistrationModel.device_id == device.device_id)
            .values(
                user_id=device.user_id,
                platform=device.platform.value,
                token=device.token,
                endpoint=device.endpoint,
                p256dh=device.p256dh,
                auth=device.auth,
                updated_at=device.updated_at,
            )
        )
        await self._session.execute(stmt)
        return device

    async def list_for_user(self, user_id: UUID) -> list[DeviceRecord]:
        """All registrations of a user."""
        stmt = (
            select(DeviceRegistrationModel)
            .where(DeviceRegistrationModel.user_id == user_id)
            .order_by(DeviceRegistrationModel.registered_at)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    async def delete(self, user_id: UUID, device_id: str) -> bool:
        """Delete a user's registration. Returns True if a row was removed."""
        stmt = delete(DeviceRegistrationModel).where(
            DeviceRegistrationModel.user_id == user_id,
            DeviceRegistrationModel.device_id == device_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def delete_many(self, device_ids: list[str]) -> int:
        """Delete registrations by device id. Returns count deleted."""
        if not device_ids:
            return 0
        stmt = (
            delete(DeviceRegistrationModel)
            .where(DeviceRegistrationModel.device_id.in_(device_ids))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

    # --- Conversion methods ---

    def _to_entity(self, model: DeviceRegistrationModel) -> DeviceRecord:
        """Convert DeviceRegistrationModel to domain entity."""
        return DeviceRecord(
            id=model.id,
            user_id=model.user_id,
            device_id=model.device_id,
            platform=DevicePlatform(model.platform),
            token=model.token,
            endpoint=model.endpoint,
            p256dh=model.p256dh,
            auth=model.auth,
            registered_at=model.registered_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: DeviceRecord) -> DeviceRegistrationModel:
        """Convert DeviceRecord domain entity to ORM model."""
        return DeviceRegistrationModel(
            id=entity.id,
            user_id=entity.user_id,
            device_id=entity.device_id,
            platform=entity.platform.value,
            token=entity.token,
            endpoint=entity.endpoint,
            p256dh=entity.p256dh,
            auth=entity.auth,
            registered_at=entity.registered_at,
            updated_at=entity.updated_at,
        )
