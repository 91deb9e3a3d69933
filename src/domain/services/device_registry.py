"""Push subscription and device token registry."""

import base64
import binascii
import hashlib
from collections.abc import Callable, Iterable
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError

from core.exceptions import InvalidSubscriptionError
from domain.entities.notification import DevicePlatform, DeviceRecord, WebPushSubscription
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()

# Uncompressed P-256 point (0x04 || X || Y) and the RFC 8291 auth secret.
P256DH_KEY_LENGTH = 65
AUTH_SECRET_LENGTH = 16


def web_device_id(endpoint: str) -> str:
    """Stable device id for a web push endpoint."""
    return "web-" + hashlib.sha256(endpoint.encode("utf-8")).hexdigest()


def _b64url_decode(value: str) -> bytes | None:
    try:
        return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    except (binascii.Error, ValueError):
        return None


def validate_subscription_keys(subscription: WebPushSubscription) -> None:
    """Reject subscriptions the push service could never encrypt for.

    Raises:
        InvalidSubscriptionError: a key is missing, not base64url, or the
            wrong size.
    """
    if not subscription.endpoint or not subscription.p256dh or not subscription.auth:
        raise InvalidSubscriptionError()

    p256dh = _b64url_decode(subscription.p256dh)
    if p256dh is None or len(p256dh) != P256DH_KEY_LENGTH or p256dh[0] != 0x04:
        raise InvalidSubscriptionError("p256dh must be an uncompressed P-256 public key")

    auth = _b64url_decode(subscription.auth)
    if auth is None or len(auth) != AUTH_SECRET_LENGTH:
        raise InvalidSubscriptionError("auth must be a 16-byte secret")


class DeviceRegistry:
    """Stores push targets per user.

    Registrations are keyed by a globally unique device id. Registering an id
    that already exists overwrites it, including its owner, so the last
    writer wins when a device changes hands.
    """

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def register(
        self,
        user_id: UUID,
        platform: DevicePlatform,
        device_id: str,
        token: str | None = None,
        subscription: WebPushSubscription | None = None,
    ) -> DeviceRecord:
        """Create or overwrite a registration. Idempotent."""
        device = self._build(user_id, platform, device_id, token, subscription)

        try:
            return await self._upsert(device)
        except IntegrityError as exc:
            orig = str(exc.orig).lower() if exc.orig else ""
            if "unique" not in orig and "duplicate" not in orig:
                raise
            # A concurrent registration inserted the same device id first.
            logger.debug("device_registration_race", device_id=device_id)
            async with self._uow_factory() as uow:
                updated = await uow.devices.update(device)
                await uow.commit()
            return updated

    async def subscribe_web(
        self, user_id: UUID, subscription: WebPushSubscription
    ) -> DeviceRecord:
        """Register a browser push subscription."""
        return await self.register(
            user_id,
            DevicePlatform.WEB,
            web_device_id(subscription.endpoint),
            subscription=subscription,
        )

    async def unregister(self, user_id: UUID, device_id: str) -> bool:
        """Remove a user's registration. Missing registrations are a no-op."""
        async with self._uow_factory() as uow:
            removed = await uow.devices.delete(user_id, device_id)
            await uow.commit()
        if removed:
            logger.info("device_unregistered", user_id=str(user_id), device_id=device_id)
        return removed

    async def unsubscribe_web(self, user_id: UUID, endpoint: str) -> bool:
        return await self.unregister(user_id, web_device_id(endpoint))

    async def list_for_user(self, user_id: UUID) -> list[DeviceRecord]:
        async with self._uow_factory() as uow:
            return await uow.devices.list_for_user(user_id)

    async def remove_gone(self, device_ids: Iterable[str]) -> int:
        """Drop registrations the push service reported as expired."""
        ids = sorted(set(device_ids))
        if not ids:
            return 0
        async with self._uow_factory() as uow:
            removed = await uow.devices.delete_many(ids)
            await uow.commit()
        logger.info("devices_removed_gone", count=removed)
        return removed

    async def _upsert(self, device: DeviceRecord) -> DeviceRecord:
        async with self._uow_factory() as uow:
            existing = await uow.devices.get_by_device_id(device.device_id)
            if existing is None:
                saved = await uow.devices.create(device)
                event = "device_registered"
            else:
                device.id = existing.id
                device.registered_at = existing.registered_at
                saved = await uow.devices.update(device)
                event = "device_registration_updated"
            await uow.commit()

        log_fields = {
            "user_id": str(device.user_id),
            "device_id": device.device_id,
            "platform": device.platform.value,
        }
        if existing is not None and existing.user_id != device.user_id:
            log_fields["previous_user_id"] = str(existing.user_id)
        logger.info(event, **log_fields)
        return saved

    @staticmethod
    def _build(
        user_id: UUID,
        platform: DevicePlatform,
        device_id: str,
        token: str | None,
        subscription: WebPushSubscription | None,
    ) -> DeviceRecord:
        if not device_id:
            raise InvalidSubscriptionError("Device id is required")

        now = datetime.utcnow()
        if platform == DevicePlatform.WEB:
            if subscription is None:
                raise InvalidSubscriptionError()
            validate_subscription_keys(subscription)
            return DeviceRecord(
                user_id=user_id,
                device_id=device_id,
                platform=platform,
                endpoint=subscription.endpoint,
                p256dh=subscription.p256dh,
                auth=subscription.auth,
                registered_at=now,
                updated_at=now,
            )

        if not token:
            raise InvalidSubscriptionError("Device token is required")
        return DeviceRecord(
            user_id=user_id,
            device_id=device_id,
            platform=platform,
            token=token,
            registered_at=now,
            updated_at=now,
        )
