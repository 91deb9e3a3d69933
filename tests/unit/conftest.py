"""Shared fixtures for unit tests.

Repositories are in-memory dictionaries behind the same interfaces as the
SQLAlchemy ones, so services run unmodified against them. Senders, the
realtime publisher and the scheduler are recording fakes.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import pytest

from domain.entities.notification import (
    DeliveryRecord,
    DeviceRecord,
    InAppNotification,
    NotificationChannel,
    NotificationPayload,
    NotificationPreference,
    NotificationType,
    Recipient,
    SendResult,
)
from domain.services.delivery_tracker import DeliveryTracker
from domain.services.device_registry import DeviceRegistry
from domain.services.dispatcher import NotificationDispatcher
from domain.services.in_app_service import InAppNotificationService
from domain.services.preference_service import PreferenceService

# --- In-memory repositories ---


@dataclass
class InMemoryStore:
    users: dict[UUID, Recipient] = field(default_factory=dict)
    notifications: dict[UUID, InAppNotification] = field(default_factory=dict)
    deliveries: dict[tuple[UUID, NotificationChannel], DeliveryRecord] = field(default_factory=dict)
    preferences: dict[tuple[UUID, NotificationType], NotificationPreference] = field(
        default_factory=dict
    )
    devices: dict[str, DeviceRecord] = field(default_factory=dict)
    commits: int = 0


class InMemoryNotificationRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def create(self, notification: InAppNotification) -> InAppNotification:
        self._store.notifications[notification.id] = notification
        return notification

    async def get(self, user_id: UUID, notification_id: UUID) -> InAppNotification | None:
        n = self._store.notifications.get(notification_id)
        return n if n is not None and n.user_id == user_id else None

    async def list_for_user(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[InAppNotification]:
        rows = [n for n in self._store.notifications.values() if n.user_id == user_id]
        rows.sort(key=lambda n: n.created_at, reverse=True)
        return rows[offset : offset + limit]

    async def unread_count(self, user_id: UUID) -> int:
        return sum(
            1 for n in self._store.notifications.values() if n.user_id == user_id and not n.is_read
        )

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> bool:
        n = await self.get(user_id, notification_id)
        if n is None or n.is_read:
            return False
        n.is_read = True
        n.read_at = datetime.utcnow()
        return True

    async def mark_all_read(self, user_id: UUID) -> int:
        count = 0
        for n in self._store.notifications.values():
            if n.user_id == user_id and not n.is_read:
                n.is_read = True
                n.read_at = datetime.utcnow()
                count += 1
        return count

    async def delete(self, user_id: UUID, notification_id: UUID) -> bool:
        if await self.get(user_id, notification_id) is None:
            return False
        del self._store.notifications[notification_id]
        return True

    async def delete_created_before(self, cutoff: datetime) -> int:
        old = [i for i, n in self._store.notifications.items() if n.created_at < cutoff]
        for i in old:
            del self._store.notifications[i]
        return len(old)


class InMemoryDeliveryRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def create_many(self, records: list[DeliveryRecord]) -> list[DeliveryRecord]:
        for r in records:
            self._store.deliveries[(r.notification_id, r.channel)] = r
        return records

    async def update(self, record: DeliveryRecord) -> DeliveryRecord:
        record.updated_at = datetime.utcnow()
        self._store.deliveries[(record.notification_id, record.channel)] = record
        return record

    async def get(self, notification_id: UUID, channel: NotificationChannel) -> DeliveryRecord | None:
        return self._store.deliveries.get((notification_id, channel))

    async def list_for_notification(self, notification_id: UUID) -> list[DeliveryRecord]:
        return [r for (nid, _), r in self._store.deliveries.items() if nid == notification_id]


class InMemoryPreferenceRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get(
        self, user_id: UUID, notification_type: NotificationType
    ) -> NotificationPreference | None:
        return self._store.preferences.get((user_id, notification_type))

    async def list_for_user(self, user_id: UUID) -> list[NotificationPreference]:
        return [p for (uid, _), p in self._store.preferences.items() if uid == user_id]

    async def upsert(self, preference: NotificationPreference) -> NotificationPreference:
        self._store.preferences[(preference.user_id, preference.notification_type)] = preference
        return preference


class InMemoryDeviceRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_device_id(self, device_id: str) -> DeviceRecord | None:
        return self._store.devices.get(device_id)

    async def create(self, device: DeviceRecord) -> DeviceRecord:
        self._store.devices[device.device_id] = device
        return device

    async def update(self, device: DeviceRecord) -> DeviceRecord:
        self._store.devices[device.device_id] = device
        return device

    async def list_for_user(self, user_id: UUID) -> list[DeviceRecord]:
        return [d for d in self._store.devices.values() if d.user_id == user_id]

    async def delete(self, user_id: UUID, device_id: str) -> bool:
        device = self._store.devices.get(device_id)
        if device is None or device.user_id != user_id:
            return False
        del self._store.devices[device_id]
        return True

    async def delete_many(self, device_ids: list[str]) -> int:
        return sum(1 for d in device_ids if self._store.devices.pop(d, None) is not None)


class InMemoryUserRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get(self, user_id: UUID) -> Recipient | None:
        return self._store.users.get(user_id)


class FakeUnitOfWork:
    """Unit of Work over the in-memory store."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.notifications = InMemoryNotificationRepo(store)
        self.deliveries = InMemoryDeliveryRepo(store)
        self.preferences = InMemoryPreferenceRepo(store)
        self.devices = InMemoryDeviceRepo(store)
        self.users = InMemoryUserRepo(store)
        self.committed = False
        self.rolled_back = False

    async def commit(self) -> None:
        self.committed = True
        self.store.commits += 1

    async def rollback(self) -> None:
        self.rolled_back = True

    async def __aenter__(self) -> "FakeUnitOfWork":
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# --- Recording fakes ---


class FakeSender:
    """Channel sender with a scripted result."""

    def __init__(
        self,
        channel: NotificationChannel,
        result: SendResult | None = None,
        destination: Any = "destination",
        delay: float = 0.0,
        error: Exception | None = None,
        timeout_seconds: float = 1.0,
    ) -> None:
        self.channel = channel
        self.result = result or SendResult.success()
        self.destination = destination
        self.delay = delay
        self.error = error
        self.timeout_seconds = timeout_seconds
        self.calls: list[tuple[Any, NotificationPayload]] = []

    async def resolve_destination(self, recipient: Recipient) -> Any:
        return self.destination

    async def send(self, destination: Any, payload: NotificationPayload) -> SendResult:
        self.calls.append((destination, payload))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeRealtime:
    """Realtime publisher that records messages per user."""

    def __init__(self) -> None:
        self.online: set[UUID] = set()
        self.sent: list[tuple[UUID, str, Any]] = []

    def is_online(self, user_id: UUID) -> bool:
        return user_id in self.online

    async def send_to_user(self, user_id: UUID, message_type: str, payload: Any) -> int:
        self.sent.append((user_id, message_type, payload))
        return 1 if user_id in self.online else 0


class FakeScheduler:
    """Collects jobs instead of running them on a timer."""

    def __init__(self) -> None:
        self.jobs: list[tuple[str, float | datetime, Callable[[], Awaitable[None]]]] = []

    def schedule_in(self, delay_seconds: float, job: Callable[[], Awaitable[None]], name: str = "job") -> None:
        self.jobs.append((name, delay_seconds, job))

    def schedule_at(self, run_at: datetime, job: Callable[[], Awaitable[None]], name: str = "job") -> None:
        self.jobs.append((name, run_at, job))

    async def run_all(self) -> int:
        """Run queued jobs, including any they schedule. Returns jobs run."""
        ran = 0
        while self.jobs:
            _, _, job = self.jobs.pop(0)
            await job()
            ran += 1
        return ran


# --- Fixtures ---


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store: InMemoryStore) -> Callable[[], FakeUnitOfWork]:
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def user_id() -> UUID:
    """A random user ID."""
    return uuid4()


@pytest.fixture
def recipient(store: InMemoryStore, user_id: UUID) -> Recipient:
    """A stored user with email and a verified phone."""
    user = Recipient(
        id=user_id,
        email="guest@example.com",
        display_name="Guest",
        phone_number="+15551234567",
        phone_verified=True,
    )
    store.users[user.id] = user
    return user


@pytest.fixture
def realtime() -> FakeRealtime:
    return FakeRealtime()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def preference_service(uow_factory) -> PreferenceService:
    return PreferenceService(uow_factory)


@pytest.fixture
def in_app_service(uow_factory, realtime: FakeRealtime) -> InAppNotificationService:
    return InAppNotificationService(uow_factory, realtime=realtime)


@pytest.fixture
def device_registry(uow_factory) -> DeviceRegistry:
    return DeviceRegistry(uow_factory)


@pytest.fixture
def tracker(uow_factory) -> DeliveryTracker:
    return DeliveryTracker(uow_factory)


@pytest.fixture
def senders() -> dict[NotificationChannel, FakeSender]:
    """One succeeding fake per provider channel, plus an offline WebSocket."""
    return {
        NotificationChannel.PUSH: FakeSender(NotificationChannel.PUSH),
        NotificationChannel.EMAIL: FakeSender(NotificationChannel.EMAIL),
        NotificationChannel.SMS: FakeSender(NotificationChannel.SMS),
        NotificationChannel.WEBSOCKET: FakeSender(NotificationChannel.WEBSOCKET, destination=None),
    }


@pytest.fixture
def dispatcher(
    uow_factory,
    preference_service: PreferenceService,
    in_app_service: InAppNotificationService,
    tracker: DeliveryTracker,
    senders: dict[NotificationChannel, FakeSender],
    scheduler: FakeScheduler,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        uow_factory,
        preferences=preference_service,
        in_app=in_app_service,
        tracker=tracker,
        senders=senders.values(),
        scheduler=scheduler,
        max_attempts=3,
        retry_base_delay_seconds=2.0,
    )
