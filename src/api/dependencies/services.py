"""Dependency injection factories for the notification services."""

from functools import lru_cache
from typing import Callable

from core.config import settings
from domain.services.booking_notifier import BookingNotifier
from domain.services.delivery_tracker import DeliveryTracker
from domain.services.device_registry import DeviceRegistry
from domain.services.dispatcher import NotificationDispatcher
from domain.services.in_app_service import InAppNotificationService
from domain.services.preference_service import PreferenceService
from infrastructure.channels.email import EmailSender
from infrastructure.channels.push import PushSender
from infrastructure.channels.sms import SmsSender
from infrastructure.channels.websocket import WebSocketSender
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
from infrastructure.realtime.connection_registry import ConnectionRegistry
from infrastructure.scheduling.delayed_queue import DelayedJobQueue


def get_uow_factory() -> Callable[[], SQLAlchemyUnitOfWork]:
    """Factory for creating Unit of Work instances."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(async_session_factory)

    return factory


@lru_cache
def get_connection_registry() -> ConnectionRegistry:
    """Process-wide registry of live WebSocket connections."""
    return ConnectionRegistry()


@lru_cache
def get_job_queue() -> DelayedJobQueue:
    """Process-wide queue for retries and scheduled dispatches."""
    return DelayedJobQueue()


@lru_cache
def get_preference_service() -> PreferenceService:
    return PreferenceService(get_uow_factory())


@lru_cache
def get_in_app_service() -> InAppNotificationService:
    return InAppNotificationService(get_uow_factory(), realtime=get_connection_registry())


@lru_cache
def get_device_registry() -> DeviceRegistry:
    return DeviceRegistry(get_uow_factory())


@lru_cache
def get_delivery_tracker() -> DeliveryTracker:
    return DeliveryTracker(get_uow_factory())


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    """Get the dispatcher wired to every channel sender."""
    return NotificationDispatcher(
        get_uow_factory(),
        preferences=get_preference_service(),
        in_app=get_in_app_service(),
        tracker=get_delivery_tracker(),
        senders=[
            WebSocketSender(get_connection_registry()),
            PushSender(get_device_registry()),
            EmailSender(),
            SmsSender(),
        ],
        scheduler=get_job_queue(),
        max_attempts=settings.notification_max_attempts,
        retry_base_delay_seconds=settings.notification_retry_base_delay_seconds,
    )


@lru_cache
def get_booking_notifier() -> BookingNotifier:
    return BookingNotifier(get_dispatcher())
