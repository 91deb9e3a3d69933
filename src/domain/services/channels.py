"""Interfaces between the dispatcher and its delivery infrastructure."""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from domain.entities.notification import (
    NotificationChannel,
    NotificationPayload,
    Recipient,
    SendResult,
)


class ChannelSender(Protocol):
    """One delivery transport.

    ``resolve_destination`` returns None when the recipient cannot be reached
    on this channel (no email, no verified phone, no devices). ``send`` reports
    provider failures through the returned SendResult; an exception is treated
    as an unexpected failure by the dispatcher.
    """

    channel: NotificationChannel
    timeout_seconds: float

    async def resolve_destination(self, recipient: Recipient) -> Any | None: ...

    async def send(self, destination: Any, payload: NotificationPayload) -> SendResult: ...


class RealtimePublisher(Protocol):
    """Pushes messages to a user's live connections."""

    def is_online(self, user_id: UUID) -> bool: ...

    async def send_to_user(self, user_id: UUID, message_type: str, payload: Any) -> int: ...


class JobScheduler(Protocol):
    """Runs coroutine jobs later."""

    def schedule_in(
        self, delay_seconds: float, job: Callable[[], Awaitable[None]], name: str = "job"
    ) -> None: ...

    def schedule_at(
        self, run_at: datetime, job: Callable[[], Awaitable[None]], name: str = "job"
    ) -> None: ...
