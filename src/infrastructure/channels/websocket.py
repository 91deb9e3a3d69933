"""Real-time delivery over the user's open WebSocket connections."""

from typing import Any
from uuid import UUID

import structlog

from core.config import settings
from domain.entities.notification import (
    NotificationChannel,
    NotificationPayload,
    Recipient,
    SendResult,
)
from domain.services.in_app_service import NOTIFICATION_NEW
from infrastructure.realtime.connection_registry import ConnectionRegistry

logger = structlog.get_logger()


def notification_message(payload: NotificationPayload) -> dict[str, Any]:
    """Client-facing shape of a new notification."""
    return {
        "id": str(payload.id),
        "type": payload.type.value,
        "title": payload.title,
        "body": payload.body,
        "data": payload.data,
        "category": payload.category.value,
        "priority": payload.priority.value,
        "isRead": False,
        "createdAt": payload.created_at.isoformat(),
    }


class WebSocketSender:
    """Broadcasts ``notification:new`` to every live connection of a user.

    Best effort: the in-app record is already stored, so a connection that
    closes before the frame goes out is not a delivery failure.
    """

    channel = NotificationChannel.WEBSOCKET

    def __init__(self, registry: ConnectionRegistry, timeout_seconds: float | None = None) -> None:
        self._registry = registry
        self.timeout_seconds = timeout_seconds or settings.websocket_timeout_seconds

    async def resolve_destination(self, recipient: Recipient) -> UUID | None:
        return recipient.id if self._registry.is_online(recipient.id) else None

    async def send(self, destination: UUID, payload: NotificationPayload) -> SendResult:
        delivered = await self._registry.send_to_user(
            destination, NOTIFICATION_NEW, notification_message(payload)
        )
        if delivered == 0:
            logger.debug(
                "websocket_connections_closed_before_send",
                user_id=str(destination),
                notification_id=str(payload.id),
            )
        return SendResult.success()
