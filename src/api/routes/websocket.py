"""Real-time notification socket.

Protocol (JSON text frames, ``{"type": ..., "payload": ...}``):

* The client authenticates with ``?token=<jwt>`` on the URL, or with
  ``{"type": "auth", "payload": {"token": "<jwt>"}}`` as its first frame.
  The server answers ``auth_success`` or ``auth_error`` (and closes).
* After authentication the server sends ``connected`` and the current
  ``notification:unread_count``, then pushes ``notification:*`` events.
* ``ping`` is answered with ``pong``. Other client frames are ignored.
* The server sends ``ping`` on every heartbeat. A connection that sends
  nothing (a ``pong`` will do) before the next heartbeat is closed.
"""

import asyncio
from typing import Any
from uuid import UUID

import orjson
import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from api.dependencies.auth import get_auth_provider
from api.dependencies.services import get_connection_registry, get_in_app_service
from core.config import settings
from domain.services.in_app_service import NOTIFICATION_UNREAD_COUNT, InAppNotificationService
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import TokenUser
from infrastructure.realtime.connection_registry import ConnectionRegistry

logger = structlog.get_logger()

AUTH_TIMEOUT_SECONDS = 10.0

router = APIRouter(tags=["realtime"])


async def _send(websocket: WebSocket, message_type: str, payload: Any = None) -> None:
    await websocket.send_text(orjson.dumps({"type": message_type, "payload": payload}).decode())


def _parse(raw: str) -> dict[str, Any]:
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return {}
    return message if isinstance(message, dict) else {}


async def _authenticate(
    websocket: WebSocket, auth_provider: JWTAuthProvider
) -> TokenUser | None:
    token = websocket.query_params.get("token")
    if not token:
        try:
            raw = await asyncio.wait_for(websocket.receive_text(), timeout=AUTH_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            await _send(websocket, "auth_error", {"message": "Authentication timed out"})
            return None
        message = _parse(raw)
        if message.get("type") == "auth":
            token = (message.get("payload") or {}).get("token")

    user = await auth_provider.validate_token(token) if token else None
    if user is None:
        await _send(websocket, "auth_error", {"message": "Invalid or missing token"})
        return None

    await _send(websocket, "auth_success", {"userId": str(user.id)})
    return user


@router.websocket(settings.websocket_path)
async def notifications_socket(
    websocket: WebSocket,
    auth_provider: JWTAuthProvider = Depends(get_auth_provider),
    registry: ConnectionRegistry = Depends(get_connection_registry),
    in_app: InAppNotificationService = Depends(get_in_app_service),
) -> None:
    await websocket.accept()

    user = await _authenticate(websocket, auth_provider)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id: UUID = user.id
    await registry.add(user_id, websocket)
    try:
        await _send(websocket, "connected", {"userId": str(user_id)})
        await _send(websocket, NOTIFICATION_UNREAD_COUNT, {"count": await in_app.unread_count(user_id)})

        while True:
            message = _parse(await websocket.receive_text())
            registry.mark_alive(websocket)
            message_type = message.get("type")
            if message_type == "ping":
                await _send(websocket, "pong")
            elif message_type != "pong":
                logger.debug("websocket_message_ignored", user_id=str(user_id), type=message_type)
    except WebSocketDisconnect:
        pass
    finally:
        await registry.remove(user_id, websocket)
