"""Registry of live WebSocket connections, keyed by user."""

import asyncio
from typing import Any, Protocol
from uuid import UUID

import orjson
import structlog

logger = structlog.get_logger()

HEARTBEAT_MESSAGE = "ping"
CLOSE_GOING_AWAY = 1001


class RealtimeConnection(Protocol):
    """The part of a WebSocket the registry needs."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class ConnectionRegistry:
    """Tracks open connections per user and fans messages out to them.

    A user can hold several connections (tabs, devices). Connections that
    fail on send are dropped. ``sweep`` runs the heartbeat: a connection that
    sent nothing since the previous sweep is closed, the rest are pinged and
    must answer before the next one.
    """

    def __init__(self) -> None:
        self._connections: dict[UUID, set[RealtimeConnection]] = {}
        self._alive: set[RealtimeConnection] = set()
        self._lock = asyncio.Lock()

    async def add(self, user_id: UUID, connection: RealtimeConnection) -> None:
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(connection)
            self._alive.add(connection)
        logger.info("websocket_connected", user_id=str(user_id))

    async def remove(self, user_id: UUID, connection: RealtimeConnection) -> None:
        async with self._lock:
            self._alive.discard(connection)
            conns = self._connections.get(user_id)
            if conns is None or connection not in conns:
                return
            conns.discard(connection)
            if not conns:
                del self._connections[user_id]
        logger.info("websocket_disconnected", user_id=str(user_id))

    def mark_alive(self, connection: RealtimeConnection) -> None:
        """Record that the client sent something since the last sweep."""
        self._alive.add(connection)

    def is_online(self, user_id: UUID) -> bool:
        return bool(self._connections.get(user_id))

    def connection_count(self, user_id: UUID | None = None) -> int:
        if user_id is not None:
            return len(self._connections.get(user_id, ()))
        return sum(len(conns) for conns in self._connections.values())

    async def send_to_user(self, user_id: UUID, message_type: str, payload: Any) -> int:
        """Send ``{type, payload}`` to every connection of a user.

        Returns the number of connections that accepted the message.
        """
        async with self._lock:
            targets = list(self._connections.get(user_id, ()))
        if not targets:
            return 0

        text = orjson.dumps({"type": message_type, "payload": payload}).decode()
        results = await asyncio.gather(
            *(conn.send_text(text) for conn in targets), return_exceptions=True
        )

        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "websocket_send_failed",
                    user_id=str(user_id),
                    message_type=message_type,
                    error=str(result),
                )
                await self.remove(user_id, conn)
            else:
                delivered += 1
        return delivered

    async def sweep(self) -> int:
        """Close silent connections and ping the others. Returns how many were closed."""
        async with self._lock:
            entries = [(uid, conn) for uid, conns in self._connections.items() for conn in conns]
            stale = [(uid, conn) for uid, conn in entries if conn not in self._alive]
            live = [(uid, conn) for uid, conn in entries if conn in self._alive]
            self._alive.clear()

        for user_id, conn in stale:
            logger.info("websocket_heartbeat_missed", user_id=str(user_id))
            await self.remove(user_id, conn)
            await self._close(conn)

        text = orjson.dumps({"type": HEARTBEAT_MESSAGE, "payload": None}).decode()
        results = await asyncio.gather(
            *(conn.send_text(text) for _, conn in live), return_exceptions=True
        )
        for (user_id, conn), result in zip(live, results):
            if isinstance(result, BaseException):
                await self.remove(user_id, conn)
        return len(stale)

    async def close_all(self) -> None:
        async with self._lock:
            conns = [conn for group in self._connections.values() for conn in group]
            self._connections.clear()
            self._alive.clear()
        await asyncio.gather(*(self._close(conn) for conn in conns))
        if conns:
            logger.info("websocket_connections_closed", count=len(conns))

    @staticmethod
    async def _close(connection: RealtimeConnection) -> None:
        try:
            await connection.close(code=CLOSE_GOING_AWAY)
        except Exception as exc:
            # Already closed by the peer.
            logger.debug("websocket_close_failed", error=str(exc))
