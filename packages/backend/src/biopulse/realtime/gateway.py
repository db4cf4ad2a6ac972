"""Connection gateway — open sockets and the rooms they joined.

Learn: A room is just a topic id mapped to the connection ids that
joined it. send_to_topic() snapshots the room at call time, so a
connection that leaves mid-broadcast may or may not get that one
message, but never gets anything for a room it never joined.

A failed send to one connection is logged and skipped; the socket's
own receive loop notices the close and calls disconnect().
"""

import asyncio
import uuid
from typing import Any, Callable, Optional, Protocol

import structlog

logger = structlog.get_logger()


class Connection(Protocol):
    """Anything that can push a JSON frame to a client (e.g. a WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


DisconnectCallback = Callable[[str], None]


class ConnectionGateway:
    """Registry of live connections and topic rooms."""

    def __init__(self):
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._disconnect_callbacks: list[DisconnectCallback] = []

    # ─── Connection lifecycle ───────────────────────────

    def connect(self, connection: Connection, connection_id: Optional[str] = None) -> str:
        """Register a connection and return its id."""
        connection_id = connection_id or uuid.uuid4().hex
        self._connections[connection_id] = connection
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Drop a connection from every room and notify listeners once."""
        if self._connections.pop(connection_id, None) is None:
            return

        for topic_id in list(self._rooms):
            self._discard(connection_id, topic_id)

        for callback in self._disconnect_callbacks:
            try:
                callback(connection_id)
            except Exception:
                logger.exception(
                    "biopulse.gateway.disconnect_callback_failed",
                    connection_id=connection_id,
                )

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        self._disconnect_callbacks.append(callback)

    def connection_count(self) -> int:
        return len(self._connections)

    # ─── Rooms ──────────────────────────────────────────

    def join(self, connection_id: str, topic_id: str) -> bool:
        """Add a connection to a room. False if the connection is not open."""
        if connection_id not in self._connections:
            return False
        self._rooms.setdefault(topic_id, set()).add(connection_id)
        return True

    def leave(self, connection_id: str, topic_id: str) -> None:
        self._discard(connection_id, topic_id)

    def members(self, topic_id: str) -> set[str]:
        return set(self._rooms.get(topic_id, ()))

    def _discard(self, connection_id: str, topic_id: str) -> None:
        room = self._rooms.get(topic_id)
        if room is None:
            return
        room.discard(connection_id)
        if not room:
            del self._rooms[topic_id]

    # ─── Delivery ───────────────────────────────────────

    async def send_to_topic(self, topic_id: str, event: str, payload: Any) -> int:
        """Send {"event", "data"} to everyone in the room. Returns deliveries."""
        frame = {"event": event, "data": payload}
        targets = [
            (cid, self._connections[cid])
            for cid in self._rooms.get(topic_id, ())
            if cid in self._connections
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._send(cid, conn, frame) for cid, conn in targets)
        )
        return sum(results)

    async def _send(self, connection_id: str, connection: Connection, frame: dict) -> bool:
        try:
            await connection.send_json(frame)
            return True
        except Exception as e:
            logger.warning(
                "biopulse.gateway.send_failed",
                connection_id=connection_id,
                event=frame["event"],
                error=str(e),
            )
            return False
