"""
Realtime Connection Registry

Process-scoped state for the realtime layer: live connections, their
subscriber groups and the staff presence map. One registry is created at
application startup and closed at shutdown; the broadcaster and presence
tracker receive it by reference.

Author: Khalil Bannouri
Version: 4.0.0
"""

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class Group(str, enum.Enum):
    """Broadcast audiences a connection can explicitly join."""
    CASHIER = "cashier"
    KITCHEN = "kitchen"
    ADMIN = "admin"


class Transport(Protocol):
    """What a connection needs from its socket (starlette's WebSocket fits)."""

    async def send_json(self, data: Any) -> None:
        ...


@dataclass
class PresenceEntry:
    connection_id: str
    login_time: datetime


@dataclass(eq=False)
class Connection:
    """
    One connected client.

    Outgoing events are queued on ``outbox`` and written to the socket by
    ``pump``, so a slow client never holds up a publisher.
    """
    transport: Transport
    outbox_size: int = 100
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    groups: set[Group] = field(default_factory=set)
    user_id: Optional[int] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dropped_events: int = 0

    def __post_init__(self):
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=self.outbox_size)
        self._writer: Optional[asyncio.Task] = None

    def enqueue(self, message: dict[str, Any]) -> bool:
        """Queue a message without waiting. Returns False if it was dropped."""
        try:
            self.outbox.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped_events += 1
            logger.warning(
                f"Outbox full for connection {self.id}, dropped '{message.get('event')}' "
                f"({self.dropped_events} dropped so far)"
            )
            return False

    async def pump(self) -> None:
        """Write queued messages to the socket until cancelled or the send fails."""
        while True:
            message = await self.outbox.get()
            try:
                await self.transport.send_json(message)
            except Exception as e:
                logger.info(f"Connection {self.id} stopped receiving: {e}")
                return

    def start(self) -> asyncio.Task:
        if self._writer is None:
            self._writer = asyncio.create_task(self.pump(), name=f"ws-writer-{self.id}")
        return self._writer

    async def stop(self) -> None:
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        self._writer = None


class ConnectionRegistry:
    """Maps of live connections, group membership and presence."""

    def __init__(self, outbox_size: int = 100):
        self.outbox_size = outbox_size
        self.connections: dict[str, Connection] = {}
        self.groups: dict[Group, set[str]] = {group: set() for group in Group}
        self.presence: dict[int, PresenceEntry] = {}
        self.closed = False

    def register(self, transport: Transport) -> Connection:
        if self.closed:
            raise RuntimeError("Connection registry is closed")
        connection = Connection(transport=transport, outbox_size=self.outbox_size)
        self.connections[connection.id] = connection
        logger.debug(f"Connection {connection.id} registered ({len(self.connections)} live)")
        return connection

    def unregister(self, connection: Connection) -> None:
        for members in self.groups.values():
            members.discard(connection.id)
        self.connections.pop(connection.id, None)
        connection.groups.clear()

    def members(self, group: Group) -> list[Connection]:
        return [
            self.connections[connection_id]
            for connection_id in self.groups[group]
            if connection_id in self.connections
        ]

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    async def close(self) -> None:
        """Stop every writer task and forget all state. Called on shutdown."""
        self.closed = True
        for connection in list(self.connections.values()):
            await connection.stop()
        self.connections.clear()
        for members in self.groups.values():
            members.clear()
        self.presence.clear()
        logger.info("Realtime registry closed")
