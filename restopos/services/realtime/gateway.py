"""
Realtime Websocket Gateway

Reads client frames ``{"event": ..., "data": ...}`` and maps them onto the
broadcaster and presence tracker.

Client -> server events:
    - join-cashier / join-kitchen / join-admin
    - user-online (data: staff user id)
    - ping

Server -> client events:
    - joined, pong, error
    - new-order, order-updated (complete order object)
    - users-online-update (list of user ids)

Author: Khalil Bannouri
Version: 4.0.0
"""

import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from restopos.services.realtime.broadcaster import Broadcaster
from restopos.services.realtime.presence import PresenceTracker
from restopos.services.realtime.registry import Connection, ConnectionRegistry, Group

logger = logging.getLogger(__name__)

JOIN_EVENTS = {
    "join-cashier": Group.CASHIER,
    "join-kitchen": Group.KITCHEN,
    "join-admin": Group.ADMIN,
}


class RealtimeHub:
    """
    The process-wide realtime components, built once at startup.

    Attributes:
        registry: Live connections, groups and presence map
        broadcaster: Group fan-out
        presence: Staff online tracking
    """

    def __init__(self, outbox_size: int = 100):
        self.registry = ConnectionRegistry(outbox_size=outbox_size)
        self.broadcaster = Broadcaster(self.registry)
        self.presence = PresenceTracker(self.registry, self.broadcaster)

    async def close(self) -> None:
        await self.registry.close()


def _error(connection: Connection, message: str) -> None:
    connection.enqueue({"event": "error", "data": {"message": message}})


def handle_message(hub: RealtimeHub, connection: Connection, message: Any) -> None:
    """Apply one decoded client frame."""
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        _error(connection, "Frames must be objects with an 'event' field")
        return

    event = message["event"]
    data = message.get("data")

    if event in JOIN_EVENTS:
        group = JOIN_EVENTS[event]
        hub.broadcaster.join(connection, group)
        connection.enqueue({"event": "joined", "data": {"group": group.value}})
    elif event == "user-online":
        try:
            user_id = int(data)
        except (TypeError, ValueError):
            _error(connection, "user-online requires a numeric user id")
            return
        hub.presence.mark_online(user_id, connection)
    elif event == "ping":
        connection.enqueue({"event": "pong", "data": data})
    else:
        _error(connection, f"Unknown event '{event}'")


async def serve_websocket(websocket: WebSocket, hub: RealtimeHub) -> None:
    """Run one client connection until it disconnects."""
    await websocket.accept()
    connection = hub.registry.register(websocket)
    connection.start()
    logger.info(f"Client connected: {connection.id}")

    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except KeyError:
                # receive_text() on a binary frame
                raw = None
            if raw is None:
                _error(connection, "Frames must be text")
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                _error(connection, "Frames must be valid JSON")
                continue
            handle_message(hub, connection, message)
    except WebSocketDisconnect:
        logger.info(f"Client disconnected: {connection.id}")
    finally:
        hub.broadcaster.leave(connection)
        hub.presence.mark_offline(connection)
        await connection.stop()
