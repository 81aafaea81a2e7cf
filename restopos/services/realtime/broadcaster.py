"""
Realtime Broadcaster

Pushes order lifecycle events to the role-scoped subscriber groups.

Delivery is best effort and at most once per connected client: nothing is
persisted or replayed. A client that was away reloads ``GET /api/orders``.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from typing import Any

from restopos.services.realtime.registry import Connection, ConnectionRegistry, Group

logger = logging.getLogger(__name__)

NEW_ORDER = "new-order"
ORDER_UPDATED = "order-updated"
USERS_ONLINE_UPDATE = "users-online-update"

# Audiences of the order lifecycle events
ORDER_GROUPS = (Group.CASHIER, Group.KITCHEN)


class Broadcaster:
    """Group membership and fan-out on top of a ConnectionRegistry."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def join(self, connection: Connection, group: Group) -> None:
        self.registry.groups[group].add(connection.id)
        connection.groups.add(group)
        logger.info(f"Connection {connection.id} joined {group.value}")

    def leave(self, connection: Connection) -> None:
        """Drop the connection from every group it joined."""
        self.registry.unregister(connection)
        logger.debug(f"Connection {connection.id} left all groups")

    def publish(self, group: Group, event: str, payload: Any) -> int:
        """
        Queue ``event`` for every current member of ``group``.

        Never awaits, so it cannot block on a slow client.

        Returns:
            Number of connections the event was queued for
        """
        message = {"event": event, "data": payload}
        delivered = 0
        for connection in self.registry.members(group):
            if connection.enqueue(message):
                delivered += 1
        logger.debug(f"Published {event} to {group.value}: {delivered} connection(s)")
        return delivered

    def publish_order_event(self, event: str, order: dict[str, Any]) -> int:
        """Send a complete order object to cashier and kitchen."""
        delivered = sum(self.publish(group, event, order) for group in ORDER_GROUPS)
        logger.info(f"📣 {event} for order #{order.get('id')} sent to {delivered} connection(s)")
        return delivered
