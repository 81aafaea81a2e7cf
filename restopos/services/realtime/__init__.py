"""
Realtime Module

Role-scoped websocket fan-out (cashier, kitchen, admin) and staff presence.
"""

from restopos.services.realtime.broadcaster import (
    Broadcaster,
    NEW_ORDER,
    ORDER_UPDATED,
    USERS_ONLINE_UPDATE,
)
from restopos.services.realtime.gateway import RealtimeHub, handle_message, serve_websocket
from restopos.services.realtime.presence import PresenceTracker
from restopos.services.realtime.registry import Connection, ConnectionRegistry, Group

__all__ = [
    "Broadcaster",
    "Connection",
    "ConnectionRegistry",
    "Group",
    "PresenceTracker",
    "RealtimeHub",
    "handle_message",
    "serve_websocket",
    "NEW_ORDER",
    "ORDER_UPDATED",
    "USERS_ONLINE_UPDATE",
]
