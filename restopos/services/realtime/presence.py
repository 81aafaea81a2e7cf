"""
Staff Presence Tracker

Which staff user ids currently hold a live connection, for the admin
online/offline indicators. Last connect wins: a second login for the same
user replaces the first entry instead of being reference counted.
"""

import logging
from datetime import datetime, timezone

from restopos.services.realtime.broadcaster import Broadcaster, USERS_ONLINE_UPDATE
from restopos.services.realtime.registry import Connection, ConnectionRegistry, Group, PresenceEntry

logger = logging.getLogger(__name__)


class PresenceTracker:

    def __init__(self, registry: ConnectionRegistry, broadcaster: Broadcaster):
        self.registry = registry
        self.broadcaster = broadcaster

    def list_online(self) -> list[int]:
        return sorted(self.registry.presence)

    def _announce(self) -> None:
        self.broadcaster.publish(Group.ADMIN, USERS_ONLINE_UPDATE, self.list_online())

    def mark_online(self, user_id: int, connection: Connection) -> None:
        # A connection speaks for one user; a new id replaces the old one
        if connection.user_id is not None and connection.user_id != user_id:
            owned = self.registry.presence.get(connection.user_id)
            if owned is not None and owned.connection_id == connection.id:
                del self.registry.presence[connection.user_id]
                logger.info(f"User {connection.user_id} signed out on connection {connection.id}")

        previous = self.registry.presence.get(user_id)
        if previous is not None and previous.connection_id != connection.id:
            logger.info(f"User {user_id} connected again, superseding {previous.connection_id}")

        connection.user_id = user_id
        self.registry.presence[user_id] = PresenceEntry(
            connection_id=connection.id,
            login_time=datetime.now(timezone.utc),
        )
        logger.info(f"User {user_id} online ({len(self.registry.presence)} online)")
        self._announce()

    def mark_offline(self, connection: Connection) -> bool:
        """
        Remove every presence entry owned by ``connection``.

        Returns:
            True if a user went offline (admins are notified once)
        """
        removed = [
            user_id
            for user_id, entry in self.registry.presence.items()
            if entry.connection_id == connection.id
        ]
        for user_id in removed:
            del self.registry.presence[user_id]
            logger.info(f"User {user_id} offline ({len(self.registry.presence)} online)")

        if not removed:
            return False
        self._announce()
        return True
