"""Per-process registry of realtime subscription groups.

Maps a group name to the set of live connections in it. Membership is
ephemeral: it is never persisted and clients re-join after reconnecting.
"""

import threading

import structlog

from dispatch.realtime.connection import Connection

logger = structlog.get_logger(__name__)

PILOTS_GROUP = "pilots"
ADMINS_GROUP = "admins"


def pilot_group(pilot_id: str) -> str:
    """Addressed group for a single pilot."""
    return f"pilot_{pilot_id}"


class ConnectionHub:
    def __init__(self):
        self._groups: dict[str, set[Connection]] = {}
        self._lock = threading.Lock()

    def join(self, connection: Connection, group: str) -> None:
        with self._lock:
            self._groups.setdefault(group, set()).add(connection)
        logger.debug("Connection joined group", connection_id=connection.id, group=group)

    def join_pilot(self, connection: Connection, pilot_id: str | None) -> None:
        """Join the pilot broadcast group and, when known, the pilot's own group."""
        self.join(connection, PILOTS_GROUP)
        if pilot_id:
            self.join(connection, pilot_group(pilot_id))

    def join_admin(self, connection: Connection) -> None:
        self.join(connection, ADMINS_GROUP)

    def discard(self, connection: Connection) -> None:
        """Drop a connection from every group it belongs to."""
        with self._lock:
            for group in list(self._groups):
                members = self._groups[group]
                members.discard(connection)
                if not members:
                    del self._groups[group]

    def members(self, group: str) -> list[Connection]:
        """Snapshot of the connections currently in ``group``."""
        with self._lock:
            return list(self._groups.get(group, ()))

    def groups_of(self, connection: Connection) -> set[str]:
        with self._lock:
            return {group for group, members in self._groups.items() if connection in members}

    def clear(self) -> None:
        with self._lock:
            self._groups.clear()
