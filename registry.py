from typing import Dict, Optional, Set

from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """Index of which room every live connection belongs to.

    Kept in step with Room Store membership by the admission and departure
    paths. Never a source of truth for who is in a room.
    """

    def __init__(self):
        self._room_by_connection: Dict[str, str] = {}
        self._connections_by_room: Dict[str, Set[str]] = {}

    def register(self, connection_id: str, room_key: str):
        previous = self._room_by_connection.get(connection_id)
        if previous is not None and previous != room_key:
            self._discard(previous, connection_id)
        self._room_by_connection[connection_id] = room_key
        self._connections_by_room.setdefault(room_key, set()).add(connection_id)
        logger.debug(f"Registered connection {connection_id} to room {room_key}")

    def lookup_room(self, connection_id: str) -> Optional[str]:
        return self._room_by_connection.get(connection_id)

    def unregister(self, connection_id: str) -> Optional[str]:
        room_key = self._room_by_connection.pop(connection_id, None)
        if room_key is None:
            return None
        self._discard(room_key, connection_id)
        logger.debug(f"Unregistered connection {connection_id} from room {room_key}")
        return room_key

    def connections_in(self, room_key: str) -> Set[str]:
        return set(self._connections_by_room.get(room_key, ()))

    def _discard(self, room_key: str, connection_id: str):
        connections = self._connections_by_room.get(room_key)
        if not connections:
            return
        connections.discard(connection_id)
        if not connections:
            del self._connections_by_room[room_key]

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._room_by_connection

    def __len__(self) -> int:
        return len(self._room_by_connection)
