import asyncio
from typing import Dict, List

from backend import RoomStore
from connection import ConnectionHub
from constants import PRESENCE_REFRESH_SECONDS
from errors import RoomNotFound
from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.events import MemberLeftEvent, MemberListEvent, MemberSummary

logger = get_logger(__name__)


class PresenceCoordinator:
    """Owns the member list a room sees and the departure of connections."""

    def __init__(self, store: RoomStore, registry: ConnectionRegistry, hub: ConnectionHub,
                 refresh_interval: float = PRESENCE_REFRESH_SECONDS):
        self.store = store
        self.registry = registry
        self.hub = hub
        self.refresh_interval = refresh_interval
        self._refresh_tasks: Dict[str, asyncio.Task] = {}

    def compute_member_list(self, room_key: str) -> List[MemberSummary]:
        """Members of a room, one entry per display name (case-insensitive), in join order."""
        room = self.store.get_room(room_key)
        if room is None:
            return []
        seen = set()
        members = []
        for member in room.members.values():
            if member.name_key in seen:
                continue
            seen.add(member.name_key)
            members.append(MemberSummary(
                identity=member.identity,
                display_name=member.display_name,
                signaling_id=member.signaling_id,
            ))
        return members

    def broadcast_member_list(self, room_key: str) -> List[MemberSummary]:
        members = self.compute_member_list(room_key)
        logger.debug(f"Sending member list to room {room_key}: {len(members)} members")
        self.hub.publish(room_key, MemberListEvent(members=members).to_message())
        return members

    def refresh(self, connection_id: str) -> List[MemberSummary]:
        room_key = self.registry.lookup_room(connection_id)
        if room_key is None or room_key not in self.store:
            raise RoomNotFound(connection_id)
        logger.debug(f"Connection {connection_id} requested member list for room {room_key}")
        return self.broadcast_member_list(room_key)

    def depart(self, connection_id: str) -> bool:
        """Run the disconnect cleanup for one connection.

        Returns True when this removed the member entirely. Safe to call
        any number of times for the same connection.
        """
        room_key = self.registry.lookup_room(connection_id)
        if room_key is None:
            return False

        member, removed = self.store.detach_connection(room_key, connection_id)
        self.registry.unregister(connection_id)
        if member is None:
            logger.debug(f"Connection {connection_id} had no member record in room {room_key}")
        elif removed:
            logger.info(f"User {member.display_name} left room {room_key}")
            self.hub.publish(room_key, MemberLeftEvent(display_name=member.display_name).to_message())
            self.broadcast_member_list(room_key)
        else:
            logger.info(f"User {member.display_name} still has {len(member.connection_ids)} active connections in room {room_key}")

        room = self.store.get_room(room_key)
        if room is not None and not room.members:
            self.store.delete_room(room_key)
            self.stop_refresh(room_key)
        return removed

    def start_refresh(self, room_key: str):
        if self.refresh_interval <= 0:
            return
        task = self._refresh_tasks.get(room_key)
        if task is not None and not task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, presence refresh disabled for room {room_key}")
            return
        self._refresh_tasks[room_key] = loop.create_task(self._refresh_loop(room_key))
        logger.debug(f"Started presence refresh for room {room_key} every {self.refresh_interval}s")

    def stop_refresh(self, room_key: str):
        task = self._refresh_tasks.pop(room_key, None)
        if task is not None:
            task.cancel()
            logger.debug(f"Cancelled presence refresh for room {room_key}")

    @property
    def active_refreshes(self) -> List[str]:
        return [room_key for room_key, task in self._refresh_tasks.items() if not task.done()]

    async def _refresh_loop(self, room_key: str):
        try:
            while True:
                await asyncio.sleep(self.refresh_interval)
                if room_key not in self.store:
                    break
                try:
                    self.broadcast_member_list(room_key)
                except Exception as e:
                    logger.error(f"Error in presence refresh for room {room_key}: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.debug(f"Presence refresh task cancelled for room: {room_key}")
            raise
        finally:
            if self._refresh_tasks.get(room_key) is asyncio.current_task():
                del self._refresh_tasks[room_key]

    async def shutdown(self):
        tasks = list(self._refresh_tasks.values())
        self._refresh_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Stopped {len(tasks)} presence refresh tasks")
