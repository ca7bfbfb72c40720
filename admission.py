from typing import Optional

from backend import MemberRecord, RoomStore
from connection import ConnectionHub
from errors import NameTaken
from logging_config import get_logger
from presence import PresenceCoordinator
from registry import ConnectionRegistry
from schemas.events import BufferSyncEvent, JoinedEvent, MemberJoinedEvent, MemberLeftEvent

logger = get_logger(__name__)


class AdmissionController:
    """Gates joins on case-insensitive display-name uniqueness within a room."""

    def __init__(self, store: RoomStore, registry: ConnectionRegistry, hub: ConnectionHub,
                 presence: PresenceCoordinator):
        self.store = store
        self.registry = registry
        self.hub = hub
        self.presence = presence

    def is_name_available(self, room_key: str, display_name: str) -> bool:
        return display_name.lower() not in self.store.display_names(room_key)

    def check_name(self, room_key: str, display_name: str, identity: Optional[str] = None) -> Optional[MemberRecord]:
        """Raise NameTaken unless the name is free or held by ``identity``.

        Returns the record to attach to when ``identity`` owns the name.
        """
        room = self.store.get_room(room_key)
        if room is None:
            return None
        holder = room.member_named(display_name)
        if holder is None:
            return None
        if identity is not None and holder.identity == identity:
            return holder
        raise NameTaken(room_key, display_name)

    def try_join(self, room_key: str, display_name: str, connection_id: str,
                 identity: Optional[str] = None) -> MemberRecord:
        logger.info(f"JOIN REQUEST: {display_name} attempting to join room {room_key} with connection {connection_id}")

        current_room = self.registry.lookup_room(connection_id)
        current = None
        if current_room == room_key:
            current = self.store.get_room(room_key).member_for(connection_id)
            if current is not None and current.name_key == display_name.lower():
                logger.info(f"Connection {connection_id} re-joined room {room_key} as {current.display_name}")
                self._welcome(room_key, current, connection_id)
                self.presence.broadcast_member_list(room_key)
                return current

        # Nothing is mutated before this check passes
        holder = self.check_name(room_key, display_name, identity)

        if current is not None:
            if holder is None and current.connection_ids == {connection_id}:
                return self._rename(room_key, current, display_name, connection_id)
            # Other tabs keep the old name, this connection moves on
            previous, removed = self.store.detach_connection(room_key, connection_id)
            if removed:
                self.hub.publish(room_key, MemberLeftEvent(display_name=previous.display_name).to_message(),
                                 exclude=[connection_id])
        elif current_room is not None:
            logger.info(f"Connection {connection_id} is leaving room {current_room} before joining {room_key}")
            self.presence.depart(connection_id)

        created = room_key not in self.store
        if created:
            self.store.create_room(room_key)

        if holder is not None:
            member = self.store.attach_connection(room_key, holder.identity, connection_id)
        else:
            member = self.store.add_member(room_key, display_name, connection_id)
        self.registry.register(connection_id, room_key)

        if created:
            self.presence.start_refresh(room_key)

        logger.info(f"Connection {connection_id} joined room {room_key} as {member.display_name}")
        self._welcome(room_key, member, connection_id)
        self.presence.broadcast_member_list(room_key)
        if holder is None:
            self.hub.publish(room_key, MemberJoinedEvent(display_name=member.display_name).to_message(),
                             exclude=member.connection_ids)
        return member

    def _rename(self, room_key: str, member: MemberRecord, display_name: str, connection_id: str) -> MemberRecord:
        previous_name = member.display_name
        self.store.rename_member(room_key, member.identity, display_name)
        logger.info(f"Connection {connection_id} renamed {previous_name} to {display_name} in room {room_key}")
        self._welcome(room_key, member, connection_id)
        self.presence.broadcast_member_list(room_key)
        return member

    def _welcome(self, room_key: str, member: MemberRecord, connection_id: str):
        room = self.store.get_room(room_key)
        self.hub.send(connection_id, JoinedEvent(
            room_key=room_key,
            member_count=len(room.members),
            identity=member.identity,
            display_name=member.display_name,
        ).to_message())
        # Catch-up copy of the buffer for this connection only
        self.hub.send(connection_id, BufferSyncEvent(text=room.buffer, language=room.buffer_language).to_message())
