import uuid
from datetime import datetime
from typing import Optional

from backend import MemberRecord, Room, RoomStore
from connection import ConnectionHub
from errors import RoomNotFound
from logging_config import get_logger
from presence import PresenceCoordinator
from registry import ConnectionRegistry
from schemas.events import BufferSyncEvent, ChatBroadcastEvent, ChatMessage

logger = get_logger(__name__)


class BroadcastRelay:
    """Buffer, chat and signaling traffic for registered connections.

    Every channel is fire-and-forget: the sender gets no acknowledgement
    and never receives its own event back.
    """

    def __init__(self, store: RoomStore, registry: ConnectionRegistry, hub: ConnectionHub,
                 presence: PresenceCoordinator):
        self.store = store
        self.registry = registry
        self.hub = hub
        self.presence = presence

    def _room_of(self, connection_id: str) -> Room:
        room_key = self.registry.lookup_room(connection_id)
        if room_key is None:
            raise RoomNotFound(connection_id)
        return self.store.require_room(room_key, connection_id)

    def _member_of(self, room: Room, connection_id: str) -> MemberRecord:
        member = room.member_for(connection_id)
        if member is None:
            raise RoomNotFound(connection_id)
        return member

    def sync_buffer(self, connection_id: str, text: str, language: Optional[str] = None) -> Room:
        """Replace the room buffer (last writer wins) and forward it to everyone else."""
        room = self._room_of(connection_id)
        self.store.set_buffer(room.room_key, text, language)
        self.hub.publish(
            room.room_key,
            BufferSyncEvent(text=room.buffer, language=room.buffer_language).to_message(),
            exclude=[connection_id],
        )
        logger.debug(f"Connection {connection_id} updated code in room {room.room_key}")
        return room

    def relay_chat(self, connection_id: str, text: str, message_id: Optional[str] = None,
                   timestamp: Optional[str] = None) -> ChatMessage:
        room = self._room_of(connection_id)
        member = self._member_of(room, connection_id)
        # Sender fields always come from server state, never from the client
        message = ChatMessage(
            id=message_id or uuid.uuid4().hex,
            text=text,
            sender_connection_id=connection_id,
            sender_display_name=member.display_name,
            timestamp=timestamp or datetime.now().isoformat(),
        )
        self.hub.publish(room.room_key, ChatBroadcastEvent(message=message).to_message(), exclude=[connection_id])
        logger.debug(f"Relayed chat message {message.id} from {member.display_name} in room {room.room_key}")
        return message

    def announce_signaling(self, connection_id: str, signaling_id: str) -> MemberRecord:
        room = self._room_of(connection_id)
        self._member_of(room, connection_id)
        member = self.store.set_signaling_id(room.room_key, connection_id, signaling_id)
        logger.info(f"User {member.display_name} announced signaling id in room {room.room_key}")
        self.presence.broadcast_member_list(room.room_key)
        return member
