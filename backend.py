import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, Optional, Set, Tuple

from errors import RoomNotFound
from logging_config import get_logger

logger = get_logger(__name__)


def new_identity() -> str:
    return uuid.uuid4().hex


@dataclass
class MemberRecord:
    display_name: str
    identity: str = field(default_factory=new_identity)
    signaling_id: Optional[str] = None
    connection_ids: Set[str] = field(default_factory=set)

    @property
    def name_key(self) -> str:
        return self.display_name.lower()


@dataclass
class Room:
    room_key: str
    # identity -> record, in join order
    members: Dict[str, MemberRecord] = field(default_factory=dict)
    buffer: str = ""
    buffer_language: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def member_for(self, connection_id: str) -> Optional[MemberRecord]:
        for member in self.members.values():
            if connection_id in member.connection_ids:
                return member
        return None

    def member_named(self, display_name: str) -> Optional[MemberRecord]:
        """Case-insensitive lookup of the record holding ``display_name``."""
        wanted = display_name.lower()
        for member in self.members.values():
            if member.name_key == wanted:
                return member
        return None

    @property
    def connection_ids(self) -> Set[str]:
        connections = set()
        for member in self.members.values():
            connections |= member.connection_ids
        return connections


class RoomStore:
    """In-memory owner of every Room and MemberRecord.

    A room is created on the first join and deleted by the departure path
    the moment its last member goes; nothing here outlives the process.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def create_room(self, room_key: str) -> Room:
        if room_key in self._rooms:
            raise ValueError(f"Room {room_key} already exists")
        logger.info(f"Creating new room: {room_key}")
        room = Room(room_key=room_key)
        self._rooms[room_key] = room
        return room

    def get_room(self, room_key: str) -> Optional[Room]:
        return self._rooms.get(room_key)

    def require_room(self, room_key: str, connection_id: str) -> Room:
        room = self._rooms.get(room_key)
        if room is None:
            raise RoomNotFound(connection_id)
        return room

    def delete_room(self, room_key: str) -> bool:
        room = self._rooms.pop(room_key, None)
        if room is None:
            return False
        logger.info(f"Room {room_key} deleted because it's empty")
        return True

    def add_member(self, room_key: str, display_name: str, connection_id: str) -> MemberRecord:
        room = self._rooms[room_key]
        member = MemberRecord(display_name=display_name, connection_ids={connection_id})
        room.members[member.identity] = member
        logger.debug(f"Added member {display_name} ({member.identity}) with connection {connection_id} to room {room_key}")
        return member

    def attach_connection(self, room_key: str, identity: str, connection_id: str) -> MemberRecord:
        member = self._rooms[room_key].members[identity]
        member.connection_ids.add(connection_id)
        logger.debug(f"Attached connection {connection_id} to {member.display_name} in room {room_key} "
                     f"({len(member.connection_ids)} connections)")
        return member

    def rename_member(self, room_key: str, identity: str, display_name: str) -> MemberRecord:
        member = self._rooms[room_key].members[identity]
        member.display_name = display_name
        return member

    def detach_connection(self, room_key: str, connection_id: str) -> Tuple[Optional[MemberRecord], bool]:
        """Remove a connection from its member record.

        Returns the record (or None if the connection was not a member) and
        whether the record was deleted because it has no connections left.
        """
        room = self._rooms.get(room_key)
        if room is None:
            return None, False
        member = room.member_for(connection_id)
        if member is None:
            return None, False
        member.connection_ids.discard(connection_id)
        if member.connection_ids:
            return member, False
        del room.members[member.identity]
        return member, True

    def set_buffer(self, room_key: str, text: str, language: Optional[str] = None) -> Room:
        room = self._rooms[room_key]
        room.buffer = text
        if language is not None:
            room.buffer_language = language
        return room

    def set_signaling_id(self, room_key: str, connection_id: str, signaling_id: str) -> Optional[MemberRecord]:
        room = self._rooms[room_key]
        member = room.member_for(connection_id)
        if member is not None:
            member.signaling_id = signaling_id
        return member

    def display_names(self, room_key: str) -> Set[str]:
        """Lowercased display names currently held in a room."""
        room = self._rooms.get(room_key)
        if room is None:
            return set()
        return {member.name_key for member in room.members.values()}

    def __contains__(self, room_key: str) -> bool:
        return room_key in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self) -> int:
        return len(self._rooms)
