from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

import events
from constants import MAX_DISPLAY_NAME_LENGTH


class WireModel(BaseModel):
    """Socket payloads travel as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_message(self) -> dict:
        return self.model_dump(by_alias=True)


# Inbound

class InboundModel(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class JoinRequest(InboundModel):
    display_name: str = Field(min_length=1, max_length=MAX_DISPLAY_NAME_LENGTH)
    room_key: str = Field(min_length=1)
    identity: Optional[str] = None


class EditRequest(InboundModel):
    # Whitespace is part of the buffer
    model_config = ConfigDict(str_strip_whitespace=False)

    text: str
    language: Optional[str] = None


class ChatRequest(InboundModel):
    # Relayed verbatim, pasted code keeps its indentation
    model_config = ConfigDict(str_strip_whitespace=False)

    text: str
    id: Optional[str] = None
    timestamp: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chat text must not be blank")
        return value


class SignalingAnnounceRequest(InboundModel):
    signaling_id: str = Field(min_length=1)


class PresenceRefreshRequest(InboundModel):
    pass


# Outbound

class MemberSummary(WireModel):
    identity: str
    display_name: str
    signaling_id: Optional[str] = None


class ChatMessage(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    sender_connection_id: str
    sender_display_name: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


class ConnectionEstablishedEvent(WireModel):
    type: str = events.CONNECTION_ESTABLISHED
    connection_id: str
    message: str = "Connected to server"


class JoinedEvent(WireModel):
    type: str = events.JOINED
    room_key: str
    member_count: int
    identity: str
    display_name: str


class JoinRejectedEvent(WireModel):
    type: str = events.JOIN_REJECTED
    reason: str
    attempted_name: str
    room_key: str
    message: str


class BufferSyncEvent(WireModel):
    type: str = events.BUFFER_SYNC
    text: str
    language: Optional[str] = None


class MemberListEvent(WireModel):
    type: str = events.MEMBER_LIST
    members: List[MemberSummary]


class ChatBroadcastEvent(WireModel):
    type: str = events.CHAT_BROADCAST
    message: ChatMessage


class MemberJoinedEvent(WireModel):
    type: str = events.MEMBER_JOINED
    display_name: str


class MemberLeftEvent(WireModel):
    type: str = events.MEMBER_LEFT
    display_name: str


class ErrorEvent(WireModel):
    type: str = events.ERROR
    reason: str
    detail: Optional[str] = None
