from pydantic import BaseModel
from typing import Optional


class NameAvailabilityResponse(BaseModel):
    room_key: str
    display_name: str
    available: bool

class RoomMember(BaseModel):
    identity: str
    display_name: str
    signaling_id: Optional[str] = None
    connection_count: int

class RoomDetailsResponse(BaseModel):
    room_key: str
    created_at: str
    member_count: int
    connection_count: int
    buffer_language: Optional[str] = None
    members: list[RoomMember]
