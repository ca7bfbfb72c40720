from fastapi import APIRouter, HTTPException, Query, Request
from schemas.rooms import NameAvailabilityResponse, RoomDetailsResponse, RoomMember
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/check-name", response_model=NameAvailabilityResponse)
async def check_name(
    request: Request,
    display_name: str = Query("", description="Display name the client wants to use"),
    room_key: str = Query("", description="Room the client is about to join"),
):
    """
    Advisory check used before opening a socket. The join itself re-checks,
    so a name reported free here can still be rejected at join time.
    """
    display_name = display_name.strip()
    room_key = room_key.strip()
    if not display_name or not room_key:
        logger.warning("Name check failed: display_name and room_key are required")
        raise HTTPException(status_code=400, detail="display_name and room_key are required")

    coordinator = request.app.state.coordinator
    available = coordinator.is_name_available(room_key, display_name)
    logger.info(f"Display name \"{display_name}\" is {'available' if available else 'taken'} in room {room_key}")
    return NameAvailabilityResponse(room_key=room_key, display_name=display_name, available=available)


@rooms_router.get("/{room_key}", response_model=RoomDetailsResponse)
async def get_room_details(room_key: str, request: Request):
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {room_key} from {client_host}")

    coordinator = request.app.state.coordinator
    room = coordinator.store.get_room(room_key)
    if room is None:
        logger.warning(f"Room details failed: Room {room_key} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    members = [
        RoomMember(
            identity=member.identity,
            display_name=member.display_name,
            signaling_id=member.signaling_id,
            connection_count=len(member.connection_ids),
        )
        for member in room.members.values()
    ]
    return RoomDetailsResponse(
        room_key=room_key,
        created_at=room.created_at,
        member_count=len(members),
        connection_count=len(room.connection_ids),
        buffer_language=room.buffer_language,
        members=members,
    )
