class CoordinationError(Exception):
    """Base class for failures raised while handling a room event."""


class NameTaken(CoordinationError):
    def __init__(self, room_key: str, display_name: str):
        self.room_key = room_key
        self.display_name = display_name
        super().__init__(f"Display name '{display_name}' is already taken in room {room_key}")


class RoomNotFound(CoordinationError):
    """The connection is not registered to any room.

    Only arises from benign races around cleanup, so callers drop the event.
    """

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection {connection_id} is not registered to a room")
