from typing import Any, Optional

from pydantic import ValidationError

import events
from admission import AdmissionController
from backend import MemberRecord, RoomStore
from connection import ConnectionHub, MessageSink
from constants import PRESENCE_REFRESH_SECONDS
from errors import NameTaken, RoomNotFound
from logging_config import get_logger
from presence import PresenceCoordinator
from registry import ConnectionRegistry
from relay import BroadcastRelay
from schemas.events import (
    ChatRequest,
    ConnectionEstablishedEvent,
    EditRequest,
    ErrorEvent,
    JoinRejectedEvent,
    JoinRequest,
    PresenceRefreshRequest,
    SignalingAnnounceRequest,
)

logger = get_logger(__name__)


class RoomCoordinator:
    """Single entry point for every event a connection can produce.

    Each handler runs to completion without awaiting, so on one event loop
    no two handlers ever interleave their changes to room state.
    """

    def __init__(self, presence_interval: float = PRESENCE_REFRESH_SECONDS):
        self.store = RoomStore()
        self.registry = ConnectionRegistry()
        self.hub = ConnectionHub(self.registry)
        self.presence = PresenceCoordinator(self.store, self.registry, self.hub, presence_interval)
        self.admission = AdmissionController(self.store, self.registry, self.hub, self.presence)
        self.relay = BroadcastRelay(self.store, self.registry, self.hub, self.presence)
        self._handlers = {
            events.JOIN: (JoinRequest, self._on_join),
            events.EDIT: (EditRequest, self._on_edit),
            events.CHAT: (ChatRequest, self._on_chat),
            events.SIGNALING_ANNOUNCE: (SignalingAnnounceRequest, self._on_signaling),
            events.PRESENCE_REFRESH: (PresenceRefreshRequest, self._on_presence_refresh),
        }

    # Connection lifecycle

    def connect(self, connection_id: str, sink: MessageSink):
        logger.info(f"A user connected with connection ID: {connection_id}")
        self.hub.attach(connection_id, sink)
        self.hub.send(connection_id, ConnectionEstablishedEvent(connection_id=connection_id).to_message())

    def disconnect(self, connection_id: str):
        logger.info(f"DISCONNECT: connection {connection_id} disconnected")
        try:
            self.presence.depart(connection_id)
        finally:
            self.hub.detach(connection_id)

    # Inbound events

    def dispatch(self, connection_id: str, message: Any):
        if not isinstance(message, dict):
            self._send_error(connection_id, events.REASON_INVALID_MESSAGE, "Message must be a JSON object")
            return
        event_type = message.get("type")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.warning(f"Unknown event type {event_type!r} from connection {connection_id}")
            self._send_error(connection_id, events.REASON_UNKNOWN_EVENT, f"Unknown event type: {event_type}")
            return

        model, handle = handler
        try:
            payload = model.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Invalid {event_type} payload from connection {connection_id}: {e.error_count()} errors")
            self._send_error(connection_id, events.REASON_INVALID_MESSAGE, str(e))
            return

        try:
            handle(connection_id, payload)
        except RoomNotFound:
            logger.debug(f"Dropping {event_type} from connection {connection_id}: not in a room")
        except Exception as e:
            logger.error(f"Error handling {event_type} from connection {connection_id}: {e}", exc_info=True)
            self._send_error(connection_id, events.REASON_INTERNAL_ERROR, None)

    def join(self, connection_id: str, display_name: str, room_key: str,
             identity: Optional[str] = None) -> Optional[MemberRecord]:
        try:
            return self.admission.try_join(room_key, display_name, connection_id, identity)
        except NameTaken as e:
            logger.warning(f"Username {e.display_name} is already taken in room {e.room_key}. Rejecting join attempt.")
            self.hub.send(connection_id, JoinRejectedEvent(
                reason=events.REASON_NAME_TAKEN,
                attempted_name=e.display_name,
                room_key=e.room_key,
                message=f'Username "{e.display_name}" is already taken in this room. Please choose a different username.',
            ).to_message())
            return None

    def _on_join(self, connection_id: str, payload: JoinRequest):
        self.join(connection_id, payload.display_name, payload.room_key, payload.identity)

    def _on_edit(self, connection_id: str, payload: EditRequest):
        self.relay.sync_buffer(connection_id, payload.text, payload.language)

    def _on_chat(self, connection_id: str, payload: ChatRequest):
        self.relay.relay_chat(connection_id, payload.text, payload.id, payload.timestamp)

    def _on_signaling(self, connection_id: str, payload: SignalingAnnounceRequest):
        self.relay.announce_signaling(connection_id, payload.signaling_id)

    def _on_presence_refresh(self, connection_id: str, payload: PresenceRefreshRequest):
        self.presence.refresh(connection_id)

    def _send_error(self, connection_id: str, reason: str, detail: Optional[str]):
        self.hub.send(connection_id, ErrorEvent(reason=reason, detail=detail).to_message())

    # Queries

    def is_name_available(self, room_key: str, display_name: str) -> bool:
        """Advisory check, the join itself re-checks."""
        return self.admission.is_name_available(room_key, display_name.strip())

    async def shutdown(self):
        await self.presence.shutdown()
