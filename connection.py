import asyncio
import json
from typing import Dict, Iterable, Optional, Protocol

from fastapi import WebSocket

from constants import OUTBOUND_QUEUE_SIZE
from logging_config import get_logger
from registry import ConnectionRegistry

logger = get_logger(__name__)


class MessageSink(Protocol):
    def send(self, message: dict) -> None:
        ...


class WebSocketConnection:
    """Outbound side of one WebSocket.

    ``send`` only enqueues; a single writer task drains the queue, so event
    handlers never wait on the network and per-connection order is kept.
    """

    def __init__(self, websocket: WebSocket, connection_id: str, max_queue: int = OUTBOUND_QUEUE_SIZE):
        self.websocket = websocket
        self.connection_id = connection_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._writer: Optional[asyncio.Task] = None

    def start(self):
        if self._writer is None or self._writer.done():
            self._writer = asyncio.create_task(self._drain())

    def send(self, message: dict) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {self.connection_id}, dropping {message.get('type', 'unknown')}")

    async def _drain(self):
        while True:
            message = await self._queue.get()
            try:
                await self.websocket.send_text(json.dumps(message))
            except Exception as e:
                logger.debug(f"Stopped writing to connection {self.connection_id}: {e}")
                break

    async def close(self):
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None


class ConnectionHub:
    """Point-to-point and per-room delivery over attached sinks.

    Room subscriber sets come from the registry, so a connection receives
    room traffic exactly while it is registered to that room.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self._sinks: Dict[str, MessageSink] = {}

    def attach(self, connection_id: str, sink: MessageSink):
        self._sinks[connection_id] = sink
        logger.debug(f"Attached sink for connection {connection_id} ({len(self._sinks)} live connections)")

    def detach(self, connection_id: str):
        if self._sinks.pop(connection_id, None) is not None:
            logger.debug(f"Detached sink for connection {connection_id}")

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._sinks

    def send(self, connection_id: str, message: dict) -> bool:
        sink = self._sinks.get(connection_id)
        if sink is None:
            logger.debug(f"No sink for connection {connection_id}, dropping {message.get('type', 'unknown')}")
            return False
        try:
            sink.send(message)
        except Exception as e:
            logger.warning(f"Error sending to connection {connection_id}: {e}")
            return False
        return True

    def publish(self, room_key: str, message: dict, exclude: Iterable[str] = ()) -> int:
        excluded = set(exclude)
        delivered = 0
        for connection_id in self.registry.connections_in(room_key):
            if connection_id in excluded:
                continue
            if self.send(connection_id, message):
                delivered += 1
        logger.debug(f"Published {message.get('type', 'unknown')} to {delivered} connections in room {room_key}")
        return delivered
