from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from routers.rooms import rooms_router
from service import RoomCoordinator
from connection import WebSocketConnection
from constants import CORS_ORIGINS, LOG_LEVEL, LOG_FILE
from events import JOIN, REASON_INVALID_MESSAGE
from schemas.events import ErrorEvent
from typing import Optional
import uuid
import json
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Shutting down, cancelling presence refresh tasks")
    await app.state.coordinator.shutdown()


def create_app(coordinator: Optional[RoomCoordinator] = None) -> FastAPI:
    app = FastAPI(lifespan=lifespan)

    # One coordinator per process; all room state lives in it
    app.state.coordinator = coordinator or RoomCoordinator()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    logger.info("FastAPI application initialized")
    return app


async def websocket_endpoint(websocket: WebSocket, room_key: Optional[str] = None, display_name: Optional[str] = None):
    """WebSocket endpoint carrying every room event for one connection.

    Query parameters:
    - room_key, display_name: when both are given the connection joins immediately
    """
    coordinator: RoomCoordinator = websocket.app.state.coordinator
    connection_id = str(uuid.uuid4())

    await websocket.accept()
    logger.info(f"WebSocket connection accepted: {connection_id}")

    connection = WebSocketConnection(websocket, connection_id)
    connection.start()
    coordinator.connect(connection_id, connection)

    try:
        if room_key and display_name:
            logger.info(f"Auto-joining room {room_key} from query parameters")
            coordinator.dispatch(connection_id, {"type": JOIN, "roomKey": room_key, "displayName": display_name})

        message_count = 0
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Dropping non-JSON message from connection {connection_id}")
                connection.send(ErrorEvent(reason=REASON_INVALID_MESSAGE, detail="Message is not valid JSON").to_message())
                continue

            coordinator.dispatch(connection_id, message)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        try:
            coordinator.disconnect(connection_id)
        finally:
            await connection.close()
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")


app = create_app()
