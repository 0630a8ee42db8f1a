"""
WebSocket router and endpoint.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from mercadito_backend.websocket.auth import WebSocketAuthError, authenticate_websocket_token
from mercadito_backend.websocket.connection_manager import ConnectionLimitError, ConnectionManager
from mercadito_backend.websocket.handlers import EventRouter

logger = logging.getLogger(__name__)

ws_router = APIRouter()


@ws_router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None, description="Bearer token for authentication"),
):
    """
    Realtime endpoint for chat and notifications.

    Authentication:
        Pass the access token as a query parameter.
        Example: ws://localhost:8000/ws?token=<access_token>

    Connection Flow:
        1. Client connects with token
        2. Server verifies the token; on failure the socket is closed (4001)
           before it is accepted, so no frame is ever sent
        3. Server accepts and sends init:data once
        4. Client and server exchange events until either side closes

    Client -> Server Events:
        - chat:send          {"type": "chat:send", "conversationId": 100, "content": "Hola"}
        - notification:send  {"type": "notification:send", "userId": 9, "title": "...", "body": "...", "typeId": 2}
        - chat:read          {"type": "chat:read", "messageId": 5}
        - notification:read  {"type": "notification:read", "notificationId": 55}

    Server -> Client Events:
        - init:data, chat:new, chat:sent, notification:new, chat:read:update,
          notification:read:confirm, newNotification, error
    """
    manager: ConnectionManager = websocket.app.state.ws_manager
    event_router: EventRouter = websocket.app.state.ws_router
    connection = None

    try:
        principal = await authenticate_websocket_token(token)
        connection = await manager.connect(websocket, principal)

        await event_router.send_initial_snapshot(connection)

        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.receive":
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes")
                if frame is not None:
                    await event_router.dispatch(connection, frame)

            elif message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected: user={principal.user_id}")
                break

    except WebSocketAuthError as e:
        logger.warning(f"WebSocket auth failed: {e.reason}")
        await websocket.close(code=e.code, reason=e.reason)

    except ConnectionLimitError as e:
        logger.warning(f"WebSocket connection limit: {e.message}")
        await websocket.close(code=e.code, reason=e.message)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected during handshake or snapshot")

    finally:
        if connection is not None:
            await manager.disconnect(connection)
