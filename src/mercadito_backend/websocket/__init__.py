"""
WebSocket package for the realtime relay.

- Connection registry with per-connection ordered delivery
- Token authentication at connection time
- Event routing for chat, notifications and read state
- Broadcast service used by HTTP endpoints
"""

from mercadito_backend.websocket.connection_manager import (
    Connection,
    ConnectionLimitError,
    ConnectionManager,
    WebSocketMetrics,
)
from mercadito_backend.websocket.broadcast import WebSocketBroadcast, ws_broadcast

__all__ = [
    "Connection",
    "ConnectionLimitError",
    "ConnectionManager",
    "WebSocketMetrics",
    "WebSocketBroadcast",
    "ws_broadcast",
]
