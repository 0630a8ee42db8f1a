"""
WebSocket Broadcast Service.

Lets HTTP endpoints push events to realtime clients without holding a
reference to the connection manager. The application binds the live
manager once during startup with ``ws_broadcast.configure(manager)``.
"""

import logging
from typing import Any, Iterable, List, Optional, Union

from pydantic import BaseModel

from mercadito_backend.websocket.connection_manager import ConnectionManager
from mercadito_types.websocket import WSNewNotification

logger = logging.getLogger(__name__)

UserIds = Union[int, str, Iterable[Union[int, str]]]


def normalize_user_ids(user_ids: UserIds) -> List[int]:
    """Turn one id or a collection of ids (ints or numeric strings) into unique ints."""
    if user_ids is None:
        return []
    if isinstance(user_ids, (int, str)):
        user_ids = [user_ids]

    normalized = []
    for user_id in user_ids:
        try:
            value = int(user_id)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric user id {user_id!r}")
            continue
        if value not in normalized:
            normalized.append(value)
    return normalized


def _payload(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    return data


class WebSocketBroadcast:
    """
    Service for pushing events from REST endpoints to connected clients.

    Usage in API endpoints:
        from mercadito_backend.websocket import ws_broadcast

        await ws_broadcast.notify_users(recipient_id, notification)
    """

    def __init__(self, manager: Optional[ConnectionManager] = None):
        self._manager = manager

    def configure(self, manager: Optional[ConnectionManager]) -> None:
        self._manager = manager
        if manager is not None:
            logger.info("WebSocket broadcast bound to connection manager")

    @property
    def is_configured(self) -> bool:
        return self._manager is not None

    async def emit_to_users(self, user_ids: UserIds, event_type: str, data: Any) -> int:
        """
        Push ``{type, data}`` to every open connection of the given users.

        Returns:
            Number of connections the frame was delivered to
        """
        targets = normalize_user_ids(user_ids)

        if self._manager is None:
            logger.warning(f"WebSocket broadcast not configured; dropping {event_type} for users {targets}")
            return 0
        if not targets:
            return 0

        delivered = await self._manager.send_to_users(targets, {"type": event_type, "data": _payload(data)})
        logger.info(f"{event_type} emitted to {delivered} connections ({len(targets)} users requested)")
        return delivered

    async def notify_users(self, user_ids: UserIds, notification: Any) -> int:
        """Push a ``newNotification`` frame to the given users."""
        frame = WSNewNotification(data=_payload(notification))
        return await self.emit_to_users(user_ids, frame.type, frame.data)

    async def broadcast_all(self, event_type: str, data: Any) -> int:
        """Push to every open connection. Administrative use only."""
        if self._manager is None:
            logger.warning(f"WebSocket broadcast not configured; dropping {event_type}")
            return 0

        delivered = await self._manager.broadcast({"type": event_type, "data": _payload(data)})
        logger.info(f"{event_type} broadcast to {delivered} connections")
        return delivered

    async def connected_user_ids(self) -> List[int]:
        if self._manager is None:
            return []
        return await self._manager.connected_user_ids()


# Process-wide instance used by HTTP endpoints
ws_broadcast = WebSocketBroadcast()
