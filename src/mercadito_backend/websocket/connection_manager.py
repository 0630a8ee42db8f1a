"""
WebSocket Connection Manager.

Registry of live, authenticated connections. One instance is created at
application startup and handed to every component that pushes frames
(event router, outbound bridge, diagnostics).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from mercadito_backend.permissions.principal import Principal
from mercadito_backend.settings import settings
from mercadito_backend.websocket.presence import PresenceTracker

logger = logging.getLogger(__name__)


class WebSocketMetrics:
    """
    Simple metrics tracking for WebSocket connections.

    Tracks connection counts, message counts, and error rates.
    """

    def __init__(self):
        self.total_connections = 0
        self.total_disconnections = 0
        self.total_messages_sent = 0
        self.total_messages_received = 0
        self.total_send_errors = 0
        self.total_send_timeouts = 0
        self.total_connection_limit_hits = 0

    def connection_opened(self):
        self.total_connections += 1

    def connection_closed(self):
        self.total_disconnections += 1

    def message_sent(self):
        self.total_messages_sent += 1

    def message_received(self):
        self.total_messages_received += 1

    def send_error(self):
        self.total_send_errors += 1

    def send_timeout(self):
        self.total_send_timeouts += 1

    def connection_limit_hit(self):
        self.total_connection_limit_hits += 1

    def get_metrics(self) -> dict:
        """Get all metrics as a dictionary."""
        return {
            "total_connections": self.total_connections,
            "total_disconnections": self.total_disconnections,
            "active_connections": self.total_connections - self.total_disconnections,
            "total_messages_sent": self.total_messages_sent,
            "total_messages_received": self.total_messages_received,
            "total_send_errors": self.total_send_errors,
            "total_send_timeouts": self.total_send_timeouts,
            "total_connection_limit_hits": self.total_connection_limit_hits,
            "error_rate": (
                self.total_send_errors / max(self.total_messages_sent, 1)
            ) if self.total_messages_sent > 0 else 0.0
        }


class ConnectionLimitError(Exception):
    """Raised when connection limits are exceeded."""
    def __init__(self, message: str, code: int = 4008):
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(eq=False)
class Connection:
    """Represents an active WebSocket connection."""
    websocket: WebSocket
    principal: Principal
    # Serializes pushes to this socket so frames keep their enqueue order
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    closed: bool = False

    @property
    def user_id(self) -> int:
        return self.principal.user_id

    @property
    def is_open(self) -> bool:
        if self.closed:
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


ConnectionCallback = Callable[[Connection], Awaitable[bool]]
PrincipalPredicate = Callable[[Principal], bool]


class ConnectionManager:
    """
    Tracks connections per user and pushes JSON frames to them.

    The registry lock only guards the connection map; it is never held while
    sending or while storage work runs. Each connection owns a send lock so
    pushes to one destination are delivered in the order they were issued.
    """

    def __init__(
        self,
        presence: Optional[PresenceTracker] = None,
        send_timeout: Optional[float] = None,
        max_connections_per_user: Optional[int] = None,
        max_total_connections: Optional[int] = None,
    ):
        self._connections: Dict[int, List[Connection]] = {}  # user_id -> connections
        self._lock = asyncio.Lock()
        self._presence = presence
        self._send_timeout = send_timeout if send_timeout is not None else settings.WS_SEND_TIMEOUT
        self._max_per_user = (
            max_connections_per_user if max_connections_per_user is not None
            else settings.WS_MAX_CONNECTIONS_PER_USER
        )
        self._max_total = (
            max_total_connections if max_total_connections is not None
            else settings.WS_MAX_TOTAL_CONNECTIONS
        )
        self._keepalive_task: Optional[asyncio.Task] = None
        self.metrics = WebSocketMetrics()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket, principal: Principal) -> Connection:
        """
        Accept and register a WebSocket connection.

        Raises:
            ConnectionLimitError: If connection limits are exceeded (socket not accepted)
        """
        user_id = principal.user_id
        connection = Connection(websocket=websocket, principal=principal)

        async with self._lock:
            total_connections = self._count_unlocked()
            if total_connections >= self._max_total:
                logger.warning(f"Total connection limit reached: {total_connections}/{self._max_total}")
                self.metrics.connection_limit_hit()
                raise ConnectionLimitError("Server connection limit reached")

            user_connections = len(self._connections.get(user_id, []))
            if user_connections >= self._max_per_user:
                logger.warning(f"User {user_id} connection limit reached: {user_connections}/{self._max_per_user}")
                self.metrics.connection_limit_hit()
                raise ConnectionLimitError(f"Too many connections (max {self._max_per_user})")

            # Not accepted yet, so fan-out skips it until accept() completes
            self._connections.setdefault(user_id, []).append(connection)
            first_for_user = user_connections == 0

        try:
            await websocket.accept()
        except Exception:
            connection.closed = True
            async with self._lock:
                self._discard_unlocked(connection)
            raise

        self.metrics.connection_opened()

        if first_for_user and self._presence is not None:
            await self._presence.mark_online(user_id)

        logger.info(f"WebSocket connected: user={user_id}, user_connections={user_connections + 1}, total={self.get_connection_count()}")
        return connection

    register = connect

    async def disconnect(self, connection: Connection) -> bool:
        """
        Remove a connection. Removing a connection that is already gone is a no-op.

        Returns:
            True if the connection was registered
        """
        user_id = connection.user_id
        connection.closed = True

        async with self._lock:
            removed, remaining = self._discard_unlocked(connection)
        if not removed:
            return False

        self.metrics.connection_closed()

        if not remaining and self._presence is not None:
            await self._presence.mark_offline(user_id)

        logger.info(f"WebSocket disconnected: user={user_id}")
        return True

    unregister = disconnect

    async def stop(self):
        """Close every connection and clear the registry."""
        await self.stop_presence_keepalive()

        async with self._lock:
            connections = [c for conns in self._connections.values() for c in conns]
            self._connections.clear()

        close_tasks = [self._close_connection_safe(conn) for conn in connections]
        if close_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*close_tasks, return_exceptions=True),
                    timeout=3.0
                )
            except asyncio.TimeoutError:
                logger.warning(f"Timeout closing {len(close_tasks)} WebSocket connections")

        logger.info("ConnectionManager stopped")

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    async def refresh_presence(self, user_id: int):
        """Refresh user's presence TTL."""
        if self._presence is not None:
            await self._presence.refresh(user_id)

    def start_presence_keepalive(self, interval: Optional[float] = None):
        """
        Periodically refresh the presence flag of every connected user.

        The default interval is a third of the presence TTL so a flag is
        renewed well before it expires.
        """
        if self._presence is None or self._keepalive_task is not None:
            return
        if interval is None:
            interval = self._presence.ttl / 3
        self._keepalive_task = asyncio.create_task(self._presence_keepalive(interval))

    async def stop_presence_keepalive(self):
        task, self._keepalive_task = self._keepalive_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _presence_keepalive(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            try:
                for user_id in await self.connected_user_ids():
                    await self.refresh_presence(user_id)
            except Exception as e:
                logger.error(f"Presence keep-alive failed: {e}", exc_info=True)

    async def _close_connection_safe(self, conn: Connection):
        conn.closed = True
        try:
            await asyncio.wait_for(conn.websocket.close(code=1001), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug(f"Timeout closing connection of user {conn.user_id}")
        except RuntimeError as e:
            # Already closed by the peer
            logger.debug(f"Close skipped for user {conn.user_id}: {e}")

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _snapshot(self, predicate: PrincipalPredicate) -> List[Connection]:
        async with self._lock:
            return [
                conn
                for conns in self._connections.values()
                for conn in conns
                if predicate(conn.principal)
            ]

    async def for_each_matching(self, predicate: PrincipalPredicate, fn: ConnectionCallback) -> int:
        """
        Apply ``fn`` to every open connection whose principal satisfies ``predicate``.

        Closed connections are skipped. Returns how many calls reported delivery.
        """
        targets = [conn for conn in await self._snapshot(predicate) if conn.is_open]
        if not targets:
            return 0

        results = await asyncio.gather(*(fn(conn) for conn in targets), return_exceptions=True)

        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(f"Callback failed for connection of user {conn.user_id}: {result}")
            elif result:
                delivered += 1
        return delivered

    async def _send_with_timeout(self, conn: Connection, data: dict) -> bool:
        """
        Send data to a connection with timeout.

        A connection that fails or times out is marked closed so later
        pushes skip it until the endpoint unregisters it.
        """
        async with conn.send_lock:
            if not conn.is_open:
                return False
            try:
                await asyncio.wait_for(
                    conn.websocket.send_json(data),
                    timeout=self._send_timeout
                )
                self.metrics.message_sent()
                return True
            except asyncio.TimeoutError:
                logger.warning(f"Send timeout to user {conn.user_id}")
                self.metrics.send_timeout()
                conn.closed = True
                return False
            except Exception as e:
                logger.error(f"Failed to send to user {conn.user_id}: {e}")
                self.metrics.send_error()
                conn.closed = True
                return False

    async def send_to_connection(self, connection: Connection, event: dict) -> bool:
        return await self._send_with_timeout(connection, event)

    async def send_to_user(self, user_id: int, event: dict) -> int:
        """Send an event to every open connection of a user. Returns delivered count."""
        return await self.for_each_matching(
            lambda principal: principal.user_id == user_id,
            lambda conn: self._send_with_timeout(conn, event),
        )

    async def send_to_users(self, user_ids: Iterable[int], event: dict) -> int:
        targets: Set[int] = set(user_ids)
        if not targets:
            return 0
        return await self.for_each_matching(
            lambda principal: principal.user_id in targets,
            lambda conn: self._send_with_timeout(conn, event),
        )

    async def broadcast(self, event: dict) -> int:
        """Send an event to every open connection regardless of identity."""
        return await self.for_each_matching(
            lambda principal: True,
            lambda conn: self._send_with_timeout(conn, event),
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _discard_unlocked(self, connection: Connection) -> tuple[bool, int]:
        """Drop a connection from the map; returns (was_registered, connections_left_for_user)."""
        user_id = connection.user_id
        connections = self._connections.get(user_id)
        if not connections or not any(c is connection for c in connections):
            return False, len(connections or [])
        remaining = [c for c in connections if c is not connection]
        if remaining:
            self._connections[user_id] = remaining
        else:
            del self._connections[user_id]
        return True, len(remaining)

    def _count_unlocked(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    async def connected_user_ids(self) -> List[int]:
        """Ids of users holding at least one open connection."""
        connections = await self._snapshot(lambda principal: True)
        return sorted({conn.user_id for conn in connections if conn.is_open})

    def get_connection_count(self) -> int:
        return self._count_unlocked()

    def get_user_count(self) -> int:
        return len(self._connections)

    def get_metrics(self) -> dict:
        metrics = self.metrics.get_metrics()
        metrics.update({
            "current_connections": self.get_connection_count(),
            "current_users": self.get_user_count(),
        })
        return metrics
