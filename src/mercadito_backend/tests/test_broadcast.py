"""
Tests for the outbound bridge used by HTTP endpoints.
"""

from datetime import datetime, timezone

import pytest

from mercadito_backend.websocket.broadcast import WebSocketBroadcast, normalize_user_ids
from mercadito_backend.websocket.connection_manager import ConnectionManager
from mercadito_backend.tests.factories import FakeWebSocket, principal_for
from mercadito_types.notifications import NotificationGet


def _notification(user_id: int) -> NotificationGet:
    return NotificationGet(
        id=55,
        user_id=user_id,
        type_id=1,
        title="Nuevo mensaje",
        message="Nuevo mensaje en el producto 10",
        created_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        product_id=10,
    )


@pytest.mark.unit
class TestNormalizeUserIds:

    def test_single_values(self):
        assert normalize_user_ids(3) == [3]
        assert normalize_user_ids("3") == [3]

    def test_collections_are_deduplicated_in_order(self):
        assert normalize_user_ids([4, "2", 4, 2, "7"]) == [4, 2, 7]

    def test_non_numeric_ids_are_skipped(self):
        assert normalize_user_ids(["abc", 5, None]) == [5]

    def test_none(self):
        assert normalize_user_ids(None) == []


@pytest.mark.unit
class TestWebSocketBroadcast:

    @pytest.mark.asyncio
    async def test_unconfigured_bridge_drops_events(self):
        bridge = WebSocketBroadcast()

        assert bridge.is_configured is False
        assert await bridge.emit_to_users([1], "newNotification", {}) == 0
        assert await bridge.broadcast_all("maintenance", {}) == 0
        assert await bridge.connected_user_ids() == []

    @pytest.mark.asyncio
    async def test_notify_users_pushes_new_notification(self):
        manager = ConnectionManager(send_timeout=1.0)
        recipient = FakeWebSocket()
        bystander = FakeWebSocket()
        await manager.connect(recipient, principal_for(2))
        await manager.connect(bystander, principal_for(3))
        bridge = WebSocketBroadcast(manager)

        delivered = await bridge.notify_users(2, _notification(2))

        assert delivered == 1
        assert recipient.sent == [{
            "type": "newNotification",
            "data": {
                "id": 55,
                "userId": 2,
                "typeId": 1,
                "title": "Nuevo mensaje",
                "message": "Nuevo mensaje en el producto 10",
                "read": False,
                "createdAt": "2026-03-01T12:00:00Z",
                "productId": 10,
                "reportId": None,
            },
        }]
        assert bystander.sent == []

    @pytest.mark.asyncio
    async def test_emit_accepts_string_ids(self):
        manager = ConnectionManager(send_timeout=1.0)
        websocket = FakeWebSocket()
        await manager.connect(websocket, principal_for(8))
        bridge = WebSocketBroadcast()
        bridge.configure(manager)

        assert await bridge.emit_to_users(["8", "8", "x"], "priceDrop", {"productId": 10}) == 1
        assert websocket.sent == [{"type": "priceDrop", "data": {"productId": 10}}]

    @pytest.mark.asyncio
    async def test_offline_users_count_zero(self):
        bridge = WebSocketBroadcast(ConnectionManager(send_timeout=1.0))

        assert await bridge.notify_users([1, 2], _notification(1)) == 0
        assert await bridge.emit_to_users([], "newNotification", {}) == 0

    @pytest.mark.asyncio
    async def test_broadcast_all_and_connected_users(self):
        manager = ConnectionManager(send_timeout=1.0)
        sockets = [FakeWebSocket(), FakeWebSocket(), FakeWebSocket()]
        await manager.connect(sockets[0], principal_for(5))
        await manager.connect(sockets[1], principal_for(5))
        await manager.connect(sockets[2], principal_for(1))
        bridge = WebSocketBroadcast(manager)

        assert await bridge.broadcast_all("maintenance", {"inMinutes": 5}) == 3
        assert await bridge.connected_user_ids() == [1, 5]

        bridge.configure(None)
        assert bridge.is_configured is False
