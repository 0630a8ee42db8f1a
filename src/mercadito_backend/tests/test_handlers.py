"""
Tests for inbound event dispatch: chat, direct notifications and read state.

Each test wires a ConnectionManager and an EventRouter to an in-memory
database and drives them with fake sockets.
"""

import json
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from mercadito_backend.model import Message, Notification, NotificationType
from mercadito_backend.websocket.connection_manager import ConnectionManager
from mercadito_backend.websocket.handlers import STORAGE_FAILURE_MESSAGE, EventRouter
from mercadito_backend.tests.factories import (
    BUYER_ID,
    CONVERSATION_ID,
    OUTSIDER_ID,
    PRODUCT_ID,
    SELLER_ID,
    FakeWebSocket,
    add_message,
    add_notification,
    principal_for,
)


class JournalWebSocket(FakeWebSocket):
    """Also records (label, type) into a journal shared across sockets."""

    def __init__(self, label, journal):
        super().__init__()
        self.label = label
        self.journal = journal

    async def send_json(self, data):
        await super().send_json(data)
        self.journal.append((self.label, data["type"]))


@pytest.fixture
def manager():
    return ConnectionManager(send_timeout=1.0, max_connections_per_user=5, max_total_connections=50)


@pytest.fixture
def router(manager, session_factory, marketplace):
    return EventRouter(manager, session_factory=session_factory, enforce_membership=True)


@pytest.fixture
def connect(manager):
    async def _connect(user_id, websocket=None):
        websocket = websocket or FakeWebSocket()
        return await manager.connect(websocket, principal_for(user_id))
    return _connect


def _fresh(session_factory):
    return session_factory()


@pytest.mark.unit
class TestChatSend:

    @pytest.mark.asyncio
    async def test_buyer_message_reaches_seller(self, router, connect, session_factory):
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"})

        [chat_new] = seller.websocket.frames("chat:new")
        message = chat_new["data"]["message"]
        notification = chat_new["data"]["notification"]
        assert message["conversationId"] == CONVERSATION_ID
        assert message["senderId"] == BUYER_ID
        assert message["content"] == "Hola"
        assert message["read"] is False
        assert notification["userId"] == SELLER_ID
        assert notification["title"] == "Nuevo mensaje recibido"
        assert notification["message"] == "Hola"
        assert notification["productId"] == PRODUCT_ID

        [chat_sent] = buyer.websocket.frames("chat:sent")
        assert chat_sent["data"]["message"] == message
        assert buyer.websocket.frames("chat:new") == []

        db = _fresh(session_factory)
        stored = db.get(Message, message["id"])
        assert stored.content == "Hola"
        stored_notification = db.get(Notification, notification["id"])
        assert stored_notification.notification_type.type_name == "Mensaje"
        db.close()

    @pytest.mark.asyncio
    async def test_seller_message_reaches_buyer(self, router, connect):
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(seller, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Si, esta"})

        [chat_new] = buyer.websocket.frames("chat:new")
        assert chat_new["data"]["message"]["senderId"] == SELLER_ID
        assert chat_new["data"]["notification"]["userId"] == BUYER_ID
        assert seller.websocket.types() == ["chat:sent"]

    @pytest.mark.asyncio
    async def test_ack_arrives_when_recipient_is_offline(self, router, connect, session_factory):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hay alguien?"})

        assert buyer.websocket.types() == ["chat:sent"]

        # The notification is stored for the next snapshot
        db = _fresh(session_factory)
        assert db.query(Notification).filter_by(user_id=SELLER_ID, read=False).count() == 1
        db.close()

    @pytest.mark.asyncio
    async def test_every_recipient_connection_gets_the_message(self, router, connect):
        buyer = await connect(BUYER_ID)
        buyer_tablet = await connect(BUYER_ID)
        seller_phone = await connect(SELLER_ID)
        seller_laptop = await connect(SELLER_ID)

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"})

        assert seller_phone.websocket.types() == ["chat:new"]
        assert seller_laptop.websocket.types() == ["chat:new"]
        assert buyer_tablet.websocket.sent == []

    @pytest.mark.asyncio
    async def test_recipient_gets_message_before_sender_gets_ack(self, router, connect):
        journal = []
        buyer = await connect(BUYER_ID, JournalWebSocket("buyer", journal))
        await connect(SELLER_ID, JournalWebSocket("seller", journal))

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "uno"})
        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "dos"})

        assert journal == [
            ("seller", "chat:new"),
            ("buyer", "chat:sent"),
            ("seller", "chat:new"),
            ("buyer", "chat:sent"),
        ]

    @pytest.mark.asyncio
    async def test_long_content_is_cut_in_the_notification(self, router, connect):
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)
        content = "a" * 200

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": content})

        [chat_new] = seller.websocket.frames("chat:new")
        assert chat_new["data"]["message"]["content"] == content
        assert len(chat_new["data"]["notification"]["message"]) == 80

    @pytest.mark.asyncio
    async def test_unknown_conversation_is_reported_to_sender(self, router, connect, session_factory):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": 999, "content": "Hola"})

        assert buyer.websocket.sent == [{"type": "error", "data": {"message": "Conversation not found"}}]
        db = _fresh(session_factory)
        assert db.query(Message).count() == 0
        db.close()

    @pytest.mark.asyncio
    async def test_outsider_cannot_write_into_conversation(self, router, connect, session_factory):
        outsider = await connect(OUTSIDER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(outsider, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "spam"})

        assert outsider.websocket.frames("error")[0]["data"]["message"] == "You are not a participant of this conversation."
        assert seller.websocket.sent == []
        db = _fresh(session_factory)
        assert db.query(Message).count() == 0
        assert db.query(Notification).count() == 0
        db.close()

    @pytest.mark.asyncio
    async def test_membership_check_can_be_disabled(self, manager, session_factory, marketplace, connect):
        router = EventRouter(manager, session_factory=session_factory, enforce_membership=False)
        outsider = await connect(OUTSIDER_ID)
        buyer = await connect(BUYER_ID)

        await router.dispatch(outsider, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "hola"})

        # A non participant is routed to the buyer
        assert buyer.websocket.types() == ["chat:new"]
        assert outsider.websocket.types() == ["chat:sent"]

    @pytest.mark.asyncio
    async def test_storage_failure_becomes_error_frame(self, router, connect):
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        with patch(
            "mercadito_backend.websocket.handlers.create_chat_message",
            side_effect=OperationalError("INSERT", {}, Exception("database is locked")),
        ):
            await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"})

        assert buyer.websocket.sent == [{"type": "error", "data": {"message": STORAGE_FAILURE_MESSAGE}}]
        assert seller.websocket.sent == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained_to_the_frame(self, router, connect):
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        with patch(
            "mercadito_backend.websocket.handlers.create_chat_message",
            side_effect=ValueError("boom"),
        ):
            await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"})

        assert buyer.websocket.sent == [{"type": "error", "data": {"message": STORAGE_FAILURE_MESSAGE}}]

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Otra vez"})

        assert buyer.websocket.types() == ["error", "chat:sent"]
        assert seller.websocket.types() == ["chat:new"]

    @pytest.mark.asyncio
    async def test_out_of_range_id_gets_error_frame(self, router, connect):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "chat:read", "messageId": 2 ** 70})
        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"})

        assert buyer.websocket.types() == ["error", "chat:sent"]


@pytest.mark.unit
class TestFrameParsing:

    @pytest.mark.asyncio
    async def test_text_frames_are_decoded(self, router, connect):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, json.dumps({"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"}))

        assert buyer.websocket.types() == ["chat:sent"]

    @pytest.mark.asyncio
    async def test_snake_case_payload_is_accepted(self, router, connect):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "chat:send", "conversation_id": CONVERSATION_ID, "content": "Hola"})

        assert buyer.websocket.types() == ["chat:sent"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", b"\xff\xfe", "[1, 2, 3]", "42"])
    async def test_malformed_frames_are_dropped(self, router, connect, raw):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, raw)

        assert buyer.websocket.sent == []
        assert router.manager.metrics.total_messages_received == 1

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_dropped(self, router, connect):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "typing:start", "conversationId": CONVERSATION_ID})
        await router.dispatch(buyer, {"conversationId": CONVERSATION_ID})

        assert buyer.websocket.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"type": "chat:send", "content": "sin conversacion"},
        {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": ""},
        {"type": "chat:read", "messageId": "uno"},
        {"type": "notification:send", "userId": SELLER_ID, "body": "sin titulo"},
    ])
    async def test_invalid_payload_gets_error_frame(self, router, connect, payload):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, payload)

        assert buyer.websocket.sent == [
            {"type": "error", "data": {"message": f"Invalid payload for {payload['type']}"}}
        ]


@pytest.mark.unit
class TestNotificationSend:

    @pytest.mark.asyncio
    async def test_direct_notification_uses_default_type(self, router, connect, session_factory):
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(buyer, {
            "type": "notification:send",
            "userId": SELLER_ID,
            "title": "Oferta",
            "body": "Te ofrezco 100",
        })

        [frame] = seller.websocket.frames("notification:new")
        assert frame["data"]["userId"] == SELLER_ID
        assert frame["data"]["title"] == "Oferta"
        assert frame["data"]["message"] == "Te ofrezco 100"
        assert frame["data"]["read"] is False
        assert buyer.websocket.sent == []

        db = _fresh(session_factory)
        alerta = db.query(NotificationType).filter_by(type_name="Alerta").one()
        assert frame["data"]["typeId"] == alerta.id
        db.close()

    @pytest.mark.asyncio
    async def test_explicit_type_id(self, router, connect, session_factory):
        db = _fresh(session_factory)
        reminder_id = db.query(NotificationType).filter_by(type_name="Recordatorio").one().id
        db.close()
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(buyer, {
            "type": "notification:send",
            "userId": SELLER_ID,
            "title": "Recordatorio",
            "body": "Pasame la direccion",
            "typeId": reminder_id,
        })

        assert seller.websocket.frames("notification:new")[0]["data"]["typeId"] == reminder_id

    @pytest.mark.asyncio
    async def test_unknown_type_id(self, router, connect, session_factory):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {
            "type": "notification:send",
            "userId": SELLER_ID,
            "title": "Oferta",
            "body": "x",
            "typeId": 999,
        })

        assert buyer.websocket.sent == [{"type": "error", "data": {"message": "Unknown notification type 999"}}]
        db = _fresh(session_factory)
        assert db.query(Notification).count() == 0
        db.close()

    @pytest.mark.asyncio
    async def test_unknown_recipient(self, router, connect):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "notification:send", "userId": 404, "title": "Hola", "body": "x"})

        assert buyer.websocket.sent == [{"type": "error", "data": {"message": "User 404 not found"}}]

    @pytest.mark.asyncio
    async def test_offline_recipient_still_gets_it_stored(self, router, connect, session_factory):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "notification:send", "userId": OUTSIDER_ID, "title": "Hola", "body": "x"})

        assert buyer.websocket.sent == []
        db = _fresh(session_factory)
        assert db.query(Notification).filter_by(user_id=OUTSIDER_ID).count() == 1
        db.close()


@pytest.mark.unit
class TestChatRead:

    @pytest.mark.asyncio
    async def test_receiver_reads_message(self, router, connect, marketplace, session_factory, earlier):
        message = add_message(marketplace, CONVERSATION_ID, BUYER_ID, "Hola", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(seller, {"type": "chat:read", "messageId": message.id})

        expected = {"messageId": message.id, "conversationId": CONVERSATION_ID, "read": True}
        assert buyer.websocket.sent == [{"type": "chat:read:update", "data": {**expected, "readBy": "receiver"}}]
        assert seller.websocket.sent == [{"type": "chat:read:update", "data": {**expected, "readBy": "self"}}]

        db = _fresh(session_factory)
        assert db.get(Message, message.id).read is True
        db.close()

    @pytest.mark.asyncio
    async def test_receiver_is_derived_from_the_conversation(self, router, connect, marketplace, earlier):
        # Seller's message, marked read by the seller themselves: the peer is still the buyer
        message = add_message(marketplace, CONVERSATION_ID, SELLER_ID, "Buenas", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(seller, {"type": "chat:read", "messageId": message.id})

        assert seller.websocket.frames("chat:read:update")[0]["data"]["readBy"] == "receiver"
        assert buyer.websocket.frames("chat:read:update")[0]["data"]["readBy"] == "self"

    @pytest.mark.asyncio
    async def test_reading_twice_is_idempotent(self, router, connect, marketplace, session_factory, earlier):
        message = add_message(marketplace, CONVERSATION_ID, BUYER_ID, "Hola", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)
        seller = await connect(SELLER_ID)

        await router.dispatch(seller, {"type": "chat:read", "messageId": message.id})
        await router.dispatch(seller, {"type": "chat:read", "messageId": message.id})

        assert len(buyer.websocket.frames("chat:read:update")) == 2
        assert seller.websocket.frames("error") == []
        db = _fresh(session_factory)
        assert db.get(Message, message.id).read is True
        db.close()

    @pytest.mark.asyncio
    async def test_missing_message_is_ignored(self, router, connect):
        seller = await connect(SELLER_ID)

        await router.dispatch(seller, {"type": "chat:read", "messageId": 12345})

        assert seller.websocket.sent == []

    @pytest.mark.asyncio
    async def test_outsider_cannot_mark_read(self, router, connect, marketplace, session_factory, earlier):
        message = add_message(marketplace, CONVERSATION_ID, BUYER_ID, "Hola", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)
        outsider = await connect(OUTSIDER_ID)

        await router.dispatch(outsider, {"type": "chat:read", "messageId": message.id})

        assert outsider.websocket.types() == ["error"]
        assert buyer.websocket.sent == []
        db = _fresh(session_factory)
        assert db.get(Message, message.id).read is False
        db.close()


@pytest.mark.unit
class TestNotificationRead:

    @pytest.mark.asyncio
    async def test_owner_marks_notification_read(self, router, connect, marketplace, session_factory, earlier):
        notification = add_notification(marketplace, BUYER_ID, "Oferta", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)
        other_device = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "notification:read", "notificationId": notification.id})

        assert buyer.websocket.sent == [
            {"type": "notification:read:confirm", "data": {"notificationId": notification.id}}
        ]
        assert other_device.websocket.sent == []
        db = _fresh(session_factory)
        assert db.get(Notification, notification.id).read is True
        db.close()

    @pytest.mark.asyncio
    async def test_already_read_notification_is_confirmed_again(self, router, connect, marketplace, earlier):
        notification = add_notification(marketplace, BUYER_ID, "Oferta", earlier(5), read=True)
        marketplace.commit()
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "notification:read", "notificationId": notification.id})

        assert buyer.websocket.types() == ["notification:read:confirm"]

    @pytest.mark.asyncio
    async def test_someone_elses_notification(self, router, connect, marketplace, session_factory, earlier):
        notification = add_notification(marketplace, SELLER_ID, "Privada", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "notification:read", "notificationId": notification.id})

        assert buyer.websocket.sent == [
            {"type": "error", "data": {"message": "Notification belongs to another user"}}
        ]
        db = _fresh(session_factory)
        assert db.get(Notification, notification.id).read is False
        db.close()

    @pytest.mark.asyncio
    async def test_missing_notification_is_ignored(self, router, connect):
        buyer = await connect(BUYER_ID)

        await router.dispatch(buyer, {"type": "notification:read", "notificationId": 777})

        assert buyer.websocket.sent == []


@pytest.mark.unit
class TestInitialSnapshotDelivery:

    @pytest.mark.asyncio
    async def test_snapshot_is_sent_as_init_data(self, router, connect, marketplace, earlier):
        add_notification(marketplace, BUYER_ID, "Oferta", earlier(5))
        marketplace.commit()
        buyer = await connect(BUYER_ID)

        assert await router.send_initial_snapshot(buyer) is True

        [frame] = buyer.websocket.sent
        assert frame["type"] == "init:data"
        assert len(frame["data"]["notifications"]) == 1
        assert frame["data"]["conversations"][0]["conversationId"] == CONVERSATION_ID

    @pytest.mark.asyncio
    async def test_snapshot_failure_keeps_connection_usable(self, router, connect):
        buyer = await connect(BUYER_ID)

        with patch(
            "mercadito_backend.websocket.handlers.build_initial_snapshot",
            side_effect=OperationalError("SELECT", {}, Exception("connection refused")),
        ):
            assert await router.send_initial_snapshot(buyer) is False

        assert buyer.websocket.sent == []
        assert buyer.is_open

        await router.dispatch(buyer, {"type": "chat:send", "conversationId": CONVERSATION_ID, "content": "Hola"})
        assert buyer.websocket.types() == ["chat:sent"]
