"""
Tests for the init:data snapshot built on websocket admission.
"""

import pytest

from mercadito_backend.business_logic.realtime import build_initial_snapshot
from mercadito_backend.database import session_scope
from mercadito_backend.model import Conversation, Product
from mercadito_backend.tests.factories import (
    BUYER_ID,
    CONVERSATION_ID,
    OUTSIDER_ID,
    SELLER_ID,
    add_message,
    add_notification,
)


def _snapshot(session_factory, user_id):
    with session_scope(session_factory) as db:
        return build_initial_snapshot(user_id, db).to_wire()


@pytest.mark.unit
class TestInitialSnapshot:

    def test_user_without_data_gets_empty_lists(self, session_factory, marketplace):
        assert _snapshot(session_factory, 7) == {"notifications": [], "conversations": []}

    def test_only_unread_notifications_newest_first(self, session_factory, marketplace, earlier):
        oldest = add_notification(marketplace, BUYER_ID, "Oferta", earlier(30))
        newest = add_notification(marketplace, BUYER_ID, "Recordatorio", earlier(10), type_name="Recordatorio")
        add_notification(marketplace, BUYER_ID, "Ya leida", earlier(5), read=True)
        add_notification(marketplace, SELLER_ID, "Ajena", earlier(1))
        marketplace.commit()

        snapshot = _snapshot(session_factory, BUYER_ID)

        assert [n["id"] for n in snapshot["notifications"]] == [newest.id, oldest.id]
        assert all(n["read"] is False for n in snapshot["notifications"])
        assert snapshot["notifications"][0]["userId"] == BUYER_ID

    def test_conversation_carries_product_and_latest_message(self, session_factory, marketplace, earlier):
        add_message(marketplace, CONVERSATION_ID, BUYER_ID, "Hola, sigue disponible?", earlier(20))
        latest = add_message(marketplace, CONVERSATION_ID, SELLER_ID, "Si, todavia la tengo", earlier(3))
        add_message(marketplace, CONVERSATION_ID, BUYER_ID, "Genial", earlier(10))
        marketplace.commit()

        snapshot = _snapshot(session_factory, BUYER_ID)

        assert snapshot["conversations"] == [{
            "conversationId": CONVERSATION_ID,
            "product": {
                "id": 10,
                "title": "Bicicleta rodado 29",
                "imageUrl": "https://cdn.test/bici-1.jpg",
            },
            "lastMessage": {
                "id": latest.id,
                "content": "Si, todavia la tengo",
                "senderId": SELLER_ID,
                "sender": "Beto Gomez",
                "sentAt": snapshot["conversations"][0]["lastMessage"]["sentAt"],
            },
        }]

    def test_latest_message_ties_break_on_id(self, session_factory, marketplace, earlier):
        moment = earlier(2)
        add_message(marketplace, CONVERSATION_ID, BUYER_ID, "primero", moment)
        second = add_message(marketplace, CONVERSATION_ID, SELLER_ID, "segundo", moment)
        marketplace.commit()

        snapshot = _snapshot(session_factory, SELLER_ID)

        assert snapshot["conversations"][0]["lastMessage"]["id"] == second.id

    def test_conversation_without_messages_or_photos(self, session_factory, marketplace):
        marketplace.add(Product(id=11, seller_id=BUYER_ID, title="Mate de calabaza"))
        marketplace.flush()
        marketplace.add(Conversation(id=101, product_id=11, buyer_id=OUTSIDER_ID, seller_id=BUYER_ID))
        marketplace.commit()

        snapshot = _snapshot(session_factory, BUYER_ID)

        # Newest conversation first; the user is seller in one and buyer in the other
        assert [c["conversationId"] for c in snapshot["conversations"]] == [101, CONVERSATION_ID]
        mate = snapshot["conversations"][0]
        assert mate["product"]["imageUrl"] is None
        assert mate["lastMessage"] is None

    def test_outsider_sees_no_conversations(self, session_factory, marketplace, earlier):
        add_message(marketplace, CONVERSATION_ID, BUYER_ID, "Hola", earlier(1))
        marketplace.commit()

        assert _snapshot(session_factory, OUTSIDER_ID)["conversations"] == []
