"""
Message repository for direct database access.
"""

from typing import Dict, List
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .base import BaseRepository
from ..model.conversation import Message


class MessageRepository(BaseRepository[Message]):

    def __init__(self, db: Session):
        super().__init__(db, Message)

    def find_by_conversation(self, conversation_id: int) -> List[Message]:
        """Messages of a conversation in sending order."""
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.sent_at.asc(), Message.id.asc())
            .all()
        )

    def latest_for_conversations(self, conversation_ids: List[int]) -> Dict[int, Message]:
        """Latest message (by sent_at, then id) per conversation, keyed by conversation id."""
        if not conversation_ids:
            return {}

        ranked = (
            self.db.query(
                Message.id.label("message_id"),
                func.row_number().over(
                    partition_by=Message.conversation_id,
                    order_by=(Message.sent_at.desc(), Message.id.desc()),
                ).label("row_rank"),
            )
            .filter(Message.conversation_id.in_(conversation_ids))
            .subquery()
        )
        messages = (
            self.db.query(Message)
            .options(joinedload(Message.sender))
            .join(ranked, ranked.c.message_id == Message.id)
            .filter(ranked.c.row_rank == 1)
            .all()
        )
        return {message.conversation_id: message for message in messages}

    def mark_read_from_sender(self, conversation_id: int, sender_id: int) -> int:
        """Mark every unread message ``sender_id`` sent in the conversation as read."""
        updated = (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender_id == sender_id,
                Message.read.is_(False),
            )
            .update({Message.read: True}, synchronize_session="fetch")
        )
        self.db.flush()
        return updated

    def delete_for_conversation(self, conversation_id: int) -> int:
        deleted = (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .delete(synchronize_session="fetch")
        )
        self.db.flush()
        return deleted
