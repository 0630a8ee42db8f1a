from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime,
    ForeignKey, Index, Text, false
)
from sqlalchemy.orm import relationship

from .base import Base, BigIntPK


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    __tablename__ = 'conversations'
    __table_args__ = (
        CheckConstraint('buyer_id <> seller_id', name='ck_conversation_distinct_participants'),
        Index('conversation_buyer_idx', 'buyer_id'),
        Index('conversation_seller_idx', 'seller_id'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(ForeignKey('products.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    buyer_id = Column(ForeignKey('users.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    seller_id = Column(ForeignKey('users.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)

    # Relationships
    product = relationship('Product', back_populates='conversations')
    buyer = relationship('User', foreign_keys=[buyer_id])
    seller = relationship('User', foreign_keys=[seller_id])
    messages = relationship('Message', back_populates='conversation', cascade='all, delete-orphan', lazy="select")

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.buyer_id, self.seller_id)

    def other_participant(self, user_id: int) -> int:
        """The peer of ``user_id``; anyone who is not the buyer gets the buyer."""
        return self.seller_id if self.buyer_id == user_id else self.buyer_id


class Message(Base):
    __tablename__ = 'messages'
    __table_args__ = (
        Index('msg_conversation_sent_idx', 'conversation_id', 'sent_at'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    conversation_id = Column(ForeignKey('conversations.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    sender_id = Column(ForeignKey('users.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    content = Column(Text, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    is_rating_message = Column(Boolean, nullable=False, default=False, server_default=false())

    # Relationships
    conversation = relationship('Conversation', back_populates='messages')
    sender = relationship('User', foreign_keys=[sender_id])
