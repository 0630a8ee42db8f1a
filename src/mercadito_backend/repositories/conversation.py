"""
Conversation repository.
"""

from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from .base import BaseRepository
from ..model.conversation import Conversation
from ..model.product import Product


class ConversationRepository(BaseRepository[Conversation]):

    def __init__(self, db: Session):
        super().__init__(db, Conversation)

    def find_for_user(self, user_id: int) -> List[Conversation]:
        """Conversations where the user is buyer or seller, newest first."""
        return (
            self.db.query(Conversation)
            .options(selectinload(Conversation.product).selectinload(Product.photos))
            .filter(or_(Conversation.buyer_id == user_id, Conversation.seller_id == user_id))
            .order_by(Conversation.id.desc())
            .all()
        )

    def find_existing(self, product_id: int, buyer_id: int, seller_id: int) -> Optional[Conversation]:
        return self.find_one_by(product_id=product_id, buyer_id=buyer_id, seller_id=seller_id)
