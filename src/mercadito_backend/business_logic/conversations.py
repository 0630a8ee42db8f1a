"""Business logic for buyer/seller conversations."""
import logging
from typing import List

from sqlalchemy.orm import Session

from mercadito_backend.business_logic.messages import load_conversation_for
from mercadito_backend.exceptions import BadRequestException, ProductNotFoundException
from mercadito_backend.model.conversation import Conversation, Message
from mercadito_backend.permissions.principal import Principal
from mercadito_backend.repositories import ConversationRepository, MessageRepository, ProductRepository
from mercadito_types.conversations import (
    ConversationCreate,
    ConversationCreated,
    ConversationGet,
    ConversationUpdate,
)

logger = logging.getLogger(__name__)

RATING_PROMPT_CONTENT = "rating_prompt"


def list_conversations(permissions: Principal, db: Session) -> List[ConversationGet]:
    conversations = ConversationRepository(db).find_for_user(permissions.user_id)
    return [ConversationGet.model_validate(c) for c in conversations]


def get_conversation(conversation_id: int, permissions: Principal, db: Session) -> ConversationGet:
    conversation = load_conversation_for(conversation_id, permissions, db, enforce_membership=True)
    return ConversationGet.model_validate(conversation)


def create_conversation(payload: ConversationCreate, permissions: Principal, db: Session) -> ConversationCreated:
    """
    Open (or reuse) the conversation between the caller, as buyer, and the
    product's seller.

    A new conversation starts with a rating prompt message sent by the seller.
    """
    product = ProductRepository(db).get_by_id_optional(payload.product_id)
    if product is None:
        raise ProductNotFoundException()

    buyer_id = permissions.user_id
    seller_id = product.seller_id
    if buyer_id == seller_id:
        raise BadRequestException(detail="Cannot start a conversation about your own product")

    conversation_repo = ConversationRepository(db)
    existing = conversation_repo.find_existing(product.id, buyer_id, seller_id)
    if existing is not None:
        return ConversationCreated.model_validate(existing).model_copy(
            update={"is_new_conversation": False, "show_rating_prompt": False}
        )

    conversation = conversation_repo.create(Conversation(
        product_id=product.id,
        buyer_id=buyer_id,
        seller_id=seller_id,
    ))

    MessageRepository(db).create(Message(
        conversation_id=conversation.id,
        sender_id=seller_id,
        content=RATING_PROMPT_CONTENT,
        read=False,
        is_rating_message=True,
    ))

    logger.info(f"Conversation {conversation.id} opened for product {product.id} (buyer {buyer_id}, seller {seller_id})")

    return ConversationCreated.model_validate(conversation).model_copy(
        update={"is_new_conversation": True, "show_rating_prompt": True}
    )


def update_conversation(
    conversation_id: int,
    payload: ConversationUpdate,
    permissions: Principal,
    db: Session,
) -> ConversationGet:
    conversation = load_conversation_for(conversation_id, permissions, db, enforce_membership=True)

    if payload.mark_read:
        peer_id = conversation.other_participant(permissions.user_id)
        updated = MessageRepository(db).mark_read_from_sender(conversation.id, peer_id)
        logger.debug(f"Marked {updated} messages read in conversation {conversation.id}")

    return ConversationGet.model_validate(conversation)


def delete_conversation(conversation_id: int, permissions: Principal, db: Session) -> None:
    conversation = load_conversation_for(conversation_id, permissions, db, enforce_membership=True)
    MessageRepository(db).delete_for_conversation(conversation.id)
    ConversationRepository(db).delete(conversation.id)
