"""Business logic for chat message operations."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from mercadito_backend.exceptions import ConversationNotFoundException, NotConversationParticipantException
from mercadito_backend.model.conversation import Conversation, Message
from mercadito_backend.business_logic.notifications import create_notification
from mercadito_backend.permissions.principal import Principal
from mercadito_backend.repositories import ConversationRepository, MessageRepository
from mercadito_backend.settings import settings
from mercadito_types.messages import MessageCreate, MessageGet
from mercadito_types.notifications import NotificationGet

logger = logging.getLogger(__name__)

CHAT_NOTIFICATION_TITLE = "Nuevo mensaje recibido"
CHAT_NOTIFICATION_PREVIEW_LENGTH = 80

HTTP_NOTIFICATION_TITLE = "Nuevo mensaje"


@dataclass
class ChatMessageResult:
    """A persisted message together with the notification created for its recipient."""
    message: MessageGet
    notification: NotificationGet
    recipient_id: int


@dataclass
class ReadReceipt:
    """Outcome of marking a message read; the receiver is derived from the conversation."""
    message_id: int
    conversation_id: int
    sender_id: int
    receiver_id: int


def load_conversation_for(
    conversation_id: int,
    permissions: Principal,
    db: Session,
    enforce_membership: bool = True,
) -> Conversation:
    """
    Raises:
        ConversationNotFoundException: unknown conversation
        NotConversationParticipantException: caller is neither buyer nor seller
    """
    conversation = ConversationRepository(db).get_by_id_optional(conversation_id)
    if conversation is None:
        raise ConversationNotFoundException(detail="Conversation not found")

    if enforce_membership and not conversation.has_participant(permissions.user_id):
        raise NotConversationParticipantException(conversation_id=conversation_id)

    return conversation


def _persist_message_with_notification(
    conversation: Conversation,
    sender_id: int,
    content: str,
    notification_title: str,
    notification_message: str,
    db: Session,
) -> ChatMessageResult:
    recipient_id = conversation.other_participant(sender_id)

    message = MessageRepository(db).create(Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        read=False,
    ))

    notification = create_notification(
        db,
        user_id=recipient_id,
        title=notification_title,
        message=notification_message,
        type_name=settings.CHAT_NOTIFICATION_TYPE,
        product_id=conversation.product_id,
    )

    return ChatMessageResult(
        message=MessageGet.model_validate(message),
        notification=NotificationGet.model_validate(notification),
        recipient_id=recipient_id,
    )


def create_chat_message(
    conversation_id: int,
    content: str,
    permissions: Principal,
    db: Session,
    enforce_membership: Optional[bool] = None,
) -> ChatMessageResult:
    """
    Persist a message sent over the realtime channel and its companion notification.

    Both rows are written in the caller's transaction; nothing is pushed
    from here.
    """
    if enforce_membership is None:
        enforce_membership = settings.WS_ENFORCE_CONVERSATION_MEMBERSHIP

    conversation = load_conversation_for(conversation_id, permissions, db, enforce_membership)

    return _persist_message_with_notification(
        conversation,
        sender_id=permissions.user_id,
        content=content,
        notification_title=CHAT_NOTIFICATION_TITLE,
        notification_message=content[:CHAT_NOTIFICATION_PREVIEW_LENGTH],
        db=db,
    )


def create_message(payload: MessageCreate, permissions: Principal, db: Session) -> ChatMessageResult:
    """HTTP variant: membership is always checked and the notification names the product."""
    conversation = load_conversation_for(payload.conversation_id, permissions, db, enforce_membership=True)

    return _persist_message_with_notification(
        conversation,
        sender_id=permissions.user_id,
        content=payload.content,
        notification_title=HTTP_NOTIFICATION_TITLE,
        notification_message=f"Nuevo mensaje en el producto {conversation.product_id}",
        db=db,
    )


def list_messages(conversation_id: int, permissions: Principal, db: Session) -> List[MessageGet]:
    load_conversation_for(conversation_id, permissions, db, enforce_membership=True)
    messages = MessageRepository(db).find_by_conversation(conversation_id)
    return [MessageGet.model_validate(m) for m in messages]


def mark_message_as_read(
    message_id: int,
    permissions: Principal,
    db: Session,
    enforce_membership: Optional[bool] = None,
) -> Optional[ReadReceipt]:
    """
    Set ``read`` on a message. Idempotent; returns None for an unknown message.
    """
    if enforce_membership is None:
        enforce_membership = settings.WS_ENFORCE_CONVERSATION_MEMBERSHIP

    message = MessageRepository(db).get_by_id_optional(message_id)
    if message is None:
        logger.info(f"chat:read for missing message {message_id}")
        return None

    conversation = message.conversation
    if enforce_membership and not conversation.has_participant(permissions.user_id):
        raise NotConversationParticipantException(conversation_id=conversation.id)

    if not message.read:
        message.read = True
        db.flush()

    return ReadReceipt(
        message_id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        receiver_id=conversation.other_participant(message.sender_id),
    )
