"""Read models served to realtime clients."""
from sqlalchemy.orm import Session

from mercadito_backend.repositories import ConversationRepository, MessageRepository, NotificationRepository
from mercadito_types.conversations import ConversationSummary, LastMessagePreview, ProductPreview
from mercadito_types.notifications import NotificationGet
from mercadito_types.websocket import InitData


def build_initial_snapshot(user_id: int, db: Session) -> InitData:
    """
    State a client needs right after connecting: its unread notifications
    (newest first) and every conversation it takes part in with a product
    preview and the latest message.
    """
    notifications = NotificationRepository(db).find_for_user(user_id, unread_only=True)

    conversations = ConversationRepository(db).find_for_user(user_id)
    latest = MessageRepository(db).latest_for_conversations([c.id for c in conversations])

    summaries = []
    for conversation in conversations:
        product = conversation.product
        last = latest.get(conversation.id)

        last_message = None
        if last is not None:
            last_message = LastMessagePreview(
                id=last.id,
                content=last.content,
                sender_id=last.sender_id,
                sender=last.sender.display_name,
                sent_at=last.sent_at,
            )

        summaries.append(ConversationSummary(
            conversation_id=conversation.id,
            product=ProductPreview(id=product.id, title=product.title, image_url=product.image_url),
            last_message=last_message,
        ))

    return InitData(
        notifications=[NotificationGet.model_validate(n) for n in notifications],
        conversations=summaries,
    )
