from datetime import datetime
from typing import Optional

from pydantic import Field

from mercadito_types.base import CamelModel


class ConversationCreate(CamelModel):
    product_id: int = Field(..., description="Product the buyer asks about")


class ConversationUpdate(CamelModel):
    mark_read: bool = Field(False, description="Mark every message sent by the peer as read")


class ConversationGet(CamelModel):
    id: int
    product_id: int
    buyer_id: int
    seller_id: int


class ConversationCreated(ConversationGet):
    is_new_conversation: bool = False
    show_rating_prompt: bool = False


class ProductPreview(CamelModel):
    id: int
    title: str
    image_url: Optional[str] = None


class LastMessagePreview(CamelModel):
    id: int
    content: str
    sender_id: int
    sender: str = Field(..., description="Sender display name (\"first last\")")
    sent_at: Optional[datetime] = None


class ConversationSummary(CamelModel):
    """One entry of the snapshot sent on websocket admission."""
    conversation_id: int
    product: ProductPreview
    last_message: Optional[LastMessagePreview] = None
