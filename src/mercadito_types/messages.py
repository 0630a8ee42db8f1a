from datetime import datetime
from typing import Optional

from pydantic import Field

from mercadito_types.base import CamelModel


class MessageCreate(CamelModel):
    conversation_id: int = Field(..., description="Conversation the message belongs to")
    content: str = Field(..., min_length=1, description="Message text")


class MessageGet(CamelModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    sent_at: Optional[datetime] = None
    read: bool = False
    is_rating_message: bool = False

