"""Mercadito Types - Pydantic DTOs and websocket events for the Mercadito marketplace."""

__version__ = "0.1.0"

from .base import CamelModel
from .messages import MessageCreate, MessageGet
from .notifications import NotificationGet, NotificationUpdate
from .conversations import (
    ConversationCreate,
    ConversationCreated,
    ConversationGet,
    ConversationSummary,
    ConversationUpdate,
    LastMessagePreview,
    ProductPreview,
)

__all__ = [
    "CamelModel",
    "MessageCreate",
    "MessageGet",
    "NotificationGet",
    "NotificationUpdate",
    "ConversationCreate",
    "ConversationCreated",
    "ConversationGet",
    "ConversationSummary",
    "ConversationUpdate",
    "LastMessagePreview",
    "ProductPreview",
]
