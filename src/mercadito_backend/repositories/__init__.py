"""
Repository pattern for direct database access.

Usage:
    from mercadito_backend.repositories import ConversationRepository

    conversations = ConversationRepository(db).find_for_user(user_id)
"""

from .base import BaseRepository, RepositoryError, NotFoundError, DuplicateError
from .conversation import ConversationRepository
from .message import MessageRepository
from .notification import NotificationRepository, NotificationTypeRepository
from .product import ProductRepository

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "NotFoundError",
    "DuplicateError",
    "ConversationRepository",
    "MessageRepository",
    "NotificationRepository",
    "NotificationTypeRepository",
    "ProductRepository",
]
