from .base import Base, metadata
from .auth import User
from .product import Product, ProductPhoto
from .conversation import Conversation, Message
from .notification import Notification, NotificationType

# Import all models to ensure relationships are properly set up
from . import (
    auth,
    product,
    conversation,
    notification,
)

__all__ = [
    'Base',
    'metadata',
    # Accounts
    'User',
    # Catalog
    'Product',
    'ProductPhoto',
    # Chat
    'Conversation',
    'Message',
    # Notifications
    'Notification',
    'NotificationType',
]
