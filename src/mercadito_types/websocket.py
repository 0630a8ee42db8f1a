"""
WebSocket event DTOs for the realtime relay.

Every frame is a JSON object with a ``type`` discriminant. Server events
carry their payload under ``data``.

Client -> Server:
- chat:send            {conversationId, content}
- notification:send    {userId, title, body, typeId?}
- chat:read            {messageId}
- notification:read    {notificationId}

Server -> Client:
- init:data                    {notifications, conversations}
- chat:new                     {message, notification}
- chat:sent                    {message}
- notification:new             notification
- chat:read:update             {messageId, conversationId, readBy, read}
- notification:read:confirm    {notificationId}
- newNotification              notification (pushed from HTTP endpoints)
- error                        {message}
"""

from typing import Any, Literal, Optional, Union

from pydantic import Field

from mercadito_types.base import CamelModel
from mercadito_types.conversations import ConversationSummary
from mercadito_types.messages import MessageGet
from mercadito_types.notifications import NotificationGet


# =============================================================================
# Base Event Types
# =============================================================================

class WSEventBase(CamelModel):
    """Base class for all WebSocket events."""
    type: str


# =============================================================================
# Client -> Server Events
# =============================================================================

class WSChatSend(WSEventBase):
    """Send a chat message inside a conversation."""
    type: Literal["chat:send"] = "chat:send"
    conversation_id: int = Field(..., description="Target conversation")
    content: str = Field(..., min_length=1, description="Message text")


class WSNotificationSend(WSEventBase):
    """Send a notification directly to a user."""
    type: Literal["notification:send"] = "notification:send"
    user_id: int = Field(..., description="Recipient user")
    title: str = Field(..., min_length=1)
    body: str = Field(..., description="Notification text")
    type_id: Optional[int] = Field(None, description="notification_types.id; defaults to the direct notification type")


class WSChatRead(WSEventBase):
    """Mark a chat message as read."""
    type: Literal["chat:read"] = "chat:read"
    message_id: int


class WSNotificationRead(WSEventBase):
    """Mark one of the caller's notifications as read."""
    type: Literal["notification:read"] = "notification:read"
    notification_id: int


# =============================================================================
# Server -> Client Events
# =============================================================================

class InitData(CamelModel):
    notifications: list[NotificationGet] = Field(default_factory=list)
    conversations: list[ConversationSummary] = Field(default_factory=list)


class WSInitData(WSEventBase):
    """Snapshot sent once right after the connection is admitted."""
    type: Literal["init:data"] = "init:data"
    data: InitData


class ChatNewData(CamelModel):
    message: MessageGet
    notification: NotificationGet


class WSChatNew(WSEventBase):
    """New message delivered to the recipient's connections."""
    type: Literal["chat:new"] = "chat:new"
    data: ChatNewData


class ChatSentData(CamelModel):
    message: MessageGet


class WSChatSent(WSEventBase):
    """Acknowledgement to the sending connection (message persisted)."""
    type: Literal["chat:sent"] = "chat:sent"
    data: ChatSentData


class WSNotificationNew(WSEventBase):
    """Notification created through notification:send."""
    type: Literal["notification:new"] = "notification:new"
    data: NotificationGet


class ChatReadUpdateData(CamelModel):
    message_id: int
    conversation_id: int
    read_by: Literal["receiver", "self"]
    read: bool = True


class WSChatReadUpdate(WSEventBase):
    """Read state change pushed to both conversation participants."""
    type: Literal["chat:read:update"] = "chat:read:update"
    data: ChatReadUpdateData


class NotificationReadData(CamelModel):
    notification_id: int


class WSNotificationReadConfirm(WSEventBase):
    """Confirmation to the connection that marked a notification as read."""
    type: Literal["notification:read:confirm"] = "notification:read:confirm"
    data: NotificationReadData


class WSNewNotification(WSEventBase):
    """Notification pushed from an HTTP endpoint."""
    type: Literal["newNotification"] = "newNotification"
    data: Any


class ErrorData(CamelModel):
    message: str


class WSError(WSEventBase):
    """Error caused by a frame the receiving connection sent."""
    type: Literal["error"] = "error"
    data: ErrorData


# =============================================================================
# Union Types for Parsing
# =============================================================================

# All events that can be sent from client to server
ClientEvent = Union[
    WSChatSend,
    WSNotificationSend,
    WSChatRead,
    WSNotificationRead,
]


# =============================================================================
# Event Type Registry (for handler dispatch)
# =============================================================================

CLIENT_EVENT_TYPES = {
    "chat:send": WSChatSend,
    "notification:send": WSNotificationSend,
    "chat:read": WSChatRead,
    "notification:read": WSNotificationRead,
}


def parse_client_event(data: dict) -> Optional[ClientEvent]:
    """
    Parse incoming client event data into typed event object.

    Args:
        data: Raw event data from WebSocket

    Returns:
        Parsed event object, or None if the event type is unknown

    Raises:
        pydantic.ValidationError: If the type is known but the payload is invalid
    """
    event_type = data.get("type")
    if not isinstance(event_type, str) or event_type not in CLIENT_EVENT_TYPES:
        return None

    event_class = CLIENT_EVENT_TYPES[event_type]
    return event_class.model_validate(data)


def error_event(message: str) -> dict:
    """Wire form of an ``error`` frame."""
    return WSError(data=ErrorData(message=message)).to_wire()
