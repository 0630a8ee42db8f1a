from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from mercadito_backend.business_logic.messages import create_message as create_message_db, list_messages as list_messages_db
from mercadito_backend.database import get_db
from mercadito_backend.exceptions import MissingFieldException
from mercadito_backend.permissions.auth import get_current_principal
from mercadito_backend.permissions.principal import Principal
from mercadito_backend.rate_limit import limiter
from mercadito_backend.settings import settings
from mercadito_backend.websocket.broadcast import ws_broadcast
from mercadito_types.messages import MessageCreate, MessageGet

messages_router = APIRouter()


@messages_router.get("", response_model=List[MessageGet])
async def list_messages(
    permissions: Annotated[Principal, Depends(get_current_principal)],
    conversation_id: Optional[int] = Query(None, alias="conversationId"),
    db: Session = Depends(get_db),
):
    """Messages of a conversation the caller takes part in, oldest first."""
    if conversation_id is None:
        raise MissingFieldException("conversationId", detail="conversationId is required")
    return list_messages_db(conversation_id, permissions, db)


@messages_router.post("", response_model=MessageGet, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.MESSAGE_CREATE_RATE_LIMIT)
async def create_message(
    request: Request,
    payload: MessageCreate,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    """Create a message and notify the other participant."""
    result = create_message_db(payload, permissions, db)

    # Push only what is durable
    db.commit()

    await ws_broadcast.notify_users(result.recipient_id, result.notification)

    return result.message
