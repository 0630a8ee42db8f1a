from typing import Annotated, List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from mercadito_backend.business_logic.conversations import (
    create_conversation as create_conversation_db,
    delete_conversation as delete_conversation_db,
    get_conversation as get_conversation_db,
    list_conversations as list_conversations_db,
    update_conversation as update_conversation_db,
)
from mercadito_backend.database import get_db
from mercadito_backend.permissions.auth import get_current_principal
from mercadito_backend.permissions.principal import Principal
from mercadito_types.conversations import (
    ConversationCreate,
    ConversationCreated,
    ConversationGet,
    ConversationUpdate,
)

conversations_router = APIRouter()


@conversations_router.get("", response_model=List[ConversationGet])
async def list_conversations(
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    return list_conversations_db(permissions, db)


@conversations_router.get("/{conversation_id}", response_model=ConversationGet)
async def get_conversation(
    conversation_id: int,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    return get_conversation_db(conversation_id, permissions, db)


@conversations_router.post("", response_model=ConversationCreated, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    response: Response,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    """Open a conversation with the product's seller, or return the existing one (200)."""
    conversation = create_conversation_db(payload, permissions, db)
    if not conversation.is_new_conversation:
        response.status_code = status.HTTP_200_OK
    return conversation


@conversations_router.patch("/{conversation_id}", response_model=ConversationGet)
async def update_conversation(
    conversation_id: int,
    payload: ConversationUpdate,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    return update_conversation_db(conversation_id, payload, permissions, db)


@conversations_router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: int,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    delete_conversation_db(conversation_id, permissions, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
