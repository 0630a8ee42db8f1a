from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from mercadito_backend.business_logic.notifications import (
    delete_notification as delete_notification_db,
    get_owned_notification,
    list_notifications as list_notifications_db,
    update_notification as update_notification_db,
)
from mercadito_backend.database import get_db
from mercadito_backend.permissions.auth import get_current_principal
from mercadito_backend.permissions.principal import Principal
from mercadito_types.notifications import NotificationGet, NotificationUpdate

notifications_router = APIRouter()


@notifications_router.get("", response_model=List[NotificationGet])
async def list_notifications(
    permissions: Annotated[Principal, Depends(get_current_principal)],
    unread_only: bool = Query(False, alias="unreadOnly"),
    db: Session = Depends(get_db),
):
    """The caller's notifications, newest first."""
    return list_notifications_db(permissions, db, unread_only=unread_only)


@notifications_router.get("/{notification_id}", response_model=NotificationGet)
async def get_notification(
    notification_id: int,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    return NotificationGet.model_validate(get_owned_notification(notification_id, permissions, db))


@notifications_router.patch("/{notification_id}", response_model=NotificationGet)
async def update_notification(
    notification_id: int,
    payload: NotificationUpdate,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    return update_notification_db(notification_id, payload, permissions, db)


@notifications_router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    permissions: Annotated[Principal, Depends(get_current_principal)],
    db: Session = Depends(get_db),
):
    delete_notification_db(notification_id, permissions, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
