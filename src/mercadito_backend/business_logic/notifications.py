"""Business logic for notification operations."""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from mercadito_backend.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    NotificationNotFoundException,
)
from mercadito_backend.model.auth import User
from mercadito_backend.model.notification import Notification
from mercadito_backend.permissions.principal import Principal
from mercadito_backend.repositories import NotificationRepository, NotificationTypeRepository
from mercadito_backend.settings import settings
from mercadito_types.notifications import NotificationGet, NotificationUpdate

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_TYPES = ("Mensaje", "Alerta", "Recordatorio")


def seed_notification_types(db: Session) -> None:
    """Insert the lookup rows every notification path relies on (idempotent)."""
    type_repo = NotificationTypeRepository(db)
    for type_name in DEFAULT_NOTIFICATION_TYPES:
        type_repo.get_or_create(type_name)


def resolve_notification_type_id(
    db: Session,
    type_id: Optional[int] = None,
    type_name: Optional[str] = None,
) -> int:
    """
    Pick the notification type for a new notification.

    An explicit ``type_id`` must exist. Otherwise the type is looked up by
    name and created when missing.
    """
    type_repo = NotificationTypeRepository(db)

    if type_id is not None:
        if not type_repo.exists(type_id):
            raise BadRequestException(detail=f"Unknown notification type {type_id}")
        return type_id

    if not type_name:
        raise BadRequestException(detail="Notification type is required")

    return type_repo.get_or_create(type_name).id


def create_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    type_id: Optional[int] = None,
    type_name: Optional[str] = None,
    product_id: Optional[int] = None,
) -> Notification:
    """Persist an unread notification for ``user_id`` (flushed, not committed)."""
    if db.get(User, user_id) is None:
        raise NotFoundException(detail=f"User {user_id} not found")

    notification = Notification(
        user_id=user_id,
        type_id=resolve_notification_type_id(db, type_id=type_id, type_name=type_name),
        title=title,
        message=message,
        read=False,
        product_id=product_id,
    )
    return NotificationRepository(db).create(notification)


def list_notifications(permissions: Principal, db: Session, unread_only: bool = False) -> List[NotificationGet]:
    notifications = NotificationRepository(db).find_for_user(permissions.user_id, unread_only=unread_only)
    return [NotificationGet.model_validate(n) for n in notifications]


def get_owned_notification(notification_id: int, permissions: Principal, db: Session) -> Notification:
    """
    Raises:
        NotificationNotFoundException: no such notification
        ForbiddenException: notification belongs to someone else
    """
    notification = NotificationRepository(db).get_by_id_optional(notification_id)
    if notification is None:
        raise NotificationNotFoundException()
    if notification.user_id != permissions.user_id:
        raise ForbiddenException(detail="Notification belongs to another user")
    return notification


def mark_notification_as_read(notification_id: int, permissions: Principal, db: Session) -> Optional[NotificationGet]:
    """
    Mark one of the caller's notifications as read.

    Returns None when the notification does not exist (nothing to confirm).
    Marking an already read notification is a no-op that still succeeds.
    """
    try:
        notification = get_owned_notification(notification_id, permissions, db)
    except NotificationNotFoundException:
        logger.info(f"notification:read for missing notification {notification_id}")
        return None

    if not notification.read:
        notification.read = True
        db.flush()

    return NotificationGet.model_validate(notification)


def update_notification(
    notification_id: int,
    payload: NotificationUpdate,
    permissions: Principal,
    db: Session,
) -> NotificationGet:
    notification = get_owned_notification(notification_id, permissions, db)
    notification.read = payload.read
    db.flush()
    return NotificationGet.model_validate(notification)


def delete_notification(notification_id: int, permissions: Principal, db: Session) -> None:
    get_owned_notification(notification_id, permissions, db)
    NotificationRepository(db).delete(notification_id)


def send_direct_notification(
    user_id: int,
    title: str,
    body: str,
    db: Session,
    type_id: Optional[int] = None,
) -> NotificationGet:
    """Notification addressed to one user without a triggering entity."""
    notification = create_notification(
        db,
        user_id=user_id,
        title=title,
        message=body,
        type_id=type_id,
        type_name=settings.DIRECT_NOTIFICATION_TYPE,
    )
    return NotificationGet.model_validate(notification)
