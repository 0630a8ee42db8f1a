"""
Notification and notification type repositories.
"""

from typing import List, Optional
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..model.notification import Notification, NotificationType


class NotificationRepository(BaseRepository[Notification]):

    def __init__(self, db: Session):
        super().__init__(db, Notification)

    def find_for_user(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        """Notifications of a user, newest first."""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


class NotificationTypeRepository(BaseRepository[NotificationType]):

    def __init__(self, db: Session):
        super().__init__(db, NotificationType)

    def find_by_name(self, type_name: str) -> Optional[NotificationType]:
        return self.find_one_by(type_name=type_name)

    def get_or_create(self, type_name: str) -> NotificationType:
        notification_type = self.find_by_name(type_name)
        if notification_type is None:
            notification_type = self.create(NotificationType(type_name=type_name))
        return notification_type
