from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Index, String, Text, false
from sqlalchemy.orm import relationship

from .base import Base, BigIntPK


class NotificationType(Base):
    __tablename__ = 'notification_types'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    type_name = Column(String(64), nullable=False, unique=True)


class Notification(Base):
    __tablename__ = 'notifications'
    __table_args__ = (
        Index('notification_user_read_idx', 'user_id', 'read'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    type_id = Column(ForeignKey('notification_types.id', ondelete='RESTRICT', onupdate='RESTRICT'), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # Optional references to the entity the notification is about
    product_id = Column(ForeignKey('products.id', ondelete='SET NULL', onupdate='RESTRICT'))
    report_id = Column(BigInteger)

    # Relationships
    user = relationship('User', back_populates='notifications')
    notification_type = relationship('NotificationType')
