from datetime import datetime
from typing import Optional

from pydantic import Field

from mercadito_types.base import CamelModel


class NotificationGet(CamelModel):
    id: int
    user_id: int = Field(..., description="Recipient (sole owner) of the notification")
    type_id: int
    title: str
    message: str
    read: bool = False
    created_at: Optional[datetime] = None
    product_id: Optional[int] = None
    report_id: Optional[int] = None


class NotificationUpdate(CamelModel):
    read: bool = False
