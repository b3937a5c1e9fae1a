# models/notification.py

from datetime import datetime
from pydantic import BaseModel

from .enums import NotificationKind


class NotificationRead(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    kind: NotificationKind
    read: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "extra": "ignore"}


class NotificationCount(BaseModel):
    unread: int
