# sarpras/models/notification.py
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .item import utcnow


class Notification(Document):
    recipient_user_id: PydanticObjectId
    type: str  # contoh: "borrow_request.Disetujui"
    message: str
    related_id: Optional[PydanticObjectId] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "notifications"
        indexes = [
            IndexModel([("recipient_user_id", ASCENDING), ("created_at", DESCENDING)],
                       name="notification_recipient_index"),
            IndexModel([("is_read", ASCENDING)], name="notification_is_read_index"),
        ]

    class Response(BaseModel):
        id: str
        type: str
        message: str
        related_id: Optional[str] = None
        is_read: bool
        created_at: datetime

    def to_response(self) -> "Notification.Response":
        return Notification.Response(
            id=str(self.id),
            type=self.type,
            message=self.message,
            related_id=str(self.related_id) if self.related_id else None,
            is_read=self.is_read,
            created_at=self.created_at,
        )
