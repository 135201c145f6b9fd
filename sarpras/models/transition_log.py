# sarpras/models/transition_log.py
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING
from datetime import datetime

from .enum import RequestType, UserRole
from .item import utcnow


class TransitionLog(Document):
    """Jejak audit: siapa melakukan transisi apa, kapan, dengan catatan apa."""
    actor_id: PydanticObjectId
    role: UserRole
    request_type: RequestType
    request_id: PydanticObjectId
    from_status: Optional[str] = None  # None = pembuatan permintaan
    to_status: str
    notes: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "transition_logs"
        indexes = [
            IndexModel([("request_type", ASCENDING), ("request_id", ASCENDING), ("timestamp", ASCENDING)],
                       name="transition_request_index"),
            IndexModel([("actor_id", ASCENDING)], name="transition_actor_index"),
        ]

    class Response(BaseModel):
        id: str
        actor_id: str
        role: UserRole
        request_type: RequestType
        request_id: str
        from_status: Optional[str] = None
        to_status: str
        notes: Optional[str] = None
        timestamp: datetime

        class Config:
            use_enum_values = True

    def to_response(self) -> "TransitionLog.Response":
        return TransitionLog.Response(
            id=str(self.id),
            actor_id=str(self.actor_id),
            role=self.role,
            request_type=self.request_type,
            request_id=str(self.request_id),
            from_status=self.from_status,
            to_status=self.to_status,
            notes=self.notes,
            timestamp=self.timestamp,
        )
