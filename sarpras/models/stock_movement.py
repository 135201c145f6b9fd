# sarpras/models/stock_movement.py
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import RequestType, StockMovementType
from .item import utcnow


class StockMovement(Document):
    """Buku besar penyesuaian stok. Satu dokumen per penyesuaian yang diterapkan.

    ``idempotency_key`` unik: untuk penyesuaian karena transisi permintaan isinya
    ``<request_type>:<request_id>:<action>``, sehingga penyesuaian yang sama
    tidak pernah tercatat (dan diterapkan) dua kali.
    """
    idempotency_key: str
    item_id: PydanticObjectId
    delta: int
    type: StockMovementType
    request_type: Optional[RequestType] = None
    request_id: Optional[PydanticObjectId] = None
    action: Optional[str] = None
    actor_id: Optional[PydanticObjectId] = None
    reason: Optional[str] = None
    quantity_after: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "stock_movements"
        indexes = [
            IndexModel([("idempotency_key", ASCENDING)], name="movement_idempotency_unique_index", unique=True),
            IndexModel([("item_id", ASCENDING), ("created_at", DESCENDING)], name="movement_item_index"),
            IndexModel([("request_id", ASCENDING)], name="movement_request_index"),
        ]

    class Response(BaseModel):
        id: str
        item_id: str
        delta: int
        type: StockMovementType
        request_type: Optional[RequestType] = None
        request_id: Optional[str] = None
        action: Optional[str] = None
        actor_id: Optional[str] = None
        reason: Optional[str] = None
        quantity_after: Optional[int] = None
        created_at: datetime

        class Config:
            use_enum_values = True

    def to_response(self) -> "StockMovement.Response":
        return StockMovement.Response(
            id=str(self.id),
            item_id=str(self.item_id),
            delta=self.delta,
            type=self.type,
            request_type=self.request_type,
            request_id=str(self.request_id) if self.request_id else None,
            action=self.action,
            actor_id=str(self.actor_id) if self.actor_id else None,
            reason=self.reason,
            quantity_after=self.quantity_after,
            created_at=self.created_at,
        )
