# sarpras/models/consumable_request.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import ConsumableRequestStatus
from .item import utcnow


class ConsumableRequest(Document):
    """Permintaan barang habis pakai (consumable)."""
    item_id: PydanticObjectId
    requester_id: PydanticObjectId
    quantity: int = Field(..., gt=0)
    request_date: datetime = Field(default_factory=utcnow)
    status: ConsumableRequestStatus = ConsumableRequestStatus.PENDING
    notes: Optional[str] = None  # Catatan dari pemohon
    admin_notes: Optional[str] = None
    approver_id: Optional[PydanticObjectId] = None
    approval_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "consumable_requests"
        indexes = [
            IndexModel([("status", ASCENDING)], name="consumable_status_index"),
            IndexModel([("requester_id", ASCENDING)], name="consumable_requester_index"),
            IndexModel([("item_id", ASCENDING)], name="consumable_item_index"),
            IndexModel([("request_date", DESCENDING)], name="consumable_request_date_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        item_id: str = Field(..., description="String ObjectId of the consumable item")
        quantity: int = Field(..., gt=0)
        requester_id: Optional[str] = Field(None, description="Defaults to the authenticated caller")
        notes: Optional[str] = Field(None, max_length=1000)

    class Response(BaseModel):
        id: str
        item_id: str
        requester_id: str
        quantity: int
        request_date: datetime
        status: ConsumableRequestStatus
        notes: Optional[str] = None
        admin_notes: Optional[str] = None
        approver_id: Optional[str] = None
        approval_date: Optional[datetime] = None
        created_at: datetime
        updated_at: datetime
        permitted_transitions: List[str] = Field(default_factory=list)

        class Config:
            use_enum_values = True

    def to_response(self, permitted_transitions=()) -> "ConsumableRequest.Response":
        return ConsumableRequest.Response(
            id=str(self.id),
            item_id=str(self.item_id),
            requester_id=str(self.requester_id),
            quantity=self.quantity,
            request_date=self.request_date,
            status=self.status,
            notes=self.notes,
            admin_notes=self.admin_notes,
            approver_id=str(self.approver_id) if self.approver_id else None,
            approval_date=self.approval_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            permitted_transitions=sorted(s.value for s in permitted_transitions),
        )
