# sarpras/models/borrow_request.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime, date

from .enum import BorrowRequestStatus
from .item import utcnow


class BorrowRequest(Document):
    """Permintaan peminjaman barang returnable."""
    item_id: PydanticObjectId
    requester_id: PydanticObjectId
    quantity: int = Field(..., gt=0, description="Number of units borrowed")
    # Unit yang masih di tangan peminjam; diisi saat serah terima (Diproses)
    remaining_quantity: int = Field(default=0, ge=0)
    request_date: datetime = Field(default_factory=utcnow)
    # BSON tidak punya tipe date; disimpan sebagai datetime tengah malam UTC
    borrow_start_date: datetime
    due_date: datetime
    status: BorrowRequestStatus = BorrowRequestStatus.PENDING
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    approver_id: Optional[PydanticObjectId] = None
    approval_date: Optional[datetime] = None
    returned_date: Optional[datetime] = None
    returned_by: Optional[PydanticObjectId] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "borrow_requests"
        indexes = [
            IndexModel([("status", ASCENDING)], name="borrow_status_index"),
            IndexModel([("requester_id", ASCENDING)], name="borrow_requester_index"),
            IndexModel([("item_id", ASCENDING), ("status", ASCENDING)], name="borrow_item_status_index"),
            IndexModel([("request_date", DESCENDING)], name="borrow_request_date_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        item_id: str = Field(...)
        quantity: int = Field(..., gt=0, description="Number of units to borrow (must be > 0)")
        borrow_start_date: date
        due_date: date
        requester_id: Optional[str] = None
        notes: Optional[str] = Field(None, max_length=1000)

        @model_validator(mode="after")
        def check_dates(self):
            if self.due_date < self.borrow_start_date:
                raise ValueError("due_date must not be before borrow_start_date")
            return self

    class Response(BaseModel):
        id: str
        item_id: str
        requester_id: str
        quantity: int
        remaining_quantity: int
        request_date: datetime
        borrow_start_date: datetime
        due_date: datetime
        status: BorrowRequestStatus
        notes: Optional[str] = None
        admin_notes: Optional[str] = None
        approver_id: Optional[str] = None
        approval_date: Optional[datetime] = None
        returned_date: Optional[datetime] = None
        returned_by: Optional[str] = None
        created_at: datetime
        updated_at: datetime
        permitted_transitions: List[str] = Field(default_factory=list)

        class Config:
            use_enum_values = True

    def to_response(self, permitted_transitions=()) -> "BorrowRequest.Response":
        return BorrowRequest.Response(
            id=str(self.id),
            item_id=str(self.item_id),
            requester_id=str(self.requester_id),
            quantity=self.quantity,
            remaining_quantity=self.remaining_quantity,
            request_date=self.request_date,
            borrow_start_date=self.borrow_start_date,
            due_date=self.due_date,
            status=self.status,
            notes=self.notes,
            admin_notes=self.admin_notes,
            approver_id=str(self.approver_id) if self.approver_id else None,
            approval_date=self.approval_date,
            returned_date=self.returned_date,
            returned_by=str(self.returned_by) if self.returned_by else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
            permitted_transitions=sorted(s.value for s in permitted_transitions),
        )
