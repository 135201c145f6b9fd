# sarpras/models/return_request.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import ReturnRequestStatus
from .item import utcnow


class ReturnRequest(Document):
    """Pengajuan pengembalian (sebagian/seluruh) unit dari sebuah BorrowRequest."""
    borrow_request_id: PydanticObjectId
    item_id: PydanticObjectId
    requester_id: PydanticObjectId
    quantity: int = Field(..., gt=0)
    condition_description: Optional[str] = None
    request_date: datetime = Field(default_factory=utcnow)
    status: ReturnRequestStatus = ReturnRequestStatus.PENDING
    admin_notes: Optional[str] = None
    approver_id: Optional[PydanticObjectId] = None
    approval_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "return_requests"
        indexes = [
            IndexModel([("status", ASCENDING)], name="return_status_index"),
            IndexModel([("borrow_request_id", ASCENDING)], name="return_borrow_index"),
            IndexModel([("requester_id", ASCENDING)], name="return_requester_index"),
            IndexModel([("request_date", DESCENDING)], name="return_request_date_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        borrow_request_id: str = Field(...)
        quantity: int = Field(..., gt=0)
        item_id: Optional[str] = Field(None, description="Must match the borrow request's item when given")
        requester_id: Optional[str] = None
        condition_description: Optional[str] = Field(None, max_length=1000)

    class Response(BaseModel):
        id: str
        borrow_request_id: str
        item_id: str
        requester_id: str
        quantity: int
        condition_description: Optional[str] = None
        request_date: datetime
        status: ReturnRequestStatus
        admin_notes: Optional[str] = None
        approver_id: Optional[str] = None
        approval_date: Optional[datetime] = None
        created_at: datetime
        updated_at: datetime
        permitted_transitions: List[str] = Field(default_factory=list)

        class Config:
            use_enum_values = True

    def to_response(self, permitted_transitions=()) -> "ReturnRequest.Response":
        return ReturnRequest.Response(
            id=str(self.id),
            borrow_request_id=str(self.borrow_request_id),
            item_id=str(self.item_id),
            requester_id=str(self.requester_id),
            quantity=self.quantity,
            condition_description=self.condition_description,
            request_date=self.request_date,
            status=self.status,
            admin_notes=self.admin_notes,
            approver_id=str(self.approver_id) if self.approver_id else None,
            approval_date=self.approval_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            permitted_transitions=sorted(s.value for s in permitted_transitions),
        )
