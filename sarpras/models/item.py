# sarpras/models/item.py
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING
from datetime import datetime, timezone

from .enum import ItemType, StockMovementType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Item(Document):
    """Model Dokumen Beanie untuk Barang Inventaris."""
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    # Satu-satunya hitungan otoritatif untuk unit yang tersedia
    quantity: int = Field(default=0, ge=0)
    type: ItemType
    is_active: bool = Field(default=True, description="False = dihapus (soft delete)")
    created_by: Optional[PydanticObjectId] = None

    # --- Timestamps ---
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "items"
        indexes = [
            IndexModel([("name", ASCENDING)], name="item_name_index"),
            IndexModel([("type", ASCENDING)], name="item_type_index"),
            IndexModel([("is_active", ASCENDING)], name="item_is_active_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=200)
        description: Optional[str] = None
        quantity: int = Field(default=0, ge=0)
        type: ItemType = ItemType.RETURNABLE

    class Update(BaseModel):
        # Quantity tidak diubah di sini; gunakan endpoint adjust
        name: Optional[str] = Field(None, min_length=1, max_length=200)
        description: Optional[str] = None
        type: Optional[ItemType] = None

    class Adjust(BaseModel):
        delta: int = Field(..., description="Positif = tambah stok, negatif = kurangi stok")
        movement_type: StockMovementType = StockMovementType.ADJUSTMENT
        reason: Optional[str] = Field(None, max_length=500)

    class Response(BaseModel):
        id: str
        name: str
        description: Optional[str] = None
        quantity: int
        type: ItemType
        is_active: bool
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True

    def to_response(self) -> "Item.Response":
        data = self.model_dump(exclude={"id", "created_by"})
        return Item.Response(id=str(self.id), **data)
