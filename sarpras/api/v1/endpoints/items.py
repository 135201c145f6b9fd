# sarpras/api/v1/endpoints/items.py
import re
from typing import List, Optional
from datetime import datetime, timezone

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query
from loguru import logger
from pymongo import DESCENDING

from sarpras.core import authority, reconciliation
from sarpras.core.security import get_current_active_user, require_admin
from sarpras.models.borrow_request import BorrowRequest
from sarpras.models.consumable_request import ConsumableRequest
from sarpras.models.enum import BorrowRequestStatus, RequestType, StockMovementType
from sarpras.models.item import Item
from sarpras.models.return_request import ReturnRequest
from sarpras.models.stock_movement import StockMovement
from sarpras.models.user import User

router = APIRouter(tags=["Items"])


async def get_item_or_404(item_id: str) -> Item:
    """Ambil item AKTIF berdasarkan string ObjectId; 400 jika format salah, 404 jika tidak ada/nonaktif."""
    if not ObjectId.is_valid(item_id):
        logger.warning(f"Invalid ObjectId format for item: {item_id}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid item ID format.")
    item = await Item.find_one({"_id": ObjectId(item_id), "is_active": True})
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Active item with ID '{item_id}' not found.")
    return item


async def has_open_requests(item_id: ObjectId) -> bool:
    """True jika masih ada permintaan non-terminal untuk barang ini."""
    for request_type, model in (
        (RequestType.CONSUMABLE, ConsumableRequest),
        (RequestType.BORROW, BorrowRequest),
        (RequestType.RETURN, ReturnRequest),
    ):
        open_statuses = [s.value for s in authority.non_terminal_statuses(request_type)]
        if await model.find_one({"item_id": item_id, "status": {"$in": open_statuses}}):
            return True
    return False


# --- POST /items/ ---
@router.post("/", response_model=Item.Response, status_code=status.HTTP_201_CREATED)
async def create_item(item_in: Item.Create = Body(...), current_user: User = Depends(require_admin)):
    item_obj = Item(**item_in.model_dump(), created_by=current_user.id)
    await item_obj.insert()
    logger.info(
        f"Item '{item_obj.name}' ({item_obj.type.value}, qty={item_obj.quantity}) created by '{current_user.username}'."
    )
    return item_obj.to_response()


# --- GET /items/ ---
@router.get("/", response_model=List[Item.Response])
async def list_items(
    type: Optional[str] = Query(None, description="consumable | returnable"),
    available_only: bool = Query(False, description="Hanya barang dengan quantity > 0"),
    search: Optional[str] = Query(None, description="Cari berdasarkan nama (case-insensitive)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_active_user),
):
    filters = {"is_active": True}
    if type:
        filters["type"] = type
    if available_only:
        filters["quantity"] = {"$gt": 0}
    if search:
        filters["name"] = {"$regex": re.escape(search), "$options": "i"}
    items = await Item.find(filters, skip=skip, limit=limit).sort("+name").to_list()
    return [i.to_response() for i in items]


# --- GET /items/{item_id} ---
@router.get("/{item_id}", response_model=Item.Response)
async def read_item(item_id: str = Path(...), current_user: User = Depends(get_current_active_user)):
    item = await get_item_or_404(item_id)
    return item.to_response()


# --- PATCH /items/{item_id} ---
@router.patch("/{item_id}", response_model=Item.Response)
async def update_item(
    item_id: str = Path(...),
    item_in: Item.Update = Body(...),
    current_user: User = Depends(require_admin),
):
    """Ubah metadata barang. Quantity hanya bisa diubah lewat ``/adjust``."""
    item = await get_item_or_404(item_id)
    update_data = item_in.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No update data provided.")

    if "type" in update_data and update_data["type"] != item.type:
        if await has_open_requests(item.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Item type cannot change while the item has open requests.",
            )
        update_data["type"] = update_data["type"].value
    update_data["updated_at"] = datetime.now(timezone.utc)

    await item.update({"$set": update_data})
    logger.info(f"Item {item_id} updated by '{current_user.username}': {list(update_data)}")
    updated = await get_item_or_404(item_id)
    return updated.to_response()


# --- DELETE /items/{item_id} --- (Soft delete)
@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(item_id: str = Path(...), current_user: User = Depends(require_admin)):
    item = await get_item_or_404(item_id)
    on_loan = await BorrowRequest.find_one({
        "item_id": item.id,
        "status": BorrowRequestStatus.DIPROSES.value,
        "remaining_quantity": {"$gt": 0},
    })
    if on_loan:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Item cannot be deleted while units are out on loan.",
        )
    await item.update({"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}})
    logger.info(f"Item '{item.name}' ({item_id}) deactivated by '{current_user.username}'.")
    return None


# --- POST /items/{item_id}/adjust --- (Koreksi stok manual)
@router.post("/{item_id}/adjust", response_model=Item.Response)
async def adjust_item_stock(
    item_id: str = Path(...),
    adjust_in: Item.Adjust = Body(...),
    current_user: User = Depends(require_admin),
):
    item = await get_item_or_404(item_id)
    if adjust_in.movement_type == StockMovementType.OUT and adjust_in.delta > 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OUT movements need a negative delta.")
    if adjust_in.movement_type == StockMovementType.IN and adjust_in.delta < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="IN movements need a positive delta.")

    await reconciliation.apply_adjustment(
        item_id=item.id,
        delta=adjust_in.delta,
        idempotency_key=reconciliation.manual_idempotency_key(),
        movement_type=adjust_in.movement_type,
        actor_id=current_user.id,
        reason=adjust_in.reason,
    )
    updated = await get_item_or_404(item_id)
    return updated.to_response()


# --- GET /items/{item_id}/movements --- (Buku besar stok)
@router.get("/{item_id}/movements", response_model=List[StockMovement.Response])
async def list_item_movements(
    item_id: str = Path(...),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(require_admin),
):
    if not ObjectId.is_valid(item_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid item ID format.")
    movements = await StockMovement.find(
        {"item_id": ObjectId(item_id)}, skip=skip, limit=limit, sort=[("created_at", DESCENDING)]
    ).to_list()
    return [m.to_response() for m in movements]
