# sarpras/api/v1/endpoints/maintenance.py
from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from sarpras.core.security import require_admin
from sarpras.models.borrow_request import BorrowRequest
from sarpras.models.consumable_request import ConsumableRequest
from sarpras.models.enum import BorrowRequestStatus
from sarpras.models.notification import Notification
from sarpras.models.return_request import ReturnRequest
from sarpras.models.stock_movement import StockMovement
from sarpras.models.transition_log import TransitionLog
from sarpras.models.user import User

router = APIRouter(tags=["Maintenance - Admin"])

ACTIVITY_MODELS = [
    ConsumableRequest,
    BorrowRequest,
    ReturnRequest,
    StockMovement,
    TransitionLog,
    Notification,
]


@router.delete("/activity")
async def truncate_activity(current_admin: User = Depends(require_admin)):
    """Hapus seluruh data aktivitas (permintaan, buku besar stok, audit, notifikasi).

    Ditolak selama masih ada barang yang sedang dipinjam; menghapus peminjaman
    itu membuat unit yang di luar tidak bisa dikembalikan ke stok.
    """
    on_loan = await BorrowRequest.find_one({
        "status": BorrowRequestStatus.DIPROSES.value,
        "remaining_quantity": {"$gt": 0},
    })
    if on_loan:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot truncate activity while items are still out on loan.",
        )

    deleted = {}
    for model in ACTIVITY_MODELS:
        result = await model.get_motor_collection().delete_many({})
        deleted[model.Settings.name] = result.deleted_count
    logger.warning(f"Admin '{current_admin.username}' truncated activity data: {deleted}")
    return {"deleted": deleted}
