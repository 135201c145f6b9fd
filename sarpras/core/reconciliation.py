# sarpras/core/reconciliation.py
"""Quantity Reconciliation Engine.

Menerapkan penyesuaian ``item.quantity`` tepat satu kali per
(request, edge). Setiap penyesuaian dicatat di ``StockMovement`` dengan
``idempotency_key`` unik; update quantity adalah satu operasi atomik
bersyarat sehingga dua debit bersamaan terhadap satu barang selalu dievaluasi
terhadap nilai yang sama, bukan dua bacaan basi.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from loguru import logger
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from sarpras.core.errors import InsufficientStockError, NotFoundError, ValidationError
from sarpras.models.enum import RequestType, StockMovementType
from sarpras.models.item import Item
from sarpras.models.stock_movement import StockMovement


def request_idempotency_key(request_type: RequestType, request_id, action: str) -> str:
    return f"{request_type.value}:{request_id}:{action}"


def manual_idempotency_key() -> str:
    return f"manual:{uuid.uuid4().hex}"


async def apply_adjustment(
    item_id: ObjectId,
    delta: int,
    idempotency_key: str,
    movement_type: StockMovementType,
    actor_id: Optional[ObjectId] = None,
    request_type: Optional[RequestType] = None,
    request_id: Optional[ObjectId] = None,
    action: Optional[str] = None,
    reason: Optional[str] = None,
    session=None,
) -> Optional[StockMovement]:
    """Terapkan ``delta`` ke stok barang.

    Mengembalikan dokumen ``StockMovement`` yang baru, atau ``None`` jika
    penyesuaian dengan ``idempotency_key`` yang sama sudah pernah diterapkan.
    Raise ``InsufficientStockError`` jika hasilnya akan negatif,
    ``NotFoundError`` jika barang tidak ada / tidak aktif.
    """
    if delta == 0:
        raise ValidationError("Stock adjustment delta must not be zero.")

    now_utc = datetime.now(timezone.utc)

    if session is not None:
        # Di dalam transaksi, DuplicateKeyError membatalkan seluruh transaksi: cek ledger dulu
        existing = await StockMovement.find_one({"idempotency_key": idempotency_key}, session=session)
        if existing is not None:
            logger.warning(f"Stock adjustment '{idempotency_key}' already applied. Skipping.")
            return None

    # 1. Klaim kunci idempotensi lebih dulu
    movement = StockMovement(
        idempotency_key=idempotency_key,
        item_id=item_id,
        delta=delta,
        type=movement_type,
        request_type=request_type,
        request_id=request_id,
        action=action,
        actor_id=actor_id,
        reason=reason,
        created_at=now_utc,
    )
    try:
        await movement.insert(session=session)
    except DuplicateKeyError:
        if session is not None:
            logger.error(f"Stock adjustment '{idempotency_key}' raced inside a transaction; aborting.")
            raise
        logger.warning(f"Stock adjustment '{idempotency_key}' already applied. Skipping.")
        return None

    # 2. Update atomik dengan floor check
    item_filter = {"_id": item_id, "is_active": True}
    if delta < 0:
        item_filter["quantity"] = {"$gte": -delta}

    updated_item = await Item.get_motor_collection().find_one_and_update(
        item_filter,
        {"$inc": {"quantity": delta}, "$set": {"updated_at": now_utc}},
        return_document=ReturnDocument.AFTER,
        session=session,
    )

    if updated_item is None:
        # Lepas kembali kunci idempotensi; tidak ada yang diterapkan
        await StockMovement.get_motor_collection().delete_one({"_id": movement.id}, session=session)
        current = await Item.get_motor_collection().find_one(
            {"_id": item_id, "is_active": True}, {"name": 1, "quantity": 1}, session=session
        )
        if current is None:
            raise NotFoundError(f"Active item '{item_id}' not found.")
        logger.warning(
            f"Insufficient stock for item '{current.get('name')}': available={current.get('quantity')}, "
            f"requested={-delta} ({idempotency_key})."
        )
        raise InsufficientStockError(
            f"Insufficient stock for '{current.get('name')}': {current.get('quantity')} available, {-delta} requested.",
            available=current.get("quantity"),
            requested=-delta,
        )

    quantity_after = updated_item["quantity"]
    await StockMovement.get_motor_collection().update_one(
        {"_id": movement.id}, {"$set": {"quantity_after": quantity_after}}, session=session
    )
    movement.quantity_after = quantity_after
    logger.info(
        f"Stock for item '{updated_item.get('name')}' adjusted by {delta:+d} to {quantity_after} ({idempotency_key})."
    )
    return movement


async def revert_adjustment(movement: StockMovement, session=None) -> None:
    """Kompensasi: batalkan penyesuaian yang sudah diterapkan dan hapus catatannya."""
    now_utc = datetime.now(timezone.utc)
    item_filter = {"_id": movement.item_id}
    if movement.delta > 0:
        # Membatalkan kredit = debit; tetap tidak boleh di bawah nol
        item_filter["quantity"] = {"$gte": movement.delta}
    result = await Item.get_motor_collection().update_one(
        item_filter,
        {"$inc": {"quantity": -movement.delta}, "$set": {"updated_at": now_utc}},
        session=session,
    )
    if result.matched_count == 0:
        logger.error(f"CRITICAL: Could not revert stock movement '{movement.idempotency_key}' on item {movement.item_id}.")
        return
    await StockMovement.get_motor_collection().delete_one({"_id": movement.id}, session=session)
    logger.warning(f"Stock movement '{movement.idempotency_key}' reverted ({-movement.delta:+d}).")
