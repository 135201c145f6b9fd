# tests/test_reconciliation.py
import asyncio

import pytest
from bson import ObjectId

from sarpras.core import reconciliation
from sarpras.core.errors import InsufficientStockError, NotFoundError, ValidationError
from sarpras.models.enum import ItemType, RequestType, StockMovementType
from sarpras.models.stock_movement import StockMovement

from factories import make_item, item_quantity


async def test_debit_and_credit_are_recorded_in_ledger():
    item = await make_item("Spidol", 10, ItemType.CONSUMABLE)
    request_id = ObjectId()

    movement = await reconciliation.apply_adjustment(
        item.id, -4,
        reconciliation.request_idempotency_key(RequestType.CONSUMABLE, request_id, "admin_process"),
        StockMovementType.OUT,
        request_type=RequestType.CONSUMABLE, request_id=request_id, action="admin_process",
    )

    assert movement.quantity_after == 6
    assert await item_quantity(item) == 6
    stored = await StockMovement.find_one({"idempotency_key": movement.idempotency_key})
    assert stored.delta == -4
    assert stored.quantity_after == 6


async def test_same_idempotency_key_is_applied_once():
    item = await make_item("Kertas", 5, ItemType.RETURNABLE)
    key = reconciliation.request_idempotency_key(RequestType.BORROW, ObjectId(), "admin_handover")

    first = await reconciliation.apply_adjustment(item.id, -3, key, StockMovementType.OUT)
    second = await reconciliation.apply_adjustment(item.id, -3, key, StockMovementType.OUT)

    assert first is not None
    assert second is None
    assert await item_quantity(item) == 2
    assert await StockMovement.find({"idempotency_key": key}).count() == 1


async def test_debit_below_zero_is_rejected_and_leaves_no_ledger_row():
    item = await make_item("Kertas", 2, ItemType.RETURNABLE)
    key = reconciliation.request_idempotency_key(RequestType.BORROW, ObjectId(), "admin_handover")

    with pytest.raises(InsufficientStockError) as exc_info:
        await reconciliation.apply_adjustment(item.id, -3, key, StockMovementType.OUT)

    assert exc_info.value.available == 2
    assert exc_info.value.requested == 3
    assert await item_quantity(item) == 2
    assert await StockMovement.find_one({"idempotency_key": key}) is None


async def test_failed_debit_can_be_retried_with_same_key_after_restock():
    item = await make_item("Kertas", 1, ItemType.RETURNABLE)
    key = "borrow:abc:admin_handover"

    with pytest.raises(InsufficientStockError):
        await reconciliation.apply_adjustment(item.id, -2, key, StockMovementType.OUT)
    await reconciliation.apply_adjustment(item.id, 5, reconciliation.manual_idempotency_key(), StockMovementType.IN)
    movement = await reconciliation.apply_adjustment(item.id, -2, key, StockMovementType.OUT)

    assert movement is not None
    assert await item_quantity(item) == 4


async def test_concurrent_debits_never_drive_quantity_negative():
    item = await make_item("Proyektor", 1, ItemType.RETURNABLE)

    results = await asyncio.gather(
        *[
            reconciliation.apply_adjustment(item.id, -1, f"borrow:{i}:admin_handover", StockMovementType.OUT)
            for i in range(5)
        ],
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, StockMovement)]
    failed = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(succeeded) == 1
    assert len(failed) == 4
    assert await item_quantity(item) == 0


async def test_inactive_item_cannot_be_adjusted():
    item = await make_item("Rusak", 3, ItemType.CONSUMABLE)
    await item.update({"$set": {"is_active": False}})

    with pytest.raises(NotFoundError):
        await reconciliation.apply_adjustment(item.id, 1, reconciliation.manual_idempotency_key(), StockMovementType.IN)


async def test_zero_delta_is_invalid():
    item = await make_item("Kertas", 3, ItemType.CONSUMABLE)
    with pytest.raises(ValidationError):
        await reconciliation.apply_adjustment(item.id, 0, "manual:x", StockMovementType.ADJUSTMENT)


async def test_revert_adjustment_restores_quantity_and_removes_ledger_row():
    item = await make_item("Kertas", 5, ItemType.RETURNABLE)
    movement = await reconciliation.apply_adjustment(item.id, -2, "borrow:r1:admin_handover", StockMovementType.OUT)

    await reconciliation.revert_adjustment(movement)

    assert await item_quantity(item) == 5
    assert await StockMovement.find_one({"idempotency_key": "borrow:r1:admin_handover"}) is None
