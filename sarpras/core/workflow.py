# sarpras/core/workflow.py
"""State machine permintaan: consumable, peminjaman (borrow), dan pengembalian (return).

Operasi publik:

* ``create_request``  - buat permintaan baru dalam status ``Pending``
* ``list_permitted_transitions`` - status tujuan yang boleh dipilih sebuah role
* ``transition``      - pindahkan status + rekonsiliasi stok, atomik
* ``get_request`` / ``list_requests`` - baca

Atomisitas ``transition``: permintaan diklaim dengan compare-and-set pada
status sumber, lalu efek samping diterapkan. Tanpa transaksi MongoDB, setiap
langkah yang gagal dikompensasi dalam urutan terbalik dan status dikembalikan
ke nilai sebelumnya. Dengan ``MONGODB_TRANSACTIONS`` semua langkah berjalan di
satu sesi transaksi dan kegagalan membatalkan transaksi.
"""
from contextlib import asynccontextmanager
from datetime import datetime, date, time, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from bson import ObjectId
from loguru import logger
from pymongo import DESCENDING, ReturnDocument

from sarpras.core import audit, authority, reconciliation
from sarpras.core.authority import Actor, Edge
from sarpras.core.config import MONGODB_TRANSACTIONS
from sarpras.core.errors import (
    AuthError, InvalidTransitionError, NotFoundError, ValidationError,
)
from sarpras.core.retry import retry_read
from sarpras.db.database import get_client
from sarpras.models.borrow_request import BorrowRequest
from sarpras.models.consumable_request import ConsumableRequest
from sarpras.models.enum import (
    BorrowRequestStatus, ItemType, RequestType, StockMovementType, UserRole,
)
from sarpras.models.item import Item
from sarpras.models.return_request import ReturnRequest

MODELS = {
    RequestType.CONSUMABLE: ConsumableRequest,
    RequestType.BORROW: BorrowRequest,
    RequestType.RETURN: ReturnRequest,
}

ITEM_TYPE_FOR_REQUEST = {
    RequestType.CONSUMABLE: ItemType.CONSUMABLE,
    RequestType.BORROW: ItemType.RETURNABLE,
}

# Role yang boleh melihat semua permintaan
REVIEWER_ROLES = {UserRole.ADMIN, UserRole.HEADMASTER}

Emitter = Callable[[audit.TransitionEvent], Awaitable[None]]
Compensation = Callable[[], Awaitable[Any]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value, label: str = "ID") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if value is None or not ObjectId.is_valid(str(value)):
        raise ValidationError(f"Invalid {label} format: {value!r}.")
    return ObjectId(str(value))


def as_utc_datetime(value, label: str) -> datetime:
    """Tanggal (date/datetime) -> datetime UTC; BSON tidak punya tipe date."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise ValidationError(f"'{label}' must be a date.")


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}.")
    return quantity


def _raw(value):
    return value.value if isinstance(value, Enum) else value


@asynccontextmanager
async def unit_of_work(use_transactions: bool, client=None):
    """Yield sesi transaksi Motor, atau ``None`` bila transaksi tidak dipakai."""
    if not use_transactions:
        yield None
        return
    client = client or get_client()
    async with await client.start_session() as session:
        async with session.start_transaction():
            yield session


class RequestWorkflow:
    def __init__(self, use_transactions: bool = MONGODB_TRANSACTIONS, emitter: Emitter = audit.emit, client=None):
        self.use_transactions = use_transactions
        self.emitter = emitter
        # Client Motor untuk sesi transaksi; default client dari init_db
        self.client = client

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #
    async def create_request(
        self,
        request_type: RequestType,
        actor: Actor,
        *,
        quantity: int,
        item_id=None,
        requester_id=None,
        borrow_start_date=None,
        due_date=None,
        borrow_request_id=None,
        notes: Optional[str] = None,
        condition_description: Optional[str] = None,
    ):
        requester = to_object_id(requester_id, "requester ID") if requester_id is not None else actor.id
        if requester != actor.id:
            logger.warning(
                f"SECURITY: user '{actor.username or actor.id}' tried to create a "
                f"{request_type.value} request on behalf of {requester}."
            )
            raise AuthError("Requests can only be created for the authenticated user.")
        quantity = _check_quantity(quantity)

        if request_type == RequestType.CONSUMABLE:
            item = await self._load_requestable_item(item_id, request_type, quantity)
            request = ConsumableRequest(
                item_id=item.id, requester_id=requester, quantity=quantity, notes=notes,
            )
        elif request_type == RequestType.BORROW:
            if borrow_start_date is None or due_date is None:
                raise ValidationError("Borrow requests need both 'borrow_start_date' and 'due_date'.")
            start = as_utc_datetime(borrow_start_date, "borrow_start_date")
            due = as_utc_datetime(due_date, "due_date")
            if due < start:
                raise ValidationError("'due_date' must not be before 'borrow_start_date'.")
            item = await self._load_requestable_item(item_id, request_type, quantity)
            request = BorrowRequest(
                item_id=item.id, requester_id=requester, quantity=quantity,
                borrow_start_date=start, due_date=due, notes=notes,
            )
        elif request_type == RequestType.RETURN:
            borrow = await self._load_returnable_borrow(borrow_request_id, item_id, requester, quantity)
            request = ReturnRequest(
                borrow_request_id=borrow.id, item_id=borrow.item_id, requester_id=requester,
                quantity=quantity, condition_description=condition_description,
            )
        else:
            raise ValidationError(f"Unsupported request type: {request_type!r}")

        await request.insert()
        logger.info(
            f"{request_type.value} request {request.id} created by '{actor.username or actor.id}' "
            f"(item={request.item_id}, qty={quantity})."
        )
        await self._notify(audit.TransitionEvent(
            actor_id=actor.id, role=actor.role, request_type=request_type, request_id=request.id,
            requester_id=requester, from_status=None, to_status=_raw(request.status), notes=notes,
        ))
        return request

    async def _load_requestable_item(self, item_id, request_type: RequestType, quantity: int) -> Item:
        item = await Item.find_one({"_id": to_object_id(item_id, "item ID"), "is_active": True})
        if item is None:
            raise ValidationError(f"Item '{item_id}' not found.")
        expected_type = ITEM_TYPE_FOR_REQUEST[request_type]
        if item.type != expected_type:
            raise ValidationError(
                f"Item '{item.name}' is {_raw(item.type)}; {request_type.value} requests need a {expected_type.value} item."
            )
        if quantity > item.quantity:
            raise ValidationError(
                f"Insufficient stock for '{item.name}': {item.quantity} available, {quantity} requested."
            )
        return item

    async def _load_returnable_borrow(self, borrow_request_id, item_id, requester: ObjectId, quantity: int) -> BorrowRequest:
        if borrow_request_id is None:
            raise ValidationError("Return requests need a 'borrow_request_id'.")
        borrow = await BorrowRequest.get(to_object_id(borrow_request_id, "borrow request ID"))
        if borrow is None:
            raise ValidationError(f"Borrow request '{borrow_request_id}' not found.")
        if borrow.requester_id != requester:
            raise AuthError("Only the borrower can return items of this borrow request.")
        if borrow.status != BorrowRequestStatus.DIPROSES:
            raise ValidationError(
                f"Borrow request is '{_raw(borrow.status)}'; only items handed over ('Diproses') can be returned."
            )
        if item_id is not None and to_object_id(item_id, "item ID") != borrow.item_id:
            raise ValidationError("Item does not match the borrow request's item.")
        if quantity > borrow.remaining_quantity:
            raise ValidationError(
                f"Cannot return {quantity} unit(s); only {borrow.remaining_quantity} still outstanding."
            )
        return borrow

    # ------------------------------------------------------------------ #
    # Read
    # ------------------------------------------------------------------ #
    @retry_read
    async def get_request(self, request_type: RequestType, request_id):
        request = await MODELS[request_type].get(to_object_id(request_id, "request ID"))
        if request is None:
            raise NotFoundError(f"{request_type.value.capitalize()} request '{request_id}' not found.")
        return request

    @retry_read
    async def list_requests(
        self,
        request_type: RequestType,
        actor: Actor,
        *,
        statuses: Optional[List[str]] = None,
        item_id=None,
        requester_id=None,
        skip: int = 0,
        limit: int = 50,
    ) -> list:
        filters: Dict[str, Any] = {}
        if actor.role in REVIEWER_ROLES:
            if requester_id is not None:
                filters["requester_id"] = to_object_id(requester_id, "requester ID")
        else:
            if requester_id is not None and to_object_id(requester_id, "requester ID") != actor.id:
                raise AuthError("Users can only view their own requests.")
            filters["requester_id"] = actor.id
        if item_id is not None:
            filters["item_id"] = to_object_id(item_id, "item ID")
        if statuses:
            filters["status"] = {"$in": [authority.parse_status(request_type, s).value for s in statuses]}

        return await MODELS[request_type].find(
            filters, skip=skip, limit=limit, sort=[("request_date", DESCENDING)]
        ).to_list()

    async def list_permitted_transitions(self, role: UserRole, request_type: RequestType, request_id) -> Set[Enum]:
        request = await self.get_request(request_type, request_id)
        return authority.permitted_transitions(role, request_type, request.status)

    # ------------------------------------------------------------------ #
    # Transition
    # ------------------------------------------------------------------ #
    async def transition(
        self,
        request_type: RequestType,
        request_id,
        actor: Actor,
        target_status,
        notes: Optional[str] = None,
    ):
        model = MODELS[request_type]
        oid = to_object_id(request_id, "request ID")
        target = authority.parse_status(request_type, target_status)

        request = await model.get(oid)
        if request is None:
            raise NotFoundError(f"{request_type.value.capitalize()} request '{request_id}' not found.")

        try:
            edge = authority.authorize_transition(actor.role, request_type, request.status, target)
        except AuthError:
            logger.warning(
                f"SECURITY: '{actor.username or actor.id}' ({actor.role.value}) denied "
                f"{request_type.value} {oid}: {_raw(request.status)} -> {target.value}."
            )
            raise

        now_utc = utcnow()
        update: Dict[str, Any] = {
            "status": target.value,
            "approver_id": actor.id,
            "approval_date": now_utc,
            "updated_at": now_utc,
        }
        if notes is not None:
            update["admin_notes"] = notes
        if edge.action == "admin_handover":
            update["remaining_quantity"] = request.quantity
        elif edge.action == "admin_receive_return":
            update.update({"returned_date": now_utc, "returned_by": actor.id, "remaining_quantity": 0})

        collection = model.get_motor_collection()
        closed_borrow: Optional[dict] = None
        async with unit_of_work(self.use_transactions, self.client) as session:
            # Klaim: hanya satu transisi yang bisa menang untuk status sumber ini
            before = await collection.find_one_and_update(
                {"_id": oid, "status": edge.source.value},
                {"$set": update},
                return_document=ReturnDocument.BEFORE,
                session=session,
            )
            if before is None:
                current = await collection.find_one({"_id": oid}, {"status": 1}, session=session)
                current_status = current.get("status") if current else None
                raise InvalidTransitionError(
                    f"{request_type.value.capitalize()} request was changed concurrently; "
                    f"current status is '{current_status}'. Refresh and try again.",
                    current_status=current_status,
                )
            previous = {key: before.get(key) for key in update}

            compensations: List[Compensation] = []
            try:
                closed_borrow = await self._apply_effects(
                    request_type, edge, oid, before, actor, session, compensations
                )
            except Exception:
                if session is None:
                    await self._compensate(compensations, collection, oid, target, previous)
                raise

        logger.info(
            f"{request_type.value} request {oid}: {edge.source.value} -> {target.value} "
            f"({edge.action}) by '{actor.username or actor.id}' ({actor.role.value})."
        )
        updated = await model.get(oid)
        await self._notify(audit.TransitionEvent(
            actor_id=actor.id, role=actor.role, request_type=request_type, request_id=oid,
            requester_id=updated.requester_id, from_status=edge.source.value,
            to_status=target.value, notes=notes, timestamp=now_utc,
        ))
        if closed_borrow is not None:
            await self._notify_borrow_closed(closed_borrow, actor)
        return updated

    async def _apply_effects(
        self,
        request_type: RequestType,
        edge: Edge,
        request_id: ObjectId,
        before: dict,
        actor: Actor,
        session,
        compensations: List[Compensation],
    ) -> Optional[dict]:
        """Terapkan efek samping edge. Mengembalikan dokumen borrow (sebelum ditutup) jika pengembalian ini menutupnya."""
        if not edge.touches_stock:
            return None

        closed_borrow = None
        if request_type == RequestType.RETURN:
            # Sisa pinjaman dikurangi SEBELUM stok dikredit: kredit hanya untuk unit yang masih tercatat dipinjam
            closed_borrow = await self._consume_borrow_remaining(before, actor, session, compensations)

        if edge.stock_effect == authority.DEBIT:
            delta = -before["quantity"]
        elif edge.action == "admin_receive_return":
            # Hanya unit yang belum dikembalikan lewat pengajuan pengembalian
            delta = before.get("remaining_quantity", 0)
        else:
            delta = before["quantity"]

        if delta == 0:
            logger.info(f"{request_type.value} request {request_id} ({edge.action}): nothing left to credit.")
            return closed_borrow

        movement = await reconciliation.apply_adjustment(
            item_id=before["item_id"],
            delta=delta,
            idempotency_key=reconciliation.request_idempotency_key(request_type, request_id, edge.action),
            movement_type=StockMovementType.OUT if delta < 0 else StockMovementType.IN,
            actor_id=actor.id,
            request_type=request_type,
            request_id=request_id,
            action=edge.action,
            session=session,
        )
        if movement is not None:
            compensations.append(lambda: reconciliation.revert_adjustment(movement, session=session))
        return closed_borrow

    async def _consume_borrow_remaining(
        self, return_doc: dict, actor: Actor, session, compensations: List[Compensation]
    ) -> Optional[dict]:
        """Kurangi remaining_quantity peminjaman terkait; tutup peminjaman bila semua unit sudah kembali."""
        borrow_id = return_doc["borrow_request_id"]
        quantity = return_doc["quantity"]
        borrow_after = await BorrowRequest.get_motor_collection().find_one_and_update(
            {
                "_id": borrow_id,
                "status": BorrowRequestStatus.DIPROSES.value,
                "remaining_quantity": {"$gte": quantity},
            },
            {"$inc": {"remaining_quantity": -quantity}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if borrow_after is None:
            raise InvalidTransitionError(
                f"Linked borrow request no longer has {quantity} unit(s) outstanding."
            )
        compensations.append(lambda: self._restore_borrow_remaining(borrow_id, quantity, session))

        if borrow_after["remaining_quantity"] > 0:
            return None
        return await self._close_fully_returned_borrow(borrow_id, actor, session, compensations)

    async def _restore_borrow_remaining(self, borrow_id: ObjectId, quantity: int, session) -> None:
        result = await BorrowRequest.get_motor_collection().update_one(
            {"_id": borrow_id, "status": BorrowRequestStatus.DIPROSES.value},
            {"$inc": {"remaining_quantity": quantity}, "$set": {"updated_at": utcnow()}},
            session=session,
        )
        if result.matched_count == 0:
            logger.error(f"CRITICAL: could not give back {quantity} outstanding unit(s) to borrow request {borrow_id}.")
        else:
            logger.warning(f"Borrow request {borrow_id}: {quantity} outstanding unit(s) restored.")

    async def _close_fully_returned_borrow(
        self, borrow_id: ObjectId, actor: Actor, session, compensations: List[Compensation]
    ) -> Optional[dict]:
        now_utc = utcnow()
        before = await BorrowRequest.get_motor_collection().find_one_and_update(
            {"_id": borrow_id, "status": BorrowRequestStatus.DIPROSES.value, "remaining_quantity": 0},
            {"$set": {
                "status": BorrowRequestStatus.DIKEMBALIKAN.value,
                "returned_date": now_utc,
                "returned_by": actor.id,
                "updated_at": now_utc,
            }},
            return_document=ReturnDocument.BEFORE,
            session=session,
        )
        if before is None:
            return None
        compensations.append(lambda: self._reopen_borrow(borrow_id, before, session))
        logger.info(f"Borrow request {borrow_id} closed: all units returned via return requests.")
        return before

    async def _reopen_borrow(self, borrow_id: ObjectId, before: dict, session) -> None:
        result = await BorrowRequest.get_motor_collection().update_one(
            {"_id": borrow_id, "status": BorrowRequestStatus.DIKEMBALIKAN.value},
            {"$set": {
                "status": BorrowRequestStatus.DIPROSES.value,
                "returned_date": before.get("returned_date"),
                "returned_by": before.get("returned_by"),
                "updated_at": before.get("updated_at"),
            }},
            session=session,
        )
        if result.matched_count == 0:
            logger.error(f"CRITICAL: could not reopen borrow request {borrow_id}.")

    async def _compensate(self, compensations: List[Compensation], collection, request_id: ObjectId, target: Enum, previous: dict) -> None:
        for undo in reversed(compensations):
            try:
                await undo()
            except Exception as e:
                logger.error(f"CRITICAL: compensation step failed for request {request_id}: {e}", exc_info=True)
        result = await collection.update_one({"_id": request_id, "status": target.value}, {"$set": previous})
        if result.matched_count == 0:
            logger.error(f"CRITICAL: could not restore request {request_id} to '{_raw(previous.get('status'))}'.")
        else:
            logger.warning(f"Request {request_id} restored to '{_raw(previous.get('status'))}' after failed transition.")

    async def _notify_borrow_closed(self, before: dict, actor: Actor) -> None:
        await self._notify(audit.TransitionEvent(
            actor_id=actor.id, role=actor.role, request_type=RequestType.BORROW, request_id=before["_id"],
            requester_id=before["requester_id"], from_status=BorrowRequestStatus.DIPROSES.value,
            to_status=BorrowRequestStatus.DIKEMBALIKAN.value,
            notes="Semua unit telah dikembalikan melalui pengajuan pengembalian.",
        ))

    async def _notify(self, event: audit.TransitionEvent) -> None:
        try:
            await self.emitter(event)
        except Exception as e:
            logger.error(f"Notification emitter failed for {event.request_type.value} {event.request_id}: {e}", exc_info=True)


workflow = RequestWorkflow()


def get_workflow() -> RequestWorkflow:
    return workflow
