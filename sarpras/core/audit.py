# sarpras/core/audit.py
"""Pencatat audit + notifikasi in-app.

Dipanggil setelah transisi berhasil. Best-effort: kegagalan dicatat di log
dan tidak pernah dilempar ke pemanggil, jadi tidak pernah membatalkan
transisi yang sudah terjadi.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from loguru import logger

from sarpras.models.enum import RequestType, UserRole
from sarpras.models.notification import Notification
from sarpras.models.transition_log import TransitionLog
from sarpras.models.user import User

REQUEST_LABELS = {
    RequestType.CONSUMABLE: "Permintaan barang habis pakai",
    RequestType.BORROW: "Permintaan peminjaman",
    RequestType.RETURN: "Pengajuan pengembalian",
}

# Role yang harus bertindak berikutnya, per (tipe, status baru)
NEXT_ACTOR_ROLE = {
    (RequestType.CONSUMABLE, "Pending"): UserRole.HEADMASTER,
    (RequestType.CONSUMABLE, "ApprovedByHeadmaster"): UserRole.ADMIN,
    (RequestType.BORROW, "Pending"): UserRole.HEADMASTER,
    (RequestType.BORROW, "Disetujui"): UserRole.ADMIN,
    (RequestType.RETURN, "Pending"): UserRole.ADMIN,
}


@dataclass
class TransitionEvent:
    actor_id: ObjectId
    role: UserRole
    request_type: RequestType
    request_id: ObjectId
    requester_id: ObjectId
    to_status: str
    from_status: Optional[str] = None
    notes: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _message(event: TransitionEvent) -> str:
    label = REQUEST_LABELS[event.request_type]
    if event.from_status is None:
        return f"{label} baru menunggu tindakan Anda."
    return f"{label} Anda berubah status dari {event.from_status} menjadi {event.to_status}."


async def _recipients_for_role(role: UserRole) -> List[ObjectId]:
    users = await User.find({"role": role.value, "disabled": False}).to_list()
    return [u.id for u in users]


async def emit(event: TransitionEvent) -> None:
    """Catat audit lalu kirim notifikasi. Tidak pernah raise."""
    try:
        await TransitionLog(
            actor_id=event.actor_id,
            role=event.role,
            request_type=event.request_type,
            request_id=event.request_id,
            from_status=event.from_status,
            to_status=event.to_status,
            notes=event.notes,
            timestamp=event.timestamp,
        ).insert()
    except Exception as e:
        logger.error(f"Failed to write audit log for {event.request_type.value} request {event.request_id}: {e}", exc_info=True)

    try:
        notifications: List[Notification] = []
        notif_type = f"{event.request_type.value}_request.{event.to_status}"

        # Pemohon diberi tahu setiap perubahan status (kecuali dia sendiri pelakunya)
        if event.from_status is not None and event.requester_id != event.actor_id:
            notifications.append(Notification(
                recipient_user_id=event.requester_id, type=notif_type,
                message=_message(event), related_id=event.request_id,
            ))

        next_role = NEXT_ACTOR_ROLE.get((event.request_type, event.to_status))
        if next_role is not None:
            label = REQUEST_LABELS[event.request_type]
            for user_id in await _recipients_for_role(next_role):
                if user_id == event.actor_id:
                    continue
                notifications.append(Notification(
                    recipient_user_id=user_id, type=notif_type,
                    message=f"{label} menunggu tindakan Anda (status: {event.to_status}).",
                    related_id=event.request_id,
                ))

        if notifications:
            await Notification.insert_many(notifications)
            logger.debug(f"Sent {len(notifications)} notification(s) for {notif_type} {event.request_id}.")
    except Exception as e:
        logger.error(f"Failed to send notifications for {event.request_type.value} request {event.request_id}: {e}", exc_info=True)


async def request_history(request_type: RequestType, request_id: ObjectId) -> List[TransitionLog]:
    return await TransitionLog.find(
        {"request_type": request_type.value, "request_id": request_id},
        sort=[("timestamp", 1)],
    ).to_list()
