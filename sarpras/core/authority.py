# sarpras/core/authority.py
"""Tabel transisi dan resolver otoritas persetujuan.

Setiap tipe permintaan adalah state machine dengan ``status`` sebagai
diskriminan. Tabel di bawah adalah satu-satunya sumber kebenaran untuk
(1) successor yang sah dari sebuah status, (2) role yang boleh menjalankan
sebuah edge, dan (3) efek stok dari edge tersebut. Semua fungsi di modul ini
murni: tidak membaca database maupun state global.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Set, Tuple, Type
from enum import Enum

from bson import ObjectId
from loguru import logger

from sarpras.core.errors import AuthError, InvalidTransitionError, ValidationError
from sarpras.models.enum import (
    UserRole, RequestType, STATUS_ENUMS,
    ConsumableRequestStatus as CS, BorrowRequestStatus as BS, ReturnRequestStatus as RS,
)


# Efek stok sebuah edge
NO_STOCK_EFFECT = 0
DEBIT = -1   # Mengambil dari stok
CREDIT = 1   # Mengembalikan ke stok

HEADMASTER_ONLY = frozenset({UserRole.HEADMASTER})
ADMIN_ONLY = frozenset({UserRole.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Konteks aktor yang sudah diautentikasi, dikirim eksplisit ke setiap operasi."""
    id: ObjectId
    role: UserRole
    username: str = ""


@dataclass(frozen=True)
class Edge:
    source: Enum
    target: Enum
    action: str
    roles: FrozenSet[UserRole]
    stock_effect: int = NO_STOCK_EFFECT

    @property
    def touches_stock(self) -> bool:
        return self.stock_effect != NO_STOCK_EFFECT


TRANSITIONS: Dict[RequestType, Tuple[Edge, ...]] = {
    RequestType.CONSUMABLE: (
        Edge(CS.PENDING, CS.APPROVED_BY_HEADMASTER, "approve_by_headmaster", HEADMASTER_ONLY),
        Edge(CS.PENDING, CS.REJECTED, "reject", HEADMASTER_ONLY),
        Edge(CS.APPROVED_BY_HEADMASTER, CS.APPROVED, "admin_process", ADMIN_ONLY, DEBIT),
        Edge(CS.APPROVED_BY_HEADMASTER, CS.REJECTED, "reject", ADMIN_ONLY),
    ),
    RequestType.BORROW: (
        Edge(BS.PENDING, BS.DISETUJUI, "headmaster_approve", HEADMASTER_ONLY),
        Edge(BS.PENDING, BS.DITOLAK, "reject", HEADMASTER_ONLY),
        Edge(BS.DISETUJUI, BS.DIPROSES, "admin_handover", ADMIN_ONLY, DEBIT),
        Edge(BS.DISETUJUI, BS.DITOLAK, "reject", ADMIN_ONLY),
        Edge(BS.DIPROSES, BS.DIKEMBALIKAN, "admin_receive_return", ADMIN_ONLY, CREDIT),
    ),
    RequestType.RETURN: (
        Edge(RS.PENDING, RS.DISETUJUI, "approve", ADMIN_ONLY, CREDIT),
        Edge(RS.PENDING, RS.DITOLAK, "reject", ADMIN_ONLY),
    ),
}


def status_enum(request_type: RequestType) -> Type[Enum]:
    return STATUS_ENUMS[request_type]


def parse_status(request_type: RequestType, value) -> Enum:
    """Konversi string status ke enum milik tipe permintaan; ValidationError jika tidak dikenal."""
    enum_cls = status_enum(request_type)
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(s.value for s in enum_cls)
        raise ValidationError(
            f"Unknown {request_type.value} request status '{value}'. Expected one of: {allowed}."
        )


def initial_status(request_type: RequestType) -> Enum:
    return status_enum(request_type)("Pending")


def find_edge(request_type: RequestType, source, target) -> Optional[Edge]:
    for edge in TRANSITIONS[request_type]:
        if edge.source == source and edge.target == target:
            return edge
    return None


def successors(request_type: RequestType, current_status) -> Set[Enum]:
    return {e.target for e in TRANSITIONS[request_type] if e.source == current_status}


def is_terminal(request_type: RequestType, current_status) -> bool:
    return not successors(request_type, current_status)


def non_terminal_statuses(request_type: RequestType) -> Set[Enum]:
    return {s for s in status_enum(request_type) if not is_terminal(request_type, s)}


def roles_with_authority(request_type: RequestType) -> FrozenSet[UserRole]:
    roles: Set[UserRole] = set()
    for edge in TRANSITIONS[request_type]:
        roles |= edge.roles
    return frozenset(roles)


def permitted_transitions(role: UserRole, request_type: RequestType, current_status) -> Set[Enum]:
    """Status tujuan yang boleh dipilih ``role`` dari ``current_status``."""
    return {
        e.target for e in TRANSITIONS[request_type]
        if e.source == current_status and role in e.roles
    }


def authorize_transition(role: UserRole, request_type: RequestType, current_status, target_status) -> Edge:
    """Kembalikan edge yang sah untuk (role, current -> target) atau raise.

    Urutan pemeriksaan: role tanpa otoritas apa pun atas tipe ini -> AuthError;
    target bukan successor -> InvalidTransitionError; role tidak diizinkan pada
    edge tersebut -> AuthError.
    """
    if role not in roles_with_authority(request_type):
        logger.warning(f"Role '{role.value}' has no authority over {request_type.value} requests.")
        raise AuthError(f"Role '{role.value}' is not allowed to change {request_type.value} requests.")

    edge = find_edge(request_type, current_status, target_status)
    if edge is None:
        raise InvalidTransitionError(
            f"Cannot move {request_type.value} request from '{current_status.value}' "
            f"to '{target_status.value}'.",
            current_status=current_status.value,
        )

    if role not in edge.roles:
        logger.warning(
            f"Role '{role.value}' attempted {request_type.value} edge '{edge.action}' "
            f"({edge.source.value} -> {edge.target.value}) reserved for {[r.value for r in edge.roles]}."
        )
        raise AuthError(
            f"Role '{role.value}' may not move a {request_type.value} request "
            f"from '{edge.source.value}' to '{edge.target.value}'."
        )
    return edge
