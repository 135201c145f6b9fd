# sarpras/models/enum.py
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    HEADMASTER = "Kepala Sekolah"
    USER = "Pengguna"


class Instansi(str, Enum):
    BPH = "BPH"
    TKIT = "TKIT"
    SDIT = "SDIT"
    SMPIT = "SMPIT"
    SMKIT = "SMKIT"
    BK = "BK"


class ItemType(str, Enum):
    CONSUMABLE = "consumable"  # Habis pakai
    RETURNABLE = "returnable"  # Dipinjam lalu dikembalikan


class RequestType(str, Enum):
    CONSUMABLE = "consumable"
    BORROW = "borrow"
    RETURN = "return"


class ConsumableRequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED_BY_HEADMASTER = "ApprovedByHeadmaster"
    APPROVED = "Approved"  # Diproses / diserahkan oleh Admin
    REJECTED = "Rejected"


class BorrowRequestStatus(str, Enum):
    PENDING = "Pending"
    DISETUJUI = "Disetujui"        # Disetujui Kepala Sekolah
    DIPROSES = "Diproses"          # Barang sudah diserahkan Admin
    DIKEMBALIKAN = "Dikembalikan"  # Barang sudah diterima kembali
    DITOLAK = "Ditolak"


class ReturnRequestStatus(str, Enum):
    PENDING = "Pending"
    DISETUJUI = "Disetujui"
    DITOLAK = "Ditolak"


class StockMovementType(str, Enum):
    OUT = "OUT"                # Debit karena permintaan (serah terima / pemrosesan)
    IN = "IN"                  # Kredit karena pengembalian
    ADJUSTMENT = "ADJUSTMENT"  # Koreksi manual oleh Admin


STATUS_ENUMS = {
    RequestType.CONSUMABLE: ConsumableRequestStatus,
    RequestType.BORROW: BorrowRequestStatus,
    RequestType.RETURN: ReturnRequestStatus,
}
