# sarpras/core/errors.py
"""Taksonomi error domain untuk workflow permintaan barang.

Semua error membawa pesan yang bisa dibaca manusia; handler di ``main.py``
memetakan tiap kelas ke status HTTP.
"""
from typing import Optional


class WorkflowError(Exception):
    """Base class untuk semua error workflow."""
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Input tidak valid: kuantitas, barang, tipe barang, atau tanggal."""
    status_code = 400


class AuthError(WorkflowError):
    """Aktor tidak punya role atau kepemilikan untuk aksi ini."""
    status_code = 403


class NotFoundError(WorkflowError):
    status_code = 404


class InvalidTransitionError(WorkflowError):
    """Status tujuan bukan successor yang sah dari status saat ini."""
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class InsufficientStockError(WorkflowError):
    """Penyesuaian stok akan membuat quantity barang negatif."""
    status_code = 409

    def __init__(self, message: str, available: Optional[int] = None, requested: Optional[int] = None):
        super().__init__(message)
        self.available = available
        self.requested = requested
