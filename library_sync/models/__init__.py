"""
Enums e constantes de domínio.
"""

from library_sync.models.enums import ErrorType, ReservationStatus, SyncState

__all__ = [
    "ErrorType",
    "ReservationStatus",
    "SyncState",
]
