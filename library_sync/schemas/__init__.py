"""
Schemas Pydantic da biblioteca.
"""

from library_sync.schemas.base import ApiEnvelope, ApiErrorDetail, BaseSchema
from library_sync.schemas.sync import CachedSnapshot, ClearPendingEvent, StatusSets, SyncSnapshot

__all__ = [
    "ApiEnvelope",
    "ApiErrorDetail",
    "BaseSchema",
    "CachedSnapshot",
    "ClearPendingEvent",
    "StatusSets",
    "SyncSnapshot",
]
