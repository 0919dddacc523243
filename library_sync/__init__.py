"""
library-sync: reconciliação de status do cliente da biblioteca.
"""

from library_sync.core.config import Settings, get_settings
from library_sync.core.deps import LibrarySyncContext, build_context, library_sync
from library_sync.core.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    HtmlResponseError,
    LibraryClientError,
    MalformedResponseError,
    NetworkError,
    UnclassifiedServerError,
)
from library_sync.models.enums import ReservationStatus, SyncState
from library_sync.schemas.sync import ClearPendingEvent, StatusSets, SyncSnapshot
from library_sync.services.alias_store import LocalAliasStore
from library_sync.services.gateway import LibraryGateway
from library_sync.services.status_sync import StatusSyncEngine

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "LibrarySyncContext",
    "build_context",
    "library_sync",
    "AuthenticationError",
    "BusinessRuleError",
    "HtmlResponseError",
    "LibraryClientError",
    "MalformedResponseError",
    "NetworkError",
    "UnclassifiedServerError",
    "ReservationStatus",
    "SyncState",
    "ClearPendingEvent",
    "StatusSets",
    "SyncSnapshot",
    "LocalAliasStore",
    "LibraryGateway",
    "StatusSyncEngine",
]
