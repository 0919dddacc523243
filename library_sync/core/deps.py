"""
Montagem dos componentes da biblioteca.

O app hospedeiro cria um único LibrarySyncContext e o repassa às telas,
em vez de depender de estado global de módulo.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from library_sync.core.config import Settings, get_settings
from library_sync.core.logging import get_logger
from library_sync.services.alias_store import LocalAliasStore
from library_sync.services.gateway import LibraryGateway
from library_sync.services.notifications import NotificationTracker
from library_sync.services.reservations import ReservationService
from library_sync.services.status_sync import StatusSyncEngine
from library_sync.storage import KeyValueStorage, create_storage

logger = get_logger(__name__)


@dataclass
class LibrarySyncContext:
    """Componentes compartilhados por todas as telas."""
    settings: Settings
    storage: KeyValueStorage
    gateway: LibraryGateway
    alias_store: LocalAliasStore
    engine: StatusSyncEngine
    reservations: ReservationService
    notifications: NotificationTracker

    async def close(self) -> None:
        """Descarta o motor e fecha conexões."""
        await self.engine.dispose()
        await self.gateway.close()
        await self.storage.close()


def build_context(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
) -> LibrarySyncContext:
    """
    Cria todos os componentes ligados entre si.

    Args:
        settings: Configurações (default: get_settings())
        storage: Storage já criado (default: conforme STORAGE_BACKEND)
    """
    settings = settings or get_settings()
    storage = storage or create_storage(settings)
    gateway = LibraryGateway(settings=settings, storage=storage)
    alias_store = LocalAliasStore(storage)
    engine = StatusSyncEngine(gateway, storage=storage)
    return LibrarySyncContext(
        settings=settings,
        storage=storage,
        gateway=gateway,
        alias_store=alias_store,
        engine=engine,
        reservations=ReservationService(gateway, alias_store, engine),
        notifications=NotificationTracker(storage, gateway),
    )


@asynccontextmanager
async def library_sync(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
    start: bool = True,
) -> AsyncIterator[LibrarySyncContext]:
    """
    Gerencia o ciclo de vida dos componentes.

    Startup:
        - Cria storage, gateway, memória local e motor
        - Inicia a sincronização (se start=True)

    Shutdown:
        - Para o motor e remove assinantes
        - Fecha o cliente HTTP e o storage
    """
    context = build_context(settings, storage)
    logger.info(f"Iniciando {context.settings.APP_NAME} ({context.settings.api_root})")
    if start:
        context.engine.start_sync()
    try:
        yield context
    finally:
        logger.info(f"Encerrando {context.settings.APP_NAME}")
        await context.close()
