"""
Fixtures compartilhadas para testes.
"""

import json
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from library_sync.core.config import Settings
from library_sync.services.alias_store import LocalAliasStore
from library_sync.services.gateway import LibraryGateway
from library_sync.storage.memory import MemoryStorage

API_ROOT = "http://test/api"
USER_ID = "u1"


# ==========================================
# Settings / storage
# ==========================================

@pytest.fixture
def settings() -> Settings:
    """Configurações de teste: sem atraso entre tentativas, storage em memória."""
    return Settings(
        API_BASE_URL="http://test",
        API_PREFIX="/api",
        HTTP_MAX_RETRIES=2,
        HTTP_RETRY_DELAY_SECONDS=0,
        SYNC_INTERVAL_SECONDS=0.01,
        STORAGE_BACKEND="memory",
    )


@pytest.fixture
def storage() -> MemoryStorage:
    """Storage com token e usuário já gravados pelo app hospedeiro."""
    return MemoryStorage({
        "authToken": "token-123",
        "userData": json.dumps({"id": USER_ID, "name": "Leitor"}),
    })


@pytest.fixture
def empty_storage() -> MemoryStorage:
    """Storage vazio (usuário deslogado)."""
    return MemoryStorage()


@pytest.fixture
def alias_store(storage: MemoryStorage) -> LocalAliasStore:
    return LocalAliasStore(storage)


# ==========================================
# Gateway
# ==========================================

@pytest_asyncio.fixture
async def gateway(settings: Settings, storage: MemoryStorage) -> AsyncGenerator[LibraryGateway, None]:
    """Gateway real; as respostas HTTP são simuladas com respx."""
    gw = LibraryGateway(settings=settings, storage=storage)
    yield gw
    await gw.close()


# ==========================================
# Sample payloads
# ==========================================

@pytest.fixture
def sample_book() -> dict:
    """Título com uma cópia disponível e duas emprestadas."""
    return {
        "id": "B1",
        "title": "Dom Casmurro",
        "availableCopies": 1,
        "totalCopies": 3,
        "copies": [
            {"id": "c0", "copyNumber": "4", "status": "AVAILABLE"},
            {"id": "c1", "copyNumber": "5", "status": "BORROWED"},
            {"id": "c2", "copyId": "alt-2", "copyNumber": "6", "status": "borrowed"},
        ],
    }
