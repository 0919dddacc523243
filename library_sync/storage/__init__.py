"""
Backends de armazenamento chave-valor.
"""

from library_sync.core.config import Settings
from library_sync.storage.base import KeyValueStorage
from library_sync.storage.file import FileStorage
from library_sync.storage.memory import MemoryStorage


def create_storage(settings: Settings) -> KeyValueStorage:
    """
    Cria o backend configurado em STORAGE_BACKEND.

    Raises:
        ValueError: Backend desconhecido
    """
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(settings.STORAGE_PATH)
    if backend == "redis":
        from library_sync.storage.redis import RedisStorage
        return RedisStorage.from_url(settings.REDIS_URL)
    raise ValueError(f"STORAGE_BACKEND desconhecido: {settings.STORAGE_BACKEND}")


__all__ = [
    "KeyValueStorage",
    "FileStorage",
    "MemoryStorage",
    "create_storage",
]
