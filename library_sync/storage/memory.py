"""
Armazenamento em memória, sem persistência entre processos.
"""

from typing import Optional

from library_sync.storage.base import KeyValueStorage


class MemoryStorage(KeyValueStorage):
    """Dicionário simples; útil para testes e execuções efêmeras."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
