"""
Interface de armazenamento chave-valor persistente.

Equivalente ao AsyncStorage de um app móvel: chaves e valores são strings,
valores estruturados são gravados como JSON pelo chamador.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """Armazenamento assíncrono de strings por chave."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Retorna o valor ou None se a chave não existir."""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Grava o valor, substituindo o anterior."""

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove a chave; não falha se ela não existir."""

    async def close(self) -> None:
        """Libera recursos (conexões, arquivos)."""
        return None
