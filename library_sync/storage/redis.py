"""
Armazenamento em Redis.

Útil quando o cliente roda em um processo servidor (ex.: BFF) e vários
workers precisam compartilhar a memória local de reservas.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from library_sync.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)


class RedisStorage(KeyValueStorage):
    """
    Chaves gravadas com prefixo para não colidir com outros usos do Redis.

    Args:
        client: Cliente redis.asyncio já criado (decode_responses=True)
        prefix: Prefixo das chaves (default: "library_sync")
    """

    def __init__(self, client: redis.Redis, prefix: str = "library_sync"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "library_sync") -> "RedisStorage":
        """Cria o storage a partir de uma URL Redis."""
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
        )
        return cls(client, prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get_item(self, key: str) -> Optional[str]:
        return await self.client.get(self._key(key))

    async def set_item(self, key: str, value: str) -> None:
        await self.client.set(self._key(key), value)

    async def remove_item(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def ping(self) -> bool:
        """
        Verifica se a conexão com o Redis está funcionando.

        Returns:
            True se conectou com sucesso, False caso contrário.
        """
        try:
            await self.client.ping()
            return True
        except Exception as e:
            logger.warning(f"Erro ao verificar conexão Redis: {e}")
            return False

    async def close(self) -> None:
        """Fecha a conexão com o Redis."""
        await self.client.close()
