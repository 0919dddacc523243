"""
Cache em memória para listagens do catálogo.

Configurável via variáveis de ambiente:
    - CATALOG_CACHE_ENABLED: bool (default: True) - Habilita/desabilita cache
    - CATALOG_CACHE_TTL_SECONDS: int (default: 300) - TTL das listagens

Uso:
    cache = CatalogCache()

    # Buscar do cache
    data = cache.get(key)
    if data is not None:
        return data

    # Buscar no backend e salvar no cache
    result = await gateway.request("GET", "books")
    cache.set(key, result)
    return result

Invalidação:
    # Qualquer escrita que afete disponibilidade invalida tudo
    cache.invalidate_all()
"""

import json
import logging
import time
from typing import Any, Callable, Optional

from library_sync.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class CatalogCache:
    """
    Cache TTL de respostas do catálogo.

    Não há invalidação parcial: reservas, pedidos e cancelamentos podem
    mudar a disponibilidade de qualquer listagem.
    """

    def __init__(
        self,
        ttl: Optional[int] = None,
        enabled: Optional[bool] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Inicializa o cache.

        Args:
            ttl: TTL padrão em segundos (default: config)
            enabled: Habilita o cache (default: config)
            settings: Configurações (default: get_settings())
            clock: Fonte de tempo monotônica, substituível em testes
        """
        settings = settings or get_settings()
        self.ttl = ttl if ttl is not None else settings.CATALOG_CACHE_TTL_SECONDS
        self.enabled = enabled if enabled is not None else settings.CATALOG_CACHE_ENABLED
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    @staticmethod
    def make_key(path: str, params: Optional[dict] = None) -> str:
        """Gera a chave a partir do caminho e dos parâmetros da consulta."""
        return f"{path}?{json.dumps(params or {}, sort_keys=True, default=str)}"

    def get(self, key: str) -> Optional[Any]:
        """
        Busca uma entrada válida.

        Returns:
            Dados em cache ou None se ausente/expirado
        """
        if not self.enabled:
            return None

        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, data = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return data

    def set(self, key: str, data: Any, ttl: Optional[int] = None) -> bool:
        """
        Salva uma entrada.

        Returns:
            True se salvou, False se o cache está desabilitado
        """
        if not self.enabled:
            return False

        self._entries[key] = (self._clock() + (ttl or self.ttl), data)
        return True

    def invalidate_all(self) -> int:
        """
        Invalida todo o cache.

        Returns:
            Número de entradas removidas
        """
        count = len(self._entries)
        self._entries.clear()
        if count:
            logger.debug(f"Cache do catálogo invalidado ({count} entradas)")
        return count

    def __len__(self) -> int:
        return len(self._entries)
