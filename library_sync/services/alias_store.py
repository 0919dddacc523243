"""
Memória local de reservas pendentes.

Guarda, por título, os aliases das cópias que o cliente acredita estarem
com reserva pendente. Cobre lacunas do backend: reservas sem copyId,
consistência eventual logo após o envio e corridas de envio duplicado.

Regras:
    - Escrita otimista após reservar com sucesso ou após "já reservado"
    - Remoção por alias ao cancelar, ou do registro inteiro quando o
      servidor não mostra mais reserva ativa para o título
    - Sem TTL: um registro velho só adiciona marcações conservadoras
    - Falhas de armazenamento nunca propagam (viram conjunto vazio)
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

from library_sync.models.enums import ACTIVE_RESERVATION_STATUSES, BORROWED_COPY_STATUSES
from library_sync.services.identity import (
    REQUEST_BOOK_ID_FIELDS,
    REQUEST_COPY_ID_FIELDS,
    copy_aliases,
    copy_key,
    extract_rows,
    first_field,
    normalize_status,
)
from library_sync.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

KEY_PREFIX = "reserved_copy_ids_"


def storage_key(book_id: Any) -> str:
    """Chave de armazenamento do registro de um título."""
    return f"{KEY_PREFIX}{book_id}"


class LocalAliasStore:
    """
    Conjunto persistente de aliases "reserva pendente" por título.

    Leitura-modificação-escrita do mesmo título é serializada por um
    asyncio.Lock por título, já que o storage pode suspender entre a
    leitura e a escrita.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, book_id: Any) -> AsyncIterator[None]:
        # O lock do título some quando ninguém mais o segura ou espera
        key = str(book_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def get_aliases(self, book_id: Any) -> set[str]:
        """
        Retorna os aliases registrados para o título.

        Registro ausente, corrompido ou storage indisponível → conjunto vazio.
        """
        try:
            raw = await self.storage.get_item(storage_key(book_id))
            if not raw:
                return set()
            data = json.loads(raw)
            if not isinstance(data, list):
                logger.warning(f"Registro de aliases inválido para o título {book_id}")
                return set()
            return {str(item) for item in data if item is not None and str(item) != ""}
        except Exception as e:
            logger.warning(f"Erro ao ler aliases do título {book_id}: {e}")
            return set()

    async def _write(self, book_id: Any, aliases: set[str]) -> None:
        try:
            if aliases:
                await self.storage.set_item(storage_key(book_id), json.dumps(sorted(aliases)))
            else:
                await self.storage.remove_item(storage_key(book_id))
        except Exception as e:
            logger.warning(f"Erro ao gravar aliases do título {book_id}: {e}")

    async def add_aliases(self, book_id: Any, copy: Optional[Mapping[str, Any]]) -> set[str]:
        """
        Registra todos os aliases da cópia (incluindo "num:<número>").

        Idempotente.

        Returns:
            Conjunto resultante para o título
        """
        return await self.add_alias_set(book_id, copy_aliases(copy))

    async def add_alias(self, book_id: Any, alias: Any) -> set[str]:
        """Registra um único alias."""
        if alias is None or str(alias) == "":
            return await self.get_aliases(book_id)
        return await self.add_alias_set(book_id, {str(alias)})

    async def add_alias_set(self, book_id: Any, aliases: Iterable[str]) -> set[str]:
        """Une `aliases` ao registro do título."""
        new = {str(a) for a in aliases}
        async with self._locked(book_id):
            current = await self.get_aliases(book_id)
            if new <= current:
                return current
            merged = current | new
            await self._write(book_id, merged)
            return merged

    async def remove_alias(self, book_id: Any, alias: Any) -> set[str]:
        """Remove um único alias; os demais aliases da mesma cópia ficam."""
        return await self.remove_aliases(book_id, [alias])

    async def remove_aliases(self, book_id: Any, aliases: Iterable[Any]) -> set[str]:
        """Remove vários aliases de uma vez."""
        gone = {str(a) for a in aliases if a is not None}
        async with self._locked(book_id):
            current = await self.get_aliases(book_id)
            if not current & gone:
                return current
            remaining = current - gone
            await self._write(book_id, remaining)
            return remaining

    async def clear(self, book_id: Any) -> None:
        """Remove o registro inteiro do título."""
        async with self._locked(book_id):
            await self._write(book_id, set())

    async def contains(self, book_id: Any, aliases: Iterable[Any]) -> bool:
        """Verifica se qualquer um dos aliases está registrado."""
        keys = {str(a) for a in aliases if a is not None}
        return bool(keys & await self.get_aliases(book_id))

    async def seed_fallback(
        self,
        book_id: Any,
        book: Optional[Mapping[str, Any]],
        selected_copy: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """
        Palpite de qual cópia uma reserva sem copyId se refere.

        Usa a cópia selecionada ou, sem seleção, a primeira cópia emprestada
        do título. Pode atribuir a marcação à cópia errada quando o usuário
        tem várias cópias emprestadas do mesmo título.

        Returns:
            Alias registrado ou None se não houve candidato
        """
        candidate = copy_key(selected_copy)
        source = "cópia selecionada"
        if candidate is None:
            copies = (book or {}).get("copies") or []
            borrowed = next(
                (
                    c for c in copies
                    if isinstance(c, Mapping)
                    and normalize_status(c.get("status")) in BORROWED_COPY_STATUSES
                ),
                None,
            )
            candidate = copy_key(borrowed)
            source = "primeira cópia emprestada"

        if candidate is None:
            logger.info(f"Reserva sem copyId para o título {book_id} e nenhuma cópia candidata")
            return None

        logger.warning(
            f"Reserva sem copyId para o título {book_id}; "
            f"marcando {candidate} ({source}) como pendente por palpite"
        )
        await self.add_alias(book_id, candidate)
        return candidate

    async def resolve_with_server(
        self,
        book_id: Any,
        reservations: Any,
        book: Optional[Mapping[str, Any]] = None,
        selected_copy: Optional[Mapping[str, Any]] = None,
    ) -> set[str]:
        """
        Combina a memória local com as reservas ativas do servidor.

        - Servidor sem reserva ativa para o título: registro local é apagado
        - Servidor com reserva, mas sem nenhum copyId e nada local: aplica
          o palpite de seed_fallback
        - Caso contrário: união de aliases locais e copyIds do servidor

        Args:
            book_id: Título consultado
            reservations: Resposta de get_user_reservations("all")
            book: Título com `copies`, usado pelo palpite
            selected_copy: Cópia selecionada na tela, usada pelo palpite

        Returns:
            Aliases a exibir como "reserva pendente"
        """
        target = str(book_id)
        mine = [
            row for row in extract_rows(reservations, "reservations")
            if normalize_status(row.get("status")) in ACTIVE_RESERVATION_STATUSES
            and first_field(row, REQUEST_BOOK_ID_FIELDS) == target
        ]
        local = await self.get_aliases(book_id)

        if not mine:
            if local:
                logger.info(f"Sem reserva ativa no servidor para o título {book_id}; limpando memória local")
                await self.clear(book_id)
            return set()

        server_ids = {
            copy_id for copy_id in (first_field(row, REQUEST_COPY_ID_FIELDS) for row in mine)
            if copy_id
        }
        merged = local | server_ids

        if not merged and book is not None:
            seeded = await self.seed_fallback(book_id, book, selected_copy)
            if seeded:
                merged = {seeded}

        return merged
