"""
Service para as ações de reserva e empréstimo disparadas pela interface.

Fluxo típico:
    ação do usuário -> gateway -> memória local de reservas -> force_sync()

Erros classificados do gateway são propagados para o chamador exibir; eles
nunca afetam o loop de sincronização, que é independente.
"""

import logging
from typing import Any, Iterable, Mapping, Optional

from library_sync.core.exceptions import BusinessRuleError
from library_sync.models.enums import ErrorType
from library_sync.services.alias_store import LocalAliasStore
from library_sync.services.gateway import LibraryGateway
from library_sync.services.identity import copy_number, first_field
from library_sync.services.status_sync import StatusSyncEngine

logger = logging.getLogger(__name__)

# Conflitos que confirmam que a reserva já existe no servidor
ALREADY_RESERVED_CODES = frozenset({
    ErrorType.DUPLICATE_RESERVATION.value,
    ErrorType.ALREADY_RESERVED.value,
})


class ReservationService:
    """Service para reservar, cancelar e pedir empréstimo."""

    def __init__(
        self,
        gateway: LibraryGateway,
        alias_store: LocalAliasStore,
        engine: Optional[StatusSyncEngine] = None,
    ):
        self.gateway = gateway
        self.alias_store = alias_store
        self.engine = engine

    async def _refresh(self) -> None:
        if self.engine is not None:
            await self.engine.force_sync()

    async def reserve_copy(
        self,
        book_id: Any,
        copy: Optional[Mapping[str, Any]] = None,
        payload: Optional[dict] = None,
    ) -> Any:
        """
        Cria uma reserva e marca a cópia como pendente localmente.

        Em conflito "já reservado" os aliases também são gravados, já que o
        servidor confirma que a reserva existe, e o erro é propagado.

        Args:
            book_id: Título a reservar
            copy: Cópia selecionada (opcional)
            payload: Corpo extra da requisição

        Returns:
            Resposta do backend

        Raises:
            LibraryClientError: Erro classificado do gateway
        """
        body = dict(payload or {})
        number = copy_number(copy)
        if number is not None:
            body.setdefault("copyNumber", number)

        try:
            response = await self.gateway.create_reservation(book_id, body)
        except BusinessRuleError as e:
            if e.error_code in ALREADY_RESERVED_CODES and copy is not None:
                logger.info(f"Reserva já existente para o título {book_id}; gravando aliases localmente")
                await self.alias_store.add_aliases(book_id, copy)
                await self._refresh()
            raise

        if copy is not None:
            await self.alias_store.add_aliases(book_id, copy)
        await self._refresh()
        return response

    async def cancel_reservation(
        self,
        reservation_id: Any,
        book_id: Any,
        aliases: Iterable[str] = (),
        reason: Optional[str] = None,
    ) -> Any:
        """
        Cancela a reserva e remove os aliases informados da memória local.

        Apenas os aliases passados são removidos; para esquecer a cópia
        inteira passe todos os aliases dela.
        """
        response = await self.gateway.cancel_reservation(reservation_id, reason)
        aliases = list(aliases)
        if aliases:
            await self.alias_store.remove_aliases(book_id, aliases)
        await self._refresh()
        return response

    async def request_borrow(
        self,
        book_id: Any,
        copy: Optional[Mapping[str, Any]] = None,
        payload: Optional[dict] = None,
    ) -> Any:
        """Envia um pedido de empréstimo e dispara uma reconciliação."""
        body = dict(payload or {})
        if copy is not None:
            copy_id = first_field(copy, ("id", "copyId", "copy_id"))
            if copy_id:
                body.setdefault("copyId", copy_id)

        response = await self.gateway.create_borrow_request(book_id, body)
        await self._refresh()
        return response

    async def load_reserved_aliases(
        self,
        book_id: Any,
        book: Optional[Mapping[str, Any]] = None,
        selected_copy: Optional[Mapping[str, Any]] = None,
    ) -> set[str]:
        """
        Aliases a exibir como "reserva pendente" para o título.

        Falhas ao consultar o servidor degradam para a memória local.
        """
        try:
            reservations = await self.gateway.get_user_reservations("all")
        except Exception as e:
            logger.warning(f"Não foi possível consultar reservas do título {book_id}: {e}")
            return await self.alias_store.get_aliases(book_id)

        return await self.alias_store.resolve_with_server(book_id, reservations, book, selected_copy)
