"""
Schemas Pydantic para o resultado da sincronização.

Todos os modelos são imutáveis: os assinantes recebem a mesma instância e
não conseguem alterar o estado interno do motor.
"""

from datetime import datetime, timezone
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from library_sync.models.enums import ReservationStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusSets(BaseModel):
    """Conjuntos de ids por status (cópias ou títulos)."""
    model_config = ConfigDict(frozen=True)

    borrowed: frozenset[str] = frozenset()
    pending: frozenset[str] = frozenset()
    reserved: frozenset[str] = frozenset()

    def status_of(
        self,
        ids: Iterable[str],
        local_reserved: Iterable[str] = (),
    ) -> ReservationStatus:
        """
        Resolve o status de um item referenciado por qualquer um dos ids.

        Precedência: BORROWED > RESERVED > PENDING > AVAILABLE. Ids em
        `local_reserved` (memória local de reservas) contam como RESERVED.
        """
        keys = {str(i) for i in ids if i is not None and str(i) != ""}
        if keys & self.borrowed:
            return ReservationStatus.BORROWED
        if keys & self.reserved or keys & {str(i) for i in local_reserved}:
            return ReservationStatus.RESERVED
        if keys & self.pending:
            return ReservationStatus.PENDING
        return ReservationStatus.AVAILABLE


class SyncSnapshot(BaseModel):
    """Resultado reconciliado de um pass do motor."""
    model_config = ConfigDict(frozen=True)

    copy_statuses: StatusSets = Field(default_factory=StatusSets)
    book_statuses: StatusSets = Field(default_factory=StatusSets)
    timestamp: datetime = Field(default_factory=_utcnow)

    def status_for_copy(
        self,
        aliases: Iterable[str],
        local_reserved: Iterable[str] = (),
    ) -> ReservationStatus:
        """Status de uma cópia dado o seu conjunto de aliases."""
        return self.copy_statuses.status_of(aliases, local_reserved)

    def status_for_book(self, book_id: str) -> ReservationStatus:
        """Status de um título."""
        return self.book_statuses.status_of([book_id])


class ClearPendingEvent(BaseModel):
    """
    Evento delta "limpar pendentes".

    Disparado fora do ciclo de polling (ex.: aprovação observada); os
    assinantes removem os ids do seu conjunto de pendentes sem esperar o
    próximo pass.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["copies", "books"]
    ids: frozenset[str]
    timestamp: datetime = Field(default_factory=_utcnow)


class CachedSnapshot(SyncSnapshot):
    """Snapshot persistido em `status_sync_cache`."""
    last_updated: Optional[datetime] = None
