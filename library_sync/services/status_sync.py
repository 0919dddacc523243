"""
Motor de sincronização de status.

A cada intervalo fixo busca no backend os livros emprestados, os pedidos de
empréstimo e as reservas do usuário, reconcilia tudo em um SyncSnapshot e
entrega o resultado aos assinantes.

Regras:
    - Nunca há dois passes simultâneos: ticks do timer durante um pass são
      descartados e force_sync() aguarda o pass em andamento
    - Erro de autenticação para o motor (sem novas tentativas)
    - Outros erros abandonam o pass sem snapshot parcial; o loop continua
    - Se o motor for parado durante um pass, o resultado é descartado
    - Sem backoff: o intervalo é sempre o mesmo
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from library_sync.core.exceptions import AuthenticationError, LibraryClientError
from library_sync.models.enums import ReservationStatus, SyncState
from library_sync.schemas.sync import CachedSnapshot, ClearPendingEvent, SyncSnapshot
from library_sync.services.gateway import LibraryGateway
from library_sync.services.notifier import Subscriber, SubscriberRegistry
from library_sync.services.reconciliation import reconcile
from library_sync.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

STATUS_SYNC_CACHE_KEY = "status_sync_cache"


class StatusSyncEngine:
    """
    Motor de reconciliação com ciclo de vida explícito.

    Uso:
        engine = StatusSyncEngine(gateway)
        engine.subscribe(on_status)
        engine.start_sync()
        ...
        await engine.dispose()
    """

    def __init__(
        self,
        gateway: LibraryGateway,
        storage: Optional[KeyValueStorage] = None,
        notifier: Optional[SubscriberRegistry] = None,
        interval: Optional[float] = None,
    ):
        """
        Args:
            gateway: Gateway usado para as três consultas
            storage: Onde persistir o último snapshot (default: o do gateway)
            notifier: Registro de assinantes (default: um novo)
            interval: Segundos entre passes (default: SYNC_INTERVAL_SECONDS)
        """
        self.gateway = gateway
        self.storage = storage or gateway.storage
        self.notifier = notifier or SubscriberRegistry()
        self.interval = interval if interval is not None else gateway.settings.SYNC_INTERVAL_SECONDS
        self.state = SyncState.STOPPED
        self.last_snapshot: Optional[SyncSnapshot] = None
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_generation = 0
        self._generation = 0
        self._disposed = False

    @property
    def is_running(self) -> bool:
        return self.state is SyncState.RUNNING

    @property
    def pass_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ==========================================
    # Subscribers
    # ==========================================

    def subscribe(self, callback: Subscriber) -> None:
        self.notifier.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self.notifier.unsubscribe(callback)

    # ==========================================
    # Lifecycle
    # ==========================================

    def start_sync(self) -> None:
        """
        STOPPED -> RUNNING.

        Deve ser chamado com um event loop em execução. O primeiro pass
        acontece após um intervalo; use force_sync() para antecipá-lo.
        """
        if self._disposed:
            raise RuntimeError("StatusSyncEngine já foi descartado")
        if self.state is SyncState.RUNNING:
            logger.debug("Sincronização já está em execução")
            return

        self.state = SyncState.RUNNING
        self._timer = asyncio.get_running_loop().create_task(
            self._run_timer(),
            name="library-sync-timer",
        )
        logger.info(f"Sincronização iniciada (intervalo de {self.interval}s)")

    def stop_sync(self) -> None:
        """
        RUNNING -> STOPPED.

        Cancela o timer. Um pass em andamento termina, mas seu resultado é
        descartado.
        """
        if self.state is SyncState.STOPPED and self._timer is None:
            return

        self.state = SyncState.STOPPED
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.info("Sincronização parada")

    async def dispose(self) -> None:
        """Para o motor, aguarda o pass em andamento e remove os assinantes."""
        self.stop_sync()
        self._disposed = True
        if self._inflight is not None:
            await asyncio.gather(self._inflight, return_exceptions=True)
            self._inflight = None
        self.notifier.clear()

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.pass_in_flight:
                logger.debug("Pass anterior ainda em andamento; tick ignorado")
                continue
            await self.perform_sync()

    # ==========================================
    # Passes
    # ==========================================

    async def perform_sync(self) -> Optional[SyncSnapshot]:
        """
        Executa um pass de reconciliação.

        Se já houver um pass em andamento, aguarda e devolve o resultado
        dele em vez de iniciar outro. Um pass iniciado antes do último
        stop_sync() terá o resultado descartado; nesse caso espera ele
        terminar e inicia um novo.

        Returns:
            Snapshot produzido, ou None se o pass foi pulado, falhou ou foi
            descartado
        """
        while True:
            task = self._inflight
            if task is None or task.done():
                task = asyncio.get_running_loop().create_task(self._sync_once())
                self._inflight = task
                self._inflight_generation = self._generation
                break
            if self._inflight_generation == self._generation:
                logger.debug("Aguardando pass em andamento")
                break
            logger.debug("Pass em andamento pertence a um ciclo encerrado; aguardando para iniciar outro")
            await asyncio.wait({task})
        return await asyncio.shield(task)

    async def force_sync(self) -> Optional[SyncSnapshot]:
        """Um pass imediato, sem alterar o estado RUNNING/STOPPED."""
        logger.info("Sincronização manual solicitada")
        return await self.perform_sync()

    async def _sync_once(self) -> Optional[SyncSnapshot]:
        generation = self._generation

        if not await self.gateway.has_valid_token():
            logger.info("Sem token de autenticação válido; parando sincronização")
            self.stop_sync()
            return None

        user_id = await self.gateway.get_current_user_id()
        if not user_id:
            logger.info("Usuário atual não identificado; pass ignorado")
            return None

        try:
            borrowed = await self.gateway.get_user_books(user_id, status="all", include_history=True)
            requests = await self.gateway.get_borrow_requests("all")
            reservations = await self.gateway.get_user_reservations("all")
            snapshot = reconcile(borrowed, requests, reservations)
        except AuthenticationError as e:
            logger.warning(f"Erro de autenticação durante a sincronização: {e.message}; parando")
            self.stop_sync()
            return None
        except LibraryClientError as e:
            logger.warning(f"Pass abandonado ({type(e).__name__}): {e.message}")
            return None
        except Exception:
            logger.exception("Erro inesperado durante a sincronização; pass abandonado")
            return None

        if generation != self._generation or self._disposed:
            logger.info("Motor parado durante o pass; resultado descartado")
            return None

        self.last_snapshot = snapshot
        delivered = self.notifier.publish(snapshot)
        logger.debug(f"Snapshot entregue a {delivered} assinante(s)")
        await self._update_local_cache(snapshot)
        return snapshot

    # ==========================================
    # Cold-start cache
    # ==========================================

    async def _update_local_cache(self, snapshot: SyncSnapshot) -> None:
        cached = CachedSnapshot(
            copy_statuses=snapshot.copy_statuses,
            book_statuses=snapshot.book_statuses,
            timestamp=snapshot.timestamp,
            last_updated=datetime.now(timezone.utc),
        )
        try:
            await self.storage.set_item(STATUS_SYNC_CACHE_KEY, cached.model_dump_json())
        except Exception as e:
            logger.warning(f"Erro ao atualizar cache local de status: {e}")

    async def get_cached_snapshot(self) -> Optional[CachedSnapshot]:
        """
        Último snapshot persistido, para exibição antes do primeiro pass.

        Returns:
            Snapshot em cache ou None se ausente/ilegível
        """
        try:
            raw = await self.storage.get_item(STATUS_SYNC_CACHE_KEY)
            if not raw:
                return None
            return CachedSnapshot.model_validate_json(raw)
        except Exception as e:
            logger.warning(f"Erro ao ler cache local de status: {e}")
            return None

    # ==========================================
    # Delta events
    # ==========================================

    def clear_pending_copy_ids(self, ids: Optional[Iterable[str]]) -> int:
        """
        Avisa os assinantes para remover cópias do conjunto de pendentes.

        Não altera last_snapshot; o próximo pass continua sendo a fonte
        de verdade.

        Returns:
            Número de assinantes que receberam o evento
        """
        return self._publish_clear("copies", ids)

    def clear_pending_book_ids(self, ids: Optional[Iterable[str]]) -> int:
        """Mesmo que clear_pending_copy_ids, para títulos."""
        return self._publish_clear("books", ids)

    def _publish_clear(self, kind: str, ids: Optional[Iterable[str]]) -> int:
        if ids is None or isinstance(ids, (str, bytes)):
            logger.warning(f"clear pending ({kind}) ignorado: esperado uma coleção de ids")
            return 0
        event = ClearPendingEvent(kind=kind, ids=frozenset(str(i) for i in ids))
        logger.info(f"Limpando pendentes ({kind}): {sorted(event.ids)}")
        return self.notifier.publish(event)

    # ==========================================
    # Queries
    # ==========================================

    def status_for_copy(
        self,
        aliases: Iterable[str],
        local_reserved: Iterable[str] = (),
    ) -> ReservationStatus:
        """Status de uma cópia no último snapshot; UNKNOWN antes do primeiro pass."""
        if self.last_snapshot is None:
            return ReservationStatus.UNKNOWN
        return self.last_snapshot.status_for_copy(aliases, local_reserved)

    def status_for_book(self, book_id: str) -> ReservationStatus:
        """Status de um título no último snapshot; UNKNOWN antes do primeiro pass."""
        if self.last_snapshot is None:
            return ReservationStatus.UNKNOWN
        return self.last_snapshot.status_for_book(book_id)
