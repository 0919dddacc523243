"""
Registro de assinantes e entrega de eventos de sincronização.
"""

import logging
from typing import Callable, Union

from library_sync.schemas.sync import ClearPendingEvent, SyncSnapshot

logger = logging.getLogger(__name__)

SyncEvent = Union[SyncSnapshot, ClearPendingEvent]
Subscriber = Callable[[SyncEvent], None]


class SubscriberRegistry:
    """
    Conjunto de callbacks interessados nos eventos do motor.

    Inscrever duas vezes ou remover algo ausente não tem efeito. A ordem de
    entrega não é garantida.
    """

    def __init__(self) -> None:
        self._subscribers: set[Subscriber] = set()

    def subscribe(self, callback: Subscriber) -> None:
        """Adiciona um assinante."""
        self._subscribers.add(callback)
        logger.debug(f"Assinante adicionado, total: {len(self._subscribers)}")

    def unsubscribe(self, callback: Subscriber) -> None:
        """Remove um assinante."""
        self._subscribers.discard(callback)
        logger.debug(f"Assinante removido, total: {len(self._subscribers)}")

    def publish(self, event: SyncEvent) -> int:
        """
        Entrega o evento a todos os assinantes, de forma síncrona.

        Um callback que falha é registrado no log e não impede a entrega
        aos demais.

        Returns:
            Número de callbacks que receberam o evento sem erro
        """
        delivered = 0
        # Cópia: um callback pode se desinscrever durante a entrega
        for callback in list(self._subscribers):
            try:
                callback(event)
                delivered += 1
            except Exception:
                logger.exception(f"Erro no assinante {callback!r}")
        return delivered

    def clear(self) -> None:
        """Remove todos os assinantes."""
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, callback: object) -> bool:
        return callback in self._subscribers
