"""
Controle de notificações lidas.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from library_sync.services.gateway import LibraryGateway
from library_sync.services.identity import extract_rows
from library_sync.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

LAST_SEEN_KEY = "notifications_last_seen_at"
ACTIVITY_TIME_FIELDS = ("createdAt", "time", "date")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class NotificationTracker:
    """Guarda quando o usuário viu as notificações e conta as novas."""

    def __init__(self, storage: KeyValueStorage, gateway: LibraryGateway):
        self.storage = storage
        self.gateway = gateway

    async def mark_seen_now(self) -> str:
        """Marca tudo como visto agora e devolve o timestamp ISO gravado."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            await self.storage.set_item(LAST_SEEN_KEY, now)
        except Exception as e:
            logger.warning(f"Erro ao gravar {LAST_SEEN_KEY}: {e}")
        return now

    async def get_last_seen_at(self) -> Optional[str]:
        try:
            return await self.storage.get_item(LAST_SEEN_KEY) or None
        except Exception as e:
            logger.warning(f"Erro ao ler {LAST_SEEN_KEY}: {e}")
            return None

    async def get_unread_count(self, limit: int = 20) -> int:
        """
        Conta atividades mais novas que a última visualização.

        Sem registro de visualização, todas contam. Qualquer erro resulta
        em 0.
        """
        try:
            last_seen = _parse_datetime(await self.get_last_seen_at())
            response = await self.gateway.get_recent_activity(limit)
            items = extract_rows(response, "activities")
        except Exception as e:
            logger.warning(f"Erro ao contar notificações: {e}")
            return 0

        if last_seen is None:
            return len(items)

        count = 0
        for item in items:
            created = next(
                (dt for dt in (_parse_datetime(item.get(f)) for f in ACTIVITY_TIME_FIELDS) if dt),
                None,
            )
            if created and created > last_seen:
                count += 1
        return count
