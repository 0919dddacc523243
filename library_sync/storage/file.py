"""
Armazenamento em arquivo JSON local.

Todo o conteúdo fica em um único objeto JSON {chave: valor}. A escrita vai
para um arquivo temporário e depois substitui o original, para que uma
interrupção no meio não deixe o arquivo truncado.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional

from library_sync.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)


class FileStorage(KeyValueStorage):
    """
    Persistência em disco que sobrevive a reinícios do processo.

    O acesso ao arquivo roda em uma thread (asyncio.to_thread) para não
    bloquear o timer de sincronização. Um asyncio.Lock serializa as
    operações, já que cada escrita regrava o objeto inteiro.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Arquivo de armazenamento ilegível ({self.path}): {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Arquivo de armazenamento com formato inesperado: {self.path}")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def _remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._remove, key)
