"""
Testes para a montagem dos componentes (deps) e configuração.
"""

import logging

import pytest

from library_sync.core.config import Settings
from library_sync.core.deps import build_context, library_sync
from library_sync.core.logging import get_logger, setup_logging
from library_sync.models.enums import SyncState


class TestSettings:
    """Testes para Settings."""

    @pytest.mark.parametrize("base,prefix,expected", [
        ("http://host:3000", "/api", "http://host:3000/api"),
        ("http://host:3000/", "api/", "http://host:3000/api"),
        ("http://host", "", "http://host"),
    ])
    def test_api_root(self, base, prefix, expected):
        assert Settings(API_BASE_URL=base, API_PREFIX=prefix).api_root == expected


class TestContext:
    """Testes para build_context e library_sync."""

    def test_components_share_storage(self, settings, storage):
        context = build_context(settings, storage)

        assert context.gateway.storage is storage
        assert context.alias_store.storage is storage
        assert context.engine.gateway is context.gateway
        assert context.reservations.engine is context.engine

    @pytest.mark.asyncio
    async def test_lifecycle(self, settings, storage):
        async with library_sync(settings, storage) as context:
            assert context.engine.state is SyncState.RUNNING

        assert context.engine.state is SyncState.STOPPED

    @pytest.mark.asyncio
    async def test_start_false(self, settings, storage):
        async with library_sync(settings, storage, start=False) as context:
            assert context.engine.state is SyncState.STOPPED


class TestLogging:
    """Testes para setup_logging."""

    def test_setup_logging_sets_level(self):
        setup_logging("DEBUG")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        setup_logging("INFO")

    def test_get_logger(self):
        assert get_logger("library_sync.test").name == "library_sync.test"
