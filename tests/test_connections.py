from unittest.mock import AsyncMock

import pytest

from issue_tracker.core.config import Settings
from issue_tracker.core.logging import _parse_headers, init_tracer, traced
from issue_tracker.services import postgres as postgres_module
from issue_tracker.services.postgres import PostgresPoolManager


class DummyAcquire:
    def __init__(self, connection):
        self._connection = connection

    async def __aenter__(self):
        return self._connection

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyPool:
    def __init__(self, connection):
        self._connection = connection
        self.close = AsyncMock()

    def acquire(self):
        return DummyAcquire(self._connection)


@pytest.mark.asyncio
async def test_pool_is_created_once_and_closed(monkeypatch):
    connection = AsyncMock()
    connection.fetchval = AsyncMock(return_value=1)
    pool = DummyPool(connection)
    create_pool = AsyncMock(return_value=pool)
    monkeypatch.setattr(postgres_module.asyncpg, "create_pool", create_pool)
    manager = PostgresPoolManager(dsn="postgresql://localhost/issues", min_size=2, max_size=4)

    assert await manager.get_pool() is pool
    assert await manager.get_pool() is pool
    assert await manager.test_connection() is True

    create_pool.assert_awaited_once_with(dsn="postgresql://localhost/issues", min_size=2, max_size=4)
    connection.fetchval.assert_awaited_once_with("SELECT 1")
    assert manager.is_open

    await manager.close()
    pool.close.assert_awaited_once()
    assert not manager.is_open


def test_parse_headers_skips_malformed_items():
    assert _parse_headers("x-api-key=abc, bad, tenant = planta") == {"x-api-key": "abc", "tenant": "planta"}
    assert _parse_headers(None) == {}


def test_tracer_disabled_by_default():
    settings = Settings(otel_enabled=False)

    assert init_tracer(settings) is None


def test_traced_block_runs_without_provider():
    calls = []

    with traced("issue_store.load", {"work_orders": 2}):
        calls.append("inside")

    assert calls == ["inside"]
