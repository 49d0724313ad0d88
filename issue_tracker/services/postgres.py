from __future__ import annotations

from dataclasses import dataclass, field

import asyncpg


@dataclass(slots=True)
class PostgresPoolManager:
    """Lazily opens the asyncpg pool shared by the issue repository and health probes."""

    dsn: str
    min_size: int = 1
    max_size: int = 10
    _pool: asyncpg.Pool | None = field(default=None, repr=False)

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self.dsn, min_size=self.min_size, max_size=self.max_size)
        return self._pool

    async def test_connection(self) -> bool:
        pool = await self.get_pool()
        async with pool.acquire() as connection:
            return await connection.fetchval("SELECT 1") == 1

    async def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()
