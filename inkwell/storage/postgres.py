"""
PostgreSQL implementation of the storage interface (asyncpg).

A single pool is shared by every repository. It is created lazily on
first use and bounds the number of in-flight queries; callers awaiting a
connection suspend instead of blocking.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Sequence, TypeVar

import asyncpg
from asyncpg import exceptions as pg_exc

from inkwell.core.errors import ConflictError, DatabaseUnavailableError, InvalidPayloadError
from inkwell.storage.base import Database, Row

logger = logging.getLogger(__name__)

R = TypeVar("R")


def translate_error(exc: Exception) -> Exception:
    """
    Map a driver exception to a core failure.

    Unique violations become ConflictError carrying the constraint name,
    foreign key violations become InvalidPayloadError. Anything else is
    returned unchanged.
    """
    if isinstance(exc, pg_exc.UniqueViolationError):
        return ConflictError(constraint=exc.constraint_name)
    if isinstance(exc, pg_exc.ForeignKeyViolationError):
        return InvalidPayloadError(
            "Referenced record does not exist",
            fields=[exc.constraint_name] if exc.constraint_name else [],
        )
    return exc


async def _translated(call: Callable[[], Awaitable[R]]) -> R:
    try:
        return await call()
    except (pg_exc.UniqueViolationError, pg_exc.ForeignKeyViolationError) as exc:
        raise translate_error(exc) from exc


class _ConnectionDatabase(Database):
    """Database bound to one connection, used inside a transaction."""

    def __init__(self, connection: asyncpg.Connection):
        self._conn = connection

    async def execute(self, sql: str, *args: Any) -> str:
        return await _translated(lambda: self._conn.execute(sql, *args))

    async def fetch(self, sql: str, *args: Any) -> Sequence[Row]:
        return await _translated(lambda: self._conn.fetch(sql, *args))

    async def fetchrow(self, sql: str, *args: Any) -> Row | None:
        return await _translated(lambda: self._conn.fetchrow(sql, *args))

    async def fetchval(self, sql: str, *args: Any) -> Any:
        return await _translated(lambda: self._conn.fetchval(sql, *args))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        # Nested transactions become savepoints
        async with self._conn.transaction():
            yield self


class PostgresDatabase(Database):
    """
    Pooled asyncpg access to PostgreSQL.

    Example:
        db = PostgresDatabase("postgresql://localhost/inkwell", max_pool_size=20)
        row = await db.fetchrow("SELECT id FROM users WHERE email = $1", email)
        await db.close()
    """

    def __init__(
        self,
        database_url: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
        command_timeout: float | None = 15.0,
    ):
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max(min_pool_size, max_pool_size)
        self.command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                try:
                    self._pool = await asyncpg.create_pool(
                        dsn=self.database_url,
                        min_size=self.min_pool_size,
                        max_size=self.max_pool_size,
                        command_timeout=self.command_timeout,
                    )
                except (OSError, asyncpg.PostgresError) as exc:
                    logger.error(f"Could not create database pool: {exc}")
                    raise DatabaseUnavailableError() from exc
                logger.info(
                    f"Database pool ready (min={self.min_pool_size}, max={self.max_pool_size})"
                )
        return self._pool

    async def execute(self, sql: str, *args: Any) -> str:
        pool = await self._get_pool()
        return await _translated(lambda: pool.execute(sql, *args))

    async def fetch(self, sql: str, *args: Any) -> Sequence[Row]:
        pool = await self._get_pool()
        return await _translated(lambda: pool.fetch(sql, *args))

    async def fetchrow(self, sql: str, *args: Any) -> Row | None:
        pool = await self._get_pool()
        return await _translated(lambda: pool.fetchrow(sql, *args))

    async def fetchval(self, sql: str, *args: Any) -> Any:
        pool = await self._get_pool()
        return await _translated(lambda: pool.fetchval(sql, *args))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield _ConnectionDatabase(conn)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")
