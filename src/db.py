"""Async access to the memory database over libsql.

The ``libsql`` driver is synchronous, so every call is pushed onto a worker
thread with ``asyncio.to_thread()``.  Where the database lives comes from
settings:

- ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` set → hosted Turso
- otherwise → a local SQLite file at ``database_path``

:class:`Database` is what stores use.  It opens one connection per statement,
creates its schema on first use, and commits each write on its own.  The
memory endpoints never need more than one statement to be atomic, so there is
no transaction API.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import libsql

if TYPE_CHECKING:
    from pathlib import Path

from src.config import settings

logger = logging.getLogger(__name__)

Params = tuple[Any, ...]


class _AsyncConnection:
    """One libsql connection; statements run on a worker thread."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: Params = ()) -> Any:
        """Run *sql* and return the driver cursor (already populated)."""
        return await asyncio.to_thread(self._conn.execute, sql, params)

    async def query(self, sql: str, params: Params = ()) -> list[tuple]:
        def _run() -> list[tuple]:
            return self._conn.execute(sql, params).fetchall()

        return await asyncio.to_thread(_run)

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open(local_path: Path | None) -> Any:
    if local_path is None and settings.turso_database_url:
        return libsql.connect(
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )

    path = local_path or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = libsql.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Open a raw connection.

    *local_path_override* (test isolation) wins over everything; without it a
    configured Turso URL wins over the local ``database_path``.
    """
    conn = await asyncio.to_thread(_open, local_path_override)
    return _AsyncConnection(conn)


class Database:
    """Statement-level access to one database target with lazy schema setup.

    Args:
        local_path: Local file to use instead of the configured target.
        schema: DDL statements run once, in order, before the first query.
    """

    def __init__(self, local_path: Path | None = None, schema: Sequence[str] = ()) -> None:
        self._local_path = local_path
        self._schema = list(schema)
        self._ready = False

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[_AsyncConnection]:
        conn = await get_connection(local_path_override=self._local_path)
        try:
            if not self._ready and self._schema:
                for ddl in self._schema:
                    await conn.execute(ddl)
                await conn.commit()
                logger.debug("Schema ready (%d statements)", len(self._schema))
            self._ready = True
            yield conn
        finally:
            await conn.close()

    async def fetchone(self, sql: str, params: Params = ()) -> tuple | None:
        async with self.connection() as conn:
            rows = await conn.query(sql, params)
        return rows[0] if rows else None

    async def fetchall(self, sql: str, params: Params = ()) -> list[tuple]:
        async with self.connection() as conn:
            return await conn.query(sql, params)

    async def write(self, sql: str, params: Params = ()) -> int:
        """Run one write statement, commit it, and return the affected row count."""
        async with self.connection() as conn:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount
