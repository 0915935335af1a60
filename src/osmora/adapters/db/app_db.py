"""asyncpg pool for the credential tables."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg
import structlog

from osmora.adapters.db.schema import SCHEMA_STATEMENTS

logger = structlog.get_logger()


class AppDatabase:
    """Owns the connection pool for users, sessions and one-time codes.

    The pool is created by ``connect`` and released by ``close``; both are
    driven by the process lifespan, never lazily on first use.
    """

    def __init__(
        self,
        dsn: str,
        command_timeout: float = 60,
        min_pool_size: int = 2,
        max_pool_size: int = 10,
    ):
        """Initialize without connecting.

        Args:
            dsn: PostgreSQL connection string.
            command_timeout: Per-statement timeout in seconds.
            min_pool_size: Connections kept open.
            max_pool_size: Upper bound on concurrent connections.
        """
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: asyncpg.Pool[asyncpg.Record] | None = None

    async def connect(self) -> None:
        """Open the pool."""
        self.pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            command_timeout=self.command_timeout,
        )
        # Host/db part only, credentials stay out of the logs
        logger.info("app_database_connected", target=self.dsn.rsplit("@", 1)[-1])

    async def close(self) -> None:
        """Release the pool. Safe to call twice."""
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        logger.info("app_database_disconnected")

    async def apply_schema(self) -> None:
        """Create missing tables and indexes in one transaction."""
        async with self.acquire() as conn, conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("app_database_schema_applied", statements=len(SCHEMA_STATEMENTS))

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection[asyncpg.Record]]:
        """Borrow a pooled connection for the duration of the block."""
        if self.pool is None:
            raise RuntimeError("AppDatabase.connect() has not been called")
        async with self.pool.acquire() as conn:
            yield conn

    async def fetch_one(self, query: str, *args: Any) -> dict[str, Any] | None:
        """Run a query and return its first row as a dict, if any."""
        async with self.acquire() as conn:
            row = await conn.fetchrow(query, *args)
        return dict(row) if row is not None else None

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return asyncpg's status string, e.g. ``UPDATE 1``."""
        async with self.acquire() as conn:
            status: str = await conn.execute(query, *args)
        return status
