"""Async Postgres connection pool.

Concurrent clause evaluation relies on the pool: each store call checks out its own connection,
so a fan-out of N clauses can run N queries at once (bounded by `max_size`).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from dotenv import load_dotenv
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from volunteer_hub.config.settings import Settings
from volunteer_hub.db.connection import ensure_utc, require_database_url


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create an async DB pool.

    Notes:
        - The returned pool is created with `open=False`. Call `await pool.open()` at startup.
        - If `database_url` is omitted, the function loads `.env` and reads `DATABASE_URL`.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        open=False,
        configure=ensure_utc,
    )


def pool_from_settings(settings: Settings) -> AsyncConnectionPool:
    """Create a (closed) pool sized from application settings."""

    return create_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        timeout=settings.db_pool_timeout_s,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Check a connection out of the pool for the duration of the block.

    The pool commits on clean exit and rolls back if the block raises.
    """

    async with pool.connection() as conn:
        yield conn
