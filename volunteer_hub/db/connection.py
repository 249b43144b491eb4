"""Postgres connection helpers.

Every DB session (sync tooling connections and pooled async connections alike) runs with its
timezone set to UTC, so timestamp columns compare the same way regardless of server defaults.
"""

from __future__ import annotations

import os

import psycopg
from psycopg import AsyncConnection

_SET_UTC = "SET TIME ZONE 'UTC'"


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(database_url: str) -> psycopg.Connection:
    """Open a sync connection (used by migrations and test setup) with UTC session timezone."""

    conn = psycopg.connect(database_url)
    conn.execute(_SET_UTC, prepare=False)
    return conn


async def ensure_utc(conn: AsyncConnection) -> None:
    """Set the session timezone of an async connection to UTC.

    Used as the pool `configure` callback.
    """

    async with conn.cursor() as cur:
        await cur.execute(_SET_UTC, prepare=False)
    # `SET` opens a transaction when autocommit is off; commit so the pool doesn't see INTRANS.
    await conn.commit()
