"""Safe DB query helpers.

These helpers execute statements produced by `volunteer_hub.db.statements`. They never interpolate
values into SQL and translate driver errors into `StoreError`.
"""

from __future__ import annotations

from typing import Any, LiteralString, cast

import psycopg
from psycopg import AsyncConnection
from psycopg.rows import dict_row

from volunteer_hub.db.statements import BuiltQuery
from volunteer_hub.errors import StoreError


def to_store_error(exc: psycopg.Error) -> StoreError:
    """Wrap a psycopg error, keeping the primary message and the SQLSTATE code."""

    diag_message = exc.diag.message_primary if exc.diag is not None else None
    message = diag_message or str(exc) or type(exc).__name__
    return StoreError(message, code=exc.sqlstate)


async def fetch_rows(conn: AsyncConnection, query: BuiltQuery) -> list[dict[str, Any]]:
    """Execute a row-returning statement and return the rows as dicts.

    Contract:
        - Returns `[]` when the statement yields no rows.
        - Driver errors are raised as `StoreError` (caller decides how to handle them).
    """

    try:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(cast(LiteralString, query.sql), query.params)
            rows = await cur.fetchall()
    except psycopg.Error as exc:
        raise to_store_error(exc) from exc

    return list(rows)


async def fetch_scalar(conn: AsyncConnection, query: BuiltQuery) -> Any:
    """Execute a statement and return the first column of the first row (`None` when empty)."""

    try:
        async with conn.cursor() as cur:
            await cur.execute(cast(LiteralString, query.sql), query.params)
            row = await cur.fetchone()
    except psycopg.Error as exc:
        raise to_store_error(exc) from exc

    if not row:
        return None
    return row[0]
