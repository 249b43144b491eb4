"""Relation store: the capability interface the core calls into.

`RelationStore` is the contract (equality / membership / join filters, writes, stored procedures,
transactions). `PgRelationStore` implements it on top of a psycopg async pool. The store handle is
created by the composition root and passed explicitly to every core operation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, AsyncIterator, Protocol

import psycopg
from psycopg import AsyncConnection
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from volunteer_hub.db.pool import get_conn
from volunteer_hub.db.query import fetch_rows, fetch_scalar, to_store_error
from volunteer_hub.db.statements import (
    BuiltQuery,
    build_delete,
    build_in,
    build_insert,
    build_join_filter_in,
    build_match,
    build_procedure_call,
    build_update,
)

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class RelationStore(Protocol):
    """Capabilities the filter engine and record services need from the backing store.

    Every method raises `StoreError` on failure.
    """

    async def equals(self, relation: str, column: str, value: Any) -> list[Row]: ...

    async def match(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]: ...

    async def select_all(self, relation: str) -> list[Row]: ...

    async def in_(self, relation: str, column: str, values: Sequence[Any]) -> list[Row]: ...

    async def join_filter_in(
            self,
            relation: str,
            joined_relation: str,
            joined_columns: str | Sequence[str],
            values: Sequence[Any],
    ) -> list[Row]: ...

    async def insert(
            self,
            relation: str,
            rows: Sequence[Mapping[str, Any]],
            *,
            if_absent: bool = False,
    ) -> list[Row]: ...

    async def update(
            self,
            relation: str,
            patch: Mapping[str, Any],
            key_column: str,
            key_value: Any,
    ) -> Row | None: ...

    async def delete(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]: ...

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Any: ...

    def transaction(self) -> AbstractAsyncContextManager[RelationStore]: ...


def _adapt_procedure_arg(value: Any) -> Any:
    if isinstance(value, (Mapping, list)):
        return Jsonb(value)
    return value


class PgRelationStore:
    """`RelationStore` backed by Postgres.

    Outside a transaction every call checks out its own pooled connection, so concurrent calls run
    concurrently. Inside `transaction()` the yielded store is bound to one connection.
    """

    def __init__(self, pool: AsyncConnectionPool, *, conn: AsyncConnection | None = None) -> None:
        self._pool = pool
        self._conn = conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        if self._conn is not None:
            yield self._conn
            return
        try:
            async with get_conn(self._pool) as conn:
                yield conn
        except psycopg.Error as exc:
            # Checkout / commit failures; statement errors are already StoreError.
            raise to_store_error(exc) from exc

    async def _rows(self, query: BuiltQuery) -> list[Row]:
        logger.debug("store sql=%s params=%d", query.sql, len(query.params))
        async with self._connection() as conn:
            return await fetch_rows(conn, query)

    async def equals(self, relation: str, column: str, value: Any) -> list[Row]:
        return await self._rows(build_match(relation, {column: value}))

    async def match(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]:
        return await self._rows(build_match(relation, criteria))

    async def select_all(self, relation: str) -> list[Row]:
        return await self._rows(build_match(relation, {}))

    async def in_(self, relation: str, column: str, values: Sequence[Any]) -> list[Row]:
        return await self._rows(build_in(relation, column, values))

    async def join_filter_in(
            self,
            relation: str,
            joined_relation: str,
            joined_columns: str | Sequence[str],
            values: Sequence[Any],
    ) -> list[Row]:
        return await self._rows(
            build_join_filter_in(relation, joined_relation, joined_columns, values)
        )

    async def insert(
            self,
            relation: str,
            rows: Sequence[Mapping[str, Any]],
            *,
            if_absent: bool = False,
    ) -> list[Row]:
        return await self._rows(build_insert(relation, rows, if_absent=if_absent))

    async def update(
            self,
            relation: str,
            patch: Mapping[str, Any],
            key_column: str,
            key_value: Any,
    ) -> Row | None:
        rows = await self._rows(build_update(relation, patch, key_column, key_value))
        return rows[0] if rows else None

    async def delete(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]:
        return await self._rows(build_delete(relation, criteria))

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Any:
        query = build_procedure_call(name, {k: _adapt_procedure_arg(v) for k, v in args.items()})
        logger.debug("store procedure=%s", name)
        async with self._connection() as conn:
            return await fetch_scalar(conn, query)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PgRelationStore]:
        """Run the block in one database transaction; any exception rolls everything back."""

        async with self._connection() as conn:
            try:
                async with conn.transaction():
                    yield PgRelationStore(self._pool, conn=conn)
            except psycopg.Error as exc:
                raise to_store_error(exc) from exc
