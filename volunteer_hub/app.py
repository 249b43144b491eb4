"""Application composition root.

Wires configuration, the DB pool and the relation store. The store is handed explicitly to every
core operation; nothing below this module constructs its own client.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool

from volunteer_hub.config.settings import Settings
from volunteer_hub.db.pool import pool_from_settings
from volunteer_hub.db.store import PgRelationStore, RelationStore


@dataclass(frozen=True)
class App:
    """Shared application dependencies for request handlers."""

    settings: Settings
    pool: AsyncConnectionPool | None
    store: RelationStore


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        The returned DB pool is not opened. Call `await app.pool.open()` at startup.
    """

    pool = pool_from_settings(settings)
    return App(settings=settings, pool=pool, store=PgRelationStore(pool))
