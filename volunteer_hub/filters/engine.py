"""Filter orchestration: validate -> evaluate clauses concurrently -> combine -> fetch rows."""

from __future__ import annotations

import asyncio
import logging
from time import monotonic
from typing import Any

from volunteer_hub.db.relations import VOLUNTEERS
from volunteer_hub.db.store import RelationStore
from volunteer_hub.errors import FilterValidationError
from volunteer_hub.filters.clauses import evaluate_clause
from volunteer_hub.filters.schema import Clause, FilterOp
from volunteer_hub.filters.sets import combine
from volunteer_hub.filters.validator import validate_filters

logger = logging.getLogger(__name__)


async def evaluate_clauses(store: RelationStore, clauses: list[Clause]) -> list[set[int]]:
    """Evaluate every clause concurrently; results keep clause input order.

    If any evaluation fails the exception propagates and no result is returned.
    """

    return list(await asyncio.gather(*(evaluate_clause(store, c) for c in clauses)))


async def filter_volunteer_ids(
        store: RelationStore,
        clauses: list[Clause],
        op: FilterOp,
) -> set[int]:
    """Ids matching already-validated clauses combined with `op` (at least one clause)."""

    return combine(await evaluate_clauses(store, clauses), op)


async def filter_volunteers(store: RelationStore, filters_list: Any, op: Any) -> list[dict[str, Any]]:
    """Return volunteer rows matching a clause list combined by a global operator.

    - An empty clause list matches every volunteer.
    - An empty combined id set returns `[]` without fetching.
    - Row order is whatever the store returns.

    Raises:
        FilterValidationError: On malformed input (before any store call).
        StoreError: If any store call fails.
    """

    started = monotonic()

    validation = validate_filters(filters_list, op)
    global_op = validation.op
    if not validation.valid or global_op is None:
        raise FilterValidationError(validation.error or "Invalid filters")

    if not validation.clauses:
        rows = await store.select_all(VOLUNTEERS)
    else:
        ids = await filter_volunteer_ids(store, validation.clauses, global_op)
        rows = await store.in_(VOLUNTEERS, "id", sorted(ids)) if ids else []

    latency_ms = int((monotonic() - started) * 1000)
    logger.info(
        "filtered clauses=%d op=%s matched=%d latency_ms=%d",
        len(validation.clauses),
        global_op,
        len(rows),
        latency_ms,
    )
    return rows
