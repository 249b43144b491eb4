"""Clause evaluation: one validated clause -> the set of matching volunteer ids.

Each clause is resolved with its own store calls and never looks at another clause's result, so
clauses can be evaluated concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from volunteer_hub.db.relations import (
    COHORTS,
    ROLES,
    VOLUNTEER_COHORTS,
    VOLUNTEER_ROLES,
    VOLUNTEERS,
)
from volunteer_hub.db.store import RelationStore
from volunteer_hub.filters.schema import (
    Clause,
    ClauseKind,
    CohortValue,
    FilterOp,
    cohort_key,
)

logger = logging.getLogger(__name__)


def _distinct(values: Iterable[Any]) -> list[Any]:
    return list(dict.fromkeys(values))


def matching_ids(
        found_by_id: Mapping[int, set[str]],
        mini_op: FilterOp,
        targets: Iterable[str],
) -> set[int]:
    """Select ids from an id -> matched-keys mapping.

    `OR`: every id with at least one match (every id present in the mapping).
    `AND`: only ids whose matched keys include every target.
    """

    if mini_op == FilterOp.OR:
        return set(found_by_id)

    required = set(targets)
    return {vid for vid, found in found_by_id.items() if required <= found}


async def ids_by_general(
        store: RelationStore,
        column: str,
        mini_op: FilterOp,
        values: Sequence[str],
) -> set[int]:
    """Ids of volunteers whose `column` matches the clause values.

    A column holds one value per row, so `AND` over two or more distinct values can never match and
    returns the empty set without querying.
    """

    distinct = _distinct(values)

    if mini_op == FilterOp.OR:
        rows = await store.in_(VOLUNTEERS, column, distinct)
    else:
        if len(distinct) != 1:
            return set()
        rows = await store.equals(VOLUNTEERS, column, distinct[0])

    return {int(row["id"]) for row in rows}


async def ids_by_roles(store: RelationStore, mini_op: FilterOp, names: Sequence[str]) -> set[int]:
    """Ids of volunteers holding any (`OR`) or all (`AND`) of the named roles."""

    rows = await store.join_filter_in(VOLUNTEER_ROLES, ROLES, "name", _distinct(names))

    found: dict[int, set[str]] = {}
    for row in rows:
        found.setdefault(int(row["volunteer_id"]), set()).add(row[ROLES]["name"])

    return matching_ids(found, mini_op, names)


async def ids_by_cohorts(
        store: RelationStore,
        mini_op: FilterOp,
        cohorts: Sequence[CohortValue],
) -> set[int]:
    """Ids of volunteers in any (`OR`) or all (`AND`) of the given (term, year) cohorts.

    The store is asked for memberships matching any requested pair; `AND` is then decided per
    volunteer from the matched keys.
    """

    rows = await store.join_filter_in(
        VOLUNTEER_COHORTS,
        COHORTS,
        ("term", "year"),
        _distinct(cohorts),
    )

    found: dict[int, set[str]] = {}
    for row in rows:
        joined = row[COHORTS]
        found.setdefault(int(row["volunteer_id"]), set()).add(
            cohort_key(joined["term"], joined["year"])
        )

    return matching_ids(found, mini_op, (cohort_key(term, year) for term, year in cohorts))


async def evaluate_clause(store: RelationStore, clause: Clause) -> set[int]:
    """Resolve one validated clause into volunteer ids."""

    if clause.kind == ClauseKind.roles:
        ids = await ids_by_roles(store, clause.mini_op, clause.values)  # type: ignore[arg-type]
    elif clause.kind == ClauseKind.cohorts:
        ids = await ids_by_cohorts(store, clause.mini_op, clause.values)  # type: ignore[arg-type]
    else:
        ids = await ids_by_general(
            store, clause.field, clause.mini_op, clause.values  # type: ignore[arg-type]
        )

    logger.debug("clause field=%s mini_op=%s matched=%d", clause.field, clause.mini_op, len(ids))
    return ids
