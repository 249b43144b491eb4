"""Cohort record services."""

from __future__ import annotations

import logging
from typing import Any

from volunteer_hub.db.relations import COHORTS
from volunteer_hub.db.store import RelationStore
from volunteer_hub.errors import NotFoundError
from volunteer_hub.records.schema import CohortCreate, CohortKey, parse_record

logger = logging.getLogger(__name__)


async def add_cohort(store: RelationStore, payload: Any) -> list[dict[str, Any]]:
    """Insert a cohort (term is canonicalized to title case); returns the inserted rows."""

    cohort = parse_record(CohortCreate, payload, what="cohort")
    rows = await store.insert(COHORTS, [cohort.model_dump(mode="json")])
    logger.info("cohort added term=%s year=%d", cohort.term.value, cohort.year)
    return rows


async def list_cohorts(store: RelationStore) -> list[dict[str, Any]]:
    return await store.select_all(COHORTS)


async def remove_cohort(store: RelationStore, year: Any, term: Any) -> int:
    """Delete the cohort with this (year, term); its memberships cascade. Returns rows deleted.

    Raises:
        RecordValidationError: If year or term is invalid.
        NotFoundError: If no such cohort exists.
    """

    key = parse_record(CohortKey, {"year": year, "term": term}, what="cohort")
    deleted = await store.delete(COHORTS, {"year": key.year, "term": key.term.value})
    if not deleted:
        raise NotFoundError(f"Cohort with year {key.year} and term {key.term.value} not found")

    logger.info("cohort removed term=%s year=%d", key.term.value, key.year)
    return len(deleted)
