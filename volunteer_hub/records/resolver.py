"""Role / cohort natural-key resolution.

Two modes:
    - lookup-only (`resolve_role_id`, `resolve_cohort_id`): used by update flows, never creates;
    - get-or-create (`create_volunteer_with_role_and_cohort`): one stored function that creates the
      volunteer and reuses or inserts its role, cohort and both memberships in a single transaction.
"""

from __future__ import annotations

import logging

from volunteer_hub.db.relations import COHORTS, ROLES
from volunteer_hub.db.store import RelationStore
from volunteer_hub.errors import DuplicateVolunteerError, MissingReferenceError, StoreError
from volunteer_hub.records.schema import CohortKey, RoleKey, VolunteerCreate

logger = logging.getLogger(__name__)

CREATE_VOLUNTEER_PROCEDURE = "create_volunteer_with_role_and_cohort"


async def resolve_role_id(store: RelationStore, role: RoleKey) -> int:
    """Id of the role with this (name, type).

    Raises:
        MissingReferenceError: If no such role exists.
    """

    rows = await store.match(ROLES, {"name": role.name, "type": role.type.value})
    if not rows:
        raise MissingReferenceError(f"Role not found: {role.name} ({role.type.value})")
    return int(rows[0]["id"])


async def resolve_cohort_id(store: RelationStore, cohort: CohortKey) -> int:
    """Id of the cohort with this (year, term).

    Raises:
        MissingReferenceError: If no such cohort exists.
    """

    rows = await store.match(COHORTS, {"year": cohort.year, "term": cohort.term.value})
    if not rows:
        raise MissingReferenceError(f"Cohort not found: {cohort.label}")
    return int(rows[0]["id"])


async def create_volunteer_with_role_and_cohort(
        store: RelationStore,
        volunteer: VolunteerCreate,
        role: RoleKey,
        cohort: CohortKey,
) -> int:
    """Create a volunteer in a role and cohort, creating those when absent. Returns the new id.

    Raises:
        DuplicateVolunteerError: If the volunteer violates a unique constraint.
        StoreError: For any other store failure (nothing is written in that case).
    """

    try:
        volunteer_id = await store.call_procedure(
            CREATE_VOLUNTEER_PROCEDURE,
            {
                "p_volunteer": volunteer.model_dump(mode="json"),
                "p_role_name": role.name,
                "p_role_type": role.type.value,
                "p_cohort_year": cohort.year,
                "p_cohort_term": cohort.term.value,
            },
        )
    except StoreError as exc:
        if exc.is_unique_violation:
            raise DuplicateVolunteerError(
                "A volunteer with this information already exists", code=exc.code
            ) from exc
        raise

    if volunteer_id is None:
        raise StoreError("Failed to retrieve volunteer ID after insertion")

    logger.info(
        "volunteer created id=%s role=%s/%s cohort=%s",
        volunteer_id,
        role.name,
        role.type.value,
        cohort.label,
    )
    return int(volunteer_id)
