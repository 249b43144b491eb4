"""Volunteer record services: create, update, delete and the volunteers table view."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from typing import Any

from volunteer_hub.db.relations import (
    COHORTS,
    ROLES,
    VOLUNTEER_COHORTS,
    VOLUNTEER_ROLES,
    VOLUNTEERS,
)
from volunteer_hub.db.store import RelationStore
from volunteer_hub.errors import FieldError, NotFoundError, RecordValidationError
from volunteer_hub.records.resolver import (
    create_volunteer_with_role_and_cohort,
    resolve_cohort_id,
    resolve_role_id,
)
from volunteer_hub.records.schema import (
    Cohort,
    CohortKey,
    Role,
    RoleKey,
    Volunteer,
    VolunteerCreateRequest,
    VolunteerTableEntry,
    VolunteerUpdate,
    parse_record,
)

logger = logging.getLogger(__name__)

VOLUNTEER_NOT_FOUND = "Volunteer not found."

_ID_RE = re.compile(r"[0-9]+")


def require_volunteer_id(value: Any) -> int:
    """Validate a volunteer id (positive integer; numeric strings are accepted)."""

    if isinstance(value, str) and _ID_RE.fullmatch(value.strip()):
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise RecordValidationError(
            "Invalid volunteer ID. ID must be a positive integer.",
            [FieldError(field="id", message="must be a positive integer")],
        )
    return value


async def create_volunteer(store: RelationStore, payload: Any) -> int:
    """Validate a `{volunteer, role, cohort}` payload and create it atomically. Returns the new id."""

    request = parse_record(VolunteerCreateRequest, payload, what="volunteer payload")
    return await create_volunteer_with_role_and_cohort(
        store, request.volunteer, request.role, request.cohort
    )


def parse_volunteer_update(
        payload: Any,
) -> tuple[VolunteerUpdate | None, RoleKey | None, CohortKey | None]:
    """Split an update payload into the column patch and optional role / cohort to attach.

    The patch must contain at least one updatable field unless a role or cohort is given.
    """

    if not isinstance(payload, Mapping):
        raise RecordValidationError(
            "Request body must be a JSON object",
            [FieldError(field="general", message="Request body must be a JSON object")],
        )

    body = dict(payload)
    role: RoleKey | None = None
    cohort: CohortKey | None = None
    if "role" in body:
        role = parse_record(RoleKey, body.pop("role"), what="role", prefix="role.")
    if "cohort" in body:
        cohort = parse_record(CohortKey, body.pop("cohort"), what="cohort", prefix="cohort.")

    updates: VolunteerUpdate | None = None
    if body or (role is None and cohort is None):
        updates = parse_record(VolunteerUpdate, body, what="volunteer update")

    return updates, role, cohort


async def update_volunteer(store: RelationStore, volunteer_id: Any, payload: Any) -> dict[str, Any]:
    """Patch a volunteer and optionally attach an existing role and/or cohort.

    Everything runs in one transaction. Roles and cohorts are looked up, never created.

    Raises:
        RecordValidationError: On an invalid id or payload.
        NotFoundError: If the volunteer, role or cohort does not exist.
    """

    vid = require_volunteer_id(volunteer_id)
    updates, role, cohort = parse_volunteer_update(payload)

    async with store.transaction() as tx:
        role_id = await resolve_role_id(tx, role) if role else None
        cohort_id = await resolve_cohort_id(tx, cohort) if cohort else None

        if updates is not None:
            row = await tx.update(VOLUNTEERS, updates.patch(), "id", vid)
        else:
            rows = await tx.equals(VOLUNTEERS, "id", vid)
            row = rows[0] if rows else None
        if row is None:
            raise NotFoundError(VOLUNTEER_NOT_FOUND)

        if role_id is not None:
            await tx.insert(VOLUNTEER_ROLES, [{"volunteer_id": vid, "role_id": role_id}], if_absent=True)
        if cohort_id is not None:
            await tx.insert(
                VOLUNTEER_COHORTS, [{"volunteer_id": vid, "cohort_id": cohort_id}], if_absent=True
            )

    logger.info(
        "volunteer updated id=%d fields=%s role=%s cohort=%s",
        vid,
        sorted(updates.model_fields_set) if updates else [],
        role_id,
        cohort_id,
    )
    return row


async def delete_volunteer(store: RelationStore, volunteer_id: Any) -> int:
    """Delete a volunteer by id (memberships cascade). Returns the deleted id.

    Raises:
        RecordValidationError: If the id is not a positive integer.
        NotFoundError: If no volunteer has that id.
    """

    vid = require_volunteer_id(volunteer_id)
    deleted = await store.delete(VOLUNTEERS, {"id": vid})
    if not deleted:
        raise NotFoundError(VOLUNTEER_NOT_FOUND)

    logger.info("volunteer deleted id=%d", vid)
    return vid


async def list_volunteers_table(store: RelationStore) -> list[VolunteerTableEntry]:
    """Every volunteer with the roles and cohorts it belongs to."""

    volunteers, roles, cohorts, volunteer_roles, volunteer_cohorts = await asyncio.gather(
        store.select_all(VOLUNTEERS),
        store.select_all(ROLES),
        store.select_all(COHORTS),
        store.select_all(VOLUNTEER_ROLES),
        store.select_all(VOLUNTEER_COHORTS),
    )

    roles_by_id = {int(r["id"]): Role.model_validate(r) for r in roles}
    cohorts_by_id = {int(c["id"]): Cohort.model_validate(c) for c in cohorts}

    entries: dict[int, VolunteerTableEntry] = {
        int(v["id"]): VolunteerTableEntry(volunteer=Volunteer.model_validate(v))
        for v in volunteers
    }
    for link in volunteer_roles:
        entry = entries.get(int(link["volunteer_id"]))
        role = roles_by_id.get(int(link["role_id"]))
        if entry is not None and role is not None:
            entry.roles.append(role)
    for link in volunteer_cohorts:
        entry = entries.get(int(link["volunteer_id"]))
        cohort = cohorts_by_id.get(int(link["cohort_id"]))
        if entry is not None and cohort is not None:
            entry.cohorts.append(cohort)

    return list(entries.values())
