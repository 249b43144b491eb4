"""Tests for role / cohort resolution and the atomic create path."""

from __future__ import annotations

import pytest

from volunteer_hub.db.relations import COHORTS, ROLES, VOLUNTEER_COHORTS, VOLUNTEER_ROLES, VOLUNTEERS
from volunteer_hub.errors import DuplicateVolunteerError, MissingReferenceError, NotFoundError, StoreError
from volunteer_hub.records.resolver import (
    create_volunteer_with_role_and_cohort,
    resolve_cohort_id,
    resolve_role_id,
)
from volunteer_hub.records.schema import CohortKey, CohortTerm, RoleKey, RoleType, VolunteerCreate

from tests.conftest import InMemoryStore


@pytest.mark.asyncio
async def test_resolve_existing_role_and_cohort(seeded_store: InMemoryStore) -> None:
    assert await resolve_role_id(seeded_store, RoleKey(name="Mentor", type=RoleType.prior)) == 3
    assert await resolve_cohort_id(seeded_store, CohortKey(year=2025, term=CohortTerm.Fall)) == 3


@pytest.mark.asyncio
async def test_lookup_never_creates(seeded_store: InMemoryStore) -> None:
    with pytest.raises(MissingReferenceError, match="Role not found: Mentor \\(future_interest\\)"):
        await resolve_role_id(seeded_store, RoleKey(name="Mentor", type=RoleType.future_interest))
    with pytest.raises(NotFoundError, match="Cohort not found: Winter 2025"):
        await resolve_cohort_id(seeded_store, CohortKey(year=2025, term="winter"))

    assert len(seeded_store.tables[ROLES]) == 3
    assert len(seeded_store.tables[COHORTS]) == 3


@pytest.mark.asyncio
async def test_create_reuses_role_across_volunteers(store: InMemoryStore) -> None:
    role = RoleKey(name="Mentor", type=RoleType.current)
    cohort = CohortKey(year=2025, term=CohortTerm.Fall)

    first = await create_volunteer_with_role_and_cohort(
        store, VolunteerCreate(name_org="A", email="a@example.org"), role, cohort
    )
    second = await create_volunteer_with_role_and_cohort(
        store, VolunteerCreate(name_org="B", email="b@example.org"), role, cohort
    )

    assert first != second
    assert len(store.tables[ROLES]) == 1
    assert len(store.tables[COHORTS]) == 1
    role_id = store.tables[ROLES][0]["id"]
    assert {(r["volunteer_id"], r["role_id"]) for r in store.tables[VOLUNTEER_ROLES]} == {
        (first, role_id),
        (second, role_id),
    }
    assert len(store.tables[VOLUNTEER_COHORTS]) == 2


@pytest.mark.asyncio
async def test_create_passes_volunteer_as_json_object(store: InMemoryStore) -> None:
    volunteer_id = await create_volunteer_with_role_and_cohort(
        store,
        VolunteerCreate(name_org="A", position="staff", opt_in_communication=False),
        RoleKey(name="Tutor", type=RoleType.current),
        CohortKey(year=2024, term=CohortTerm.Spring),
    )
    row = store.tables[VOLUNTEERS][0]
    assert row["id"] == volunteer_id
    assert row["position"] == "staff"
    assert row["opt_in_communication"] is False


@pytest.mark.asyncio
async def test_duplicate_volunteer_is_translated_and_rolled_back(store: InMemoryStore) -> None:
    store.add_volunteer("Existing", email="dup@example.org")

    with pytest.raises(DuplicateVolunteerError, match="A volunteer with this information already exists"):
        await create_volunteer_with_role_and_cohort(
            store,
            VolunteerCreate(name_org="Again", email="dup@example.org"),
            RoleKey(name="Brand New", type=RoleType.current),
            CohortKey(year=2030, term=CohortTerm.Summer),
        )

    # The role and cohort created inside the failed call are gone too.
    assert store.tables[ROLES] == []
    assert store.tables[COHORTS] == []
    assert len(store.tables[VOLUNTEERS]) == 1


@pytest.mark.asyncio
async def test_other_store_errors_pass_through(store: InMemoryStore) -> None:
    store.fail_on["call_procedure"] = StoreError("timeout", code="57014")

    with pytest.raises(StoreError) as excinfo:
        await create_volunteer_with_role_and_cohort(
            store,
            VolunteerCreate(name_org="A"),
            RoleKey(name="Tutor", type=RoleType.current),
            CohortKey(year=2024, term=CohortTerm.Spring),
        )
    assert not isinstance(excinfo.value, DuplicateVolunteerError)
    assert excinfo.value.code == "57014"
