"""Pytest configuration and an in-memory relation store.

`InMemoryStore` implements the `RelationStore` protocol over plain dicts so the filter engine and
record services can be tested without Postgres. It mirrors the behaviour the SQL schema provides:
serial ids, unique keys (raising a `23505` store error), cascading deletes and the atomic
create-volunteer procedure.
"""

from __future__ import annotations

import copy
import sys
from collections.abc import Mapping, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import pytest

# Ensure `import volunteer_hub...` works when running pytest without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from volunteer_hub.db.relations import (  # noqa: E402
    COHORTS,
    JOIN_KEYS,
    RELATION_COLUMNS,
    ROLES,
    VOLUNTEER_COHORTS,
    VOLUNTEER_ROLES,
    VOLUNTEERS,
)
from volunteer_hub.errors import UNIQUE_VIOLATION, StoreError  # noqa: E402

Row = dict[str, Any]

_UNIQUE_KEYS: dict[str, tuple[tuple[str, ...], ...]] = {
    VOLUNTEERS: (("email",),),
    ROLES: (("name", "type"),),
    COHORTS: (("year", "term"),),
    VOLUNTEER_ROLES: (("volunteer_id", "role_id"),),
    VOLUNTEER_COHORTS: (("volunteer_id", "cohort_id"),),
}

_DEFAULTS: dict[str, Row] = {
    VOLUNTEERS: {"opt_in_communication": True},
    ROLES: {"is_active": True},
    COHORTS: {"is_active": True},
}

# parent relation -> (child relation, child column referencing parent id)
_CASCADES: dict[str, tuple[tuple[str, str], ...]] = {
    VOLUNTEERS: ((VOLUNTEER_ROLES, "volunteer_id"), (VOLUNTEER_COHORTS, "volunteer_id")),
    ROLES: ((VOLUNTEER_ROLES, "role_id"),),
    COHORTS: ((VOLUNTEER_COHORTS, "cohort_id"),),
}


def _same(stored: Any, value: Any) -> bool:
    """Equality with Postgres-like coercion of untyped string parameters."""

    if stored == value and type(stored) is not bool and type(value) is not bool:
        return True
    if isinstance(stored, bool) or isinstance(value, bool):
        return str(stored).lower() == str(value).lower()
    if isinstance(value, str) and not isinstance(stored, str) and stored is not None:
        return str(stored) == value.strip()
    return stored == value


class InMemoryStore:
    """Dict-backed `RelationStore` with call recording and failure injection."""

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {name: [] for name in RELATION_COLUMNS}
        self._next_id: dict[str, int] = {VOLUNTEERS: 1, ROLES: 1, COHORTS: 1}
        self.calls: list[str] = []
        self.fail_on: dict[str, StoreError] = {}

    # -- seeding helpers -------------------------------------------------------------------

    def add_volunteer(self, name_org: str, **fields: Any) -> int:
        return int(self._insert_row(VOLUNTEERS, {"name_org": name_org, **fields})["id"])

    def add_role(self, name: str, role_type: str = "current") -> int:
        return int(self._insert_row(ROLES, {"name": name, "type": role_type})["id"])

    def add_cohort(self, term: str, year: int) -> int:
        return int(self._insert_row(COHORTS, {"term": term, "year": year})["id"])

    def link_role(self, volunteer_id: int, role_id: int) -> None:
        self._insert_row(VOLUNTEER_ROLES, {"volunteer_id": volunteer_id, "role_id": role_id})

    def link_cohort(self, volunteer_id: int, cohort_id: int) -> None:
        self._insert_row(VOLUNTEER_COHORTS, {"volunteer_id": volunteer_id, "cohort_id": cohort_id})

    # -- internals -------------------------------------------------------------------------

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise self.fail_on[method]

    def _conflicts(self, relation: str, row: Row) -> bool:
        for key in _UNIQUE_KEYS.get(relation, ()):
            if any(row.get(c) is None for c in key):
                continue
            for existing in self.tables[relation]:
                if all(existing.get(c) == row.get(c) for c in key):
                    return True
        return False

    def _insert_row(self, relation: str, values: Mapping[str, Any], *, if_absent: bool = False) -> Row | None:
        columns = RELATION_COLUMNS[relation]
        row: Row = {c: None for c in columns}
        row.update(_DEFAULTS.get(relation, {}))
        row.update(values)

        if self._conflicts(relation, row):
            if if_absent:
                return None
            raise StoreError(
                f'duplicate key value violates unique constraint on "{relation}"',
                code=UNIQUE_VIOLATION,
            )

        if "id" in columns:
            row["id"] = self._next_id[relation]
            self._next_id[relation] += 1
        self.tables[relation].append(row)
        return dict(row)

    def _matching(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]:
        return [
            row
            for row in self.tables[relation]
            if all(
                row.get(c) is None if v is None else _same(row.get(c), v)
                for c, v in criteria.items()
            )
        ]

    # -- RelationStore ---------------------------------------------------------------------

    async def equals(self, relation: str, column: str, value: Any) -> list[Row]:
        self._record("equals")
        return [dict(r) for r in self._matching(relation, {column: value})]

    async def match(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]:
        self._record("match")
        return [dict(r) for r in self._matching(relation, criteria)]

    async def select_all(self, relation: str) -> list[Row]:
        self._record("select_all")
        return [dict(r) for r in self.tables[relation]]

    async def in_(self, relation: str, column: str, values: Sequence[Any]) -> list[Row]:
        self._record("in_")
        return [
            dict(r)
            for r in self.tables[relation]
            if any(_same(r.get(column), v) for v in values)
        ]

    async def join_filter_in(
            self,
            relation: str,
            joined_relation: str,
            joined_columns: str | Sequence[str],
            values: Sequence[Any],
    ) -> list[Row]:
        self._record("join_filter_in")
        local_key, joined_key = JOIN_KEYS[(relation, joined_relation)]
        columns = [joined_columns] if isinstance(joined_columns, str) else list(joined_columns)

        def wanted(joined: Row) -> bool:
            if len(columns) == 1:
                return any(_same(joined[columns[0]], v) for v in values)
            return any(
                all(_same(joined[c], part) for c, part in zip(columns, value))
                for value in values
            )

        rows: list[Row] = []
        for row in self.tables[relation]:
            for joined in self.tables[joined_relation]:
                if joined[joined_key] == row[local_key] and wanted(joined):
                    rows.append({**row, joined_relation: dict(joined)})
        return rows

    async def insert(
            self,
            relation: str,
            rows: Sequence[Mapping[str, Any]],
            *,
            if_absent: bool = False,
    ) -> list[Row]:
        self._record("insert")
        snapshot = copy.deepcopy(self.tables)
        inserted: list[Row] = []
        try:
            for values in rows:
                row = self._insert_row(relation, values, if_absent=if_absent)
                if row is not None:
                    inserted.append(row)
        except StoreError:
            self.tables = snapshot
            raise
        return inserted

    async def update(
            self,
            relation: str,
            patch: Mapping[str, Any],
            key_column: str,
            key_value: Any,
    ) -> Row | None:
        self._record("update")
        for row in self._matching(relation, {key_column: key_value}):
            row.update(patch)
            return dict(row)
        return None

    async def delete(self, relation: str, criteria: Mapping[str, Any]) -> list[Row]:
        self._record("delete")
        doomed = self._matching(relation, criteria)
        self.tables[relation] = [r for r in self.tables[relation] if r not in doomed]
        for child, column in _CASCADES.get(relation, ()):
            ids = {r["id"] for r in doomed}
            self.tables[child] = [r for r in self.tables[child] if r[column] not in ids]
        return [dict(r) for r in doomed]

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Any:
        self._record("call_procedure")
        if name != "create_volunteer_with_role_and_cohort":
            raise StoreError(f"function {name} does not exist", code="42883")

        snapshot = copy.deepcopy(self.tables)
        next_ids = dict(self._next_id)
        try:
            role = self._get_or_create(ROLES, {"name": args["p_role_name"], "type": args["p_role_type"]})
            cohort = self._get_or_create(
                COHORTS, {"year": args["p_cohort_year"], "term": args["p_cohort_term"]}
            )
            volunteer = self._insert_row(VOLUNTEERS, dict(args["p_volunteer"]))
            assert volunteer is not None
            self._insert_row(
                VOLUNTEER_ROLES,
                {"volunteer_id": volunteer["id"], "role_id": role["id"]},
                if_absent=True,
            )
            self._insert_row(
                VOLUNTEER_COHORTS,
                {"volunteer_id": volunteer["id"], "cohort_id": cohort["id"]},
                if_absent=True,
            )
        except StoreError:
            self.tables = snapshot
            self._next_id = next_ids
            raise
        return volunteer["id"]

    def _get_or_create(self, relation: str, key: Mapping[str, Any]) -> Row:
        existing = self._matching(relation, key)
        if existing:
            return existing[0]
        row = self._insert_row(relation, key)
        assert row is not None
        return row

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryStore]:
        self._record("transaction")
        snapshot = copy.deepcopy(self.tables)
        next_ids = dict(self._next_id)
        try:
            yield self
        except BaseException:
            self.tables = snapshot
            self._next_id = next_ids
            raise


@pytest.fixture()
def store() -> InMemoryStore:
    """An empty in-memory store."""

    return InMemoryStore()


@pytest.fixture()
def seeded_store() -> InMemoryStore:
    """A small volunteer dataset.

    Volunteers: 1 Alice (member), 2 Bob (staff), 3 Carol (volunteer), 4 Dan (member).
    Roles: Mentor/current -> Alice; Tutor/current -> Alice, Bob; Mentor/prior -> Carol.
    Cohorts: Fall 2024 -> Alice; Spring 2025 -> Alice, Bob; Fall 2025 -> Carol.
    """

    s = InMemoryStore()
    alice = s.add_volunteer(
        "Alice", email="alice@example.org", pronouns="she/her", position="member"
    )
    bob = s.add_volunteer(
        "Bob",
        email="bob@example.org",
        pronouns="he/him",
        position="staff",
        opt_in_communication=False,
    )
    carol = s.add_volunteer(
        "Carol", email="carol@example.org", pronouns="she/her", position="volunteer"
    )
    s.add_volunteer("Dan", email="dan@example.org", pronouns="they/them", position="member")

    mentor = s.add_role("Mentor", "current")
    tutor = s.add_role("Tutor", "current")
    prior_mentor = s.add_role("Mentor", "prior")
    s.link_role(alice, mentor)
    s.link_role(alice, tutor)
    s.link_role(bob, tutor)
    s.link_role(carol, prior_mentor)

    fall_2024 = s.add_cohort("Fall", 2024)
    spring_2025 = s.add_cohort("Spring", 2025)
    fall_2025 = s.add_cohort("Fall", 2025)
    s.link_cohort(alice, fall_2024)
    s.link_cohort(alice, spring_2025)
    s.link_cohort(bob, spring_2025)
    s.link_cohort(carol, fall_2025)

    s.calls.clear()
    return s
