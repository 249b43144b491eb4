"""Validated filter clause types.

Instances are produced only by `volunteer_hub.filters.validator`; the clause evaluator trusts them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from volunteer_hub.db.relations import VOLUNTEER_FILTER_COLUMNS


class FilterOp(StrEnum):
    """Boolean operator, used both per clause and globally."""

    AND = "AND"
    OR = "OR"


class ClauseKind(StrEnum):
    """Which evaluation strategy a clause needs."""

    general = "general"
    roles = "roles"
    cohorts = "cohorts"


ROLES_FIELD = "roles"
COHORTS_FIELD = "cohorts"

ALLOWED_FIELDS: tuple[str, ...] = (*VOLUNTEER_FILTER_COLUMNS, ROLES_FIELD, COHORTS_FIELD)

CohortValue = tuple[str, int]


@dataclass(frozen=True)
class Clause:
    """One normalized filter criterion.

    `values` holds strings for general and role clauses, and `(term, year)` pairs with a title-case
    term and integer year for cohort clauses.
    """

    field: str
    mini_op: FilterOp
    values: tuple[str, ...] | tuple[CohortValue, ...]

    @property
    def kind(self) -> ClauseKind:
        if self.field == ROLES_FIELD:
            return ClauseKind.roles
        if self.field == COHORTS_FIELD:
            return ClauseKind.cohorts
        return ClauseKind.general


def cohort_key(term: str, year: int | str) -> str:
    """Key used to compare matched cohorts with requested ones (`"Fall-2025"`)."""

    return f"{term}-{year}"
