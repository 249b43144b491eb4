"""Static validation of a filter clause list and global operator.

Runs before any store access. Validation short-circuits on the first failure: the global operator
is checked first, then clauses in input order, and within a clause the field, then the operator,
then the values.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from volunteer_hub.filters.schema import (
    ALLOWED_FIELDS,
    COHORTS_FIELD,
    Clause,
    CohortValue,
    FilterOp,
)
from volunteer_hub.records.schema import MAX_COHORT_YEAR, MIN_COHORT_YEAR, CohortTerm

_COHORT_TERM_RE = re.compile(r"^(Fall|Spring|Summer|Winter)$", flags=re.IGNORECASE)
_YEAR_RE = re.compile(r"^[+-]?[0-9]+$")

ERR_NOT_A_LIST = "'filtersList' must be an array"
ERR_GLOBAL_OP = "Invalid global operation"
ERR_CLAUSE = "Invalid filter clause"
ERR_FIELD = "Invalid filter field"
ERR_FIELD_NAME = "Invalid filter field name"
ERR_MINI_OP = "Invalid filter mini-operation"
ERR_VALUES = "Invalid filter values"
ERR_COHORT_VALUES = "Invalid cohort filter values"
ERR_GENERAL_VALUES = "Invalid general or role filter values"


@dataclass(frozen=True)
class FilterValidation:
    """Outcome of `validate_filters`: cleaned clauses, or the first failing reason."""

    valid: bool
    op: FilterOp | None = None
    clauses: list[Clause] = field(default_factory=list)
    error: str | None = None


def _fail(reason: str, index: int | None = None) -> FilterValidation:
    if index is not None:
        reason = f"{reason} (clause {index})"
    return FilterValidation(valid=False, error=reason)


def parse_op(value: Any) -> FilterOp | None:
    """Normalize an AND/OR operator (case-insensitive); `None` when invalid."""

    if not isinstance(value, str):
        return None
    try:
        return FilterOp(value.strip().upper())
    except ValueError:
        return None


def _parse_year(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        year = value
    elif isinstance(value, str) and _YEAR_RE.fullmatch(value.strip()):
        year = int(value.strip())
    else:
        return None
    if not MIN_COHORT_YEAR <= year <= MAX_COHORT_YEAR:
        return None
    return year


def _parse_cohort_value(value: Any) -> CohortValue | None:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    term, raw_year = value
    if not isinstance(term, str) or not _COHORT_TERM_RE.fullmatch(term):
        return None
    year = _parse_year(raw_year)
    if year is None:
        return None
    return CohortTerm.parse(term).value, year


def _clean_clause(raw: Any) -> Clause | str:
    if not isinstance(raw, Mapping):
        return ERR_CLAUSE

    raw_field = raw.get("field")
    if not isinstance(raw_field, str) or not raw_field:
        return ERR_FIELD
    field_name = raw_field.lower()
    if field_name not in ALLOWED_FIELDS:
        return ERR_FIELD_NAME

    mini_op = parse_op(raw.get("miniOp", raw.get("mini_op")))
    if mini_op is None:
        return ERR_MINI_OP

    values = raw.get("values")
    if not isinstance(values, (list, tuple)) or not values:
        return ERR_VALUES

    if field_name == COHORTS_FIELD:
        cohorts: list[CohortValue] = []
        for value in values:
            parsed = _parse_cohort_value(value)
            if parsed is None:
                return ERR_COHORT_VALUES
            cohorts.append(parsed)
        return Clause(field=field_name, mini_op=mini_op, values=tuple(cohorts))

    if any(not isinstance(v, str) for v in values):
        return ERR_GENERAL_VALUES
    return Clause(field=field_name, mini_op=mini_op, values=tuple(values))


def validate_filters(filters_list: Any, op: Any) -> FilterValidation:
    """Validate and normalize a clause list plus global operator.

    Clause objects use the keys `field`, `miniOp` (or `mini_op`) and `values`. On success the
    returned clauses have a lower-cased field, an upper-cased operator and, for cohort clauses,
    `(Title-case term, int year)` values.
    """

    if not isinstance(filters_list, (list, tuple)):
        return _fail(ERR_NOT_A_LIST)

    global_op = parse_op(op)
    if global_op is None:
        return _fail(ERR_GLOBAL_OP)

    clauses: list[Clause] = []
    for index, raw in enumerate(filters_list):
        cleaned = _clean_clause(raw)
        if isinstance(cleaned, str):
            return _fail(cleaned, index)
        clauses.append(cleaned)

    return FilterValidation(valid=True, op=global_op, clauses=clauses)
