"""Deterministic SQL statement builder.

Turns relation-store calls into parameterized SQL. Identifiers (relations, columns, join keys,
procedures) are strictly allowlisted against `volunteer_hub.db.relations`; only values become bound
parameters.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from volunteer_hub.db.relations import JOIN_KEYS, PROCEDURES, RELATION_COLUMNS


class StatementError(ValueError):
    """Raised when a store call references an identifier outside the allowlist."""


@dataclass(frozen=True)
class BuiltQuery:
    """A parameterized SQL statement ready for execution."""

    sql: str
    params: tuple[Any, ...]


def _columns_of(relation: str) -> tuple[str, ...]:
    try:
        return RELATION_COLUMNS[relation]
    except KeyError as exc:
        raise StatementError(f"Unknown relation: {relation}") from exc


def _check_column(relation: str, column: str) -> str:
    if column not in _columns_of(relation):
        raise StatementError(f"Unknown column {column!r} on relation {relation!r}")
    return column


def _select_list(relation: str, alias: str | None = None) -> str:
    prefix = f"{alias}." if alias else ""
    return ", ".join(prefix + c for c in _columns_of(relation))


def _placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)


def _where_and(clauses: list[str]) -> str:
    if not clauses:
        return ""
    return "WHERE " + " AND ".join(clauses)


def _equality_clauses(relation: str, criteria: Mapping[str, Any]) -> tuple[list[str], list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in criteria.items():
        _check_column(relation, column)
        if value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = %s")
            params.append(value)
    return clauses, params


def build_match(relation: str, criteria: Mapping[str, Any]) -> BuiltQuery:
    """`SELECT` rows whose columns equal every value in `criteria` (all rows when empty)."""

    clauses, params = _equality_clauses(relation, criteria)
    sql = f"SELECT {_select_list(relation)} FROM {relation} {_where_and(clauses)}".strip()
    return BuiltQuery(sql=sql, params=tuple(params))


def build_in(relation: str, column: str, values: Sequence[Any]) -> BuiltQuery:
    """`SELECT` rows whose `column` is a member of `values`."""

    _check_column(relation, column)
    if not values:
        raise StatementError("IN filter requires at least one value")

    sql = (
        f"SELECT {_select_list(relation)} FROM {relation} "
        f"WHERE {column} IN ({_placeholders(len(values))})"
    )
    return BuiltQuery(sql=sql, params=tuple(values))


def build_join_filter_in(
        relation: str,
        joined_relation: str,
        joined_columns: str | Sequence[str],
        values: Sequence[Any],
) -> BuiltQuery:
    """Inner-join `relation` to `joined_relation`, filtering on the joined relation.

    With a single column, `values` are scalars (`j.name IN (...)`). With several columns, every value
    is a tuple matched as a row constructor (`(j.term, j.year) IN ((%s, %s), ...)`), which gives a
    disjunction of per-row conjunctions.

    Each result row holds the columns of `relation` plus the whole joined row as a JSON object under
    the joined relation's name.
    """

    try:
        local_key, joined_key = JOIN_KEYS[(relation, joined_relation)]
    except KeyError as exc:
        raise StatementError(f"No join defined from {relation} to {joined_relation}") from exc

    columns = [joined_columns] if isinstance(joined_columns, str) else list(joined_columns)
    if not columns:
        raise StatementError("join filter requires at least one joined column")
    for column in columns:
        _check_column(joined_relation, column)
    if not values:
        raise StatementError("IN filter requires at least one value")

    params: list[Any] = []
    if len(columns) == 1:
        condition = f"j.{columns[0]} IN ({_placeholders(len(values))})"
        params.extend(values)
    else:
        row_ref = "(" + ", ".join(f"j.{c}" for c in columns) + ")"
        rows: list[str] = []
        for value in values:
            if len(value) != len(columns):
                raise StatementError("join filter tuple width does not match joined columns")
            rows.append(f"({_placeholders(len(columns))})")
            params.extend(value)
        condition = f"{row_ref} IN ({', '.join(rows)})"

    sql = (
        f"SELECT {_select_list(relation, 'r')}, to_jsonb(j) AS {joined_relation} "
        f"FROM {relation} r JOIN {joined_relation} j ON j.{joined_key} = r.{local_key} "
        f"WHERE {condition}"
    )
    return BuiltQuery(sql=sql, params=tuple(params))


def build_insert(
        relation: str,
        rows: Sequence[Mapping[str, Any]],
        *,
        if_absent: bool = False,
) -> BuiltQuery:
    """Multi-row `INSERT ... RETURNING`.

    All rows must carry the same keys. With `if_absent=True` conflicting rows are skipped
    (`ON CONFLICT DO NOTHING`) and only actually inserted rows are returned.
    """

    if not rows:
        raise StatementError("insert requires at least one row")

    columns = list(rows[0].keys())
    if not columns:
        raise StatementError("insert rows must have at least one column")
    for column in columns:
        _check_column(relation, column)

    params: list[Any] = []
    tuples: list[str] = []
    for row in rows:
        if list(row.keys()) != columns:
            raise StatementError("insert rows must share the same columns")
        tuples.append(f"({_placeholders(len(columns))})")
        params.extend(row[c] for c in columns)

    conflict = " ON CONFLICT DO NOTHING" if if_absent else ""
    sql = (
        f"INSERT INTO {relation} ({', '.join(columns)}) VALUES {', '.join(tuples)}"
        f"{conflict} RETURNING {_select_list(relation)}"
    )
    return BuiltQuery(sql=sql, params=tuple(params))


def build_update(
        relation: str,
        patch: Mapping[str, Any],
        key_column: str,
        key_value: Any,
) -> BuiltQuery:
    """`UPDATE ... SET ... WHERE key = %s RETURNING` the updated row."""

    if not patch:
        raise StatementError("update requires at least one column")
    _check_column(relation, key_column)

    assignments: list[str] = []
    params: list[Any] = []
    for column, value in patch.items():
        _check_column(relation, column)
        assignments.append(f"{column} = %s")
        params.append(value)
    params.append(key_value)

    sql = (
        f"UPDATE {relation} SET {', '.join(assignments)} WHERE {key_column} = %s "
        f"RETURNING {_select_list(relation)}"
    )
    return BuiltQuery(sql=sql, params=tuple(params))


def build_delete(relation: str, criteria: Mapping[str, Any]) -> BuiltQuery:
    """`DELETE ... RETURNING` rows matching every value in `criteria`.

    An empty `criteria` is rejected; there is no "delete everything" statement.
    """

    if not criteria:
        raise StatementError("delete requires at least one key column")
    clauses, params = _equality_clauses(relation, criteria)
    sql = f"DELETE FROM {relation} {_where_and(clauses)} RETURNING {_select_list(relation)}"
    return BuiltQuery(sql=sql, params=tuple(params))


def build_procedure_call(name: str, args: Mapping[str, Any]) -> BuiltQuery:
    """`SELECT fn(arg => %s, ...) AS result` for an allowlisted stored function."""

    try:
        arg_names = PROCEDURES[name]
    except KeyError as exc:
        raise StatementError(f"Unknown procedure: {name}") from exc

    unexpected = set(args) - set(arg_names)
    if unexpected:
        raise StatementError(f"Unexpected argument(s) for {name}: {', '.join(sorted(unexpected))}")
    missing = [a for a in arg_names if a not in args]
    if missing:
        raise StatementError(f"Missing argument(s) for {name}: {', '.join(missing)}")

    bindings = ", ".join(f"{a} => %s" for a in arg_names)
    sql = f"SELECT {name}({bindings}) AS result"
    return BuiltQuery(sql=sql, params=tuple(args[a] for a in arg_names))
