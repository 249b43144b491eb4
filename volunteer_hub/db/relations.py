"""Allowlisted SQL identifiers.

Every relation, column, join and procedure name referenced in generated SQL must come from these
mappings; no caller-provided identifier is ever interpolated into SQL.
"""

from __future__ import annotations

VOLUNTEERS = "volunteers"
ROLES = "roles"
COHORTS = "cohorts"
VOLUNTEER_ROLES = "volunteer_roles"
VOLUNTEER_COHORTS = "volunteer_cohorts"

RELATION_COLUMNS: dict[str, tuple[str, ...]] = {
    VOLUNTEERS: (
        "id",
        "name_org",
        "pseudonym",
        "pronouns",
        "email",
        "phone",
        "position",
        "opt_in_communication",
        "notes",
        "created_at",
        "updated_at",
    ),
    ROLES: ("id", "name", "type", "is_active", "created_at"),
    COHORTS: ("id", "year", "term", "is_active", "created_at"),
    VOLUNTEER_ROLES: ("volunteer_id", "role_id", "created_at"),
    VOLUNTEER_COHORTS: ("volunteer_id", "cohort_id", "created_at"),
}

# (relation, joined relation) -> (column on relation, column on joined relation)
JOIN_KEYS: dict[tuple[str, str], tuple[str, str]] = {
    (VOLUNTEER_ROLES, ROLES): ("role_id", "id"),
    (VOLUNTEER_ROLES, VOLUNTEERS): ("volunteer_id", "id"),
    (VOLUNTEER_COHORTS, COHORTS): ("cohort_id", "id"),
    (VOLUNTEER_COHORTS, VOLUNTEERS): ("volunteer_id", "id"),
}

# procedure name -> ordered argument names
PROCEDURES: dict[str, tuple[str, ...]] = {
    "create_volunteer_with_role_and_cohort": (
        "p_volunteer",
        "p_role_name",
        "p_role_type",
        "p_cohort_year",
        "p_cohort_term",
    ),
}

# Volunteer columns a general filter clause may reference.
VOLUNTEER_FILTER_COLUMNS: tuple[str, ...] = (
    "name_org",
    "pseudonym",
    "pronouns",
    "email",
    "phone",
    "position",
    "opt_in_communication",
    "notes",
    "created_at",
    "updated_at",
    "id",
)
