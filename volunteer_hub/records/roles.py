"""Role record services."""

from __future__ import annotations

import logging
from typing import Any

from volunteer_hub.db.relations import ROLES
from volunteer_hub.db.store import RelationStore
from volunteer_hub.errors import FieldError, NotFoundError, RecordValidationError
from volunteer_hub.records.schema import RoleCreate, RoleKey, parse_record

logger = logging.getLogger(__name__)


def parse_roles(payload: Any) -> list[RoleCreate]:
    """Validate one role object or a list of them."""

    raw_roles = payload if isinstance(payload, list) else [payload]
    if not raw_roles:
        raise RecordValidationError(
            "Roles input cannot be empty.",
            [FieldError(field="roles", message="Roles input cannot be empty.")],
        )
    return [
        parse_record(RoleCreate, raw, what="role", prefix=f"roles.{index}.")
        for index, raw in enumerate(raw_roles)
    ]


async def add_roles(store: RelationStore, payload: Any) -> list[dict[str, Any]]:
    """Insert one or more roles in a single statement; returns the inserted rows."""

    roles = parse_roles(payload)
    rows = await store.insert(ROLES, [r.model_dump(mode="json") for r in roles])
    logger.info("roles added count=%d", len(rows))
    return rows


async def list_roles(store: RelationStore) -> list[dict[str, Any]]:
    return await store.select_all(ROLES)


async def remove_role(store: RelationStore, name: Any, role_type: Any) -> int:
    """Delete the role with this (name, type); its memberships cascade. Returns rows deleted.

    Raises:
        RecordValidationError: If name or type is invalid.
        NotFoundError: If no such role exists.
    """

    key = parse_record(RoleKey, {"name": name, "type": role_type}, what="role")
    deleted = await store.delete(ROLES, {"name": key.name, "type": key.type.value})
    if not deleted:
        raise NotFoundError(f"Role with name {key.name} and type {key.type.value} not found")

    logger.info("role removed name=%s type=%s", key.name, key.type.value)
    return len(deleted)
