"""HTTP routes.

Thin mapping from requests onto the filter engine and record services. Successful responses are
`{"data": ...}`; failures are turned into `{"error": ...}` by the handlers in
`volunteer_hub.api.app`.
"""

from __future__ import annotations

import json
import re
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from volunteer_hub.db.store import RelationStore
from volunteer_hub.errors import FieldError, RecordValidationError
from volunteer_hub.filters.engine import filter_volunteers
from volunteer_hub.records.cohorts import add_cohort, list_cohorts, remove_cohort
from volunteer_hub.records.roles import add_roles, list_roles, remove_role
from volunteer_hub.records.volunteers import (
    create_volunteer,
    delete_volunteer,
    list_volunteers_table,
    update_volunteer,
)

router = APIRouter(prefix="/api")

_INT_RE = re.compile(r"-?[0-9]+")


def get_store(request: Request) -> RelationStore:
    return request.app.state.app.store


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise RecordValidationError(
            "Invalid JSON in request body",
            [FieldError(field="general", message="Request body must be valid JSON")],
        ) from exc


def _int_or_raw(value: str | None) -> Any:
    if value is not None and _INT_RE.fullmatch(value.strip()):
        return int(value.strip())
    return value


@router.get("/volunteers/filter")
async def filter_volunteers_route(
        filters_list: str | None = None,
        op: str | None = None,
        store: RelationStore = Depends(get_store),
) -> Any:
    if not filters_list or not op:
        return _error(400, "Missing parameter")

    try:
        filters = json.loads(filters_list)
    except json.JSONDecodeError:
        return _error(400, "Invalid JSON for 'filters_list' parameter")

    return {"data": await filter_volunteers(store, filters, op)}


@router.get("/volunteers")
async def list_volunteers_route(store: RelationStore = Depends(get_store)) -> Any:
    entries = await list_volunteers_table(store)
    return {"data": [e.model_dump(mode="json") for e in entries]}


@router.post("/volunteers", status_code=201)
async def create_volunteer_route(
        request: Request,
        store: RelationStore = Depends(get_store),
) -> Any:
    volunteer_id = await create_volunteer(store, await _json_body(request))
    return {"data": {"id": volunteer_id}}


@router.patch("/volunteers/{volunteer_id}")
async def update_volunteer_route(
        volunteer_id: str,
        request: Request,
        store: RelationStore = Depends(get_store),
) -> Any:
    row = await update_volunteer(store, volunteer_id, await _json_body(request))
    return {"data": row}


@router.delete("/volunteers/{volunteer_id}")
async def delete_volunteer_route(
        volunteer_id: str,
        store: RelationStore = Depends(get_store),
) -> Any:
    deleted_id = await delete_volunteer(store, volunteer_id)
    return {"data": {"message": "Volunteer removed successfully.", "id": deleted_id}}


@router.get("/roles")
async def list_roles_route(store: RelationStore = Depends(get_store)) -> Any:
    return {"data": await list_roles(store)}


@router.post("/roles", status_code=201)
async def add_roles_route(request: Request, store: RelationStore = Depends(get_store)) -> Any:
    return {"data": await add_roles(store, await _json_body(request))}


@router.delete("/roles")
async def remove_role_route(
        name: str | None = None,
        type: str | None = None,
        store: RelationStore = Depends(get_store),
) -> Any:
    return {"data": {"deleted": await remove_role(store, name, type)}}


@router.get("/cohorts")
async def list_cohorts_route(store: RelationStore = Depends(get_store)) -> Any:
    return {"data": await list_cohorts(store)}


@router.post("/cohorts", status_code=201)
async def add_cohort_route(request: Request, store: RelationStore = Depends(get_store)) -> Any:
    return {"data": await add_cohort(store, await _json_body(request))}


@router.delete("/cohorts")
async def remove_cohort_route(
        year: str | None = None,
        term: str | None = None,
        store: RelationStore = Depends(get_store),
) -> Any:
    return {"data": {"deleted": await remove_cohort(store, _int_or_raw(year), term)}}
