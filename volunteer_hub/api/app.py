"""FastAPI application factory and error mapping.

Error contract: input errors -> 400, missing target record -> 404, duplicate volunteer -> 409, any
other store failure -> 500. Every error body is `{"error": "<single line>"}`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from volunteer_hub.api.routes import router
from volunteer_hub.app import App
from volunteer_hub.errors import (
    DuplicateVolunteerError,
    InputValidationError,
    MissingReferenceError,
    NotFoundError,
    RecordValidationError,
    StoreError,
)

logger = logging.getLogger(__name__)


def _input_error(_request: Request, exc: Exception) -> JSONResponse:
    content: dict[str, object] = {"error": str(exc)}
    if isinstance(exc, RecordValidationError) and exc.errors:
        content["validation_errors"] = [
            {"field": e.field, "message": e.message} for e in exc.errors
        ]
    logger.info("rejected input reason=%s", exc)
    return JSONResponse(status_code=400, content=content)


def _missing_reference(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


def _not_found(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


def _duplicate(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc)})


def _store_error(request: Request, exc: Exception) -> JSONResponse:
    code = exc.code if isinstance(exc, StoreError) else None
    logger.error(
        "store failure path=%s code=%s error=%s", request.url.path, code, exc, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_api(app: App) -> FastAPI:
    """Build the HTTP application around an `App` container.

    The pool (when there is one) is opened on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(_api: FastAPI) -> AsyncIterator[None]:
        if app.pool is None:
            yield
            return

        await app.pool.open(wait=True)
        try:
            yield
        finally:
            logger.info("shutting down")
            await app.pool.close()

    api = FastAPI(title="volunteer-hub", lifespan=lifespan)
    api.state.app = app

    api.add_exception_handler(InputValidationError, _input_error)
    api.add_exception_handler(MissingReferenceError, _missing_reference)
    api.add_exception_handler(NotFoundError, _not_found)
    api.add_exception_handler(DuplicateVolunteerError, _duplicate)
    api.add_exception_handler(StoreError, _store_error)

    @api.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    api.include_router(router)
    return api
