"""Helpers shared by the routers: chained route registration and JSON payloads."""
from __future__ import annotations

from typing import Any, TypeVar

from fastapi import APIRouter, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from tools_server.core import middleware
from tools_server.services.query_service import InvalidQueryError
from tools_server.services.records_service import (
    AccountRequiredError,
    PermissionDeniedError,
    RecordNotFoundError,
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

ERROR_STATUS = {
    RecordNotFoundError: 404,
    AccountRequiredError: 403,
    PermissionDeniedError: 403,
    InvalidQueryError: 400,
}


def register(router: APIRouter, path: str, handler: middleware.Handler, verb: str, *, auth: bool = True) -> None:
    """Add ``handler`` to ``router`` behind the method/auth/logging chain.

    The route only matches ``verb``, so a wrong verb is normally answered with
    405 by the router itself; the ``method`` middleware keeps the handler
    safe when it is mounted under a route accepting more verbs.
    """
    chain = [middleware.method(verb)]
    if auth:
        chain.append(middleware.authenticated())
    chain.append(middleware.logging())
    router.add_api_route(path, middleware.chain(handler, *chain), methods=[verb])


async def read_payload(request: Request, schema: type[SchemaT]) -> SchemaT:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(400, "Request body must be valid JSON")
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        detail = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]
        raise HTTPException(400, detail)


def optional_int(request: Request, name: str) -> int | None:
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(400, f"{name} must be an integer")


def as_http_error(exc: Exception) -> HTTPException:
    status = next((code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)), 500)
    return HTTPException(status, str(exc))


def json_response(content: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(jsonable_encoder(content), status_code=status_code)


def records(schema: type[BaseModel], entities) -> list[BaseModel]:
    return [schema.model_validate(entity) for entity in entities]
