from __future__ import annotations

from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from tools_server.core import urls
from tools_server.routers.common import (
    as_http_error,
    json_response,
    optional_int,
    read_payload,
    records,
    register,
)
from tools_server.schemas import ComponentCreate, ComponentOut, ComponentUpdate
from tools_server.services.records_service import ComponentService, RecordError

router = APIRouter(prefix=urls.API_V1, tags=["components"])
_service = ComponentService()


async def get_components(request: Request) -> Response:
    page_id = optional_int(request, "page_id")
    try:
        components = await run_in_threadpool(_service.list_for, request.state.user, page_id=page_id)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(records(ComponentOut, components))


async def create_components(request: Request) -> Response:
    payload = await read_payload(request, ComponentCreate)
    try:
        component = await run_in_threadpool(_service.create, request.state.user, payload)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(ComponentOut.model_validate(component), status_code=201)


async def update_component(request: Request) -> Response:
    payload = await read_payload(request, ComponentUpdate)
    try:
        component = await run_in_threadpool(_service.update, request.state.user, payload)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(ComponentOut.model_validate(component))


register(router, urls.COMPONENT_URL, get_components, "GET")
register(router, urls.COMPONENT_URL, create_components, "POST")
register(router, urls.COMPONENT_URL, update_component, "PUT")
