from __future__ import annotations

from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from tools_server.core import urls
from tools_server.routers.common import as_http_error, json_response, read_payload, records, register
from tools_server.schemas import PageCreate, PageOut, PageUpdate
from tools_server.services.records_service import PageService, RecordError

router = APIRouter(prefix=urls.API_V1, tags=["pages"])
_service = PageService()


async def get_pages(request: Request) -> Response:
    try:
        pages = await run_in_threadpool(_service.list_for, request.state.user)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(records(PageOut, pages))


async def create_page(request: Request) -> Response:
    payload = await read_payload(request, PageCreate)
    try:
        page = await run_in_threadpool(_service.create, request.state.user, payload)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(PageOut.model_validate(page), status_code=201)


async def update_page(request: Request) -> Response:
    payload = await read_payload(request, PageUpdate)
    try:
        page = await run_in_threadpool(_service.update, request.state.user, payload)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(PageOut.model_validate(page))


register(router, urls.PAGE_URL, get_pages, "GET")
register(router, urls.PAGE_URL, create_page, "POST")
register(router, urls.PAGE_URL, update_page, "PUT")
