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
from tools_server.schemas import ExecuteQueryRequest, QueryCreate, QueryOut, QueryUpdate
from tools_server.services.query_service import QueryError, QueryService
from tools_server.services.records_service import RecordError

router = APIRouter(prefix=urls.API_V1, tags=["queries"])
_service = QueryService()


async def get_queries(request: Request) -> Response:
    page_id = optional_int(request, "page_id")
    try:
        queries = await run_in_threadpool(_service.list_for, request.state.user, page_id=page_id)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(records(QueryOut, queries))


async def create_query(request: Request) -> Response:
    payload = await read_payload(request, QueryCreate)
    try:
        query = await run_in_threadpool(_service.create, request.state.user, payload)
    except (RecordError, QueryError) as exc:
        raise as_http_error(exc) from exc
    return json_response(QueryOut.model_validate(query), status_code=201)


async def update_query(request: Request) -> Response:
    payload = await read_payload(request, QueryUpdate)
    try:
        query = await run_in_threadpool(_service.update, request.state.user, payload)
    except (RecordError, QueryError) as exc:
        raise as_http_error(exc) from exc
    return json_response(QueryOut.model_validate(query))


async def post_query(request: Request) -> Response:
    payload = await read_payload(request, ExecuteQueryRequest)
    try:
        result = await _service.execute(request.state.user, payload)
    except (RecordError, QueryError) as exc:
        raise as_http_error(exc) from exc
    return json_response(result)


register(router, urls.QUERY_EXECUTE_URL, post_query, "POST")
register(router, urls.QUERY_URL, get_queries, "GET")
register(router, urls.QUERY_URL, create_query, "POST")
register(router, urls.QUERY_URL, update_query, "PUT")
