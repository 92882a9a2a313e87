from __future__ import annotations

from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from tools_server.core import urls
from tools_server.routers.common import as_http_error, json_response, read_payload, records, register
from tools_server.schemas import AccountCreate, AccountOut, AccountUpdate
from tools_server.services.records_service import AccountService, RecordError

router = APIRouter(prefix=urls.API_V1, tags=["accounts"])
_service = AccountService()


async def get_accounts(request: Request) -> Response:
    accounts = await run_in_threadpool(_service.list_for, request.state.user)
    return json_response(records(AccountOut, accounts))


async def create_account(request: Request) -> Response:
    payload = await read_payload(request, AccountCreate)
    account = await run_in_threadpool(_service.create, request.state.user, payload)
    return json_response(AccountOut.model_validate(account), status_code=201)


async def update_account(request: Request) -> Response:
    payload = await read_payload(request, AccountUpdate)
    try:
        account = await run_in_threadpool(_service.update, request.state.user, payload)
    except RecordError as exc:
        raise as_http_error(exc) from exc
    return json_response(AccountOut.model_validate(account))


register(router, urls.ACCOUNT_URL, get_accounts, "GET")
register(router, urls.ACCOUNT_URL, create_account, "POST")
register(router, urls.ACCOUNT_URL, update_account, "PUT")
