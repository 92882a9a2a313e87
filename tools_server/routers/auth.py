from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool

from tools_server.core import oauth, urls
from tools_server.core.config import get_settings
from tools_server.routers.common import json_response, register
from tools_server.schemas import UserProfile
from tools_server.services.auth_service import (
    AuthService,
    DomainNotAllowedError,
    ProviderFailedError,
    StateMismatchError,
    UnknownProviderError,
)
from tools_server.services.session_service import (
    SESSION_COOKIE_NAME,
    clear_session_cookie,
    current_user,
    set_session_cookie,
)

router = APIRouter(tags=["auth"])

STATE_COOKIE_NAME = "oauth_state"
STATE_TTL_SECONDS = 600


def _templates(request: Request):
    tpl = getattr(getattr(request.app, "state", None), "templates", None)
    if tpl:
        return tpl
    raise RuntimeError("Templates not configured")


async def login(request: Request) -> Response:
    providers = [{"name": name, "url": urls.auth_url(name)} for name in oauth.providers()]
    user = await run_in_threadpool(current_user, request)
    return _templates(request).TemplateResponse(
        request,
        "login.html",
        {"providers": providers, "user": user, "logout_url": urls.LOGOUT_URL},
    )


async def initiate_auth(request: Request) -> Response:
    try:
        redirect = AuthService().begin(request.path_params["provider"])
    except UnknownProviderError as exc:
        raise HTTPException(404, str(exc))
    resp = RedirectResponse(redirect.url, status_code=302)
    resp.set_cookie(
        STATE_COOKIE_NAME,
        redirect.state_cookie,
        max_age=STATE_TTL_SECONDS,
        httponly=True,
        secure=get_settings().secure_cookies,
        samesite="lax",
        path="/",
    )
    return resp


async def auth_callback(request: Request) -> Response:
    error = request.query_params.get("error")
    if error:
        raise HTTPException(401, f"Login was denied by the provider: {error}")
    service = AuthService()
    try:
        outcome = await service.complete(
            request.path_params["provider"],
            code=request.query_params.get("code"),
            state=request.query_params.get("state"),
            state_cookie=request.cookies.get(STATE_COOKIE_NAME),
        )
    except UnknownProviderError as exc:
        raise HTTPException(404, str(exc))
    except (StateMismatchError, DomainNotAllowedError) as exc:
        raise HTTPException(403, str(exc))
    except ProviderFailedError as exc:
        raise HTTPException(502, str(exc))
    await run_in_threadpool(service.logout, request.cookies.get(SESSION_COOKIE_NAME))
    resp = RedirectResponse(service.settings.auth_redirect_url, status_code=302)
    set_session_cookie(resp, outcome.session_token)
    resp.delete_cookie(STATE_COOKIE_NAME, path="/")
    return resp


async def logout(request: Request) -> Response:
    await run_in_threadpool(AuthService().logout, request.cookies.get(SESSION_COOKIE_NAME))
    resp = RedirectResponse(urls.LOGIN_URL, status_code=302)
    clear_session_cookie(resp)
    return resp


async def get_user_profile(request: Request) -> Response:
    user = await run_in_threadpool(current_user, request)
    if user is None:
        raise HTTPException(401, "Not authenticated")
    profile = UserProfile.model_validate(await run_in_threadpool(AuthService().profile, user))
    return json_response(profile)


register(router, urls.LOGIN_URL, login, "GET", auth=False)
register(router, urls.AUTH_URL, initiate_auth, "GET", auth=False)
register(router, urls.AUTH_CALLBACK_URL, auth_callback, "GET", auth=False)
register(router, urls.LOGOUT_URL, logout, "GET", auth=False)
register(router, urls.PROFILE_URL, get_user_profile, "GET", auth=False)
