"""
Request middleware chain.

A handler is an async callable taking a ``Request`` and returning a
``Response``; a middleware takes a handler and returns a new one. Routes are
registered as::

    chain(handler, method("GET"), authenticated(), logging())

``chain`` applies the middlewares in the order given, so the last one listed
wraps all the others and runs first. Wrappers keep the handler's signature
(``functools.wraps``) so FastAPI still injects the ``Request``.
"""

from __future__ import annotations

import functools
import time
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from tools_server.core.log import get_logger
from tools_server.services.session_service import current_user

Handler = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Handler], Handler]

logger = get_logger("tools_server.requests")


def chain(handler: Handler, *middlewares: Middleware) -> Handler:
    for middleware in middlewares:
        handler = middleware(handler)
    return handler


def method(verb: str) -> Middleware:
    """Reject requests whose HTTP method is not ``verb`` with 405."""
    allowed = verb.upper()

    def middleware(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(request: Request) -> Response:
            if request.method.upper() != allowed:
                return JSONResponse(
                    {"detail": "Method Not Allowed"},
                    status_code=405,
                    headers={"Allow": allowed},
                )
            return await handler(request)

        return wrapper

    return middleware


def authenticated() -> Middleware:
    """Require a valid session cookie; the user lands on ``request.state.user``."""

    def middleware(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(request: Request) -> Response:
            user = await run_in_threadpool(current_user, request)
            if user is None:
                return JSONResponse({"detail": "Not authenticated"}, status_code=401)
            request.state.user = user
            return await handler(request)

        return wrapper

    return middleware


def logging() -> Middleware:
    """Log method, path, status and duration of every request."""

    def middleware(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(request: Request) -> Response:
            start = time.perf_counter()
            status = 500
            try:
                response = await handler(request)
                status = response.status_code
                return response
            except HTTPException as exc:
                status = exc.status_code
                raise
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.info("%s %s %s %.1fms", request.method, request.url.path, status, elapsed_ms)

        return wrapper

    return middleware
