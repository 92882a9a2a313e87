"""Application factory: providers, CORS, templates and routers."""
from __future__ import annotations

import os

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from tools_server.core import oauth, urls
from tools_server.core.config import Settings, get_settings
from tools_server.core.log import get_logger
from tools_server.routers import accounts as accounts_router
from tools_server.routers import auth as auth_router
from tools_server.routers import components as components_router
from tools_server.routers import pages as pages_router
from tools_server.routers import queries as queries_router
from tools_server.routers.common import register

BASE = os.path.dirname(__file__)
logger = get_logger(__name__)


def initialize_providers(settings: Settings) -> None:
    if settings.auth_provider == "google":
        oauth.use_providers(
            oauth.GoogleProvider(settings.auth_key, settings.auth_secret, settings.auth_callback_url),
        )
    elif settings.auth_provider:
        logger.warning("Unsupported auth provider %r; login is disabled", settings.auth_provider)


async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the ASGI app; the datastore must already be initialized and migrated."""
    settings = settings or get_settings()
    app = FastAPI(title="Internal Tools Server")
    app.state.settings = settings
    app.state.templates = Jinja2Templates(directory=os.path.join(BASE, "templates"))

    initialize_providers(settings)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(auth_router.router)
    app.include_router(accounts_router.router)
    app.include_router(components_router.router)
    app.include_router(pages_router.router)
    app.include_router(queries_router.router)

    health_router = APIRouter(tags=["health"])
    register(health_router, urls.HEALTH_URL, health, "GET", auth=False)
    app.include_router(health_router)
    return app
