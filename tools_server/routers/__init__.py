"""
FastAPI routers grouped by domain (auth, accounts, pages, components, queries).

Each module exposes an ``APIRouter`` included by ``tools_server.app``. Every
route is a plain handler wrapped in the middleware chain from
``tools_server.core.middleware``.
"""
