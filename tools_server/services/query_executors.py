"""Executors that run a query against its datasource, keyed by plugin type."""

from __future__ import annotations

import base64
import json
from typing import Any, Awaitable, Callable, Mapping

import httpx
from sqlalchemy import create_engine, text
from starlette.concurrency import run_in_threadpool

Executor = Callable[[Mapping[str, Any], str, Mapping[str, Any], float], Awaitable[tuple[int | None, Any]]]


class ExecutorError(Exception):
    """Raised when a datasource is misconfigured for its executor."""


def _datasource_url(datasource: Mapping[str, Any]) -> str:
    url = str((datasource or {}).get("url") or "").strip()
    if not url:
        raise ExecutorError("datasource.url is required")
    return url


def _mapping(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ExecutorError(f"{name} must be an object")
    return dict(value)


def _json_safe(value: Any) -> Any:
    # Binary columns come back as bytes; they are returned base64-encoded.
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def _run_sql(url: str, statement: str) -> Any:
    try:
        engine = create_engine(url, future=True)
    except ImportError as exc:
        raise ExecutorError(f"database driver is not installed: {exc}") from exc
    try:
        with engine.begin() as conn:
            result = conn.execute(text(statement))
            if result.returns_rows:
                return [{key: _json_safe(value) for key, value in row._mapping.items()} for row in result]
            return {"rowcount": result.rowcount}
    finally:
        engine.dispose()


async def execute_sql(datasource, body, config, timeout_s) -> tuple[int | None, Any]:
    if not (body or "").strip():
        raise ExecutorError("SQL query body is empty")
    rows = await run_in_threadpool(_run_sql, _datasource_url(datasource), body)
    return None, rows


async def execute_rest(datasource, body, config, timeout_s) -> tuple[int | None, Any]:
    url = _datasource_url(datasource).rstrip("/") + str(config.get("path") or "")
    verb = str(config.get("method") or "GET").upper()
    headers = _mapping((datasource or {}).get("headers"), "datasource.headers")
    headers.update(_mapping(config.get("headers"), "config.headers"))
    request_kwargs: dict[str, Any] = {
        "headers": {str(k): str(v) for k, v in headers.items()},
        "params": _mapping(config.get("query_params"), "config.query_params") or None,
    }
    if body:
        try:
            request_kwargs["json"] = json.loads(body)
        except ValueError:
            request_kwargs["content"] = body
    async with httpx.AsyncClient(timeout=timeout_s) as client:
        try:
            request = client.build_request(verb, url, **request_kwargs)
        except httpx.InvalidURL as exc:
            raise ExecutorError(f"invalid datasource url {url!r}: {exc}") from exc
        response = await client.send(request)
    try:
        payload = response.json()
    except ValueError:
        payload = response.text
    return response.status_code, payload


EXECUTORS: dict[str, Executor] = {
    "sql": execute_sql,
    "rest": execute_rest,
}
