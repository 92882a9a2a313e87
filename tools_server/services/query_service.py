"""Query use cases: validated create/update and execution with parameters."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Mapping

import httpx
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from tools_server.core.log import get_logger
from tools_server.db.models import Query, User
from tools_server.domain.queries import (
    extract_mustache_keys,
    params_to_map,
    substitute,
    validate_query,
)
from tools_server.schemas import ExecuteQueryRequest, ExecutionResult
from tools_server.services import query_executors
from tools_server.services.records_service import (
    RecordNotFoundError,
    RecordService,
    changes,
    require_account,
)

logger = get_logger(__name__)


class QueryError(Exception):
    """Base exception for query workflows."""


class InvalidQueryError(QueryError):
    """Raised for a blank name, a stored query marked invalid or bad params."""


def _derived(values: Mapping[str, Any]) -> dict[str, Any]:
    invalids = validate_query(
        name=values.get("name") or "",
        plugin_type=values.get("plugin_type"),
        datasource=values.get("datasource"),
        body=values.get("body"),
        config=values.get("config"),
    )
    return {
        "json_path_keys": extract_mustache_keys(values.get("body"), values.get("config"), values.get("datasource")),
        "is_valid": not invalids,
        "invalids": invalids,
    }


class QueryService(RecordService):
    """Stores queries with their validity and runs them through an executor."""

    def list_for(self, user: User, page_id: int | None = None) -> list[Query]:
        return self.repository.list_queries(require_account(user), page_id=page_id)

    def _owned_query(self, account_id: int, query_id: int) -> Query:
        entity = self.repository.get_query(query_id)
        if not entity or entity.account_id != account_id:
            raise RecordNotFoundError(f"Query {query_id} not found")
        return entity

    def create(self, user: User, payload) -> Query:
        account_id = require_account(user)
        if not (payload.name or "").strip():
            raise InvalidQueryError("name is required")
        self.owned_page(account_id, payload.page_id)
        values = payload.model_dump()
        values.update(_derived(values))
        return self.repository.create_query(account_id, **values)

    def update(self, user: User, payload) -> Query:
        account_id = require_account(user)
        entity = self._owned_query(account_id, payload.id)
        values = changes(payload, nullable={"page_id", "datasource", "body"})
        if "name" in values and not (values["name"] or "").strip():
            raise InvalidQueryError("name is required")
        if values.get("page_id") is not None:
            self.owned_page(account_id, values["page_id"])
        merged = {
            field: values.get(field, getattr(entity, field))
            for field in ("name", "plugin_type", "datasource", "body", "config")
        }
        values.update(_derived(merged))
        return self.repository.update_query(entity.id, **values)

    # -------------------------------------- execution --------------------------------------
    def _resolve(self, account_id: int, request: ExecuteQueryRequest) -> dict[str, Any]:
        if request.query_id is not None:
            entity = self._owned_query(account_id, request.query_id)
            if not entity.is_valid:
                raise InvalidQueryError(f"Query {entity.name!r} is invalid: {'; '.join(entity.invalids or [])}")
            return {
                "name": entity.name,
                "plugin_type": entity.plugin_type,
                "datasource": entity.datasource,
                "body": entity.body,
                "config": entity.config or {},
                "timeout_ms": entity.timeout_ms,
            }
        if request.query is not None:
            values = request.query.model_dump()
            invalids = validate_query(
                name=values["name"],
                plugin_type=values["plugin_type"],
                datasource=values["datasource"],
                body=values["body"],
                config=values["config"],
            )
            if invalids:
                raise InvalidQueryError("; ".join(invalids))
            return values
        raise InvalidQueryError("query_id or query is required")

    async def execute(self, user: User, request: ExecuteQueryRequest) -> ExecutionResult:
        account_id = require_account(user)
        for param in request.params:
            if param.value is None:
                raise InvalidQueryError(f"Invalid value for param {param.key!r}: null")
        query = await run_in_threadpool(self._resolve, account_id, request)
        params = params_to_map((p.key, str(p.value)) for p in request.params)

        datasource = substitute(query["datasource"] or {}, params)
        body = substitute(query["body"] or "", params)
        config = substitute(query["config"] or {}, params)
        executor = query_executors.EXECUTORS[query["plugin_type"]]
        timeout_s = max(1, int(query["timeout_ms"])) / 1000

        start = time.perf_counter()
        logger.debug("Executing %s query %s with timeout %sms", query["plugin_type"], query["name"], query["timeout_ms"])
        try:
            status_code, result = await asyncio.wait_for(executor(datasource, body, config, timeout_s), timeout_s)
            success = status_code is None or status_code < 400
        except asyncio.TimeoutError:
            status_code, result, success = None, f"Query timed out after {query['timeout_ms']}ms", False
        except (query_executors.ExecutorError, SQLAlchemyError, httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("Query %s failed: %s", query["name"], exc)
            status_code, result, success = None, str(exc), False
        return ExecutionResult(
            is_execution_success=success,
            status_code=status_code,
            body=result,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
