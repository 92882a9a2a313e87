"""
API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -------------------------- accounts --------------------------
class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class AccountUpdate(BaseModel):
    id: int
    name: str = Field(..., min_length=1, max_length=255)


class AccountOut(_Record):
    id: int
    name: str
    domain: str | None = None
    created_at: datetime
    updated_at: datetime


# -------------------------- users --------------------------
class UserProfile(_Record):
    id: int
    email: str
    name: str | None = None
    picture: str | None = None
    provider: str
    account_id: int | None = None
    role: str | None = None
    last_login_at: datetime | None = None


# -------------------------- pages --------------------------
class PageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    layout: dict[str, Any] = Field(default_factory=dict)


class PageUpdate(BaseModel):
    id: int
    name: str | None = Field(default=None, min_length=1, max_length=255)
    layout: dict[str, Any] | None = None


class PageOut(_Record):
    id: int
    account_id: int
    name: str
    layout: dict[str, Any]
    created_at: datetime
    updated_at: datetime


# -------------------------- components --------------------------
class ComponentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=64)
    page_id: int | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class ComponentUpdate(BaseModel):
    id: int
    name: str | None = Field(default=None, min_length=1, max_length=255)
    type: str | None = Field(default=None, min_length=1, max_length=64)
    page_id: int | None = None
    properties: dict[str, Any] | None = None


class ComponentOut(_Record):
    id: int
    account_id: int
    page_id: int | None = None
    name: str
    type: str
    properties: dict[str, Any]
    created_at: datetime
    updated_at: datetime


# -------------------------- queries --------------------------
class QueryCreate(BaseModel):
    name: str = Field(..., max_length=255)
    plugin_type: str = Field(default="sql", max_length=32)
    page_id: int | None = None
    datasource: dict[str, Any] | None = None
    body: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    timeout_ms: int = Field(default=10000, ge=1, le=300000)


class QueryUpdate(BaseModel):
    id: int
    name: str | None = Field(default=None, max_length=255)
    plugin_type: str | None = Field(default=None, max_length=32)
    page_id: int | None = None
    datasource: dict[str, Any] | None = None
    body: str | None = None
    config: dict[str, Any] | None = None
    timeout_ms: int | None = Field(default=None, ge=1, le=300000)


class QueryOut(_Record):
    id: int
    account_id: int
    page_id: int | None = None
    name: str
    plugin_type: str
    datasource: dict[str, Any] | None = None
    body: str | None = None
    config: dict[str, Any]
    timeout_ms: int
    json_path_keys: list[str]
    is_valid: bool
    invalids: list[str]
    created_at: datetime
    updated_at: datetime


class Param(BaseModel):
    key: str = Field(..., min_length=1)
    value: Any = None


class ExecuteQueryRequest(BaseModel):
    query_id: int | None = None
    query: QueryCreate | None = None
    params: list[Param] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    is_execution_success: bool
    status_code: int | None = None
    body: Any = None
    duration_ms: float
