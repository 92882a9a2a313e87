from __future__ import annotations

import copy
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Make the tools_server package importable when running the tests locally
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tools_server.core import config as core_config  # noqa: E402
from tools_server.core import oauth  # noqa: E402
from tools_server.db import session as db_session  # noqa: E402
from tools_server.db.migrations import run_migrations  # noqa: E402
from tools_server.repositories.sql_repository import SQLRepository  # noqa: E402

OVERRIDE_ENV = (
    "APP_ENV",
    "SERVER_HOST",
    "SERVER_PORT",
    "PUBLIC_BASE_URL",
    "AUTH_KEY",
    "AUTH_SECRET",
    "DATABASE_URL",
    "LOG_LEVEL",
    "SESSION_SECRET",
)

BASE_CONFIG = {
    "app": {"env": "dev"},
    "server": {"host": "127.0.0.1", "port": 8080},
    "auth": {
        "provider": "google",
        "key": "client-id",
        "secret": "client-secret",
        "callbackUrl": "/auth/google/callback",
        "sessionSecret": "test-secret",
    },
    "datastore": {"dialect": "sqlite"},
    "log": {"level": "INFO"},
}


def _merge(base: dict, extra: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture()
def write_config(tmp_path, monkeypatch):
    """Write a config file into tmp_path, point CONFIG_FILE at it and reset cached settings."""
    for name in OVERRIDE_ENV:
        monkeypatch.delenv(name, raising=False)

    def _write(extra: dict | None = None, *, db_name: str = "test.db") -> Path:
        data = _merge(BASE_CONFIG, {"datastore": {"path": str(tmp_path / db_name)}})
        data = _merge(data, extra or {})
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        monkeypatch.setenv(core_config.CONFIG_FILE_ENV, str(path))
        core_config.get_settings.cache_clear()
        db_session.reset_engine()
        return path

    yield _write

    db_session.reset_engine()
    core_config.get_settings.cache_clear()
    oauth.clear_providers()


@pytest.fixture()
def temp_db(write_config):
    """Configure a temporary SQLite database with every table migrated."""
    write_config()
    run_migrations()
    yield core_config.get_settings()


@pytest.fixture()
def repo(temp_db) -> SQLRepository:
    return SQLRepository()


@pytest.fixture()
def make_user(repo):
    """Create an account member (or admin) and return ``(user, session_token)``."""

    def _make(email: str, *, account_id: int | None = None, role: str = "admin"):
        if account_id is None:
            account_id = repo.create_account(email).id
        role_entity = repo.ensure_role(role, ["*"] if role == "admin" else ["read", "write"])
        user = repo.create_user(
            email=email,
            name=email.split("@")[0],
            provider="google",
            provider_user_id=f"sub-{email}",
            account_id=account_id,
            role_id=role_entity.id,
        )
        token = repo.create_user_session(user.id, datetime.now(timezone.utc) + timedelta(hours=1))
        return user, token

    return _make


@pytest.fixture()
def client(temp_db):
    from fastapi.testclient import TestClient

    from tools_server.app import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture()
def auth_client(client, make_user):
    """A TestClient carrying the session cookie of a fresh admin user."""
    user, token = make_user("alice@example.com")
    client.cookies.set("session", token)
    client.user = user
    return client
