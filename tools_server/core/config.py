"""
Configuration helpers for the internal tools server.

Settings are read from a JSON config file (``config.json`` in the working
directory unless ``--config``/``CONFIG_FILE`` says otherwise) and a handful of
environment variables may override individual keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import json
import os
from pathlib import Path

from dotenv import load_dotenv

CONFIG_FILE_ENV = "CONFIG_FILE"
DEFAULT_CONFIG_FILE = "config.json"
SESSION_SECRET_ENV = "SESSION_SECRET"
DEFAULT_SESSION_SECRET = "123abc"


class ConfigError(Exception):
    """Raised when the config file cannot be read or holds invalid values."""


@dataclass(frozen=True)
class Settings:
    """Typed view of the config file plus environment overrides."""

    app_env: str
    server_host: str
    server_port: int
    public_base_url: str
    auth_provider: str
    auth_key: str
    auth_secret: str
    auth_callback_path: str
    auth_redirect_url: str
    session_secret_configured: bool
    session_ttl_seconds: int
    allowed_domains: tuple[str, ...]
    datastore_dialect: str
    database_url: str
    cors_origins: tuple[str, ...]
    log_level: str

    @property
    def auth_callback_url(self) -> str:
        return self.public_base_url + self.auth_callback_path

    @property
    def secure_cookies(self) -> bool:
        return self.app_env == "prod"


def _lookup(data: dict, dotted: str, default=None):
    node = data
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _int(value, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _str_list(value) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(item).strip().lower() for item in value if str(item).strip())


def build_database_url(dialect: str, datastore: dict) -> str:
    """Assemble a SQLAlchemy URL from the ``datastore`` section when no url is given."""
    if dialect == "sqlite":
        return f"sqlite:///{datastore.get('path') or 'internal_tools.db'}"
    drivers = {"postgres": "postgresql+psycopg2", "mysql": "mysql+pymysql"}
    driver = drivers.get(dialect)
    if not driver:
        return ""
    default_port = 5432 if dialect == "postgres" else 3306
    user = datastore.get("user") or ""
    password = datastore.get("password") or ""
    credentials = f"{user}:{password}@" if password else (f"{user}@" if user else "")
    host = datastore.get("host") or "localhost"
    port = datastore.get("port") or default_port
    name = datastore.get("name") or "internal_tools"
    return f"{driver}://{credentials}{host}:{port}/{name}"


def read_config_file(path: str | os.PathLike) -> dict:
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read {config_path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"invalid JSON in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    return data


def export_session_secret(data: dict) -> bool:
    """Put ``auth.sessionSecret`` (or the default) in ``SESSION_SECRET``."""
    secret = _lookup(data, "auth.sessionSecret")
    if secret:
        os.environ[SESSION_SECRET_ENV] = str(secret)
        return True
    os.environ[SESSION_SECRET_ENV] = DEFAULT_SESSION_SECRET
    return False


def load_settings(path: str | os.PathLike | None = None) -> Settings:
    """Read the config file and the environment and build a Settings instance."""
    load_dotenv()
    config_path = path or os.getenv(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE
    data = read_config_file(config_path)
    secret_configured = export_session_secret(data)

    port = _int(os.getenv("SERVER_PORT") or _lookup(data, "server.port", 8080), "server.port")
    public_base = (
        os.getenv("PUBLIC_BASE_URL")
        or _lookup(data, "server.publicUrl")
        or f"http://localhost:{port}"
    )
    dialect = str(_lookup(data, "datastore.dialect", "sqlite") or "").strip().lower()
    datastore = _lookup(data, "datastore", {}) or {}
    database_url = (
        os.getenv("DATABASE_URL")
        or datastore.get("url")
        or build_database_url(dialect, datastore)
    )

    return Settings(
        app_env=str(os.getenv("APP_ENV") or _lookup(data, "app.env") or "dev").lower(),
        server_host=os.getenv("SERVER_HOST") or _lookup(data, "server.host", "127.0.0.1"),
        server_port=port,
        public_base_url=str(public_base).rstrip("/"),
        auth_provider=str(_lookup(data, "auth.provider", "") or "").strip().lower(),
        auth_key=os.getenv("AUTH_KEY") or _lookup(data, "auth.key", ""),
        auth_secret=os.getenv("AUTH_SECRET") or _lookup(data, "auth.secret", ""),
        auth_callback_path=_lookup(data, "auth.callbackUrl", "/auth/google/callback"),
        auth_redirect_url=_lookup(data, "auth.redirectUrl", "/profile"),
        session_secret_configured=secret_configured,
        session_ttl_seconds=_int(_lookup(data, "auth.sessionTtlSeconds", 86400), "auth.sessionTtlSeconds"),
        allowed_domains=_str_list(_lookup(data, "auth.allowedDomains")),
        datastore_dialect=dialect,
        database_url=str(database_url or "").strip(),
        cors_origins=tuple(str(o).rstrip("/") for o in (_lookup(data, "app.corsOrigins") or [])),
        log_level=str(os.getenv("LOG_LEVEL") or _lookup(data, "log.level") or "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    """Settings for the current process; cleared with ``get_settings.cache_clear()``."""
    return load_settings()


def parse_config(path: str | None = None) -> Settings:
    """Point the process at ``path`` (if given) and (re)load the cached settings."""
    if path:
        os.environ[CONFIG_FILE_ENV] = str(path)
    get_settings.cache_clear()
    return get_settings()


def session_secret() -> str:
    return os.environ.get(SESSION_SECRET_ENV) or DEFAULT_SESSION_SECRET
