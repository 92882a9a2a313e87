"""
Config file loading, environment overrides and the SESSION_SECRET export.
"""
from __future__ import annotations

import os

import pytest

from tools_server.core import config as core_config
from tools_server.core.config import ConfigError, build_database_url, load_settings, parse_config
from tools_server import main as cli


def test_nested_keys_are_read(write_config, tmp_path):
    write_config({"server": {"port": 9090}, "auth": {"allowedDomains": ["Example.com"]}})
    settings = core_config.get_settings()

    assert settings.server_port == 9090
    assert settings.auth_provider == "google"
    assert settings.auth_callback_url == "http://localhost:9090/auth/google/callback"
    assert settings.allowed_domains == ("example.com",)
    assert settings.database_url == f"sqlite:///{tmp_path / 'test.db'}"
    assert settings.secure_cookies is False


def test_session_secret_comes_from_config(write_config):
    write_config()
    settings = core_config.get_settings()

    assert settings.session_secret_configured is True
    assert os.environ["SESSION_SECRET"] == "test-secret"


def test_session_secret_defaults_when_missing(write_config):
    write_config({"auth": {"sessionSecret": None}})
    settings = core_config.get_settings()

    assert settings.session_secret_configured is False
    assert os.environ["SESSION_SECRET"] == "123abc"


def test_environment_overrides_file_values(write_config, monkeypatch):
    write_config()
    monkeypatch.setenv("SERVER_PORT", "7000")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///override.db")
    monkeypatch.setenv("APP_ENV", "PROD")
    core_config.get_settings.cache_clear()
    settings = core_config.get_settings()

    assert settings.server_port == 7000
    assert settings.database_url == "sqlite:///override.db"
    assert settings.app_env == "prod"
    assert settings.secure_cookies is True


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "nope.json")


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_non_integer_port_raises(write_config):
    path = write_config({"server": {"port": "eighty"}})
    with pytest.raises(ConfigError):
        load_settings(path)


def test_parse_config_points_at_path(write_config, tmp_path):
    path = write_config({"server": {"host": "0.0.0.0"}})
    settings = parse_config(str(path))
    assert settings.server_host == "0.0.0.0"
    assert os.environ[core_config.CONFIG_FILE_ENV] == str(path)


def test_database_url_from_parts():
    url = build_database_url(
        "postgres",
        {"user": "tools", "password": "pw", "host": "db", "port": 6543, "name": "itools"},
    )
    assert url == "postgresql+psycopg2://tools:pw@db:6543/itools"
    assert build_database_url("mysql", {}) == "mysql+pymysql://localhost:3306/internal_tools"
    assert build_database_url("oracle", {}) == ""


def test_cli_exits_when_config_is_unreadable(write_config, tmp_path):
    write_config()
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "missing.json")])
    assert "Fatal error while reading config file" in str(excinfo.value)
