"""
Command-line entry point.

Usage:
  tools-server [--config config.json]
"""
from __future__ import annotations

import argparse

import uvicorn

from tools_server.app import create_app
from tools_server.core.config import ConfigError, parse_config
from tools_server.core.log import configure_logging, get_logger
from tools_server.db.migrations import run_migrations
from tools_server.db.session import DatastoreError, create_datastore

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Internal tools server")
    ap.add_argument("--config", help="Path to the JSON config file (default: ./config.json)")
    args = ap.parse_args(argv)

    try:
        settings = parse_config(args.config)
    except ConfigError as exc:
        raise SystemExit(f"Fatal error while reading config file: {exc}") from exc
    configure_logging(settings.log_level)
    if settings.session_secret_configured:
        logger.info("Session secret loaded from config")
    else:
        logger.warning("auth.sessionSecret is not set; using the built-in default")

    try:
        create_datastore(settings.datastore_dialect)
    except DatastoreError as exc:
        raise SystemExit(f"Exception while creating datastore: {exc}") from exc
    run_migrations()

    app = create_app(settings)
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    main()
