"""Application factory and server entry point."""

from __future__ import annotations

import argparse
import logging
import sys

from flask import Flask

from dotportal import db, handlers

LISTEN_HOST = "0.0.0.0"
LISTEN_PORT = 8080

logger = logging.getLogger(__name__)

_ROUTES = (
    ("/", handlers.index, "GET"),
    ("/register", handlers.register, "POST"),
    ("/login", handlers.login, "POST"),
    ("/migrate-up", handlers.migrate_up_view, "GET"),
    ("/migrate-down", handlers.migrate_down_view, "GET"),
)


def create_app() -> Flask:
    """Build the application with every API route registered."""
    app = Flask(__name__)
    for rule, view, method in _ROUTES:
        app.add_url_rule(rule, view.__name__, view, methods=[method])
    return app


def main(argv: list[str] | None = None) -> int:
    """Connect to the database from DB_DSN and serve the API on port 8080."""
    parser = argparse.ArgumentParser(
        prog="dotportal",
        description="Serve the portal API; the database is read from DB_DSN.",
    )
    parser.parse_args(sys.argv[1:] if argv is None else argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    logger.info("Starting Dot Portal...")

    try:
        db.init()
    except db.DatabaseError as exc:
        logger.error("DB init failed: %s", exc)
        return 1

    try:
        app = create_app()
        logger.info("Listening on :%d", LISTEN_PORT)
        app.run(host=LISTEN_HOST, port=LISTEN_PORT)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())