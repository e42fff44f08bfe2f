"""HTTP view functions for the portal API."""

from __future__ import annotations

from flask import Response

from dotportal.db import DatabaseError, get_engine
from dotportal.migrations import MigrationError, migrate_down, migrate_up


def _json(body: str) -> Response:
    return Response(body, status=200, content_type="application/json")


def _error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status,
                        content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def index() -> Response:
    """Greet callers of the API root."""
    return _json('{"message":"Welcome to the Dot Portal API!"}')


def register() -> Response:
    """Answer a registration request."""
    return _json('{"message":"Welcome to the Dot Portal API11!"}')


def login() -> Response:
    """Answer a login request."""
    return _json('{"message":"Welcome to the Dot Portal API22!"}')


def migrate_up_view() -> Response:
    """Create the schema and report the outcome."""
    try:
        migrate_up(get_engine())
    except (MigrationError, DatabaseError) as exc:
        return _error(f"Migration failed: {exc}", 500)
    return _json('{"message":"Migration has been done successfully."}')


def migrate_down_view() -> Response:
    """Drop the schema and report the outcome."""
    try:
        migrate_down(get_engine())
    except (MigrationError, DatabaseError) as exc:
        return _error(f"Rollback failed: {exc}", 500)
    return _json('{"message":"Migration rollback is successful."}')