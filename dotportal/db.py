"""Database connection management for the portal."""

from __future__ import annotations

import os

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

DSN_ENV_VAR = "DB_DSN"

_engine: Engine | None = None


class DatabaseError(Exception):
    """Raised when the database cannot be configured or reached."""


def _normalise_dsn(dsn: str) -> str:
    # The short "postgres://" scheme is common in DSNs but not a dialect name.
    if dsn.startswith("postgres://"):
        return "postgresql://" + dsn[len("postgres://"):]
    return dsn


def init(dsn: str | None = None) -> Engine:
    """Create the shared engine from *dsn* or ``DB_DSN`` and check it answers."""
    global _engine

    if dsn is None:
        dsn = os.environ.get(DSN_ENV_VAR, "")
    if not dsn:
        raise DatabaseError(f"{DSN_ENV_VAR} env is required")

    try:
        engine = create_engine(_normalise_dsn(dsn))
    except SQLAlchemyError as exc:
        raise DatabaseError(str(exc)) from exc

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseError(str(exc)) from exc

    if _engine is not None:
        _engine.dispose()
    _engine = engine
    return engine


def get_engine() -> Engine:
    """Return the shared engine, raising if :func:`init` has not succeeded."""
    if _engine is None:
        raise DatabaseError("database is not initialised")
    return _engine


def close() -> None:
    """Release the shared engine's connections; safe to call repeatedly."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None