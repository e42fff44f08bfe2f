"""Schema creation and removal for the portal's tables."""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dotportal.db import get_engine


def _varchar(
    name: str,
    size: int = 255,
    *,
    unique: bool = False,
    required: bool = False,
    default: str | None = None,
) -> str:
    parts = [f"{name} VARCHAR({size})"]
    if unique:
        parts.append("UNIQUE")
    if required:
        parts.append("NOT NULL")
    if default is not None:
        parts.append(f"DEFAULT {default}")
    return " ".join(parts)


def _ref(name: str, table: str, *, required: bool = False) -> str:
    null = " NOT NULL" if required else ""
    return f"{name} INTEGER{null} REFERENCES {table}(id)"


_ID = "id SERIAL PRIMARY KEY"
_STAMPS = tuple(
    f"{name} TIMESTAMP NOT NULL DEFAULT NOW()" for name in ("created_at", "updated_at")
)
_KEY_VALUE = (_varchar("key", required=True), "value TEXT")
_ADDRESS = (
    _varchar("address1"),
    _varchar("address2"),
    _varchar("city"),
    _ref("state_id", "ref_country_states"),
    _varchar("zip", 20),
)
_OWNER = _ref("user_id", "users", required=True)

# Tables in creation order: every table comes after the tables it references.
_TABLES: tuple[tuple[str, tuple[str, ...]], ...] = (
    # Dependency tables
    ("subscriptions", (
        _ID, _varchar("name"), "price FLOAT", "duration_days INTEGER", *_STAMPS,
    )),
    ("payment_gateways", (
        _ID, _varchar("name", required=True), _varchar("provider"), *_STAMPS,
    )),
    ("requests", (
        _ID, "user_id INTEGER", _varchar("action"), _varchar("status", 50), *_STAMPS,
    )),
    ("ref_country_states", (
        _ID, _varchar("country_code", 10), _varchar("state_code", 10),
        _varchar("name"), *_STAMPS,
    )),
    # Main tables
    ("users", (
        _ID, _varchar("firstname"), _varchar("lastname"), _varchar("fullname"),
        _varchar("email", unique=True, required=True), _varchar("phone", 50),
        "birthday DATE", "email_verified_at TIMESTAMP",
        _varchar("password", required=True),
        "is_active BOOLEAN NOT NULL DEFAULT TRUE",
        _varchar("remember_token", 100), *_STAMPS,
    )),
    ("user_meta", (_ID, _OWNER, *_KEY_VALUE, *_STAMPS)),
    ("password_reset_tokens", (
        _varchar("email") + " PRIMARY KEY", _varchar("token", required=True),
        "created_at TIMESTAMP",
    )),
    ("sessions", (
        _varchar("id") + " PRIMARY KEY", _ref("user_id", "users"),
        _varchar("ip_address", 45), "user_agent TEXT", "payload TEXT",
        "last_activity INTEGER",
    )),
    ("roles", (
        _ID, _varchar("title", required=True),
        _varchar("slug", unique=True, required=True), "description TEXT",
        "is_default BOOLEAN NOT NULL DEFAULT FALSE", *_STAMPS,
    )),
    ("user_roles", (_ID, _OWNER, _ref("role_id", "roles", required=True))),
    ("user_company", (
        _ID, _OWNER, _varchar("name"), _varchar("phone", 50),
        _varchar("dot_number", 50), _varchar("mc_number", 50), *_STAMPS,
    )),
    ("user_company_address", (
        _ID, _ref("item_id", "user_company", required=True), _varchar("type", 50),
        *_ADDRESS, *_STAMPS,
    )),
    ("user_address", (_ID, _OWNER, *_ADDRESS, *_STAMPS)),
    ("user_payment_cards", (
        _ID, _OWNER, _varchar("card_number", 50), _varchar("card_holder_name"),
        _varchar("expiry_date", 10), _ref("payment_method_id", "payment_gateways"),
        '"primary" BOOLEAN NOT NULL DEFAULT FALSE', *_STAMPS,
    )),
    ("user_subscription", (
        _ID, _OWNER, _ref("subscription_id", "subscriptions"),
        "price FLOAT NOT NULL DEFAULT 0", "discount FLOAT NOT NULL DEFAULT 0",
        _ref("payment_card_id", "user_payment_cards"),
        "start_date TIMESTAMP", "next_date TIMESTAMP", "end_date TIMESTAMP",
        _varchar("status", 50), *_STAMPS,
    )),
    ("user_subscription_meta", (
        _ID, _ref("subscription_id", "user_subscription", required=True), *_KEY_VALUE,
    )),
    ("user_payment_card_meta", (
        _ID, _ref("card_id", "user_payment_cards", required=True),
        *_KEY_VALUE, *_STAMPS,
    )),
    ("user_payment_history", (
        _ID, _OWNER, _ref("payment_method_id", "payment_gateways", required=True),
        _ref("subscription_id", "user_subscription"), _varchar("type", 50),
        "amount FLOAT NOT NULL DEFAULT 0", "payment_date TIMESTAMP",
        _varchar("transaction_id"), _ref("request_id", "requests"),
        _varchar("status", 50), "notes TEXT", *_STAMPS,
    )),
    ("user_tasks", (
        _ID, _varchar("unique_code", unique=True, required=True), _OWNER,
        _ref("assigned_to", "users"), _varchar("title"), "description TEXT",
        _varchar("category", 100), _varchar("subcategory", 100),
        _varchar("status", 50, required=True, default="'pending'"),
        "due_date TIMESTAMP", "completed_at TIMESTAMP",
        _varchar("priority", 50, default="'normal'"), _varchar("link"),
        _varchar("entity", 100), _varchar("entity_id", 100), *_STAMPS,
    )),
    ("user_task_meta", (
        _ID, _ref("task_id", "user_tasks", required=True), *_KEY_VALUE,
    )),
)


def _create_statement(table: str, columns: tuple[str, ...]) -> str:
    body = ",\n    ".join(columns)
    return f"CREATE TABLE IF NOT EXISTS {table} (\n    {body}\n);"


CREATE_STATEMENTS: tuple[str, ...] = tuple(
    _create_statement(table, columns) for table, columns in _TABLES
)

# Dependents are dropped before the tables they reference.
DROP_STATEMENTS: tuple[str, ...] = tuple(
    f"DROP TABLE IF EXISTS {table};" for table, _ in reversed(_TABLES)
)


class MigrationError(Exception):
    """Raised when a schema statement fails."""


def _run(engine: Engine, statements: tuple[str, ...], failure: str) -> None:
    # Each statement is committed on its own, so earlier ones stay applied
    # when a later one fails.
    with engine.connect() as conn:
        for statement in statements:
            try:
                conn.exec_driver_sql(statement)
                conn.commit()
            except SQLAlchemyError as exc:
                raise MigrationError(f"{failure}: {exc}") from exc


def migrate_up(engine: Engine | None = None) -> None:
    """Create every portal table that does not exist yet."""
    _run(engine if engine is not None else get_engine(), CREATE_STATEMENTS,
         "failed to exec statement")


def migrate_down(engine: Engine | None = None) -> None:
    """Drop every portal table, dependents first."""
    _run(engine if engine is not None else get_engine(), DROP_STATEMENTS,
         "failed to exec drop")