import re

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from dotportal import db, migrations

CREATE_NAME = re.compile(r"CREATE TABLE IF NOT EXISTS (\w+)")
DROP_NAME = re.compile(r"DROP TABLE IF EXISTS (\w+);")
REFERENCE = re.compile(r"REFERENCES (\w+)\(")


class _RecordingConnection:
    def __init__(self, engine):
        self._engine = engine

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def exec_driver_sql(self, statement):
        self._engine.executed.append(statement)
        if self._engine.fail_on and self._engine.fail_on in statement:
            raise OperationalError(statement, {}, Exception("boom"))

    def commit(self):
        self._engine.commits += 1


class RecordingEngine:
    def __init__(self, fail_on=None):
        self.executed = []
        self.commits = 0
        self.fail_on = fail_on

    def connect(self):
        return _RecordingConnection(self)


def _run_up():
    engine = RecordingEngine()
    migrations.migrate_up(engine)
    return engine.executed


def _run_down():
    engine = RecordingEngine()
    migrations.migrate_down(engine)
    return engine.executed


@pytest.fixture(autouse=True)
def _reset_engine():
    db.close()
    yield
    db.close()


def test_migrate_up_runs_every_statement_in_order():
    engine = RecordingEngine()
    migrations.migrate_up(engine)
    assert engine.executed == list(migrations.CREATE_STATEMENTS)
    assert len(engine.executed) == 20
    assert engine.commits == len(engine.executed)


def test_migrate_up_creates_expected_tables():
    tables = [CREATE_NAME.search(s).group(1) for s in _run_up()]
    assert tables[:4] == [
        "subscriptions", "payment_gateways", "requests", "ref_country_states",
    ]
    assert tables[4] == "users"
    assert tables[-1] == "user_task_meta"


def test_migrate_down_runs_every_drop_in_order():
    engine = RecordingEngine()
    migrations.migrate_down(engine)
    assert engine.executed == list(migrations.DROP_STATEMENTS)
    assert engine.executed[0] == "DROP TABLE IF EXISTS user_task_meta;"
    assert engine.executed[-1] == "DROP TABLE IF EXISTS subscriptions;"


def test_drop_order_is_reverse_of_create_order():
    created = [CREATE_NAME.search(s).group(1) for s in _run_up()]
    dropped = [DROP_NAME.search(s).group(1) for s in _run_down()]
    assert dropped == list(reversed(created))


def test_tables_created_after_the_tables_they_reference():
    executed = _run_up()
    created = [CREATE_NAME.search(s).group(1) for s in executed]
    for statement in executed:
        table = CREATE_NAME.search(statement).group(1)
        for referenced in REFERENCE.findall(statement):
            assert created.index(referenced) < created.index(table)


def test_tables_dropped_before_the_tables_they_reference():
    dropped = [DROP_NAME.search(s).group(1) for s in _run_down()]
    for statement in _run_up():
        table = CREATE_NAME.search(statement).group(1)
        for referenced in REFERENCE.findall(statement):
            assert dropped.index(table) < dropped.index(referenced)


def test_migrate_up_stops_at_first_failure():
    engine = RecordingEngine(fail_on="CREATE TABLE IF NOT EXISTS users (")
    with pytest.raises(migrations.MigrationError, match="^failed to exec statement: "):
        migrations.migrate_up(engine)
    assert CREATE_NAME.search(engine.executed[-1]).group(1) == "users"
    assert engine.executed == list(migrations.CREATE_STATEMENTS[: len(engine.executed)])
    assert engine.commits == len(engine.executed) - 1


def test_migrate_down_failure_message():
    engine = RecordingEngine(fail_on="DROP TABLE IF EXISTS roles;")
    with pytest.raises(migrations.MigrationError, match="^failed to exec drop: "):
        migrations.migrate_down(engine)
    assert engine.executed[-1] == "DROP TABLE IF EXISTS roles;"


def test_migrate_down_drops_existing_tables(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'portal.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY)"))
        conn.execute(text("CREATE TABLE roles (id INTEGER PRIMARY KEY)"))
    migrations.migrate_down(engine)
    with engine.connect() as conn:
        names = conn.execute(
            text("SELECT name FROM sqlite_master WHERE type = 'table'")
        ).fetchall()
    engine.dispose()
    assert names == []


def test_migrate_down_uses_shared_engine(tmp_path):
    engine = db.init(f"sqlite:///{tmp_path / 'portal.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE sessions (id TEXT PRIMARY KEY)"))
    migrations.migrate_down()
    with engine.connect() as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM sqlite_master")).scalar()
    assert count == 0


def test_migrate_without_engine_requires_init():
    with pytest.raises(db.DatabaseError):
        migrations.migrate_up()