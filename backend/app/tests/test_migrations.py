from __future__ import annotations

import builtins

import pytest

from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect

from app.db.session import engine, get_alembic_config, init_db


def test_alembic_head_is_applied() -> None:
    init_db()
    config = get_alembic_config()
    script = ScriptDirectory.from_config(config)
    head_revision = script.get_current_head()

    with engine.connect() as connection:
        context = MigrationContext.configure(connection)
        current_revision = context.get_current_revision()

    assert current_revision == head_revision


def test_init_db_requires_alembic(monkeypatch: pytest.MonkeyPatch) -> None:
    import app.db.session as session

    real_import = builtins.__import__

    def fake_import(name: str, *args: object, **kwargs: object):
        if name.startswith("alembic"):
            raise ImportError("mocked alembic missing")
        return real_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", fake_import)

    with pytest.raises(RuntimeError) as excinfo:
        session.init_db()

    message = str(excinfo.value)
    assert "Alembic is required" in message
    assert 'pip install -e ".[dev]"' in message


def test_scheduling_tables_exist() -> None:
    init_db()
    inspector = inspect(engine)

    tables = set(inspector.get_table_names())
    assert {"users", "services", "appointments", "appointment_history", "blocked_slots"} <= tables
    appointment_columns = {column["name"] for column in inspector.get_columns("appointments")}
    assert {"version", "end_time", "confirmation_sent_at", "reminder_sent_at"} <= appointment_columns


def test_non_sqlite_engines_default_to_serializable(monkeypatch: pytest.MonkeyPatch) -> None:
    import app.db.session as session

    monkeypatch.setattr(session.settings, "database_url", "postgresql://scheduler@localhost/practice")
    monkeypatch.setattr(session.settings, "database_isolation_level", None)

    options = session._engine_options()

    assert options["isolation_level"] == "SERIALIZABLE"
    assert "connect_args" not in options


def test_sqlite_engine_keeps_configured_isolation(monkeypatch: pytest.MonkeyPatch) -> None:
    import app.db.session as session

    monkeypatch.setattr(session.settings, "database_url", "sqlite:///./scheduling.db")
    monkeypatch.setattr(session.settings, "database_isolation_level", None)

    assert "isolation_level" not in session._engine_options()

    monkeypatch.setattr(session.settings, "database_isolation_level", "READ UNCOMMITTED")

    assert session._engine_options()["isolation_level"] == "READ UNCOMMITTED"
