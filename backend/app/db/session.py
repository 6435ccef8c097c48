from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterator

if TYPE_CHECKING:  # pragma: no cover - typing only
    from alembic.config import Config

from sqlmodel import Session, create_engine

from app.core.config import settings

ALEMBIC_INSTALL_HINT = 'Alembic is required to run database migrations. Install it with `pip install -e ".[dev]"`.'


def _require_alembic() -> tuple[Any, Any]:
    try:
        from alembic import command as alembic_command
        from alembic.config import Config as AlembicConfig
    except ImportError as exc:  # pragma: no cover - exercised via unit test
        raise RuntimeError(ALEMBIC_INSTALL_HINT) from exc

    return alembic_command, AlembicConfig


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": False}
    if settings.database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    isolation_level = settings.database_isolation_level
    if isolation_level is None and not settings.database_url.startswith("sqlite"):
        # overlap re-check is only race-free under SERIALIZABLE outside SQLite
        isolation_level = "SERIALIZABLE"
    if isolation_level:
        options["isolation_level"] = isolation_level
    return options


engine = create_engine(settings.database_url, **_engine_options())


def get_alembic_config() -> "Config":
    _, AlembicConfig = _require_alembic()
    migrations_path = Path(__file__).resolve().parent / "migrations"
    config = AlembicConfig()
    config.set_main_option("script_location", str(migrations_path))
    config.set_main_option("sqlalchemy.url", settings.database_url)
    return config


def init_db() -> None:
    alembic_command, _ = _require_alembic()
    alembic_command.upgrade(get_alembic_config(), "head")


@contextmanager
def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session
