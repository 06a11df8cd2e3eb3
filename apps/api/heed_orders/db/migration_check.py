from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

_ALEMBIC_VERSION_TABLE = "alembic_version"


def alembic_config() -> Config:
    # apps/api/alembic.ini
    return Config(str(Path(__file__).resolve().parents[2] / "alembic.ini"))


def head_revision() -> str | None:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    if not inspect(engine).has_table(_ALEMBIC_VERSION_TABLE):
        return None
    with engine.connect() as connection:
        return connection.execute(
            text(f"SELECT version_num FROM {_ALEMBIC_VERSION_TABLE} LIMIT 1")
        ).scalar_one_or_none()


def assert_schema_current(engine: Engine) -> None:
    current = current_revision(engine)
    head = head_revision()
    if current != head:
        raise RuntimeError(
            f"Database schema at {current or 'nothing'}, expected {head}. Run: alembic upgrade head"
        )
