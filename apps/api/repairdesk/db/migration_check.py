from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from repairdesk.config import is_production_mode, settings
from repairdesk.db.base import Base

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


@dataclass(frozen=True)
class SchemaStatus:
    current: Optional[str]
    head: str

    @property
    def up_to_date(self) -> bool:
        return self.current == self.head


@lru_cache(maxsize=1)
def get_alembic_head_revision() -> str:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return ScriptDirectory.from_config(config).get_current_head()


def get_current_db_revision(engine: Engine) -> Optional[str]:
    if not inspect(engine).has_table("alembic_version"):
        return None
    with engine.connect() as connection:
        return connection.execute(
            text("SELECT version_num FROM alembic_version LIMIT 1")
        ).scalar_one_or_none()


def schema_status(engine: Engine) -> SchemaStatus:
    return SchemaStatus(current=get_current_db_revision(engine), head=get_alembic_head_revision())


def assert_db_is_up_to_date(engine: Engine) -> None:
    status = schema_status(engine)
    if not status.up_to_date:
        raise RuntimeError(
            "Database schema not up to date "
            f"(current={status.current or 'none'}, head={status.head}). "
            "Run: alembic upgrade head"
        )


def maybe_create_schema(engine: Engine) -> None:
    """Create tables straight from the models for demo and local runs."""
    if not settings.auto_create_schema:
        return
    if is_production_mode():
        raise RuntimeError("AUTO_CREATE_SCHEMA must be disabled in APP_MODE=production")

    import repairdesk.models  # noqa: F401 (register all SQLAlchemy models)

    Base.metadata.create_all(bind=engine)
