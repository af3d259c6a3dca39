"""Schema migrations match the ORM models."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from booking_engine.db.base import Base
import booking_engine.db.models  # noqa: F401

ROOT = Path(__file__).resolve().parents[1]


def _alembic_config(url: str) -> Config:
    # No ini file: keeps alembic from reconfiguring logging mid-suite
    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", url)
    return config


def test_upgrade_creates_model_tables_and_downgrade_removes_them(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = _alembic_config(url)

    command.upgrade(config, "head")
    engine = create_engine(url)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    assert set(Base.metadata.tables) <= tables

    for name, table in Base.metadata.tables.items():
        migrated = {column["name"] for column in inspector.get_columns(name)}
        assert migrated == {column.name for column in table.columns}, name

    command.downgrade(config, "base")
    assert set(inspect(engine).get_table_names()) & set(Base.metadata.tables) == set()
    engine.dispose()
