from __future__ import annotations

from alembic import command
from sqlalchemy import create_engine, inspect

from leadflow.database.init_db import build_alembic_config
from leadflow.models import Base


def test_upgrade_head_matches_model_metadata(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = build_alembic_config(url)

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names()) - {"alembic_version"}
    assert tables == set(Base.metadata.tables.keys())
    for name, table in Base.metadata.tables.items():
        assert {column["name"] for column in inspector.get_columns(name)} == set(table.columns.keys())
    engine.dispose()

    command.downgrade(cfg, "base")
    engine = create_engine(url)
    assert set(inspect(engine).get_table_names()) == {"alembic_version"}
    engine.dispose()
