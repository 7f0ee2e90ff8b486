"""Bring the configured database up to the latest schema revision."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

import leadflow.database.db as db_module
from leadflow.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
MIGRATIONS_DIR = PROJECT_ROOT / "migrations"


def build_alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # ConfigParser interpolation treats "%" specially.
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def init_db() -> None:
    configure_logging()
    if not db_module.verify_database_connection():
        raise RuntimeError("Database connectivity check failed.")

    active_url = db_module.get_active_database_url()
    command.upgrade(build_alembic_config(active_url), "head")
    logger.info(
        "database.schema.upgraded",
        extra={"event": "database.schema.upgraded", "database_url_scheme": active_url.split("://", 1)[0]},
    )


if __name__ == "__main__":
    init_db()
