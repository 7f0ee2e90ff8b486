"""Engine and session factory for the pipeline store.

Every connection is bounded by ``DB_TIMEOUT_SECONDS`` so a stalled store
fails a transition instead of hanging it.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from leadflow.core.config import get_config

logger = logging.getLogger(__name__)

config = get_config()
DATABASE_URL = config.DATABASE_URL


def _engine_options(database_url: str, timeout_seconds: float) -> dict:
    if database_url.startswith("sqlite"):
        # Busy timeout for the file lock.
        return {"connect_args": {"timeout": timeout_seconds}}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_timeout": timeout_seconds,
        "connect_args": {"options": f"-c statement_timeout={int(timeout_seconds * 1000)}"},
    }


def build_engine(database_url: str, timeout_seconds: float | None = None) -> Engine:
    timeout = timeout_seconds if timeout_seconds is not None else config.DB_TIMEOUT_SECONDS
    return create_engine(database_url, echo=config.DEBUG, **_engine_options(database_url, timeout))


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_engine() -> Engine:
    return engine


def get_active_database_url() -> str:
    return DATABASE_URL


def new_session() -> Session:
    return SessionLocal()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_database_connection() -> bool:
    """Run ``SELECT 1`` against the active engine."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception(
            "database.connection_failed",
            extra={"event": "database.connection_failed", "database_url_scheme": DATABASE_URL.split("://", 1)[0]},
        )
        return False
    return True
