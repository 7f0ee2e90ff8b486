"""Session ownership shared by the pipeline services."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import leadflow.database.db as db_module
from leadflow.core.exceptions import PersistenceError
from leadflow.repositories.pipeline_repository import PipelineRepository


class BaseService:
    """Service bound to one SQLAlchemy session and its repository.

    A service opened without a session owns the one it creates and closes it
    on exit; a caller-supplied session is left open for the caller.
    """

    def __init__(self, db: Session | None = None) -> None:
        self._owns_session = db is None
        self.db = db if db is not None else db_module.new_session()
        self.repository = PipelineRepository(self.db)

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(str(exc)) from exc

    def rollback(self) -> None:
        self.db.rollback()

    def close(self) -> None:
        if self._owns_session:
            self.db.close()

    def __enter__(self) -> "BaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        self.close()
