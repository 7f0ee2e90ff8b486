from __future__ import annotations

import leadflow.database.db as db_module
from leadflow.services.base_service import BaseService


class _FakeSession:
    def __init__(self) -> None:
        self.closed = False
        self.rolled_back = False

    def close(self) -> None:
        self.closed = True

    def rollback(self) -> None:
        self.rolled_back = True


def test_service_closes_the_session_it_opened(monkeypatch):
    opened = _FakeSession()
    monkeypatch.setattr(db_module, "new_session", lambda: opened)

    with BaseService() as service:
        assert service.db is opened

    assert opened.closed is True


def test_service_leaves_caller_session_open_and_rolls_back_on_error():
    supplied = _FakeSession()

    try:
        with BaseService(db=supplied):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert supplied.rolled_back is True
    assert supplied.closed is False
