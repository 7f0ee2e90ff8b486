from __future__ import annotations

import json
import logging

import pytest

from leadflow.core.config import _build_config
from leadflow.core.exceptions import ConfigurationError
from leadflow.core.logging import LogContext, log_extra
from leadflow.core.logging_config import JsonFormatter


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg2://user:pw@db.internal:5432/leadflow")
    monkeypatch.setenv("DB_TIMEOUT_SECONDS", "3.5")
    monkeypatch.setenv("SLA_WARNING_RATIO", "0.75")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = _build_config("development")

    assert config.DB_TIMEOUT_SECONDS == 3.5
    assert config.SLA_WARNING_RATIO == 0.75
    assert config.LOG_LEVEL == "DEBUG"


def test_production_forces_debug_off(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./prod.db")
    assert _build_config("production").DEBUG is False


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("DATABASE_URL", "mysql://root@localhost/leadflow"),
        ("DATABASE_URL", "postgresql:///no-host"),
        ("DB_TIMEOUT_SECONDS", "0"),
        ("SLA_WARNING_RATIO", "1.5"),
        ("LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_settings_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./test.db")
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        _build_config("development")


def test_json_formatter_includes_event_and_context():
    record = logging.LogRecord("leadflow", logging.INFO, __file__, 1, "pipeline.transition.executed", None, None)
    for key, value in log_extra(
        "pipeline.transition.executed",
        LogContext(tenant_id="t1", lead_id="l1"),
        from_stage_id="s1",
    ).items():
        setattr(record, key, value)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["event"] == "pipeline.transition.executed"
    assert payload["tenant_id"] == "t1"
    assert payload["lead_id"] == "l1"
    assert "user_id" not in payload
    assert payload["level"] == "INFO"


def test_non_numeric_timeout_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./test.db")
    monkeypatch.setenv("DB_TIMEOUT_SECONDS", "soon")
    with pytest.raises(ConfigurationError, match="DB_TIMEOUT_SECONDS must be a number"):
        _build_config("development")
