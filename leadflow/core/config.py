"""Environment-driven settings for the pipeline engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from leadflow.core.exceptions import ConfigurationError

load_dotenv()

SUPPORTED_DATABASE_SCHEMES = {"sqlite", "postgresql", "postgresql+psycopg2"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}.") from exc


@dataclass(frozen=True)
class Config:
    """Validated runtime settings."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_TIMEOUT_SECONDS: float
    SLA_WARNING_RATIO: float
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    production = resolved_env == "production"

    config = Config(
        APP_NAME="LeadFlow",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        # SQL echo is never enabled in production.
        DEBUG=False if production else _env_flag("DEBUG"),
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./leadflow.db"),
        DB_TIMEOUT_SECONDS=_env_float("DB_TIMEOUT_SECONDS", 15.0),
        SLA_WARNING_RATIO=_env_float("SLA_WARNING_RATIO", 0.8),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in SUPPORTED_DATABASE_SCHEMES:
        raise ConfigurationError(
            f"DATABASE_URL scheme {parsed.scheme!r} is not supported; use sqlite:// or postgresql://."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.DB_TIMEOUT_SECONDS <= 0:
        raise ConfigurationError("DB_TIMEOUT_SECONDS must be > 0.")
    if not 0 < config.SLA_WARNING_RATIO <= 1:
        raise ConfigurationError("SLA_WARNING_RATIO must be within (0, 1].")
    if config.LOG_LEVEL not in LOG_LEVELS:
        raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(sorted(LOG_LEVELS))}.")
    if config.is_production and "change_me" in config.DATABASE_URL.lower():
        raise ConfigurationError("Production DATABASE_URL uses placeholder credentials.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Build and memoise the settings for ``env`` (default: ``$ENV``)."""
    return _build_config(env)
