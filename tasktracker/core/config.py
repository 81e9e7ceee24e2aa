from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ConfigurationError(Exception):
    """Raised when environment settings cannot be turned into a valid configuration."""


def _load_env_file() -> None:
    """Load a .env file from ENV_FILE or the working directory, if one exists.

    Values already present in the process environment win over the file.
    """
    explicit = os.getenv("ENV_FILE")
    if explicit:
        env_file = Path(explicit)
        if not env_file.is_file():
            raise ConfigurationError(f"ENV_FILE points to a missing file: {explicit}")
        load_dotenv(env_file, override=False)
        return

    env_file = Path.cwd() / ".env"
    if env_file.is_file():
        load_dotenv(env_file, override=False)


_load_env_file()

Environment = Literal["development", "test", "production"]
LogFormat = Literal["json", "console"]

DEFAULT_CORS_ORIGINS: tuple[str, ...] = ("http://localhost:3000",)


class Settings(BaseModel):
    app_name: str = Field(default="Task Tracker API")
    app_env: Environment = Field(default="development")
    debug: bool = Field(default=True)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001)
    database_url: str = Field(default="sqlite:///./tasktracker.db")
    testing: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="json")
    log_file: str | None = Field(default=None)
    sqlalchemy_echo: bool | None = Field(default=None)  # None = auto (debug mode)
    db_auto_init: bool = Field(default=True)
    service_api_key: str | None = Field(default=None)
    service_actor_email: str = Field(default="service@tasktracker.local")
    service_actor_name: str = Field(default="Service Account")
    google_client_id: str | None = Field(default=None)
    allowed_emails: list[str] = Field(default_factory=list)
    archive_retention_days: int = Field(default=7, ge=1)
    auto_archive_on_list: bool = Field(default=True)
    task_list_max_limit: int = Field(default=500, ge=1)
    cors_allow_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    cors_allow_credentials: bool = Field(default=True)


_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _to_bool_or_none(value: str | None) -> bool | None:
    """None when unset or unrecognized, so callers can fall back to automatic behaviour."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    return None


def _to_bool(value: str | None, *, default: bool) -> bool:
    parsed = _to_bool_or_none(value)
    return default if parsed is None else parsed


def _to_int(name: str, value: str | None, *, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


_ENVIRONMENTS: dict[str, Environment] = {
    "development": "development",
    "test": "test",
    "production": "production",
}


def _normalize_env(value: str | None) -> Environment:
    if value is None:
        return "development"
    return _ENVIRONMENTS.get(value.strip().lower(), "development")


def _normalize_log_format(value: str | None, app_env: Environment) -> LogFormat:
    if value is not None:
        lowered = value.strip().lower()
        if lowered == "console":
            return "console"
        if lowered == "json":
            return "json"
    # console for local development, json everywhere else
    return "console" if app_env == "development" else "json"


def _parse_csv_list(value: str | None, *, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    items = [part.strip() for part in value.split(",")]
    normalized = [item for item in items if item]
    return normalized or list(default)


def _normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def load_settings() -> Settings:
    app_env = _normalize_env(os.getenv("APP_ENV"))
    default_debug = app_env != "production"
    default_testing = app_env == "test"
    default_db_auto_init = app_env != "test"

    database_url = _normalize_optional_text(os.getenv("DATABASE_URL"))
    if database_url is None:
        database_url = (
            "sqlite:///./tasktracker_test.db" if app_env == "test" else "sqlite:///./tasktracker.db"
        )

    return Settings(
        app_name=os.getenv("APP_NAME", "Task Tracker API"),
        app_env=app_env,
        debug=_to_bool(os.getenv("DEBUG"), default=default_debug),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_to_int("PORT", os.getenv("PORT"), default=3001),
        database_url=database_url,
        testing=_to_bool(os.getenv("TESTING"), default=default_testing),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=_normalize_log_format(os.getenv("LOG_FORMAT"), app_env),
        log_file=_normalize_optional_text(os.getenv("LOG_FILE")),
        sqlalchemy_echo=_to_bool_or_none(os.getenv("SQLALCHEMY_ECHO")),
        db_auto_init=_to_bool(os.getenv("DB_AUTO_INIT"), default=default_db_auto_init),
        service_api_key=_normalize_optional_text(os.getenv("SERVICE_API_KEY")),
        service_actor_email=os.getenv("SERVICE_ACTOR_EMAIL", "service@tasktracker.local"),
        service_actor_name=os.getenv("SERVICE_ACTOR_NAME", "Service Account"),
        google_client_id=_normalize_optional_text(os.getenv("GOOGLE_CLIENT_ID")),
        allowed_emails=[
            email.lower() for email in _parse_csv_list(os.getenv("ALLOWED_EMAILS"), default=[])
        ],
        archive_retention_days=_to_int(
            "ARCHIVE_RETENTION_DAYS",
            os.getenv("ARCHIVE_RETENTION_DAYS"),
            default=7,
        ),
        auto_archive_on_list=_to_bool(os.getenv("AUTO_ARCHIVE_ON_LIST"), default=True),
        task_list_max_limit=_to_int(
            "TASK_LIST_MAX_LIMIT",
            os.getenv("TASK_LIST_MAX_LIMIT"),
            default=500,
        ),
        cors_allow_origins=_parse_csv_list(
            os.getenv("CORS_ALLOW_ORIGINS"),
            default=list(DEFAULT_CORS_ORIGINS),
        ),
        cors_allow_credentials=_to_bool(
            os.getenv("CORS_ALLOW_CREDENTIALS"),
            default=True,
        ),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
