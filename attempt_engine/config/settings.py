# -*- coding: utf-8 -*-
"""
attempt_engine/config/settings.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Application settings loaded with pydantic-settings.

Values come from environment variables first, then from a ``.env`` file
next to the project root when one exists.
"""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env is looked up next to pyproject.toml
ENV_PATH = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    """Service settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_PATH if ENV_PATH.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str | None = None
    postgres_db: str = "attempts"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_echo: bool = False

    # JWT
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    # Application
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_domain: str | None = None
    frontend_port: int = 3000
    ssl_enabled: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_allow_origins: str = ""
    cors_allow_credentials: bool = True
    cors_allow_methods: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    cors_allow_headers: str = "Authorization,Content-Type"

    # Attempt lifecycle
    attempt_grace_seconds: int = 30
    expired_sweep_interval_seconds: int = 60
    expired_sweep_enabled: bool = True

    # Client-side autosave
    autosave_debounce_seconds: float = 0.5
    autosave_interval_seconds: float = 30.0
    autosave_max_retries: int = 3
    autosave_retry_base_delay_seconds: float = 1.0

    # Cache
    cache_enabled: bool = True
    cache_ttl_attempts_seconds: int = 300

    def get_allowed_origins(self) -> list[str]:
        """
        CORS origins: the explicit list when set, otherwise the front end
        on ``app_domain`` plus the local development server.
        """
        if self.cors_allow_origins:
            return _csv(self.cors_allow_origins)
        origins = [f"http://localhost:{self.frontend_port}"]
        if self.app_domain:
            schemes = ("https",) if self.ssl_enabled else ("http", "https")
            origins = [f"{scheme}://{self.app_domain}" for scheme in schemes] + origins
        return origins

    def get_cors_methods(self) -> list[str]:
        return _csv(self.cors_allow_methods)

    def get_cors_headers(self) -> list[str]:
        return _csv(self.cors_allow_headers)

    @model_validator(mode="after")
    def _fill_database_url(self) -> "Settings":
        if not self.database_url:
            self.database_url = (
                f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
                f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
            )
        return self

    def get_config_source(self) -> str:
        """Where configuration was read from, for the startup log."""
        return f"file: {ENV_PATH}" if ENV_PATH.exists() else "environment only"


def _csv(value: str) -> list[str]:
    # "*" passes through as a one-element list
    return [part.strip() for part in value.split(",") if part.strip()]


settings = Settings()
