"""Environment-driven configuration for the supply ledger service.

Every setting the service relies on lives on ``AppSettings`` so nobody has to
hunt for ``os.getenv`` calls scattered across modules. Values come from the
process environment first and then ``.env`` / ``.env.local`` files, and are read
once per process through ``get_settings``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "School Supply Ledger"
    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")

    # Empty means "derive a SQLite file under DATA_DIR" (see ``get_settings``).
    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))
    # How long a SQLite writer waits for another writer's lock before failing.
    SQLITE_BUSY_TIMEOUT_S: float = 15.0

    # ---- API authentication
    # When ``API_KEY`` is blank the API runs open and writes are attributed to
    # ``anonymous``. Set it in every shared deployment.
    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))
    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 15
    JWT_REFRESH_TTL_DAYS: int = 7

    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 8090

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        if value in (None, ""):
            return "INFO"
        return str(value).strip().upper()

    @property
    def sqlite_path(self) -> Path:
        return self.DATA_DIR / "schoolstock.db"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not settings.DB_URL:
        settings.DB_URL = f"sqlite:///{settings.sqlite_path}"
    return settings


settings = get_settings()
