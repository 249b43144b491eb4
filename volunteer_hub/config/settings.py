"""Environment configuration and validation.

Settings are loaded from environment variables (optionally via a local `.env` file). The DB session
timezone is locked to UTC so that `created_at` / `updated_at` filters compare deterministically.
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(alias="DATABASE_URL")
    db_timezone: str = Field(default="UTC", alias="DB_TIMEZONE")
    db_pool_min_size: int = Field(default=1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(default=10, alias="DB_POOL_MAX_SIZE")
    db_pool_timeout_s: float = Field(default=30.0, alias="DB_POOL_TIMEOUT_S")

    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("db_timezone")
    @classmethod
    def validate_db_timezone_is_utc(cls, value: str) -> str:
        """Validate that the DB timezone is locked to UTC."""

        if value.upper() != "UTC":
            raise ValueError("DB_TIMEZONE must be UTC")
        return "UTC"

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> Settings:
        """Validate that the pool size bounds are usable."""

        if self.db_pool_min_size < 0:
            raise ValueError("DB_POOL_MIN_SIZE must be >= 0")
        if self.db_pool_max_size < max(self.db_pool_min_size, 1):
            raise ValueError("DB_POOL_MAX_SIZE must be >= DB_POOL_MIN_SIZE and >= 1")
        return self


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
