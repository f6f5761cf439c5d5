"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Store
    store_backend: Literal["sql", "memory"] = Field(default="sql", validation_alias="STORE_BACKEND")
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/apitokens",
        validation_alias="DATABASE_URL",
    )
    db_pool_size: int = Field(default=10, ge=1, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=5, ge=0, validation_alias="DB_MAX_OVERFLOW")
    # 0 disables the per-operation deadline
    store_operation_timeout_seconds: float = Field(
        default=10.0, ge=0, validation_alias="STORE_OPERATION_TIMEOUT_SECONDS",
    )

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Token behaviour
    touch_last_used_on_auth: bool = Field(default=True, validation_alias="TOUCH_LAST_USED_ON_AUTH")
    strict_pagination: bool = Field(default=False, validation_alias="STRICT_PAGINATION")
    # Periodic sweep of expired tokens; 0 leaves reaping to list calls only
    reaper_interval_seconds: int = Field(default=0, ge=0, validation_alias="REAPER_INTERVAL_SECONDS")

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
