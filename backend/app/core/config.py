"""Application configuration using pydantic-settings.

Every tunable (database, iiko timeouts, token cache window, report preset)
is read from the environment or `.env` through the `settings` object.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to relative path for Docker, override via env for local dev
    database_url: str = "sqlite:///./data/iiko.db"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # iiko Server API
    # ==========================================================================
    iiko_auth_timeout: float = 10.0
    iiko_logout_timeout: float = 5.0
    iiko_report_timeout: float = 30.0
    # Server tokens live ~15 minutes, refresh well before that
    iiko_token_cache_minutes: int = 10
    # "Отчет по дням новый" preset on the iiko server
    iiko_daily_report_preset_id: str = "c459326a-23d5-4088-9235-880634607c22"
    iiko_top_items_cap: int = 20

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True
    iiko_sync_rate_limit: str = "10/minute"

    @field_validator("iiko_auth_timeout", "iiko_logout_timeout", "iiko_report_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("iiko timeouts must be positive")
        return v

    @field_validator("iiko_token_cache_minutes", "iiko_top_items_cap")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list, filtering localhost in production."""
        if self.cors_origins == "*":
            return ["*"]

        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        # Filter out localhost origins in production mode
        if not self.debug:
            localhost_patterns = ["localhost", "127.0.0.1", "0.0.0.0"]
            origins = [o for o in origins if not any(p in o for p in localhost_patterns)]

        return origins


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
