"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to relative path for Docker, override via env for local dev
    database_url: str = "sqlite:///./data/orderhub.db"
    sql_echo: bool = False

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # ==========================================================================
    # Aggregator ingestion
    # ==========================================================================
    # Platform-local zone, used when a store has no zone of its own
    timezone: str = "Asia/Kolkata"
    business_day_start_hour: int = 6

    # "sequence": per-store counter row locked per business day
    # "scan": count orders since the boundary (not linearizable)
    ticket_numbering: Literal["sequence", "scan"] = "sequence"

    # Price used when a menu item has no override for the platform
    fallback_price_source: Literal["catalog", "aggregator"] = "catalog"

    require_counter_routing: bool = False
    webhook_require_signature: bool = True
    recent_orders_hours: int = 24

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    @field_validator("business_day_start_hour")
    @classmethod
    def validate_business_day_start_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError(f"business_day_start_hour must be between 0 and 23, got {v}")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        if not self.debug and not self.webhook_require_signature:
            raise ValueError(
                "FATAL: Cannot start in production mode with webhook signature "
                "verification disabled. Set WEBHOOK_REQUIRE_SIGNATURE=true."
            )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list, filtering localhost in production."""
        if self.cors_origins == "*":
            return ["*"]

        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        if not self.debug:
            localhost_patterns = ["localhost", "127.0.0.1", "0.0.0.0"]
            origins = [o for o in origins if not any(p in o for p in localhost_patterns)]

        return origins


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
