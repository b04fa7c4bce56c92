"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Trenes API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    # "auto" renders to the console in development and JSON lines elsewhere
    log_format: Literal["auto", "console", "json"] = "auto"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Renfe GTFS-RT JSON feeds
    vehicle_positions_url: str = Field(
        default="https://gtfsrt.renfe.com/vehicle_positions.json",
        validation_alias=AliasChoices("VEHICLE_POSITIONS_URL", "RENFE_VEHICLE_POSITIONS_URL"),
    )
    trip_updates_url: str = Field(
        default="https://gtfsrt.renfe.com/trip_updates.json",
        validation_alias=AliasChoices("TRIP_UPDATES_URL", "RENFE_TRIP_UPDATES_URL"),
    )
    alerts_url: str = Field(
        default="https://gtfsrt.renfe.com/alerts.json",
        validation_alias=AliasChoices("ALERTS_URL", "RENFE_ALERTS_URL"),
    )

    # Feed fetching
    feed_fetch_timeout_sec: float = Field(default=10.0, gt=0)
    feed_max_retries: int = Field(default=1, ge=1, le=10)
    feed_backoff_base: float = 2.0

    # Snapshot cache
    cache_ttl_seconds: float = Field(default=30.0, gt=0)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
