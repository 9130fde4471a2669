"""
Configuration management using Pydantic Settings.

This module defines the Settings class that loads configuration from
environment variables and .env files.
"""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from plantcare.models.diagnosis import (
    DEFAULT_HEALTH_THRESHOLD,
    DEFAULT_PLANT_DETECTION_THRESHOLD,
    DetectionThresholds,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = Field(default="Plant Care", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # API Configuration
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )

    # Plant health assessment service
    plant_id_api_url: str = Field(
        default="https://api.plant.id/v3/health_assessment",
        description="Health assessment endpoint",
    )
    plant_id_api_key: str = Field(
        default="", description="API key sent in the Api-Key header"
    )
    plant_id_timeout: float = Field(
        default=30.0, gt=0, description="Upstream request timeout (seconds)"
    )
    default_latitude: float = Field(
        default=43.6532, description="Latitude used when the client sends none"
    )
    default_longitude: float = Field(
        default=-79.3832, description="Longitude used when the client sends none"
    )

    # Detection thresholds stored on new diagnoses
    plant_detection_threshold: float = Field(
        default=DEFAULT_PLANT_DETECTION_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Default is-plant threshold",
    )
    health_threshold: float = Field(
        default=DEFAULT_HEALTH_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Default is-healthy threshold",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> Any:
        """Parse CORS origins from environment variable."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    def detection_thresholds(self) -> DetectionThresholds:
        """Build the classifier thresholds from the configured values."""
        return DetectionThresholds(
            plant_detection=self.plant_detection_threshold,
            health=self.health_threshold,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Returns:
        Settings: The application settings

    Raises:
        ValidationError: If environment variables are invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached Settings so the next call re-reads the environment."""
    global _settings
    _settings = None
