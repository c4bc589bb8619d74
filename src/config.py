"""
Configuration management for the clinic calendar sync engine.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from src.services.calendar_error_handler import RetryConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Clinic
    clinic_name: str = Field(
        default="Vasavi Dental Care",
        description="Clinic name, attached as the location of every calendar event"
    )
    business_timezone: str = Field(
        default="Asia/Kolkata",
        description="IANA timezone used for appointment start/end times"
    )
    default_event_duration: int = Field(
        default=30,
        gt=0,
        description="Event duration in minutes when an appointment has none"
    )

    # Google Calendar Configuration (Service Account)
    google_calendar_id: str = Field(
        default="",
        description="Google Calendar ID that receives appointment events"
    )
    google_service_account_file: str = Field(
        default="",
        description="Path to Google service account JSON key file"
    )
    google_service_account_json: str = Field(
        default="",
        description="Google service account JSON (alternative to file, for deployments)"
    )
    calendar_config_dir: str = Field(
        default="config",
        description="Directory holding calendar-config.json written by the admin setup wizard"
    )

    # Retry policy
    retry_max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum retry attempts for a failed calendar operation"
    )
    retry_base_delay_ms: float = Field(
        default=1000,
        gt=0,
        description="Backoff delay before the first retry, in milliseconds"
    )
    retry_max_delay_ms: float = Field(
        default=30000,
        gt=0,
        description="Backoff ceiling, in milliseconds"
    )
    retry_exponential_base: float = Field(
        default=2,
        ge=1,
        description="Backoff multiplier applied per attempt"
    )
    retry_interval_seconds: float = Field(
        default=60,
        gt=0,
        description="How often the background scheduler drains the retry queue"
    )
    error_log_limit: int = Field(
        default=1000,
        gt=0,
        description="Number of calendar failures kept for status reporting"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def retry_config(self) -> "RetryConfig":
        """Build the retry policy from settings."""
        from src.services.calendar_error_handler import RetryConfig

        return RetryConfig(
            max_retries=self.retry_max_retries,
            base_delay=self.retry_base_delay_ms,
            max_delay=self.retry_max_delay_ms,
            exponential_base=self.retry_exponential_base,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # file_cache is unavailable with oauth2client>=4.0.0
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
