"""
File-backed calendar configuration written by the admin setup wizard.

Layout inside the config directory:
- google-service-account.json: the service account key
- calendar-config.json: calendar id, key path and enabled flag

A saved, enabled configuration takes precedence over environment settings.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.integrations.google_calendar.auth import load_service_account_info
from src.integrations.google_calendar.exceptions import GoogleCalendarAuthError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "calendar-config.json"
CREDENTIALS_FILENAME = "google-service-account.json"


class CalendarConfig(BaseModel):
    """Saved calendar integration settings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    calendar_id: str = Field(min_length=1)
    credentials_path: str
    is_enabled: bool = True
    configured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    service_account_email: Optional[str] = None


class CalendarConfigStore:
    """Reads and writes the calendar configuration directory."""

    def __init__(self, config_dir: Union[str, Path] = "config"):
        self.config_dir = Path(config_dir)

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def credentials_path(self) -> Path:
        return self.config_dir / CREDENTIALS_FILENAME

    def save(self, credentials: Union[str, dict], calendar_id: str) -> CalendarConfig:
        """
        Persist credentials and calendar id, enabling the integration.

        Args:
            credentials: Service account key as JSON text or dict
            calendar_id: Calendar that will receive appointment events

        Returns:
            The saved configuration
        """
        if not calendar_id:
            raise ValueError("Missing calendar ID")
        credentials_data = load_service_account_info(credentials)

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.credentials_path.write_text(json.dumps(credentials_data, indent=2))

        config = CalendarConfig(
            calendar_id=calendar_id,
            credentials_path=str(self.credentials_path),
            is_enabled=True,
            service_account_email=credentials_data.get("client_email"),
        )
        self.config_path.write_text(config.model_dump_json(by_alias=True, indent=2))

        logger.info(
            f"Saved calendar configuration for {calendar_id} "
            f"({config.service_account_email})"
        )
        return config

    def load(self) -> Optional[CalendarConfig]:
        """
        Load the saved configuration.

        Returns:
            Configuration, or None if missing or unreadable
        """
        if not self.config_path.exists():
            return None
        try:
            return CalendarConfig.model_validate_json(self.config_path.read_text())
        except (OSError, ValidationError) as e:
            logger.error(f"Error loading calendar config: {e}")
            return None

    def load_enabled(self) -> Optional[CalendarConfig]:
        """Load the configuration only if it is enabled and its key file exists."""
        config = self.load()
        if config is None or not config.is_enabled:
            return None
        if not Path(config.credentials_path).exists():
            logger.warning(f"Calendar credentials missing: {config.credentials_path}")
            return None
        return config

    def load_credentials_info(self, config: CalendarConfig) -> dict:
        """
        Read and validate the service account key referenced by a configuration.

        Raises:
            GoogleCalendarAuthError: If the key file is unreadable or malformed
        """
        try:
            key_text = Path(config.credentials_path).read_text()
        except OSError as e:
            raise GoogleCalendarAuthError(
                f"Unable to read calendar credentials: {e}",
                original_error=e,
            ) from e
        return load_service_account_info(key_text)

    def clear(self) -> bool:
        """
        Remove saved credentials and configuration (disconnect).

        Returns:
            True if anything was removed
        """
        removed = False
        for path in (self.credentials_path, self.config_path):
            if path.exists():
                path.unlink()
                removed = True
        if removed:
            logger.info("Calendar integration disconnected")
        return removed
