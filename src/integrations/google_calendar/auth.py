"""
Service account authentication for Google Calendar API.

The clinic calendar is written by a service account; the calendar must be
shared with the service account email. Keys come from the admin setup
(saved JSON file) or from settings (file path or inline JSON).
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from google.oauth2 import service_account

from src.integrations.google_calendar.exceptions import GoogleCalendarAuthError

logger = logging.getLogger(__name__)

# Required scopes for calendar operations
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

REQUIRED_SERVICE_ACCOUNT_FIELDS = ("client_email", "private_key")


def validate_service_account_info(service_account_info: dict) -> None:
    """
    Check a service account key has the fields needed to sign requests.

    Raises:
        GoogleCalendarAuthError: If required fields are missing
    """
    missing = [
        field for field in REQUIRED_SERVICE_ACCOUNT_FIELDS
        if not service_account_info.get(field)
    ]
    if missing:
        raise GoogleCalendarAuthError(
            f"Missing required fields in credentials ({', '.join(missing)})"
        )


def load_service_account_info(credentials: Union[str, dict]) -> dict:
    """
    Parse and validate a service account key given as JSON text or a dict.

    Raises:
        GoogleCalendarAuthError: If the JSON is invalid or required fields are missing
    """
    if isinstance(credentials, str):
        try:
            credentials = json.loads(credentials)
        except json.JSONDecodeError as e:
            raise GoogleCalendarAuthError("Invalid JSON credentials", original_error=e) from e
    if not isinstance(credentials, dict):
        raise GoogleCalendarAuthError("Invalid JSON credentials")
    validate_service_account_info(credentials)
    return credentials


def get_service_account_credentials(
    service_account_file: Optional[str] = None,
    service_account_info: Optional[dict] = None,
) -> service_account.Credentials:
    """
    Build scoped service account credentials.

    Args:
        service_account_file: Path to service account JSON key file
        service_account_info: Parsed key (takes precedence over the file)

    Raises:
        GoogleCalendarAuthError: If no key is given or it can't be loaded
    """
    if not service_account_info and not service_account_file:
        raise GoogleCalendarAuthError(
            "Either service_account_file or service_account_info must be provided"
        )
    if not service_account_info and not Path(service_account_file).exists():
        raise GoogleCalendarAuthError(
            f"Service account file not found: {service_account_file}"
        )

    try:
        if service_account_info:
            credentials = service_account.Credentials.from_service_account_info(
                service_account_info, scopes=CALENDAR_SCOPES
            )
        else:
            credentials = service_account.Credentials.from_service_account_file(
                str(service_account_file), scopes=CALENDAR_SCOPES
            )
    except (ValueError, KeyError, OSError) as e:
        raise GoogleCalendarAuthError(
            f"Failed to load service account credentials: {e}",
            original_error=e,
        ) from e

    logger.info(f"Loaded service account credentials: {credentials.service_account_email}")
    return credentials


class GoogleAuthManager:
    """Holds one service account key and builds its credentials on first use."""

    def __init__(
        self,
        service_account_file: Optional[str] = None,
        service_account_info: Optional[dict] = None,
    ):
        self._credentials: Optional[service_account.Credentials] = None
        self._service_account_file = service_account_file
        self._service_account_info = service_account_info

    def get_credentials(self) -> service_account.Credentials:
        """
        Get credentials, loading them on first use.

        Access tokens are refreshed by the authorized HTTP transport that
        googleapiclient wraps around them.
        """
        if self._credentials is None:
            self._credentials = get_service_account_credentials(
                service_account_file=self._service_account_file,
                service_account_info=self._service_account_info,
            )
        return self._credentials

    @property
    def service_account_email(self) -> Optional[str]:
        """Email the clinic calendar has to be shared with."""
        if self._service_account_info:
            return self._service_account_info.get("client_email")
        return getattr(self.get_credentials(), "service_account_email", None)
