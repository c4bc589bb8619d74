"""
Google Calendar integration for clinic appointment sync.

Provides Google Calendar API as the external calendar backend.
"""

from src.integrations.google_calendar.adapter import (
    EventPayloadBuilder,
    color_for_treatment,
)
from src.integrations.google_calendar.auth import GoogleAuthManager
from src.integrations.google_calendar.classifier import (
    extract_error_details,
    is_retryable,
    to_calendar_error,
)
from src.integrations.google_calendar.client import GoogleCalendarClient
from src.integrations.google_calendar.config_store import (
    CalendarConfig,
    CalendarConfigStore,
)
from src.integrations.google_calendar.exceptions import (
    CalendarErrorKind,
    GoogleCalendarAuthError,
    GoogleCalendarBackendError,
    GoogleCalendarError,
    GoogleCalendarNotFoundError,
    GoogleCalendarQuotaError,
    GoogleCalendarRateLimitError,
    GoogleCalendarTransportError,
    GoogleCalendarValidationError,
    MaxRetriesExceededError,
)
from src.integrations.google_calendar.repository import GoogleCalendarRepository

__all__ = [
    "EventPayloadBuilder",
    "color_for_treatment",
    "GoogleAuthManager",
    "extract_error_details",
    "is_retryable",
    "to_calendar_error",
    "GoogleCalendarClient",
    "CalendarConfig",
    "CalendarConfigStore",
    "CalendarErrorKind",
    "GoogleCalendarError",
    "GoogleCalendarAuthError",
    "GoogleCalendarBackendError",
    "GoogleCalendarNotFoundError",
    "GoogleCalendarQuotaError",
    "GoogleCalendarRateLimitError",
    "GoogleCalendarTransportError",
    "GoogleCalendarValidationError",
    "MaxRetriesExceededError",
    "GoogleCalendarRepository",
]
