"""
Custom exceptions for Google Calendar operations.

Every failure the calendar client can produce is mapped onto one of these
variants. Each carries a ``kind`` tag and a ``retryable`` flag so callers
never need to inspect SDK-specific error shapes.
"""

from enum import Enum
from typing import Any


class CalendarErrorKind(str, Enum):
    """Classification of a failed calendar call."""

    RATE_LIMITED = "rate_limited"
    QUOTA = "quota"
    BACKEND = "backend"
    TRANSPORT = "transport"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN = "unknown"


class GoogleCalendarError(Exception):
    """Base exception for Google Calendar operations."""

    kind: CalendarErrorKind = CalendarErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(
        self,
        message: str,
        original_error: Any = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.status_code = status_code

    @property
    def raw(self) -> Any:
        """The unclassified value this error was built from."""
        return self.original_error


class GoogleCalendarRateLimitError(GoogleCalendarError):
    """
    Rate limit hit (429, or 403 with reason rateLimitExceeded).

    Retryable after exponential backoff.
    """

    kind = CalendarErrorKind.RATE_LIMITED
    retryable = True


class GoogleCalendarQuotaError(GoogleCalendarError):
    """
    API quota exceeded.

    Google Calendar API has quotas:
    - 1,000,000 queries/day
    - 180 queries/minute per user

    Retryable after backoff.
    """

    kind = CalendarErrorKind.QUOTA
    retryable = True


class GoogleCalendarBackendError(GoogleCalendarError):
    """
    Server-side failure (500, 502, 503, 504, backendError).

    Retryable after backoff.
    """

    kind = CalendarErrorKind.BACKEND
    retryable = True


class GoogleCalendarTransportError(GoogleCalendarError):
    """
    Network-level failure before a response was received.

    Causes:
    - Connection reset or refused
    - Socket timeout
    - DNS resolution failure
    """

    kind = CalendarErrorKind.TRANSPORT
    retryable = True


class GoogleCalendarNotFoundError(GoogleCalendarError):
    """
    Event or calendar not found.

    Causes:
    - Event was deleted
    - Calendar ID is invalid
    - Event ID is invalid
    """

    kind = CalendarErrorKind.NOT_FOUND
    retryable = False


class GoogleCalendarAuthError(GoogleCalendarError):
    """
    Authentication or authorization failure.

    Causes:
    - Invalid or expired credentials
    - Insufficient scopes
    - Service account not authorized for calendar
    """

    kind = CalendarErrorKind.PERMISSION_DENIED
    retryable = False


class GoogleCalendarValidationError(GoogleCalendarError):
    """
    Invalid event data.

    Causes:
    - Invalid date or time format
    - Missing required fields
    """

    kind = CalendarErrorKind.INVALID_ARGUMENT
    retryable = False


class MaxRetriesExceededError(GoogleCalendarError):
    """A retryable operation that used up its retry budget."""

    retryable = False

    def __init__(self, max_retries: int, original_error: Any = None):
        super().__init__(
            f"Max retries ({max_retries}) exceeded",
            original_error=original_error,
        )
        self.max_retries = max_retries


ERROR_CLASSES: dict[CalendarErrorKind, type[GoogleCalendarError]] = {
    CalendarErrorKind.RATE_LIMITED: GoogleCalendarRateLimitError,
    CalendarErrorKind.QUOTA: GoogleCalendarQuotaError,
    CalendarErrorKind.BACKEND: GoogleCalendarBackendError,
    CalendarErrorKind.TRANSPORT: GoogleCalendarTransportError,
    CalendarErrorKind.NOT_FOUND: GoogleCalendarNotFoundError,
    CalendarErrorKind.PERMISSION_DENIED: GoogleCalendarAuthError,
    CalendarErrorKind.INVALID_ARGUMENT: GoogleCalendarValidationError,
    CalendarErrorKind.UNKNOWN: GoogleCalendarError,
}
