"""
Google Calendar API client wrapper with error classification.

Provides a clean interface over the Google Calendar API v3.

Read-only calls retry transient failures inline. Mutating calls do not:
their retries are owned by the sync engine's retry queue, which keeps the
original payload and applies the clinic's backoff policy.
"""

import logging
from typing import Optional

import httplib2
from google.auth.credentials import Credentials
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from src.integrations.google_calendar.classifier import to_calendar_error
from src.integrations.google_calendar.exceptions import (
    CalendarErrorKind,
    GoogleCalendarError,
)

logger = logging.getLogger(__name__)

# Failures raised by execute(): API errors plus httplib2/socket transport errors
CLIENT_ERRORS = (HttpError, OSError, httplib2.HttpLib2Error)


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger an inline retry."""
    if isinstance(exception, GoogleCalendarError):
        return exception.retryable
    return False


def _handle_http_error(error: Exception) -> None:
    """Convert a raw client failure to the matching GoogleCalendarError."""
    raise to_calendar_error(error) from error


read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_retryable_error),
    reraise=True,
)


class GoogleCalendarClient:
    """
    Wrapper around Google Calendar API v3.

    Provides:
    - Consistent error classification
    - Inline retry for idempotent reads
    """

    def __init__(self, credentials: Credentials):
        """
        Initialize the client.

        Args:
            credentials: Google credentials (service account or OAuth)
        """
        self._service: Resource = build(
            "calendar",
            "v3",
            credentials=credentials,
            cache_discovery=False,
        )

    @property
    def service(self) -> Resource:
        """Get the underlying Google API service."""
        return self._service

    @read_retry
    def get_event(self, calendar_id: str, event_id: str) -> dict:
        """
        Get a single event by ID.

        Args:
            calendar_id: Calendar containing the event
            event_id: Event ID

        Returns:
            Event data
        """
        try:
            return self._service.events().get(
                calendarId=calendar_id,
                eventId=event_id,
            ).execute()
        except CLIENT_ERRORS as e:
            _handle_http_error(e)

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        """
        Create a new event.

        Args:
            calendar_id: Calendar to create event in
            body: Event data in Google Calendar format

        Returns:
            Created event with ID
        """
        try:
            result = self._service.events().insert(
                calendarId=calendar_id,
                body=body,
            ).execute()
            logger.info(f"Created event {result.get('id')} in {calendar_id}")
            return result
        except CLIENT_ERRORS as e:
            _handle_http_error(e)

    def update_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        """
        Update an existing event.

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to update
            body: Updated event data

        Returns:
            Updated event
        """
        try:
            result = self._service.events().update(
                calendarId=calendar_id,
                eventId=event_id,
                body=body,
            ).execute()
            logger.info(f"Updated event {event_id} in {calendar_id}")
            return result
        except CLIENT_ERRORS as e:
            _handle_http_error(e)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        """
        Delete an event.

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to delete
        """
        try:
            self._service.events().delete(
                calendarId=calendar_id,
                eventId=event_id,
            ).execute()
            logger.info(f"Deleted event {event_id} from {calendar_id}")
        except CLIENT_ERRORS as e:
            error = to_calendar_error(e)
            if error.kind is CalendarErrorKind.NOT_FOUND:
                # Already deleted - consider success
                logger.warning(f"Event {event_id} already deleted")
                return
            raise error from e

    @read_retry
    def get_calendar(self, calendar_id: str) -> dict:
        """
        Get calendar metadata; used to verify the service account has access.

        Args:
            calendar_id: Calendar to look up

        Returns:
            Calendar resource
        """
        try:
            return self._service.calendars().get(calendarId=calendar_id).execute()
        except CLIENT_ERRORS as e:
            _handle_http_error(e)

    @read_retry
    def list_calendars(self, page_token: Optional[str] = None) -> dict:
        """
        List calendars visible to the authenticated account.

        Args:
            page_token: Token for pagination

        Returns:
            API response with items and nextPageToken
        """
        try:
            return self._service.calendarList().list(pageToken=page_token).execute()
        except CLIENT_ERRORS as e:
            _handle_http_error(e)

    def list_all_calendars(self) -> list[dict]:
        """List all visible calendars with automatic pagination."""
        calendars = []
        page_token = None

        while True:
            response = self.list_calendars(page_token=page_token)
            calendars.extend(response.get("items", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(calendars)} calendars")
        return calendars
