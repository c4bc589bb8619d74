"""
Google Calendar Repository implementation.

Implements the CalendarClient protocol using Google Calendar API.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Optional

from src.integrations.base import CalendarClient, EventResult
from src.integrations.google_calendar.auth import GoogleAuthManager
from src.integrations.google_calendar.client import GoogleCalendarClient
from src.integrations.google_calendar.exceptions import (
    GoogleCalendarNotFoundError,
)

logger = logging.getLogger(__name__)

WRITABLE_ACCESS_ROLES = ("owner", "writer")


class GoogleCalendarRepository(CalendarClient):
    """
    CalendarClient implementation using Google Calendar API.

    Uses service account authentication for server-to-server access.
    The Google API client is synchronous, so we run operations in a
    thread pool for async compatibility.
    """

    def __init__(
        self,
        auth_manager: GoogleAuthManager,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the repository.

        Args:
            auth_manager: Authentication manager for credentials
            executor: Thread pool for running sync API calls (creates default if None)
        """
        self._auth_manager = auth_manager
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._client: Optional[GoogleCalendarClient] = None

    @property
    def client(self) -> GoogleCalendarClient:
        """Get or create the API client."""
        if self._client is None:
            credentials = self._auth_manager.get_credentials()
            self._client = GoogleCalendarClient(credentials)
        return self._client

    async def _run_in_executor(self, func, *args, **kwargs):
        """Run a synchronous function in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            partial(func, *args, **kwargs),
        )

    async def insert(self, calendar_id: str, event: dict) -> EventResult:
        """
        Create a new event in Google Calendar.

        Args:
            calendar_id: Google Calendar ID
            event: Event body in Google Calendar format

        Returns:
            Created event's id, link and status
        """
        google_event = await self._run_in_executor(
            self.client.insert_event,
            calendar_id=calendar_id,
            body=event,
        )
        return EventResult.from_google_event(google_event)

    async def get(self, calendar_id: str, event_id: str) -> Optional[dict]:
        """
        Get a single event by ID from Google Calendar.

        Returns:
            Event resource or None if not found
        """
        try:
            return await self._run_in_executor(
                self.client.get_event,
                calendar_id=calendar_id,
                event_id=event_id,
            )
        except GoogleCalendarNotFoundError:
            return None

    async def update(self, calendar_id: str, event_id: str, event: dict) -> EventResult:
        """
        Replace an existing event in Google Calendar.

        Args:
            calendar_id: Google Calendar ID
            event_id: Event to update
            event: Full event body

        Returns:
            Updated event's id, link and status
        """
        google_event = await self._run_in_executor(
            self.client.update_event,
            calendar_id=calendar_id,
            event_id=event_id,
            body=event,
        )
        return EventResult.from_google_event(google_event)

    async def delete(self, calendar_id: str, event_id: str) -> None:
        """Delete an event from Google Calendar."""
        await self._run_in_executor(
            self.client.delete_event,
            calendar_id=calendar_id,
            event_id=event_id,
        )

    async def verify_access(self, calendar_id: str) -> dict:
        """Fetch calendar metadata, raising if the calendar isn't reachable."""
        calendar = await self._run_in_executor(
            self.client.get_calendar,
            calendar_id=calendar_id,
        )
        logger.debug(f"Verified access to calendar {calendar_id}")
        return calendar

    async def list_writable_calendars(self) -> list[dict]:
        """
        List calendars the service account can create events in.

        Returns:
            Calendars with owner or writer access
        """
        calendars = await self._run_in_executor(self.client.list_all_calendars)
        return [
            {
                "id": calendar.get("id"),
                "summary": calendar.get("summary"),
                "description": calendar.get("description"),
                "access_role": calendar.get("accessRole"),
                "primary": bool(calendar.get("primary", False)),
            }
            for calendar in calendars
            if calendar.get("accessRole") in WRITABLE_ACCESS_ROLES
        ]

    async def close(self):
        """Clean up resources."""
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
        return False
