"""
Calendar client protocol and base types.

Defines the interface the sync engine uses to reach an external calendar.
"""

from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class EventResult:
    """Outcome of a successful insert or update."""

    id: str
    html_link: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_google_event(cls, google_event: dict) -> "EventResult":
        """Build from a Google Calendar event resource."""
        return cls(
            id=google_event.get("id", ""),
            html_link=google_event.get("htmlLink"),
            status=google_event.get("status"),
        )


class CalendarClient(Protocol):
    """
    Protocol for external calendar backends.

    Implementations:
    - GoogleCalendarRepository: Uses Google Calendar API

    All methods are async. Failures are raised as exceptions; the sync
    engine classifies them and decides whether to retry.
    """

    @abstractmethod
    async def insert(self, calendar_id: str, event: dict) -> EventResult:
        """
        Create a new event.

        Args:
            calendar_id: Calendar to create event in
            event: Event payload

        Returns:
            Created event's id, link and status
        """
        ...

    @abstractmethod
    async def get(self, calendar_id: str, event_id: str) -> Optional[dict]:
        """
        Get a single event by ID.

        Returns:
            Event or None if not found
        """
        ...

    @abstractmethod
    async def update(self, calendar_id: str, event_id: str, event: dict) -> EventResult:
        """
        Replace an existing event.

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to update
            event: Full event payload

        Returns:
            Updated event's id, link and status
        """
        ...

    @abstractmethod
    async def delete(self, calendar_id: str, event_id: str) -> None:
        """Delete an event."""
        ...

    @abstractmethod
    async def verify_access(self, calendar_id: str) -> dict:
        """
        Confirm the calendar exists and is reachable with current credentials.

        Returns:
            Calendar metadata
        """
        ...
