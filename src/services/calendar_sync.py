"""
Calendar sync service.

Single entry point the booking and admin handlers use to mirror appointment
changes onto the clinic calendar. Every operation is best-effort: calendar
failures are recorded, queued for retry when transient, and reported as
``None``/``False``. They never raise into the booking transaction.
"""

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from src.integrations.base import CalendarClient
from src.integrations.google_calendar.adapter import EventPayloadBuilder
from src.integrations.google_calendar.classifier import to_calendar_error
from src.integrations.google_calendar.exceptions import (
    CalendarErrorKind,
    GoogleCalendarAuthError,
)
from src.models.appointment import Appointment
from src.services.calendar_error_handler import (
    CalendarErrorHandler,
    CalendarOperationError,
    Operation,
)

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = "primary"

EventCreatedHook = Callable[[str, str], Union[None, Awaitable[None]]]


class ConnectionState(str, Enum):
    """Connection lifecycle of the sync service."""

    UNINITIALIZED = "uninitialized"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass
class SyncStatus:
    """Point-in-time view of calendar sync health. Never stored."""

    is_connected: bool
    connection_state: ConnectionState
    calendar_id: str
    last_sync: Optional[str]
    total_errors: int
    errors_by_operation: dict[str, int]
    recent_errors: list[CalendarOperationError]
    queue_size: int
    pending_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_connected": self.is_connected,
            "connection_state": self.connection_state.value,
            "calendar_id": self.calendar_id,
            "last_sync": self.last_sync,
            "total_errors": self.total_errors,
            "errors_by_operation": dict(self.errors_by_operation),
            "recent_errors": [error.to_dict() for error in self.recent_errors],
            "queue_size": self.queue_size,
            "pending_keys": list(self.pending_keys),
        }


@dataclass
class ConnectionTestResult:
    """Outcome of a create-then-delete probe against the calendar."""

    success: bool
    event_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class CalendarSyncService:
    """
    Mirrors appointment create/update/delete onto an external calendar.

    Failures go through the CalendarErrorHandler: every failure is logged,
    transient ones are queued under (operation, appointment id) and replayed
    by ``process_retries``.
    """

    def __init__(
        self,
        client: Optional[CalendarClient],
        error_handler: Optional[CalendarErrorHandler] = None,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        payload_builder: Optional[EventPayloadBuilder] = None,
        on_event_created: Optional[EventCreatedHook] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the sync service.

        Args:
            client: Calendar backend; None when the integration isn't configured
            error_handler: Failure log and retry queue (creates default if None)
            calendar_id: Calendar receiving appointment events
            payload_builder: Appointment to event mapping (creates default if None)
            on_event_created: Called with (appointment_id, event_id) when a
                queued create succeeds, so the store can save the event id
            clock: Source of the current time
        """
        self._client = client
        self._errors = error_handler or CalendarErrorHandler()
        self._calendar_id = calendar_id or DEFAULT_CALENDAR_ID
        self._payload_builder = payload_builder or EventPayloadBuilder()
        self._on_event_created = on_event_created
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = ConnectionState.UNINITIALIZED
        self._last_sync: Optional[datetime] = None

    @property
    def calendar_id(self) -> str:
        return self._calendar_id

    @property
    def error_handler(self) -> CalendarErrorHandler:
        return self._errors

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _mark_synced(self) -> None:
        self._state = ConnectionState.CONNECTED
        self._last_sync = self._clock()

    def _handle_failure(
        self,
        operation: Operation,
        appointment_id: Optional[str],
        error: Exception,
        appointment: Optional[Appointment] = None,
        event_id: Optional[str] = None,
    ) -> None:
        """Record a failure and queue it for retry if it is transient."""
        failure = CalendarOperationError(
            operation=operation,
            error=error,
            appointment_id=appointment_id,
            appointment=appointment,
            event_id=event_id,
        )
        self._errors.record_failure(failure)

        if failure.key is not None and self._errors.classify(error):
            self._errors.enqueue_retry(failure.key, failure)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """
        Verify the calendar is reachable and mark the service connected.

        A failed check is logged but not added to the failure log; the
        operation that triggered it records its own failure.

        Returns:
            True if connected, False otherwise
        """
        try:
            if self._client is None:
                raise GoogleCalendarAuthError(
                    "Google Calendar not configured. Run the calendar setup first."
                )
            await self._client.verify_access(self._calendar_id)
        except Exception as e:
            self._state = ConnectionState.FAILED
            logger.warning(f"Calendar initialization failed: {self._errors.user_message(e)}")
            return False

        self._state = ConnectionState.CONNECTED
        logger.info(f"Calendar sync connected to {self._calendar_id}")
        return True

    async def test_connection(self) -> ConnectionTestResult:
        """
        Create and immediately delete a test event.

        Confirms write access end to end; used by the admin setup screen.
        """
        if self._client is None:
            return ConnectionTestResult(
                success=False,
                error="Google Calendar not configured.",
            )

        event = self._payload_builder.build_test_event(self._clock())
        try:
            result = await self._client.insert(self._calendar_id, event)
            if not result.id:
                raise RuntimeError("Failed to create test event")
            await self._client.delete(self._calendar_id, result.id)
        except Exception as e:
            logger.error(f"Calendar connection test failed: {e}")
            return ConnectionTestResult(success=False, error=self._errors.user_message(e))

        self._mark_synced()
        return ConnectionTestResult(
            success=True,
            event_id=result.id,
            message="Test event created and deleted successfully",
        )

    # ------------------------------------------------------------------
    # Appointment operations
    # ------------------------------------------------------------------

    async def create_appointment_event(self, appointment: Appointment) -> Optional[str]:
        """
        Create the calendar event for a new appointment.

        Returns:
            Event id, or None if the calendar write failed (booking still stands)
        """
        if not self.is_connected:
            await self.initialize()
        if self._client is None:
            return None

        try:
            event = self._payload_builder.build(appointment)
            result = await self._client.insert(self._calendar_id, event)
        except Exception as e:
            self._handle_failure(Operation.CREATE, appointment.id, e, appointment=appointment)
            return None

        self._mark_synced()
        logger.info(f"Calendar event {result.id} created for appointment {appointment.id}")
        return result.id or None

    async def update_appointment_event(self, appointment: Appointment, event_id: str) -> bool:
        """
        Rewrite an existing event from the appointment's current details.

        Returns:
            True on success, False if the calendar write failed
        """
        if self._client is None:
            logger.warning("Google Calendar not configured. Skipping event update.")
            return False

        try:
            event = self._payload_builder.build(appointment)
            await self._client.update(self._calendar_id, event_id, event)
        except Exception as e:
            self._handle_failure(
                Operation.UPDATE, appointment.id, e,
                appointment=appointment, event_id=event_id,
            )
            return False

        self._mark_synced()
        logger.info(f"Calendar event {event_id} updated for appointment {appointment.id}")
        return True

    async def delete_appointment_event(self, appointment_id: str, event_id: str) -> bool:
        """
        Delete an appointment's event. An event that is already gone counts as deleted.

        Returns:
            True on success, False if the calendar call failed
        """
        if self._client is None:
            logger.warning("Google Calendar not configured. Skipping event deletion.")
            return False

        try:
            await self._delete_event(event_id)
        except Exception as e:
            self._handle_failure(Operation.DELETE, appointment_id, e, event_id=event_id)
            return False

        self._mark_synced()
        logger.info(f"Calendar event {event_id} deleted for appointment {appointment_id}")
        return True

    async def sync_appointment(
        self,
        appointment: Appointment,
        existing_event_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create or update the appointment's event.

        Returns:
            The event id on success (the existing one for updates), else None
        """
        if existing_event_id:
            updated = await self.update_appointment_event(appointment, existing_event_id)
            return existing_event_id if updated else None
        return await self.create_appointment_event(appointment)

    async def _delete_event(self, event_id: str) -> None:
        try:
            await self._client.delete(self._calendar_id, event_id)
        except Exception as e:
            if to_calendar_error(e).kind is CalendarErrorKind.NOT_FOUND:
                logger.warning(f"Event {event_id} already deleted")
                return
            raise

    # ------------------------------------------------------------------
    # Retries and status
    # ------------------------------------------------------------------

    async def _notify_event_created(self, appointment_id: str, event_id: str) -> None:
        if self._on_event_created is None:
            return
        try:
            result = self._on_event_created(appointment_id, event_id)
            if inspect.isawaitable(result):
                await result
        except Exception:
            # The event exists; failing the retry here would create a duplicate
            logger.exception(
                f"Failed to record event {event_id} for appointment {appointment_id}"
            )

    async def _replay(self, entry: CalendarOperationError) -> bool:
        """Re-run a queued operation. Raises on failure so the queue keeps the new error."""
        if self._client is None:
            raise GoogleCalendarAuthError("Google Calendar not configured.")

        if entry.operation is Operation.CREATE:
            if entry.appointment is None:
                logger.warning(f"No appointment payload for queued create {entry.key}; dropping")
                return True
            event = self._payload_builder.build(entry.appointment)
            result = await self._client.insert(self._calendar_id, event)
            self._mark_synced()
            if result.id:
                await self._notify_event_created(entry.appointment.id, result.id)
            return True

        if entry.operation is Operation.UPDATE:
            if entry.appointment is None or not entry.event_id:
                logger.warning(f"Incomplete payload for queued update {entry.key}; dropping")
                return True
            event = self._payload_builder.build(entry.appointment)
            await self._client.update(self._calendar_id, entry.event_id, event)
            self._mark_synced()
            return True

        if not entry.event_id:
            logger.warning(f"No event id for queued delete {entry.key}; dropping")
            return True
        await self._delete_event(entry.event_id)
        self._mark_synced()
        return True

    async def process_retries(self, wait: bool = False) -> None:
        """
        Replay queued operations with backoff.

        Args:
            wait: Await all retry attempts instead of returning once scheduled
        """
        await self._errors.drain_retries(self._replay, wait=wait)

    def get_sync_status(self) -> SyncStatus:
        """Combine connection state with error and queue statistics."""
        stats = self._errors.get_stats()
        return SyncStatus(
            is_connected=self.is_connected,
            connection_state=self._state,
            calendar_id=self._calendar_id,
            last_sync=self._last_sync.isoformat() if self._last_sync else None,
            total_errors=stats.total_errors,
            errors_by_operation=stats.errors_by_operation,
            recent_errors=stats.recent_errors,
            queue_size=stats.queue_size,
            pending_keys=[str(key) for key in self._errors.pending_keys()],
        )

    def user_message(self, error: Any) -> str:
        """Human-readable explanation of a calendar failure."""
        return self._errors.user_message(error)

    async def close(self) -> None:
        """Cancel in-flight retries and release the calendar client."""
        await self._errors.shutdown()
        close = getattr(self._client, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result
