"""
Calendar error classifier and retry queue.

Decides whether a failed calendar operation is worth retrying, computes
exponential backoff, and keeps a bounded log of failures plus a keyed queue
of pending retries.

State is process-local and in memory. A restart drops every pending retry,
which is acceptable because calendar sync is best-effort: the appointment
itself is already committed by the time we get here.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from src.integrations.google_calendar.classifier import (
    extract_error_details,
    is_api_error,
    to_calendar_error,
)
from src.integrations.google_calendar.exceptions import (
    CalendarErrorKind,
    MaxRetriesExceededError,
)
from src.models.appointment import Appointment

logger = logging.getLogger(__name__)

DEFAULT_ERROR_LOG_LIMIT = 1000
RECENT_ERROR_WINDOW = timedelta(hours=24)
RECENT_ERROR_LIMIT = 10
JITTER_RATIO = 0.1

USER_MESSAGES = {
    CalendarErrorKind.NOT_FOUND: "Calendar not found. Please check your calendar configuration.",
    CalendarErrorKind.PERMISSION_DENIED: (
        "Insufficient permissions. Please ensure the service account has calendar access."
    ),
    CalendarErrorKind.RATE_LIMITED: "Too many requests. Please try again in a few minutes.",
    CalendarErrorKind.QUOTA: "Calendar API quota exceeded. Please try again later.",
    CalendarErrorKind.INVALID_ARGUMENT: (
        "Invalid calendar event data. Please check the appointment details."
    ),
    CalendarErrorKind.TRANSPORT: (
        "Network connection error. Please check your internet connection."
    ),
}
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred with the calendar service."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Operation(str, Enum):
    """Calendar mutation kinds."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class RetryKey:
    """Identifies a pending retry: one per operation and appointment."""

    operation: Operation
    appointment_id: str

    def __str__(self) -> str:
        return f"{self.operation.value}_{self.appointment_id}"


@dataclass(frozen=True)
class RetryConfig:
    """
    Backoff policy for queued retries.

    Delays are in milliseconds.
    """

    max_retries: int = 3
    base_delay: float = 1000
    max_delay: float = 30000
    exponential_base: float = 2

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0 or self.max_delay <= 0:
            raise ValueError("base_delay and max_delay must be positive")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")


DEFAULT_RETRY_CONFIG = RetryConfig()


@dataclass
class CalendarOperationError:
    """
    One failed calendar operation.

    Carries the appointment (and event id for update/delete) so a queued
    retry can replay the original request.
    """

    operation: Operation
    error: Any
    appointment_id: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)
    retry_count: int = 0
    appointment: Optional[Appointment] = None
    event_id: Optional[str] = None

    @property
    def key(self) -> Optional[RetryKey]:
        """Retry key for this failure, or None without an appointment id."""
        if self.appointment_id is None:
            return None
        return RetryKey(self.operation, self.appointment_id)

    def to_dict(self) -> dict:
        """Serializable summary for status reporting."""
        return {
            "operation": self.operation.value,
            "appointment_id": self.appointment_id,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "retry_count": self.retry_count,
            "error": extract_error_details(self.error),
        }


@dataclass
class ErrorStats:
    """Snapshot of the error log and retry queue."""

    total_errors: int
    errors_by_operation: dict[str, int]
    recent_errors: list[CalendarOperationError]
    queue_size: int

    def to_dict(self) -> dict:
        return {
            "total_errors": self.total_errors,
            "errors_by_operation": dict(self.errors_by_operation),
            "recent_errors": [error.to_dict() for error in self.recent_errors],
            "queue_size": self.queue_size,
        }


RetryFunction = Callable[[CalendarOperationError], Awaitable[bool]]


class CalendarErrorHandler:
    """
    Owns the failure log and retry queue for calendar operations.

    Clock, sleep and random source are injectable so tests control time.
    Each drained entry retries in its own task; tasks are tracked so they can
    be awaited or cancelled as a group.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
        error_log_limit: int = DEFAULT_ERROR_LOG_LIMIT,
    ):
        if error_log_limit <= 0:
            raise ValueError("error_log_limit must be positive")
        self.config = config or DEFAULT_RETRY_CONFIG
        self.error_log_limit = error_log_limit
        self._clock = clock or _utcnow
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._error_log: list[CalendarOperationError] = []
        self._retry_queue: dict[RetryKey, CalendarOperationError] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, error: Any) -> bool:
        """Return True if the failure is transient and worth retrying."""
        if error is None:
            return False
        return to_calendar_error(error).retryable

    def user_message(self, error: Any) -> str:
        """
        Short, stable explanation of a failure for admin screens.

        Never raises and never returns an empty string.
        """
        if isinstance(error, CalendarOperationError):
            error = error.error
        if error is None:
            return UNKNOWN_ERROR_MESSAGE

        try:
            calendar_error = to_calendar_error(error)
            if calendar_error.kind in USER_MESSAGES:
                return USER_MESSAGES[calendar_error.kind]
            if calendar_error.kind is CalendarErrorKind.BACKEND or is_api_error(error):
                return f"Calendar service error: {calendar_error.message}"
            if isinstance(error, BaseException) and str(error):
                return str(error)
        except Exception as e:
            logger.debug(f"Could not classify calendar error for display: {e!r}")
        return UNEXPECTED_ERROR_MESSAGE

    # ------------------------------------------------------------------
    # Error log
    # ------------------------------------------------------------------

    def record_failure(self, error: CalendarOperationError) -> None:
        """
        Append a timestamped copy to the error log and emit a diagnostic.

        The log keeps the newest ``error_log_limit`` entries.
        """
        entry = replace(error, timestamp=self._clock(), retry_count=error.retry_count or 0)
        self._error_log.append(entry)
        if len(self._error_log) > self.error_log_limit:
            del self._error_log[: len(self._error_log) - self.error_log_limit]

        try:
            details = extract_error_details(entry.error)
        except Exception as e:
            details = f"<unavailable: {type(e).__name__}>"

        logger.error(
            f"Calendar operation error: operation={entry.operation.value} "
            f"appointment_id={entry.appointment_id} "
            f"timestamp={entry.timestamp.isoformat()} "
            f"retry_count={entry.retry_count} error={details}",
        )

    @property
    def error_log(self) -> list[CalendarOperationError]:
        """Copy of the error log, oldest first."""
        return list(self._error_log)

    # ------------------------------------------------------------------
    # Retry queue
    # ------------------------------------------------------------------

    def enqueue_retry(
        self,
        key: RetryKey,
        error: CalendarOperationError,
        retry_count: Optional[int] = None,
    ) -> None:
        """
        Insert or replace the pending retry for ``key``.

        Without an explicit ``retry_count`` a replacement keeps the stored
        entry's count, so re-failing never resets the retry budget.
        """
        existing = self._retry_queue.get(key)
        if retry_count is None:
            retry_count = existing.retry_count if existing else error.retry_count
        self._retry_queue[key] = replace(error, retry_count=retry_count)
        logger.info(f"Added to retry queue: {key}, retry count: {retry_count}")

    def get_entry(self, key: RetryKey) -> Optional[CalendarOperationError]:
        return self._retry_queue.get(key)

    def pending_keys(self) -> list[RetryKey]:
        return list(self._retry_queue)

    @property
    def queue_size(self) -> int:
        return len(self._retry_queue)

    def base_delay_for(self, retry_count: int, config: Optional[RetryConfig] = None) -> float:
        """Pre-jitter backoff in milliseconds for the ``retry_count``-th retry."""
        config = config or self.config
        delay = config.base_delay * config.exponential_base ** (retry_count - 1)
        return min(delay, config.max_delay)

    def compute_delay(self, retry_count: int, config: Optional[RetryConfig] = None) -> float:
        """
        Backoff in milliseconds including up to 10% random jitter.

        Capped at ``max_delay`` after jitter is added.
        """
        config = config or self.config
        delay = config.base_delay * config.exponential_base ** (retry_count - 1)
        jitter = self._rng.uniform(0, JITTER_RATIO * delay)
        return min(delay + jitter, config.max_delay)

    async def drain_retries(
        self,
        retry_fn: RetryFunction,
        config: Optional[RetryConfig] = None,
        wait: bool = False,
    ) -> list[asyncio.Task]:
        """
        Schedule one retry task per queued entry.

        Entries past ``max_retries`` are dropped and logged as terminal
        without calling ``retry_fn``. Every other entry waits out its own
        backoff concurrently, then calls ``retry_fn``:

        - True removes the entry
        - False keeps it with the incremented retry count
        - an exception keeps it with the incremented count and the new error

        Args:
            retry_fn: Replays a queued operation, returning success
            config: Backoff policy (defaults to the handler's)
            wait: Await the scheduled tasks before returning

        Returns:
            The scheduled retry tasks
        """
        config = config or self.config
        scheduled = []

        for key, entry in list(self._retry_queue.items()):
            next_count = entry.retry_count + 1

            if next_count > config.max_retries:
                logger.error(f"Max retries exceeded for {key}, removing from queue")
                del self._retry_queue[key]
                self.record_failure(
                    replace(
                        entry,
                        retry_count=next_count,
                        error=MaxRetriesExceededError(config.max_retries, entry.error),
                    )
                )
                continue

            delay = self.compute_delay(next_count, config)
            task = asyncio.create_task(
                self._retry_entry(key, entry, next_count, delay, retry_fn),
                name=f"calendar-retry-{key}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled.append(task)

        if wait and scheduled:
            await asyncio.gather(*scheduled, return_exceptions=True)
        return scheduled

    async def _retry_entry(
        self,
        key: RetryKey,
        entry: CalendarOperationError,
        next_count: int,
        delay_ms: float,
        retry_fn: RetryFunction,
    ) -> bool:
        await self._sleep(delay_ms / 1000)

        try:
            succeeded = await retry_fn(entry)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Retry failed for {key}: {e}")
            failed = replace(entry, retry_count=next_count, error=e)
            # Last write wins: a failure enqueued for this key while we were
            # in flight is overwritten here.
            self._retry_queue[key] = failed
            self.record_failure(failed)
            return False

        if succeeded:
            logger.info(f"Retry successful for {key}")
            self._retry_queue.pop(key, None)
            return True

        self._retry_queue[key] = replace(entry, retry_count=next_count)
        return False

    async def wait_for_retries(self) -> None:
        """Wait for every in-flight retry task to finish."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight retry tasks; queued entries stay in the queue."""
        tasks = list(self._tasks)
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} in-flight calendar retries")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_stats(self) -> ErrorStats:
        """Summarize the error log and retry queue."""
        errors_by_operation: dict[str, int] = {}
        for error in self._error_log:
            operation = error.operation.value
            errors_by_operation[operation] = errors_by_operation.get(operation, 0) + 1

        now = self._clock()
        recent = [
            error for error in self._error_log
            if now - error.timestamp < RECENT_ERROR_WINDOW
        ]

        return ErrorStats(
            total_errors=len(self._error_log),
            errors_by_operation=errors_by_operation,
            recent_errors=recent[-RECENT_ERROR_LIMIT:],
            queue_size=len(self._retry_queue),
        )

    def clear(self) -> None:
        """Drop the error log and all pending retries."""
        self._error_log.clear()
        self._retry_queue.clear()
