"""
Service layer for clinic calendar sync.

Provides:
- Calendar error classification, failure log and retry queue
- Appointment to calendar sync orchestration
- Calendar setup and service construction
- Background retry scheduling
"""

from src.services.calendar_error_handler import (
    CalendarErrorHandler,
    CalendarOperationError,
    ErrorStats,
    Operation,
    RetryConfig,
    RetryKey,
)

from src.services.calendar_sync import (
    CalendarSyncService,
    ConnectionState,
    ConnectionTestResult,
    SyncStatus,
)

from src.services.calendar_setup import (
    configure_calendar,
    create_calendar_sync_service,
    create_retry_scheduler,
    disconnect_calendar,
    get_configuration_status,
    resolve_connection,
    validate_credentials,
)

from src.services.retry_scheduler import RetryScheduler

__all__ = [
    # Error handling and retry queue
    "CalendarErrorHandler",
    "CalendarOperationError",
    "ErrorStats",
    "Operation",
    "RetryConfig",
    "RetryKey",
    # Sync orchestration
    "CalendarSyncService",
    "ConnectionState",
    "ConnectionTestResult",
    "SyncStatus",
    # Setup
    "configure_calendar",
    "create_calendar_sync_service",
    "create_retry_scheduler",
    "disconnect_calendar",
    "get_configuration_status",
    "resolve_connection",
    "validate_credentials",
    # Scheduling
    "RetryScheduler",
]
