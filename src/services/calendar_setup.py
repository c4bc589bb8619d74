"""
Calendar setup and service construction.

Backs the admin calendar setup flow (validate credentials, pick a calendar,
save, disconnect) and wires a CalendarSyncService from whatever
configuration is available: the saved setup first, then environment settings.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from src.config import Settings, get_settings
from src.integrations.google_calendar.adapter import EventPayloadBuilder
from src.integrations.google_calendar.auth import (
    GoogleAuthManager,
    load_service_account_info,
)
from src.integrations.google_calendar.config_store import (
    CalendarConfig,
    CalendarConfigStore,
)
from src.integrations.google_calendar.exceptions import GoogleCalendarError
from src.integrations.google_calendar.repository import GoogleCalendarRepository
from src.services.calendar_error_handler import CalendarErrorHandler
from src.services.calendar_sync import (
    DEFAULT_CALENDAR_ID,
    CalendarSyncService,
    EventCreatedHook,
)
from src.services.retry_scheduler import RetryScheduler

logger = logging.getLogger(__name__)


@dataclass
class CalendarConnection:
    """Resolved credentials and target calendar."""

    calendar_id: str
    auth_manager: GoogleAuthManager
    source: str


def resolve_connection(
    settings: Optional[Settings] = None,
    config_store: Optional[CalendarConfigStore] = None,
) -> Optional[CalendarConnection]:
    """
    Find calendar credentials: saved setup first, then environment.

    Returns:
        The resolved connection, or None if nothing is configured
    """
    settings = settings or get_settings()
    config_store = config_store or CalendarConfigStore(settings.calendar_config_dir)

    config = config_store.load_enabled()
    if config is not None:
        info = config_store.load_credentials_info(config)
        return CalendarConnection(
            calendar_id=config.calendar_id,
            auth_manager=GoogleAuthManager(service_account_info=info),
            source="config_file",
        )

    if settings.google_service_account_json:
        info = load_service_account_info(settings.google_service_account_json)
        auth_manager = GoogleAuthManager(service_account_info=info)
    elif settings.google_service_account_file:
        auth_manager = GoogleAuthManager(
            service_account_file=settings.google_service_account_file
        )
    else:
        return None

    return CalendarConnection(
        calendar_id=settings.google_calendar_id or DEFAULT_CALENDAR_ID,
        auth_manager=auth_manager,
        source="environment",
    )


def create_calendar_sync_service(
    settings: Optional[Settings] = None,
    config_store: Optional[CalendarConfigStore] = None,
    on_event_created: Optional[EventCreatedHook] = None,
    **handler_kwargs: Any,
) -> CalendarSyncService:
    """
    Build a CalendarSyncService from configuration.

    Without usable credentials the service is built with no client: it
    reports disconnected and every operation returns a falsy result.

    Args:
        settings: Application settings (defaults to get_settings())
        config_store: Saved setup location (defaults to settings.calendar_config_dir)
        on_event_created: Hook for event ids produced by retried creates
        **handler_kwargs: Passed to CalendarErrorHandler (clock, sleep, rng)

    Returns:
        Configured sync service
    """
    settings = settings or get_settings()

    try:
        connection = resolve_connection(settings, config_store)
    except GoogleCalendarError as e:
        logger.error(f"Calendar credentials unusable: {e}")
        connection = None

    if connection is None:
        logger.warning("Google Calendar not configured; calendar sync disabled")
        client = None
        calendar_id = settings.google_calendar_id or DEFAULT_CALENDAR_ID
    else:
        logger.info(
            f"Calendar sync using {connection.calendar_id} (from {connection.source})"
        )
        client = GoogleCalendarRepository(connection.auth_manager)
        calendar_id = connection.calendar_id

    error_handler = CalendarErrorHandler(
        config=settings.retry_config(),
        error_log_limit=settings.error_log_limit,
        **handler_kwargs,
    )
    payload_builder = EventPayloadBuilder(
        timezone=settings.business_timezone,
        location=settings.clinic_name,
        default_duration=settings.default_event_duration,
    )
    return CalendarSyncService(
        client=client,
        error_handler=error_handler,
        calendar_id=calendar_id,
        payload_builder=payload_builder,
        on_event_created=on_event_created,
    )


def create_retry_scheduler(
    service: CalendarSyncService,
    settings: Optional[Settings] = None,
    **scheduler_kwargs: Any,
) -> RetryScheduler:
    """Build the background retry driver, draining at settings.retry_interval_seconds."""
    settings = settings or get_settings()
    return RetryScheduler(
        service,
        interval_seconds=settings.retry_interval_seconds,
        **scheduler_kwargs,
    )

async def validate_credentials(credentials: Union[str, dict]) -> dict:
    """
    Check a service account key and list the calendars it can write to.

    Args:
        credentials: Service account key as JSON text or dict

    Returns:
        Dict with service_account_email and calendars

    Raises:
        GoogleCalendarError: If the key is malformed or the API rejects it
    """
    info = load_service_account_info(credentials)
    auth_manager = GoogleAuthManager(service_account_info=info)

    async with GoogleCalendarRepository(auth_manager) as repository:
        calendars = await repository.list_writable_calendars()

    logger.info(
        f"Credentials for {info['client_email']} can write {len(calendars)} calendars"
    )
    return {
        "service_account_email": info["client_email"],
        "calendars": calendars,
    }


def configure_calendar(
    credentials: Union[str, dict],
    calendar_id: str,
    config_store: Optional[CalendarConfigStore] = None,
) -> CalendarConfig:
    """Save the chosen calendar and key; services built afterwards use them."""
    config_store = config_store or CalendarConfigStore(get_settings().calendar_config_dir)
    return config_store.save(credentials, calendar_id)


def disconnect_calendar(config_store: Optional[CalendarConfigStore] = None) -> bool:
    """Remove the saved setup. Environment credentials, if any, still apply."""
    config_store = config_store or CalendarConfigStore(get_settings().calendar_config_dir)
    return config_store.clear()


def get_configuration_status(config_store: Optional[CalendarConfigStore] = None) -> dict:
    """Describe the saved setup for the admin screen."""
    config_store = config_store or CalendarConfigStore(get_settings().calendar_config_dir)
    config = config_store.load()
    if config is None:
        return {"configured": False}
    return {
        "configured": True,
        "calendar_id": config.calendar_id,
        "is_enabled": config.is_enabled,
        "configured_at": config.configured_at.isoformat(),
        "service_account_email": config.service_account_email,
    }
