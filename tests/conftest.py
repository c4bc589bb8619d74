"""
Pytest configuration and fixtures for calendar sync tests.

Provides sample appointments, a fake calendar client and an error handler
whose clock, sleep and jitter are under test control.
"""

import random
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.integrations.base import EventResult
from src.integrations.google_calendar.adapter import EventPayloadBuilder
from src.models.appointment import Appointment
from src.services.calendar_error_handler import CalendarErrorHandler, RetryConfig
from src.services.calendar_sync import CalendarSyncService


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = None):
        self.now = now or datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    """Async sleep that returns immediately and records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def appointment() -> Appointment:
    """
    Root canal booked for 11:00 AM.

    Returns:
        Appointment: 30-minute appointment with an attendee email
    """
    return Appointment(
        id="apt-1",
        patient_name="Priya Sharma",
        treatment="Root Canal",
        date="2024-01-15",
        time="11:00 AM",
        phone="+91 98765 43210",
        duration=30,
        email="priya@example.com",
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(max_retries=3, base_delay=1000, max_delay=30000, exponential_base=2)


@pytest.fixture
def error_handler(retry_config, fake_clock, fake_sleep) -> CalendarErrorHandler:
    """Error handler with deterministic time and seeded jitter."""
    return CalendarErrorHandler(
        config=retry_config,
        clock=fake_clock,
        sleep=fake_sleep,
        rng=random.Random(42),
    )


@pytest.fixture
def fake_client() -> AsyncMock:
    """
    Calendar client whose calls all succeed.

    Tests override side_effect on individual methods to inject failures.
    """
    client = AsyncMock()
    client.insert.return_value = EventResult(id="evt-1", status="confirmed")
    client.update.return_value = EventResult(id="evt-1", status="confirmed")
    client.delete.return_value = None
    client.get.return_value = {"id": "evt-1"}
    client.verify_access.return_value = {"id": "clinic@group.calendar.google.com"}
    return client


@pytest.fixture
def sync_service(fake_client, error_handler, fake_clock) -> CalendarSyncService:
    """Sync service wired to the fake client."""
    return CalendarSyncService(
        client=fake_client,
        error_handler=error_handler,
        calendar_id="clinic@group.calendar.google.com",
        payload_builder=EventPayloadBuilder(),
        clock=fake_clock,
    )
