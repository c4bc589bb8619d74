"""Tests for the appointment to Google Calendar event mapping."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.integrations.google_calendar.adapter import (
    DEFAULT_COLOR_ID,
    TREATMENT_COLORS,
    EventPayloadBuilder,
    color_for_treatment,
    combine_date_time,
)
from src.integrations.google_calendar.exceptions import GoogleCalendarValidationError


class TestCombineDateTime:
    """Tests for date + time parsing."""

    @pytest.mark.parametrize(
        "time,expected",
        [
            ("10:00 AM", (10, 0)),
            ("2:30 PM", (14, 30)),
            ("12:00 PM", (12, 0)),
            ("12:15 AM", (0, 15)),
            ("14:30", (14, 30)),
            ("09:05", (9, 5)),
            (" 9:45 am ", (9, 45)),
        ],
    )
    def test_time_formats(self, time, expected):
        result = combine_date_time("2024-01-15", time)

        assert (result.year, result.month, result.day) == (2024, 1, 15)
        assert (result.hour, result.minute) == expected
        assert result.tzinfo is None

    @pytest.mark.parametrize(
        "date,time",
        [
            ("2024-13-40", "10:00 AM"),
            ("15/01/2024", "10:00 AM"),
            ("2024-01-15", "not a time"),
            ("", "10:00 AM"),
            ("2024-01-15", None),
        ],
    )
    def test_invalid_input(self, date, time):
        with pytest.raises(GoogleCalendarValidationError) as exc_info:
            combine_date_time(date, time)

        assert exc_info.value.retryable is False


class TestColorForTreatment:
    """Tests for treatment color coding."""

    @pytest.mark.parametrize(
        "treatment,color",
        [
            ("Dental Cleaning", "1"),
            ("Root Canal", "11"),
            ("Tooth Extraction", "4"),
            ("Dental Filling", "2"),
            ("Orthodontic Consultation", "3"),
            ("Teeth Whitening", "5"),
            ("Dental Implant", "6"),
            ("General Consultation", "7"),
            ("Emergency", "11"),
            ("Follow-up", "9"),
        ],
    )
    def test_known_treatments(self, treatment, color):
        assert color_for_treatment(treatment) == color

    @pytest.mark.parametrize("treatment", ["Braces", "root canal", "", None])
    def test_unknown_treatment(self, treatment):
        assert color_for_treatment(treatment) == DEFAULT_COLOR_ID == "7"

    def test_table_is_complete(self):
        assert len(TREATMENT_COLORS) == 10


class TestEventPayloadBuilder:
    """Tests for building event bodies."""

    @pytest.fixture
    def builder(self):
        return EventPayloadBuilder()

    def test_summary_and_description(self, builder, appointment):
        event = builder.build(appointment)

        assert event["summary"] == "Root Canal - Priya Sharma"
        assert event["description"] == (
            "Patient: Priya Sharma\nTreatment: Root Canal\nPhone: +91 98765 43210"
        )

    def test_times_are_local_with_timezone(self, builder, appointment):
        event = builder.build(appointment)

        assert event["start"] == {"dateTime": "2024-01-15T11:00:00", "timeZone": "Asia/Kolkata"}
        assert event["end"] == {"dateTime": "2024-01-15T11:30:00", "timeZone": "Asia/Kolkata"}

    def test_default_duration(self, builder, appointment):
        event = builder.build(replace(appointment, duration=None))
        assert event["end"]["dateTime"] == "2024-01-15T11:30:00"

    def test_custom_duration(self, builder, appointment):
        event = builder.build(replace(appointment, duration=90))
        assert event["end"]["dateTime"] == "2024-01-15T12:30:00"

    def test_end_crosses_midnight(self, builder, appointment):
        event = builder.build(replace(appointment, time="11:45 PM"))

        assert event["start"]["dateTime"] == "2024-01-15T23:45:00"
        assert event["end"]["dateTime"] == "2024-01-16T00:15:00"

    def test_attendees(self, builder, appointment):
        assert builder.build(appointment)["attendees"] == [{"email": "priya@example.com"}]
        assert builder.build(replace(appointment, email=None))["attendees"] == []

    def test_reminders(self, builder, appointment):
        reminders = builder.build(appointment)["reminders"]

        assert reminders["useDefault"] is False
        assert reminders["overrides"] == [
            {"method": "email", "minutes": 1440},
            {"method": "popup", "minutes": 30},
        ]

    def test_reminders_are_not_shared_between_events(self, builder, appointment):
        first = builder.build(appointment)
        first["reminders"]["overrides"][0]["minutes"] = 5

        second = builder.build(appointment)

        assert second["reminders"]["overrides"][0]["minutes"] == 1440

    def test_static_fields(self, builder, appointment):
        event = builder.build(appointment)

        assert event["colorId"] == "11"
        assert event["location"] == "Vasavi Dental Care"
        assert event["status"] == "confirmed"
        assert event["extendedProperties"] == {"private": {"appointment_id": "apt-1"}}

    def test_clinic_settings(self, appointment):
        builder = EventPayloadBuilder(
            timezone="Asia/Dubai", location="Smile Studio", default_duration=45
        )

        event = builder.build(replace(appointment, duration=None))

        assert event["start"]["timeZone"] == "Asia/Dubai"
        assert event["location"] == "Smile Studio"
        assert event["end"]["dateTime"] == "2024-01-15T11:45:00"

    def test_invalid_appointment_raises_validation_error(self, builder, appointment):
        with pytest.raises(GoogleCalendarValidationError):
            builder.build(replace(appointment, date="tomorrow-ish"))

    def test_test_event(self, builder):
        now = datetime(2024, 1, 15, 5, 30, 12, 999, tzinfo=timezone.utc)

        event = builder.build_test_event(now)

        assert event["summary"] == "Test Event - Calendar Integration"
        assert event["start"]["dateTime"] == "2024-01-15T05:30:12+00:00"
        end = datetime.fromisoformat(event["end"]["dateTime"])
        assert end - now.replace(microsecond=0) == timedelta(minutes=30)
        assert event["reminders"] == {"useDefault": False, "overrides": []}
