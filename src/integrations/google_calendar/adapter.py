"""
Mapping from clinic appointments to Google Calendar event payloads.

Handles:
- Date + 12/24-hour time parsing into local RFC 3339 datetimes
- End time from appointment duration
- Treatment color coding
- Reminders and attendees
"""

from datetime import datetime, timedelta
from typing import Optional

from dateutil.parser import ParserError, parse as parse_datetime

from src.integrations.google_calendar.exceptions import GoogleCalendarValidationError
from src.models.appointment import Appointment

# Treatment type to Google Calendar color id
TREATMENT_COLORS = {
    "Dental Cleaning": "1",  # Lavender
    "Root Canal": "11",  # Tomato
    "Tooth Extraction": "4",  # Flamingo
    "Dental Filling": "2",  # Sage
    "Orthodontic Consultation": "3",  # Grape
    "Teeth Whitening": "5",  # Banana
    "Dental Implant": "6",  # Tangerine
    "General Consultation": "7",  # Peacock
    "Emergency": "11",  # Tomato
    "Follow-up": "9",  # Blueberry
}
DEFAULT_COLOR_ID = "7"

DEFAULT_DURATION_MINUTES = 30
DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_LOCATION = "Vasavi Dental Care"

REMINDER_OVERRIDES = [
    {"method": "email", "minutes": 24 * 60},
    {"method": "popup", "minutes": 30},
]

LOCAL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def color_for_treatment(treatment: Optional[str]) -> str:
    """Get the calendar color id for a treatment, defaulting to Peacock."""
    if not treatment:
        return DEFAULT_COLOR_ID
    return TREATMENT_COLORS.get(treatment, DEFAULT_COLOR_ID)


def combine_date_time(date: str, time: str) -> datetime:
    """
    Combine an appointment date and time into a naive local datetime.

    Args:
        date: Date in YYYY-MM-DD format
        time: Time as "10:00 AM" or "14:30"

    Returns:
        Naive datetime in the business timezone

    Raises:
        GoogleCalendarValidationError: If either part can't be parsed
    """
    try:
        day = datetime.strptime(date, "%Y-%m-%d")
        clock = parse_datetime(time.strip(), default=day)
    except (ParserError, ValueError, TypeError, AttributeError, OverflowError) as e:
        raise GoogleCalendarValidationError(
            f"Invalid appointment date/time: {date!r} {time!r}",
            original_error=e,
        )
    return day.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)


def _format_local(dt: datetime) -> str:
    """Format a naive local datetime for a dateTime + timeZone pair."""
    return dt.strftime(LOCAL_DATETIME_FORMAT)


class EventPayloadBuilder:
    """Builds Google Calendar event bodies from appointments."""

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        location: str = DEFAULT_LOCATION,
        default_duration: int = DEFAULT_DURATION_MINUTES,
    ):
        self.timezone = timezone
        self.location = location
        self.default_duration = default_duration

    def time_range(self, appointment: Appointment) -> tuple[datetime, datetime]:
        """Compute local start and end of an appointment."""
        start = combine_date_time(appointment.date, appointment.time)
        duration = appointment.duration or self.default_duration
        return start, start + timedelta(minutes=duration)

    def build(self, appointment: Appointment) -> dict:
        """
        Convert an appointment to Google Calendar API format.

        Args:
            appointment: Appointment to project onto the calendar

        Returns:
            Dict suitable for Google Calendar API insert/update
        """
        start, end = self.time_range(appointment)

        return {
            "summary": f"{appointment.treatment} - {appointment.patient_name}",
            "description": (
                f"Patient: {appointment.patient_name}\n"
                f"Treatment: {appointment.treatment}\n"
                f"Phone: {appointment.phone}"
            ),
            "start": {
                "dateTime": _format_local(start),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": _format_local(end),
                "timeZone": self.timezone,
            },
            "attendees": [{"email": appointment.email}] if appointment.email else [],
            "reminders": {
                "useDefault": False,
                "overrides": [dict(override) for override in REMINDER_OVERRIDES],
            },
            "colorId": color_for_treatment(appointment.treatment),
            "location": self.location,
            "status": "confirmed",
            "extendedProperties": {
                "private": {"appointment_id": appointment.id},
            },
        }

    def build_test_event(self, now: datetime) -> dict:
        """
        Build the throwaway event used to verify calendar write access.

        Args:
            now: Timezone-aware current time; the offset is kept in dateTime
        """
        start = now.replace(microsecond=0)
        end = start + timedelta(minutes=self.default_duration)
        return {
            "summary": "Test Event - Calendar Integration",
            "description": (
                "This is a test event created to verify calendar integration. "
                "It will be deleted automatically."
            ),
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone},
            "reminders": {"useDefault": False, "overrides": []},
        }
