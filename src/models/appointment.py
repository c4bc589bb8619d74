"""
Appointment view consumed by the calendar sync engine.

The appointment store owns the full record; the sync engine only needs the
fields that end up on the calendar event.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Appointment:
    """A booked appointment as seen by calendar sync."""

    id: str
    patient_name: str
    treatment: str
    date: str  # YYYY-MM-DD
    time: str  # "10:00 AM" or "14:30"
    phone: str
    duration: Optional[int] = None  # minutes
    email: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Appointment":
        """
        Build from an appointment store record.

        Accepts both the store's camelCase keys and snake_case.
        """
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if record.get(key) is not None:
                    return record[key]
            return default

        duration = pick("duration")
        return cls(
            id=str(pick("id", "_id", default="")),
            patient_name=pick("patientName", "patient_name", "name", default=""),
            treatment=pick("treatment", default=""),
            date=pick("date", default=""),
            time=pick("time", default=""),
            phone=pick("phone", default=""),
            duration=int(duration) if duration is not None else None,
            email=pick("email") or None,
        )
