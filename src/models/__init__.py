"""
Domain models for clinic calendar sync.

Appointments are owned by the appointment store; this package only holds the
view the sync engine reads.
"""

from src.models.appointment import Appointment

__all__ = ["Appointment"]
