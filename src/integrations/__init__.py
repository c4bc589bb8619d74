"""
External service integrations for clinic calendar sync.

Provides abstraction layer for calendar backends.
"""

from src.integrations.base import CalendarClient, EventResult

__all__ = ["CalendarClient", "EventResult"]
