"""
Normalization between provider payloads and the unified calendar models.
"""

from services.calendar.core.normalizer.google import (
    parse_google_calendar,
    parse_google_event,
    to_google_event,
    to_google_response_status,
)
from services.calendar.core.normalizer.microsoft import (
    parse_microsoft_calendar,
    parse_microsoft_event,
    to_microsoft_event,
)

__all__ = [
    "parse_google_calendar",
    "parse_google_event",
    "parse_microsoft_calendar",
    "parse_microsoft_event",
    "to_google_event",
    "to_google_response_status",
    "to_microsoft_event",
]
