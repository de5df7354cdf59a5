from services.calendar.core.clients.base import (
    BaseAPIClient,
    ProviderClient,
    RateLimiter,
)
from services.calendar.core.clients.google import GoogleCalendarClient
from services.calendar.core.clients.microsoft import (
    MicrosoftGraphClient,
    escape_odata_string_literal,
)

__all__ = [
    "BaseAPIClient",
    "GoogleCalendarClient",
    "MicrosoftGraphClient",
    "ProviderClient",
    "RateLimiter",
    "escape_odata_string_literal",
]
