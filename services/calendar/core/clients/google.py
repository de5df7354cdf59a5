from typing import Dict, Optional

from services.calendar.core.clients.base import BaseAPIClient
from services.calendar.core.settings import get_settings
from services.calendar.models import Provider


class GoogleCalendarClient(BaseAPIClient):
    """
    Google Calendar API client.

    Sends the bearer token captured at construction on every request; the
    token is never refreshed.
    """

    def __init__(
        self, access_token: str, account_id: str, timeout: Optional[float] = None
    ):
        super().__init__(access_token, account_id, Provider.GOOGLE, timeout)

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for Google API requests"""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": get_settings().USER_AGENT,
        }

    def _get_base_url(self) -> str:
        """Get base URL for Google APIs"""
        return get_settings().GOOGLE_API_BASE_URL
