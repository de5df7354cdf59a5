from typing import Dict, Optional

from services.calendar.core.clients.base import BaseAPIClient
from services.calendar.core.settings import get_settings
from services.calendar.models import Provider


def escape_odata_string_literal(value: str) -> str:
    """
    Escape a string literal for use in OData filter expressions.

    Single quotes are escaped by doubling them.

    Args:
        value: The string value to escape

    Returns:
        The escaped string safe for use in OData filters
    """
    if not isinstance(value, str):
        raise ValueError("Value must be a string")

    return value.replace("'", "''")


class MicrosoftGraphClient(BaseAPIClient):
    """
    Microsoft Graph API client for Outlook calendars.

    Sends the bearer token captured at construction on every request; the
    token is never refreshed.
    """

    def __init__(
        self, access_token: str, account_id: str, timeout: Optional[float] = None
    ):
        """
        Initialize Microsoft Graph API client.

        Args:
            access_token: OAuth2 access token for Microsoft Graph APIs
            account_id: Account ID for tracking and logging
            timeout: Request timeout in seconds
        """
        super().__init__(access_token, account_id, Provider.MICROSOFT, timeout)

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for Microsoft Graph API requests"""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": get_settings().USER_AGENT,
        }

    def _get_base_url(self) -> str:
        """Get base URL for Microsoft Graph API"""
        return get_settings().MICROSOFT_GRAPH_BASE_URL
