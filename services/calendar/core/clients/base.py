"""
Base API client for calendar provider integrations.

Provides common functionality for HTTP requests, request tracing and
authentication across the provider APIs. Clients report failures by
raising the underlying httpx exceptions; classification into
ProviderError happens in the provider adapters.
"""

import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Protocol

import httpx

from services.calendar.core.settings import get_settings
from services.calendar.models import Provider
from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


class ProviderClient(Protocol):
    """
    HTTP capability an adapter needs from its client.

    Every verb returns the decoded JSON body, or None when the provider
    answered without one.
    """

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any: ...

    async def post(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any: ...

    async def patch(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any: ...

    async def delete(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Any: ...

    async def aclose(self) -> None: ...


class RateLimiter(Protocol):
    """Admission control awaited before every provider request."""

    async def acquire(self, key: str) -> None: ...


class BaseAPIClient(ABC):
    """
    Base API client class that provides common functionality for provider-specific clients.

    Features:
    - httpx.AsyncClient integration, created lazily or via async context manager
    - Request/response logging with timings
    - Authentication header management
    - Request ID propagation through X-Request-ID
    """

    def __init__(
        self,
        access_token: str,
        account_id: str,
        provider: Provider,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the base API client.

        Args:
            access_token: OAuth access token for the provider, used as is
            account_id: Account ID for tracking and logging
            provider: Provider enum (google, microsoft)
            timeout: Request timeout in seconds, defaults to HTTP_TIMEOUT_SECONDS
        """
        self.access_token = access_token
        self.account_id = account_id
        self.provider = provider
        self.timeout = (
            timeout if timeout is not None else get_settings().HTTP_TIMEOUT_SECONDS
        )
        self.http_client: Optional[httpx.AsyncClient] = None

        # Request tracking
        self._session_id = str(uuid.uuid4())[:8]

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry"""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit"""
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                base_url=self._get_base_url(),
                timeout=httpx.Timeout(self.timeout),
                headers=self._get_default_headers(),
            )
            logger.info(
                f"Initialized {self.provider.value} API client for account {self.account_id}"
            )
        return self.http_client

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
            logger.debug(
                f"Closed {self.provider.value} API client for account {self.account_id}"
            )

    @abstractmethod
    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for API requests. Must be implemented by subclasses."""
        pass

    @abstractmethod
    def _get_base_url(self) -> str:
        """Get base URL for the provider API. Must be implemented by subclasses."""
        pass

    def _generate_request_id(self) -> str:
        """Generate a unique request ID for tracking"""
        return f"{self._session_id}-{uuid.uuid4().hex[:12]}"

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Make an HTTP request with logging.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            endpoint: API endpoint path, relative to the base URL
            params: Query parameters
            json_data: JSON payload for POST/PATCH requests
            headers: Additional headers

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPStatusError: For non-2xx responses
            httpx.RequestError: For transport failures and timeouts
        """
        http_client = self._ensure_client()

        request_headers: Dict[str, str] = dict(headers or {})

        # Propagate current request ID if present, otherwise generate a new one
        context_request_id = request_id_var.get()
        if context_request_id and context_request_id != "uninitialized":
            request_id = context_request_id
        else:
            request_id = self._generate_request_id()
        request_headers["X-Request-ID"] = request_id

        start_time = time.time()

        try:
            logger.debug(
                f"Making {method.upper()} request to {endpoint} | "
                f"Account: {self.account_id} | Provider: {self.provider.value} | "
                f"Request-ID: {request_id}"
            )

            response = await http_client.request(
                method=method,
                url=endpoint,
                params=params,
                json=json_data,
                headers=request_headers,
            )

            response_time_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"API Call: {method.upper()} {endpoint} | "
                f"Status: {response.status_code} | Account: {self.account_id} | "
                f"Provider: {self.provider.value} | Time: {response_time_ms}ms"
            )

            response.raise_for_status()
            return response

        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error: {e.response.status_code} | "
                f"Endpoint: {endpoint} | "
                f"Request-ID: {request_id} | "
                f"Account: {self.account_id} | Provider: {self.provider.value}"
            )
            raise

        except httpx.TimeoutException:
            response_time_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"Timeout error: Request timeout after {response_time_ms}ms | "
                f"Endpoint: {endpoint} | "
                f"Request-ID: {request_id} | "
                f"Account: {self.account_id} | Provider: {self.provider.value}"
            )
            raise

        except httpx.RequestError as e:
            logger.error(
                f"Request error: {type(e).__name__}: {e} | "
                f"Endpoint: {endpoint} | "
                f"Request-ID: {request_id} | "
                f"Account: {self.account_id} | Provider: {self.provider.value}"
            )
            raise

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        """Decoded JSON body, or None for empty (e.g. 204) responses."""
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Convenience methods for the HTTP verbs the adapters use
    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make a GET request"""
        response = await self._make_request("GET", endpoint, params=params, headers=headers)
        return self._decode(response)

    async def post(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make a POST request"""
        response = await self._make_request(
            "POST", endpoint, params=params, json_data=json_data
        )
        return self._decode(response)

    async def patch(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make a PATCH request"""
        response = await self._make_request(
            "PATCH", endpoint, params=params, json_data=json_data
        )
        return self._decode(response)

    async def delete(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Make a DELETE request"""
        response = await self._make_request("DELETE", endpoint, params=params)
        return self._decode(response)
