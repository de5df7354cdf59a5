from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

import services.calendar.core.settings as calendar_settings
from services.calendar.models import Provider
from services.calendar.schemas import Calendar


class FakeClient:
    """
    In-memory ProviderClient recording every call.

    Queued results are returned in order; a queued exception is raised
    instead. With nothing queued a call returns None.
    """

    def __init__(self, *results: Any):
        self.results: List[Any] = list(results)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def queue(self, *results: Any) -> None:
        self.results.extend(results)

    async def _call(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "endpoint": endpoint, **kwargs})
        if not self.results:
            return None
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        return await self._call("GET", endpoint, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._call("POST", endpoint, json_data=json_data, params=params)

    async def patch(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._call("PATCH", endpoint, json_data=json_data, params=params)

    async def delete(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._call("DELETE", endpoint, params=params)

    async def aclose(self) -> None:
        self.closed = True


class RecordingRateLimiter:
    def __init__(self) -> None:
        self.keys: List[str] = []

    async def acquire(self, key: str) -> None:
        self.keys.append(key)


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Give every test freshly resolved settings."""
    monkeypatch.setattr(calendar_settings, "_settings", None)
    yield


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def rate_limiter() -> RecordingRateLimiter:
    return RecordingRateLimiter()


@pytest.fixture
def http_status_error() -> Callable[..., httpx.HTTPStatusError]:
    """Factory for httpx.HTTPStatusError with a JSON or text body."""

    def build(
        status_code: int,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", "https://provider.test/resource")
        if isinstance(body, (dict, list)):
            response = httpx.Response(
                status_code, json=body, headers=headers, request=request
            )
        else:
            response = httpx.Response(
                status_code, text=body or "", headers=headers, request=request
            )
        return httpx.HTTPStatusError(
            f"HTTP {status_code}", request=request, response=response
        )

    return build


@pytest.fixture
def microsoft_calendar() -> Calendar:
    return Calendar(
        id="AAMkAD-cal",
        account_id="acct-ms",
        provider=Provider.MICROSOFT,
        name="Calendar",
        color="#3B82F6",
        is_default=True,
    )


@pytest.fixture
def google_calendar() -> Calendar:
    return Calendar(
        id="user@example.com",
        account_id="acct-google",
        provider=Provider.GOOGLE,
        name="user@example.com",
        color="#9fe1e7",
        is_default=True,
        time_zone="Europe/Berlin",
    )
