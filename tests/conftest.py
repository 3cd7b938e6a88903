"""Shared test fixtures for the Destiny MCP gateway tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest

from destiny_gateway.core.config import ConfigLoader
from destiny_gateway.infrastructure.api.bungie import (
    BungieAPIClient,
    BungieOAuthService,
    OAuthCredential,
    SlidingWindowRateLimiter,
)
from destiny_gateway.presentation.mcp.admin_tools import GatewayAdminOperations
from destiny_gateway.presentation.mcp.catalog import ADMIN_TARGET, API_TARGET, build_default_catalog
from destiny_gateway.presentation.mcp.dispatcher import ToolDispatcher

API_KEY = "test-api-key"
CLIENT_ID = "12345"
CLIENT_SECRET = "s3cret"
TOKEN_URL = "https://www.bungie.net/Platform/App/OAuth/token/"


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------


class VirtualClock:
    """Integer millisecond clock whose sleep advances time instantly."""

    def __init__(self, start: int = 0):
        self.now = start
        self.sleeps: List[int] = []

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    async def sleep(self, seconds: float) -> None:
        ms = round(seconds * 1000)
        self.sleeps.append(ms)
        self.now += ms
        await asyncio.sleep(0)


class WallClock:
    """Settable UTC clock for credential expiry."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Fake upstream
# ---------------------------------------------------------------------------


def bungie_ok(response: Any = None) -> Dict[str, Any]:
    """A successful Bungie envelope."""
    return {
        "Response": response if response is not None else {},
        "ErrorCode": 1,
        "ThrottleSeconds": 0,
        "ErrorStatus": "Success",
        "Message": "Ok",
        "MessageData": {}
    }


def token_body(access_token: str = "access-1", refresh_token: Optional[str] = "refresh-1") -> Dict[str, Any]:
    body = {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_expires_in": 7776000,
        "membership_id": "4611686018467284386"
    }
    if refresh_token is not None:
        body["refresh_token"] = refresh_token
    return body


class FakeBungie:
    """Scripted upstream served through httpx.MockTransport.

    Queue httpx.Response objects, or exception classes such as
    httpx.ConnectError to simulate network failures. When the queue is
    empty every request gets an empty success envelope.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._responses: List[Any] = []

    def queue(self, *items: Any) -> None:
        self._responses.extend(items)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._responses.pop(0) if self._responses else httpx.Response(200, json=bungie_ok())

        if isinstance(item, type) and issubclass(item, Exception):
            raise item("simulated network failure", request=request)
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def calls(self) -> int:
        return len(self.requests)


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def virtual_clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture()
def wall_clock() -> WallClock:
    return WallClock()


@pytest.fixture()
def upstream() -> FakeBungie:
    return FakeBungie()


@pytest.fixture()
def token_endpoint() -> FakeBungie:
    return FakeBungie()


@pytest.fixture()
def rate_limiter(virtual_clock: VirtualClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        max_requests=25,
        window_ms=10000,
        clock=virtual_clock,
        sleep=virtual_clock.sleep
    )


@pytest.fixture()
def oauth_service(token_endpoint: FakeBungie, wall_clock: WallClock) -> BungieOAuthService:
    return BungieOAuthService(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        api_key=API_KEY,
        token_url=TOKEN_URL,
        transport=token_endpoint.transport,
        clock=wall_clock
    )


@pytest.fixture()
def api_client(
    upstream: FakeBungie,
    rate_limiter: SlidingWindowRateLimiter,
    oauth_service: BungieOAuthService
) -> BungieAPIClient:
    return BungieAPIClient(
        api_key=API_KEY,
        rate_limiter=rate_limiter,
        oauth_service=oauth_service,
        max_attempts=3,
        retry_backoff=0,
        transport=upstream.transport
    )


@pytest.fixture()
def admin_operations(
    oauth_service: BungieOAuthService,
    rate_limiter: SlidingWindowRateLimiter
) -> GatewayAdminOperations:
    return GatewayAdminOperations(oauth_service, rate_limiter)


@pytest.fixture()
def dispatcher(api_client: BungieAPIClient, admin_operations: GatewayAdminOperations) -> ToolDispatcher:
    return ToolDispatcher(
        build_default_catalog(),
        {API_TARGET: api_client, ADMIN_TARGET: admin_operations}
    )


def make_credential(clock: WallClock, expires_in: int = 3600, refresh_token: Optional[str] = "refresh-0") -> OAuthCredential:
    return OAuthCredential(
        access_token="access-0",
        refresh_token=refresh_token,
        expires_at=clock.now + timedelta(seconds=expires_in),
        membership_id="4611686018467284386"
    )


@pytest.fixture(autouse=True)
def reset_config_loader():
    """Each test starts without cached settings."""
    ConfigLoader._settings = None
    yield
    ConfigLoader._settings = None
