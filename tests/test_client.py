"""Tests for the governed Bungie API client."""

import asyncio

import anyio
import httpx
import pytest

from conftest import API_KEY, bungie_ok, make_credential
from destiny_gateway.core.exceptions import (
    AuthenticationRejectedError,
    CredentialExpiredError,
    CredentialMissingError,
    ErrorType,
    ProviderApplicationError,
    ProviderUnavailableError,
    RateLimitedError,
    TransportFailureError,
)
from destiny_gateway.infrastructure.api.bungie import BungieAPIClient, GovernedRequest


class TestSuccess:
    @pytest.mark.asyncio
    async def test_body_returned_unmodified(self, api_client, upstream):
        body = bungie_ok({"profile": {"data": {"userInfo": {"displayName": "Guardian"}}}})
        upstream.queue(httpx.Response(200, json=body))

        result = await api_client.get_profile(3, "4611686018467284386")

        assert result == body

    @pytest.mark.asyncio
    async def test_request_carries_api_key_and_joined_components(self, api_client, upstream):
        await api_client.get_profile(3, "4611686018467284386", [100, 200, 201])

        request = upstream.requests[0]
        assert request.method == "GET"
        assert request.headers["X-API-Key"] == API_KEY
        assert "Authorization" not in request.headers
        assert request.url.path == "/Platform/Destiny2/3/Profile/4611686018467284386/"
        assert request.url.params["components"] == "100,200,201"

    @pytest.mark.asyncio
    async def test_unset_params_are_dropped(self, api_client, upstream):
        await api_client.get_activity_history(3, "1", "2", count=10)

        params = upstream.requests[0].url.params
        assert params["count"] == "10"
        assert "mode" not in params
        assert "page" not in params

    @pytest.mark.asyncio
    async def test_display_name_is_path_escaped(self, api_client, upstream):
        await api_client.search_destiny_player(-1, "Guardian#1234")

        assert b"/SearchDestinyPlayer/-1/Guardian%231234/" in upstream.requests[0].url.raw_path

    @pytest.mark.asyncio
    async def test_identifiers_cannot_rewrite_path_or_query(self, api_client, upstream):
        await api_client.get_character(3, "../../User", "1?components=999")
        await api_client.get_clan_weekly_reward_state("42/Admin")

        character, clan = upstream.requests
        assert character.url.raw_path == (
            b"/Platform/Destiny2/3/Profile/..%2F..%2FUser/Character/1%3Fcomponents%3D999/"
            b"?components=200"
        )
        assert clan.url.raw_path == b"/Platform/Destiny2/Clan/42%2FAdmin/WeeklyRewardState/"

    @pytest.mark.asyncio
    async def test_admitted_call_survives_cancellation(self, rate_limiter, oauth_service):
        entered = asyncio.Event()
        release = asyncio.Event()
        completed = []

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            entered.set()
            await release.wait()
            completed.append(request.url.path)
            return httpx.Response(200, json=bungie_ok())

        client = BungieAPIClient(
            api_key=API_KEY,
            rate_limiter=rate_limiter,
            oauth_service=oauth_service,
            retry_backoff=0,
            transport=httpx.MockTransport(slow_handler)
        )
        scope = anyio.CancelScope()

        async def caller():
            with scope:
                await client.get_manifest()

        task = asyncio.create_task(caller())
        await entered.wait()
        scope.cancel()
        await asyncio.sleep(0)
        release.set()
        await asyncio.wait([task])

        assert scope.cancel_called
        assert completed == ["/Platform/Destiny2/Manifest/"]
        assert rate_limiter.total_admitted == 1

    @pytest.mark.asyncio
    async def test_every_call_is_admitted(self, api_client, upstream, rate_limiter):
        await api_client.get_manifest()
        await api_client.get_public_milestones()

        assert rate_limiter.total_admitted == 2
        assert upstream.calls == 2


class TestClassification:
    @pytest.mark.asyncio
    async def test_application_error_code(self, api_client, upstream):
        upstream.queue(httpx.Response(200, json={
            "ErrorCode": 217,
            "ErrorStatus": "UserCannotResolveCentralAccount",
            "Message": "We couldn't find the account you're looking for."
        }))

        with pytest.raises(ProviderApplicationError) as exc_info:
            await api_client.get_profile(3, "1")

        error = exc_info.value
        assert error.error_code == 217
        assert error.error_status == "UserCannotResolveCentralAccount"
        assert "couldn't find the account" in error.message

    @pytest.mark.asyncio
    async def test_unauthorized(self, api_client, upstream):
        upstream.queue(httpx.Response(401))

        with pytest.raises(AuthenticationRejectedError, match="Authentication failed"):
            await api_client.get_manifest()

    @pytest.mark.asyncio
    async def test_throttled_with_retry_after_header(self, api_client, upstream):
        upstream.queue(httpx.Response(429, headers={"Retry-After": "12"}))

        with pytest.raises(RateLimitedError) as exc_info:
            await api_client.get_manifest()

        assert exc_info.value.retry_after == 12
        assert exc_info.value.status_code == 429
        assert exc_info.value.error_type == ErrorType.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_throttled_with_throttle_seconds(self, api_client, upstream):
        upstream.queue(httpx.Response(429, json={"ErrorCode": 51, "ThrottleSeconds": 5}))

        with pytest.raises(RateLimitedError) as exc_info:
            await api_client.get_manifest()

        assert exc_info.value.retry_after == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503])
    async def test_server_errors_not_retried(self, api_client, upstream, status):
        upstream.queue(httpx.Response(status))

        with pytest.raises(ProviderUnavailableError):
            await api_client.get_manifest()

        assert upstream.calls == 1

    @pytest.mark.asyncio
    async def test_other_status_uses_bungie_message(self, api_client, upstream):
        upstream.queue(httpx.Response(400, json={"ErrorCode": 7, "Message": "Invalid parameters"}))

        with pytest.raises(ProviderApplicationError, match="Invalid parameters") as exc_info:
            await api_client.get_manifest()

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_other_status_without_body(self, api_client, upstream):
        upstream.queue(httpx.Response(404, text="Not Found"))

        with pytest.raises(ProviderApplicationError, match="HTTP 404"):
            await api_client.get_manifest()

    @pytest.mark.asyncio
    async def test_non_json_success_body(self, api_client, upstream):
        upstream.queue(httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(ProviderApplicationError, match="not JSON"):
            await api_client.get_manifest()


class TestTransportRetry:
    @pytest.mark.asyncio
    async def test_retries_then_gives_up(self, api_client, upstream, rate_limiter):
        upstream.queue(httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectError)

        with pytest.raises(TransportFailureError) as exc_info:
            await api_client.get_manifest()

        assert upstream.calls == 3
        assert rate_limiter.total_admitted == 3
        assert isinstance(exc_info.value.original_exception, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, api_client, upstream):
        body = bungie_ok({"version": "123"})
        upstream.queue(httpx.ConnectError, httpx.Response(200, json=body))

        assert await api_client.get_manifest() == body
        assert upstream.calls == 2


class TestAuthenticatedCalls:
    @pytest.mark.asyncio
    async def test_missing_credential_makes_no_request(self, api_client, upstream):
        with pytest.raises(CredentialMissingError):
            await api_client.get_memberships_for_current_user()

        assert upstream.calls == 0

    @pytest.mark.asyncio
    async def test_expired_credential_makes_no_request(self, api_client, upstream, oauth_service, wall_clock):
        oauth_service.set_credential(make_credential(wall_clock, expires_in=30))
        wall_clock.advance(30)

        with pytest.raises(CredentialExpiredError):
            await api_client.get_memberships_for_current_user()

        assert upstream.calls == 0

    @pytest.mark.asyncio
    async def test_valid_credential_sends_bearer(self, api_client, upstream, oauth_service, wall_clock):
        oauth_service.set_credential(make_credential(wall_clock))

        await api_client.get_memberships_for_current_user()

        assert upstream.requests[0].headers["Authorization"] == "Bearer access-0"
        assert upstream.requests[0].url.path == "/Platform/User/GetMembershipsForCurrentUser/"


class TestGovernedRequest:
    def test_query_params_filtering(self):
        request = GovernedRequest(
            path="/x/",
            params={"a": None, "b": [], "c": "", "d": [1, 2], "e": 0, "f": "v"}
        )

        assert request.query_params() == {"d": "1,2", "e": 0, "f": "v"}
