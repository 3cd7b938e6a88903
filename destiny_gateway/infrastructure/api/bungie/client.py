"""
Bungie API Client

Governed client for the Bungie Destiny 2 API. Every call is admitted by the
shared rate limiter, optionally authenticated with the stored OAuth
credential, and its outcome classified into the gateway error taxonomy.
"""

import logging
from typing import Optional, Dict, Any, List
from urllib.parse import quote

import anyio
import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ....core.exceptions import (
    AuthenticationRejectedError,
    CredentialExpiredError,
    CredentialMissingError,
    ProviderApplicationError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitedError,
    TransportFailureError,
)
from ....core.protocols import APIClientProtocol, OAuthProtocol, RateLimiterProtocol
from ..base_client import BaseAPIClient
from .models import GovernedRequest

logger = logging.getLogger(__name__)

# Bungie's PlatformErrorCodes.Success
SUCCESS_ERROR_CODE = 1


class BungieAPIClient(BaseAPIClient, APIClientProtocol):
    """Bungie API client with rate limiting and OAuth2 bearer support."""

    BASE_URL = "https://www.bungie.net/Platform"

    def __init__(
        self,
        api_key: str,
        rate_limiter: RateLimiterProtocol,
        oauth_service: OAuthProtocol,
        base_url: str = BASE_URL,
        timeout: float = 30,
        max_attempts: int = 3,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Bungie API client.

        Args:
            api_key: Bungie API key, sent on every call
            rate_limiter: Shared admission controller
            oauth_service: Credential manager for authenticated calls
            base_url: Bungie platform base URL
            timeout: Request timeout in seconds
            max_attempts: Attempts per call when the network fails
            retry_backoff: Exponential backoff multiplier in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)

        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.oauth_service = oauth_service
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for requests."""
        return {
            "Accept": "application/json",
            "X-API-Key": self.api_key
        }

    async def call(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        requires_auth: bool = False
    ) -> Dict[str, Any]:
        """
        Perform one governed GET request.

        Network failures are retried; each attempt is admitted by the rate
        limiter again. Nothing else is retried.

        Args:
            path: API path relative to the base URL
            params: Query parameters; None values are dropped, lists comma-joined
            requires_auth: Attach the stored bearer token

        Returns:
            Decoded JSON body, unmodified

        Raises:
            CredentialMissingError: Auth required and no token stored
            CredentialExpiredError: Auth required and the token expired
            ProviderApplicationError: Bungie reported a logical failure
            AuthenticationRejectedError: HTTP 401
            RateLimitedError: HTTP 429
            ProviderUnavailableError: HTTP 5xx
            TransportFailureError: Network failure after all attempts
        """
        request = GovernedRequest(
            path=path,
            params=dict(params or {}),
            requires_auth=requires_auth
        )

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=8),
            retry=retry_if_exception_type(TransportFailureError),
            before_sleep=self._log_retry,
            reraise=True
        ):
            with attempt:
                return await self._governed_call(request)

    @staticmethod
    def _log_retry(retry_state) -> None:
        """Log a retry before backing off."""
        logger.warning(
            f"Request failed (attempt {retry_state.attempt_number}): "
            f"{retry_state.outcome.exception()}. Retrying..."
        )

    async def _governed_call(self, request: GovernedRequest) -> Dict[str, Any]:
        """Admission, then the request itself."""
        await self.rate_limiter.admit()

        # Once admitted the call runs to completion even if its caller is cancelled
        with anyio.CancelScope(shield=True):
            return await self._send(request)

    async def _send(self, request: GovernedRequest) -> Dict[str, Any]:
        """Credential check, HTTP call and classification."""
        headers: Dict[str, str] = {}
        if request.requires_auth:
            headers["Authorization"] = f"Bearer {self._require_access_token()}"

        try:
            response = await self._execute_request(
                "GET",
                request.path,
                params=request.query_params(),
                headers=headers
            )
        except httpx.HTTPStatusError as e:
            raise self._classify_status(e.response, request.path) from e
        except httpx.RequestError as e:
            raise TransportFailureError(
                f"Network error calling Bungie API: {type(e).__name__}: {e}",
                endpoint=request.path,
                original_exception=e
            ) from e

        body = self._decode(response, request.path)

        if body.get("ErrorCode") != SUCCESS_ERROR_CODE:
            raise ProviderApplicationError(
                f"Bungie API Error: {body.get('Message', 'Unknown error')}",
                error_code=body.get("ErrorCode"),
                error_status=body.get("ErrorStatus"),
                status_code=response.status_code,
                endpoint=request.path
            )

        return body

    def _require_access_token(self) -> str:
        """Stored access token, or the reason there is none."""
        access_token = self.oauth_service.current_access_token()

        if not access_token:
            raise CredentialMissingError(
                "No valid access token available. Please authenticate first."
            )
        if self.oauth_service.is_expired():
            raise CredentialExpiredError(
                "Access token has expired. Refresh the token and retry."
            )

        return access_token

    @staticmethod
    def _decode(response: httpx.Response, endpoint: str) -> Dict[str, Any]:
        """Decode a successful response body."""
        try:
            body = response.json()
        except ValueError:
            raise ProviderApplicationError(
                "Bungie API returned a response that is not JSON",
                status_code=response.status_code,
                endpoint=endpoint
            )

        if not isinstance(body, dict):
            raise ProviderApplicationError(
                "Bungie API returned an unexpected response body",
                status_code=response.status_code,
                endpoint=endpoint
            )

        return body

    @staticmethod
    def _classify_status(response: httpx.Response, endpoint: str) -> ProviderError:
        """Map a non-2xx response onto the error taxonomy."""
        status = response.status_code

        if status == 401:
            return AuthenticationRejectedError(
                "Authentication failed. Token may be expired or invalid.",
                status_code=status,
                endpoint=endpoint
            )

        if status == 429:
            return RateLimitedError(
                "Rate limit exceeded. Please wait before making more requests.",
                retry_after=_retry_after(response),
                endpoint=endpoint
            )

        if status >= 500:
            return ProviderUnavailableError(
                "Bungie API server error. Please try again later.",
                status_code=status,
                endpoint=endpoint
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("Message"):
            return ProviderApplicationError(
                f"Bungie API Error: {body['Message']}",
                error_code=body.get("ErrorCode"),
                error_status=body.get("ErrorStatus"),
                status_code=status,
                endpoint=endpoint
            )

        return ProviderApplicationError(
            f"Bungie API request failed with HTTP {status}",
            status_code=status,
            endpoint=endpoint
        )

    # Profile endpoints
    async def get_profile(
        self,
        membership_type: int,
        membership_id: str,
        components: Optional[List[int]] = None
    ) -> Dict[str, Any]:
        """Get Destiny 2 profile."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Profile/{_segment(membership_id)}/",
            {"components": components or [100, 200]}
        )

    async def get_character(
        self,
        membership_type: int,
        membership_id: str,
        character_id: str,
        components: Optional[List[int]] = None
    ) -> Dict[str, Any]:
        """Get a character."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Profile/{_segment(membership_id)}/Character/{_segment(character_id)}/",
            {"components": components or [200]}
        )

    async def get_item(
        self,
        membership_type: int,
        membership_id: str,
        item_instance_id: str,
        components: Optional[List[int]] = None
    ) -> Dict[str, Any]:
        """Get an item instance."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Profile/{_segment(membership_id)}/Item/{_segment(item_instance_id)}/",
            {"components": components or [300]}
        )

    async def get_linked_profiles(
        self,
        membership_type: int,
        membership_id: str
    ) -> Dict[str, Any]:
        """Get profiles linked across platforms."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Profile/{_segment(membership_id)}/LinkedProfiles/"
        )

    # Player search endpoints
    async def search_destiny_player(
        self,
        membership_type: int,
        display_name: str
    ) -> Dict[str, Any]:
        """Search players by display name."""
        return await self.call(
            f"/Destiny2/SearchDestinyPlayer/{_segment(membership_type)}/{_segment(display_name)}/"
        )

    async def search_destiny_player_by_bungie_name(
        self,
        membership_type: int,
        display_name: str,
        display_name_code: int
    ) -> Dict[str, Any]:
        """Search players by Bungie name and code."""
        return await self.call(
            f"/Destiny2/SearchDestinyPlayerByBungieName/{_segment(membership_type)}/",
            {"displayName": display_name, "displayNameCode": display_name_code}
        )

    # Stats endpoints
    async def get_activity_history(
        self,
        membership_type: int,
        membership_id: str,
        character_id: str,
        count: int = 25,
        mode: Optional[int] = None,
        page: Optional[int] = None
    ) -> Dict[str, Any]:
        """Get a character's activity history."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Account/{_segment(membership_id)}/Character/{_segment(character_id)}/Stats/Activities/",
            {"count": count, "mode": mode, "page": page}
        )

    async def get_historical_stats(
        self,
        membership_type: int,
        membership_id: str,
        character_id: str,
        period_type: Optional[int] = None,
        modes: Optional[List[int]] = None,
        groups: Optional[List[int]] = None
    ) -> Dict[str, Any]:
        """Get historical stats for a character."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Account/{_segment(membership_id)}/Character/{_segment(character_id)}/Stats/",
            {"periodType": period_type, "modes": modes, "groups": groups}
        )

    async def get_leaderboards(
        self,
        membership_type: int,
        membership_id: str,
        maxtop: Optional[int] = None,
        modes: Optional[str] = None,
        statid: Optional[str] = None
    ) -> Dict[str, Any]:
        """Get leaderboards for a player."""
        return await self.call(
            f"/Destiny2/Stats/Leaderboards/{_segment(membership_type)}/{_segment(membership_id)}/",
            {"maxtop": maxtop, "modes": modes, "statid": statid}
        )

    async def get_aggregate_activity_stats(
        self,
        membership_type: int,
        membership_id: str,
        character_id: str
    ) -> Dict[str, Any]:
        """Get aggregate activity stats for a character."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Account/{_segment(membership_id)}/Character/{_segment(character_id)}/Stats/AggregateActivityStats/"
        )

    async def get_unique_weapon_history(
        self,
        membership_type: int,
        membership_id: str,
        character_id: str
    ) -> Dict[str, Any]:
        """Get unique weapon history for a character."""
        return await self.call(
            f"/Destiny2/{_segment(membership_type)}/Account/{_segment(membership_id)}/Character/{_segment(character_id)}/Stats/UniqueWeapons/"
        )

    async def get_post_game_carnage_report(self, activity_id: str) -> Dict[str, Any]:
        """Get the post-game carnage report for an activity instance."""
        return await self.call(f"/Destiny2/Stats/PostGameCarnageReport/{_segment(activity_id)}/")

    # Manifest endpoints
    async def get_manifest(self) -> Dict[str, Any]:
        """Get the Destiny 2 manifest."""
        return await self.call("/Destiny2/Manifest/")

    async def get_entity_definition(
        self,
        entity_type: str,
        hash_identifier: int
    ) -> Dict[str, Any]:
        """Get a manifest entity definition."""
        return await self.call(f"/Destiny2/Manifest/{_segment(entity_type)}/{_segment(hash_identifier)}/")

    # Milestone and vendor endpoints
    async def get_public_milestones(self) -> Dict[str, Any]:
        """Get public milestones."""
        return await self.call("/Destiny2/Milestones/")

    async def get_public_milestone_content(self, milestone_hash: int) -> Dict[str, Any]:
        """Get content for a milestone."""
        return await self.call(f"/Destiny2/Milestones/{_segment(milestone_hash)}/Content/")

    async def get_public_vendors(self, components: Optional[List[int]] = None) -> Dict[str, Any]:
        """Get public vendor data."""
        return await self.call(
            "/Destiny2/Vendors/",
            {"components": components or [400, 401, 402]}
        )

    # Clan endpoints
    async def get_clan_weekly_reward_state(self, group_id: str) -> Dict[str, Any]:
        """Get a clan's weekly reward state."""
        return await self.call(f"/Destiny2/Clan/{_segment(group_id)}/WeeklyRewardState/")

    async def get_clan_banner_source(self) -> Dict[str, Any]:
        """Get the clan banner dictionary."""
        return await self.call("/Destiny2/Clan/ClanBannerDictionary/")

    # Authenticated endpoints
    async def get_memberships_for_current_user(self) -> Dict[str, Any]:
        """Get memberships of the authenticated user."""
        return await self.call("/User/GetMembershipsForCurrentUser/", requires_auth=True)


def _retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds to wait from Retry-After, or Bungie's ThrottleSeconds."""
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            return None

    try:
        body = response.json()
    except ValueError:
        return None

    if isinstance(body, dict) and body.get("ThrottleSeconds"):
        return float(body["ThrottleSeconds"])
    return None


def _segment(value: Any) -> str:
    """Percent-encode one path segment, slashes and query marks included."""
    return quote(str(value), safe="")
