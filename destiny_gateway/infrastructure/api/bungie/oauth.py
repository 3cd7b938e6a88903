"""
Bungie OAuth2 Service

Owns the OAuth2 credential for authenticated Bungie API calls and runs the
authorization-code and refresh-token grants against the token endpoint.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from ....core.exceptions import (
    CredentialMissingError,
    TokenExchangeError,
    TokenRefreshError,
)
from ....core.protocols import OAuthProtocol
from ....utils.datetime_utils import utc_now
from .models import OAuthCredential, TokenResponse

logger = logging.getLogger(__name__)


class _GrantFailed(Exception):
    """Internal marker for a failed token grant."""


class BungieOAuthService(OAuthProtocol):
    """
    Bungie OAuth2 credential manager.

    States:
        unauthenticated: no credential stored
        valid: credential stored and now < expires_at
        expired: credential stored and now >= expires_at

    The credential is replaced wholesale on every successful grant and left
    untouched when a grant fails. Nothing is persisted.
    """

    AUTHORIZE_URL = "https://www.bungie.net/en/OAuth/Authorize"
    TOKEN_URL = "https://www.bungie.net/Platform/App/OAuth/token/"
    DEFAULT_STATE = "random_state_string"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_key: str,
        authorize_url: str = AUTHORIZE_URL,
        token_url: str = TOKEN_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize OAuth service.

        Args:
            client_id: Bungie OAuth client ID
            client_secret: Bungie OAuth client secret
            api_key: Bungie API key, sent with token requests
            authorize_url: User-facing authorization endpoint
            token_url: Token endpoint
            timeout: Token request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            clock: Source of the current UTC time
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_key = api_key
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.timeout = timeout

        self._transport = transport
        self._clock = clock
        self._credential: Optional[OAuthCredential] = None

    @property
    def credential(self) -> Optional[OAuthCredential]:
        """Currently stored credential, if any."""
        return self._credential

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """
        Build the URL a user opens to authorize this application.

        Args:
            state: Anti-forgery value echoed back on redirect. The default is
                a fixed placeholder; callers needing CSRF protection must
                pass their own.

        Returns:
            Authorization URL
        """
        url = httpx.URL(
            self.authorize_url,
            params={
                "client_id": self.client_id,
                "response_type": "code",
                "state": state or self.DEFAULT_STATE
            }
        )
        return str(url)

    async def exchange_code(self, code: str) -> OAuthCredential:
        """
        Exchange an authorization code for a credential.

        Args:
            code: Authorization code from the OAuth redirect

        Returns:
            New credential

        Raises:
            TokenExchangeError: If the grant fails; state is unchanged
        """
        logger.info("Exchanging authorization code for OAuth token")

        try:
            credential = await self._request_token({
                "grant_type": "authorization_code",
                "code": code
            })
        except _GrantFailed as e:
            cause = e.__cause__ or e
            raise TokenExchangeError(
                f"OAuth token exchange failed: {e}",
                original_exception=cause
            ) from cause

        self._credential = credential
        logger.info(f"OAuth token obtained, expires at {credential.expires_at.isoformat()}")
        return credential

    async def refresh(self) -> OAuthCredential:
        """
        Refresh the stored credential with its refresh token.

        Works whether or not the access token has expired.

        Returns:
            New credential

        Raises:
            CredentialMissingError: If no refresh token is stored (no request is made)
            TokenRefreshError: If the grant fails; the prior credential is kept
        """
        if self._credential is None or not self._credential.refresh_token:
            raise CredentialMissingError("No refresh token available")

        logger.info("Refreshing OAuth token")

        try:
            credential = await self._request_token({
                "grant_type": "refresh_token",
                "refresh_token": self._credential.refresh_token
            })
        except _GrantFailed as e:
            cause = e.__cause__ or e
            raise TokenRefreshError(
                f"Token refresh failed: {e}",
                original_exception=cause
            ) from cause

        self._credential = credential
        logger.info(f"OAuth token refreshed, expires at {credential.expires_at.isoformat()}")
        return credential

    async def _request_token(self, grant: Dict[str, str]) -> OAuthCredential:
        """POST a form-encoded grant to the token endpoint."""
        data = {
            **grant,
            "client_id": self.client_id,
            "client_secret": self.client_secret
        }
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "X-API-Key": self.api_key
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(self.token_url, data=data, headers=headers)
                response.raise_for_status()
                token = TokenResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise _GrantFailed(f"token endpoint returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise _GrantFailed(f"{type(e).__name__}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise _GrantFailed(f"invalid token response: {e}") from e

        return OAuthCredential.from_token_response(token, issued_at=self._clock())

    def current_access_token(self) -> Optional[str]:
        """Stored access token, without checking expiry."""
        if self._credential is None:
            return None
        return self._credential.access_token or None

    def is_expired(self) -> bool:
        """True if no credential is stored or now >= expires_at."""
        if self._credential is None:
            return True
        return self._clock() >= self._credential.expires_at

    def set_credential(self, credential: OAuthCredential) -> None:
        """Install a credential obtained out of band."""
        self._credential = credential
        logger.info("OAuth credential installed")

    def clear_credential(self) -> None:
        """Forget the stored credential."""
        self._credential = None
        logger.info("OAuth credential cleared")

    def get_status(self) -> Dict[str, Any]:
        """Describe the credential state without exposing tokens."""
        if self._credential is None:
            state = "unauthenticated"
        elif self.is_expired():
            state = "expired"
        else:
            state = "valid"

        credential = self._credential
        return {
            "state": state,
            "client_configured": bool(self.client_id and self.client_secret),
            "expires_at": credential.expires_at.isoformat() if credential else None,
            "membership_id": credential.membership_id if credential else None,
            "can_refresh": bool(credential and credential.refresh_token)
        }
