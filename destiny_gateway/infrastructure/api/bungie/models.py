"""
Bungie API Models

Pydantic models for OAuth credentials and request descriptions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ....utils.datetime_utils import seconds_from


class TokenResponse(BaseModel):
    """Body returned by the Bungie OAuth token endpoint."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: Optional[str] = None
    refresh_expires_in: Optional[int] = None
    membership_id: Optional[str] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class OAuthCredential(BaseModel):
    """OAuth2 token bundle authorizing authenticated calls."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    token_type: str = "Bearer"
    membership_id: Optional[str] = None
    refresh_expires_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_token_response(cls, token: TokenResponse, issued_at: datetime) -> "OAuthCredential":
        """
        Build a credential from a token response.

        Args:
            token: Parsed token endpoint body
            issued_at: Time the response was received

        Returns:
            Credential with absolute expiry times
        """
        refresh_expires_at = None
        if token.refresh_expires_in is not None:
            refresh_expires_at = seconds_from(issued_at, token.refresh_expires_in)

        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=seconds_from(issued_at, token.expires_in),
            token_type=token.token_type,
            membership_id=token.membership_id,
            refresh_expires_at=refresh_expires_at
        )


def _encode_param(value: Any) -> Any:
    """Comma-join list values the way the Bungie API expects them."""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return value


@dataclass(frozen=True)
class GovernedRequest:
    """Description of one outbound call."""
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    requires_auth: bool = False

    def query_params(self) -> Dict[str, Any]:
        """Query parameters with unset values dropped."""
        return {
            key: _encode_param(value)
            for key, value in self.params.items()
            if value is not None and value != [] and value != ""
        }
